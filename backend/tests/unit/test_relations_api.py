from fastapi.testclient import TestClient

from backend.src.api.main import app

client = TestClient(app)


def test_health():
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_relation_config_lists_reverse_fields():
    response = client.get("/api/relations/config")

    assert response.status_code == 200
    data = response.json()
    assert data["projects"]["person_ids"] == {"target_collection": "people", "target_field": "project_ids"}
    assert set(data) == {"projects", "notes", "tasks", "meetings", "companies", "people"}


def test_plan_defaults_to_all_relation_fields():
    response = client.post(
        "/api/relations/plan",
        json={
            "collection": "notes",
            "previous_entity": {"id": "n1", "person_ids": ["p1"]},
            "next_entity": {"id": "n1", "person_ids": ["p2"], "task_ids": ["t1"]},
        },
    )

    assert response.status_code == 200
    plan = response.json()
    assert [(m["config"]["target_collection"], m["related_id"]) for m in plan["additions"]] == [
        ("people", "p2"),
        ("tasks", "t1"),
    ]
    assert [m["related_id"] for m in plan["removals"]] == ["p1"]
    assert plan["removals"][0]["source_id"] == "n1"


def test_plan_without_entity_id_is_a_validation_error():
    response = client.post(
        "/api/relations/plan",
        json={"collection": "notes", "next_entity": {"person_ids": ["p1"]}},
    )

    assert response.status_code == 400
    assert response.json()["error"] == "validation_error"


def test_plan_rejects_unknown_collection():
    response = client.post(
        "/api/relations/plan",
        json={"collection": "widgets", "next_entity": {"id": "w1"}},
    )

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "validation_error"
    assert body["detail"]["errors"]


def test_detach_plan_honours_explicit_fields():
    response = client.post(
        "/api/relations/detach-plan",
        json={
            "collection": "people",
            "relation_fields": ["company_ids"],
            "deleted_entity": {"id": "u1", "company_ids": ["c1"], "project_ids": ["p1"]},
        },
    )

    assert response.status_code == 200
    assert response.json() == [
        {
            "config": {"target_collection": "companies", "target_field": "person_ids"},
            "related_id": "c1",
            "source_id": "u1",
        }
    ]


def test_inbound_specs_for_companies():
    response = client.get("/api/relations/inbound/companies")

    assert response.status_code == 200
    specs = response.json()
    assert {"source_collection": "projects", "source_field": "company_ids"} in specs
    assert {"source_collection": "people", "source_field": "company_ids"} in specs


def test_inbound_specs_unknown_collection_is_404():
    response = client.get("/api/relations/inbound/widgets")

    assert response.status_code == 404
    assert response.json() == {
        "error": "not_found",
        "message": "Unknown collection: widgets",
        "detail": None,
    }
