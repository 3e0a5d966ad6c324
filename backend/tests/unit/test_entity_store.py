from pathlib import Path

import pytest

from backend.src.models.entities import Note
from backend.src.services import config as config_module
from backend.src.services.database import DatabaseService
from backend.src.services.entity_store import EntityStore
from backend.src.services.local_relation_mutator import LocalRelationMutator
from backend.src.models.relations import InboundCleanupSpec, RelationConfig


@pytest.fixture
def store(tmp_path: Path) -> EntityStore:
    return EntityStore(DatabaseService(tmp_path / "entities.db"))


def _record(entity_id: str, **fields):
    return {"id": entity_id, "created_at": "2024-01-01T00:00:00Z", "updated_at": "2024-01-01T00:00:00Z", **fields}


def test_set_and_get_round_trip(store: EntityStore):
    stored = store.set("people", _record("p1", first_name="Ada"))

    assert stored["first_name"] == "Ada"
    assert store.get_by_id("people", "p1") == stored
    assert store.get_by_id("people", "missing") is None
    assert store.get_by_id("notes", "p1") is None


def test_set_accepts_models_and_upserts(store: EntityStore):
    note = Note(id="n1", created_at="t", updated_at="t", title="First")
    store.set("notes", note)
    store.set("notes", {**store.get_by_id("notes", "n1"), "title": "Second"})

    rows = store.get_all("notes")
    assert len(rows) == 1
    assert rows[0]["title"] == "Second"


def test_default_store_uses_configured_database_path(tmp_path: Path, monkeypatch):
    db_file = tmp_path / "custom" / "workspace.db"
    monkeypatch.setenv("DATABASE_PATH", str(db_file))
    config_module.reload_config()
    try:
        store = EntityStore()
    finally:
        config_module.get_config.cache_clear()

    assert store.db_service.db_path == db_file.resolve()
    assert db_file.exists()


def test_set_requires_id(store: EntityStore):
    with pytest.raises(ValueError):
        store.set("notes", {"title": "no id"})


def test_delete_reports_whether_row_existed(store: EntityStore):
    store.set("tasks", _record("t1"))

    assert store.delete("tasks", "t1") is True
    assert store.delete("tasks", "t1") is False


def test_malformed_rows_are_skipped(store: EntityStore):
    store.set("notes", _record("n1"))
    conn = store.db_service.connect()
    with conn:
        conn.execute(
            "INSERT INTO entities (collection, entity_id, data, updated_at) VALUES (?, ?, ?, ?)",
            ("notes", "broken", "{not json", "2024-01-01"),
        )
    conn.close()

    assert [row["id"] for row in store.get_all("notes")] == ["n1"]
    assert store.get_by_id("notes", "broken") is None


PEOPLE_NOTES = RelationConfig(target_collection="people", target_field="note_ids")


@pytest.mark.asyncio
async def test_add_reverse_link_is_idempotent(store: EntityStore):
    store.set("people", _record("p1", note_ids=["n0"]))
    mutator = LocalRelationMutator(store)

    await mutator.add_reverse_link(PEOPLE_NOTES, "p1", "n1")
    first = store.get_by_id("people", "p1")
    await mutator.add_reverse_link(PEOPLE_NOTES, "p1", "n1")

    assert first["note_ids"] == ["n0", "n1"]
    assert first["updated_at"] != "2024-01-01T00:00:00Z"
    assert store.get_by_id("people", "p1")["note_ids"] == ["n0", "n1"]


@pytest.mark.asyncio
async def test_remove_reverse_link_is_idempotent(store: EntityStore):
    store.set("people", _record("p1", note_ids=["n1", "n2"]))
    mutator = LocalRelationMutator(store)

    await mutator.remove_reverse_link(PEOPLE_NOTES, "p1", "n1")
    await mutator.remove_reverse_link(PEOPLE_NOTES, "p1", "n1")

    assert store.get_by_id("people", "p1")["note_ids"] == ["n2"]


@pytest.mark.asyncio
async def test_missing_target_and_malformed_field_are_no_ops(store: EntityStore):
    store.set("people", _record("p1", note_ids="not-a-list"))
    mutator = LocalRelationMutator(store)

    await mutator.add_reverse_link(PEOPLE_NOTES, "ghost", "n1")
    await mutator.remove_reverse_link(PEOPLE_NOTES, "p1", "n1")
    await mutator.add_reverse_link(PEOPLE_NOTES, "p1", "n1")

    assert store.get_by_id("people", "ghost") is None
    assert store.get_by_id("people", "p1")["note_ids"] == ["n1"]


@pytest.mark.asyncio
async def test_cleanup_inbound_reference_strips_deleted_id(store: EntityStore):
    store.set("tasks", _record("t1", project_ids=["proj1", "proj2"]))
    store.set("tasks", _record("t2", project_ids=["proj2"]))
    store.set("tasks", _record("t3", project_ids=None))
    mutator = LocalRelationMutator(store)

    await mutator.cleanup_inbound_reference(
        InboundCleanupSpec(source_collection="tasks", source_field="project_ids"), "proj1"
    )

    assert store.get_by_id("tasks", "t1")["project_ids"] == ["proj2"]
    assert store.get_by_id("tasks", "t2")["project_ids"] == ["proj2"]
    assert store.get_by_id("tasks", "t3")["project_ids"] is None
