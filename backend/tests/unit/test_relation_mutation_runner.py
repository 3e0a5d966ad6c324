import asyncio
from typing import Dict, List, Set, Tuple

import pytest

from backend.src.models.relations import InboundCleanupSpec, PlannedRelationMutation
from backend.src.services.relation_mutation_runner import (
    apply_bidirectional_relation_mutations,
    apply_detach_relation_mutations,
    apply_inbound_cleanup_specs,
)

Key = Tuple[str, str, str]


class InMemoryLinks:
    """Set-based reverse-link store; add/remove are naturally idempotent."""

    def __init__(self) -> None:
        self.links: Dict[Key, Set[str]] = {}
        self.calls: List[str] = []

    def _key(self, m: PlannedRelationMutation) -> Key:
        return (m.config.target_collection, m.related_id, m.config.target_field)

    async def add(self, m: PlannedRelationMutation) -> None:
        await asyncio.sleep(0)
        self.calls.append(f"add:{m.related_id}")
        self.links.setdefault(self._key(m), set()).add(m.source_id)

    async def remove(self, m: PlannedRelationMutation) -> None:
        await asyncio.sleep(0)
        self.calls.append(f"remove:{m.related_id}")
        self.links.setdefault(self._key(m), set()).discard(m.source_id)


@pytest.mark.asyncio
async def test_additions_settle_before_removals():
    store = InMemoryLinks()

    await apply_bidirectional_relation_mutations(
        collection="projects",
        relation_fields=["person_ids"],
        previous_entity={"id": "proj1", "person_ids": ["p1", "p2"]},
        next_entity={"id": "proj1", "person_ids": ["p3", "p4"]},
        on_add=store.add,
        on_remove=store.remove,
    )

    kinds = [call.split(":")[0] for call in store.calls]
    assert kinds == ["add", "add", "remove", "remove"]


@pytest.mark.asyncio
async def test_applying_same_plan_twice_is_idempotent():
    store = InMemoryLinks()
    kwargs = dict(
        collection="notes",
        relation_fields=["person_ids", "task_ids"],
        previous_entity={"id": "n1", "person_ids": ["p1"]},
        next_entity={"id": "n1", "person_ids": ["p2"], "task_ids": ["t1"]},
        on_add=store.add,
        on_remove=store.remove,
    )

    await apply_bidirectional_relation_mutations(**kwargs)
    once = {k: set(v) for k, v in store.links.items()}
    await apply_bidirectional_relation_mutations(**kwargs)

    assert store.links == once
    assert store.links[("people", "p2", "note_ids")] == {"n1"}
    assert store.links[("tasks", "t1", "note_ids")] == {"n1"}


@pytest.mark.asyncio
async def test_sync_callbacks_are_supported():
    seen: List[str] = []

    await apply_bidirectional_relation_mutations(
        collection="tasks",
        relation_fields=["meeting_ids"],
        next_entity={"id": "t1", "meeting_ids": ["m1"]},
        on_add=lambda m: seen.append(m.related_id),
        on_remove=lambda m: None,
    )

    assert seen == ["m1"]


@pytest.mark.asyncio
async def test_failure_propagates_without_rollback():
    applied: List[str] = []

    async def on_add(m: PlannedRelationMutation) -> None:
        if m.related_id == "bad":
            raise RuntimeError("write failed")
        applied.append(m.related_id)

    with pytest.raises(RuntimeError, match="write failed"):
        await apply_bidirectional_relation_mutations(
            collection="people",
            relation_fields=["company_ids"],
            next_entity={"id": "p1", "company_ids": ["good", "bad"]},
            on_add=on_add,
            on_remove=lambda m: None,
        )

    assert applied == ["good"]


@pytest.mark.asyncio
async def test_failed_addition_prevents_removals():
    removed: List[str] = []

    async def on_add(m: PlannedRelationMutation) -> None:
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        await apply_bidirectional_relation_mutations(
            collection="people",
            relation_fields=["company_ids"],
            previous_entity={"id": "p1", "company_ids": ["old"]},
            next_entity={"id": "p1", "company_ids": ["new"]},
            on_add=on_add,
            on_remove=lambda m: removed.append(m.related_id),
        )

    assert removed == []


@pytest.mark.asyncio
async def test_detach_removes_every_outbound_link():
    store = InMemoryLinks()
    store.links[("people", "p1", "meeting_ids")] = {"m1"}
    store.links[("notes", "n1", "meeting_ids")] = {"m1", "m2"}

    await apply_detach_relation_mutations(
        collection="meetings",
        relation_fields=["person_ids", "note_ids"],
        deleted_entity={"id": "m1", "person_ids": ["p1"], "note_ids": ["n1"]},
        on_remove=store.remove,
    )

    assert store.links[("people", "p1", "meeting_ids")] == set()
    assert store.links[("notes", "n1", "meeting_ids")] == {"m2"}


@pytest.mark.asyncio
async def test_inbound_cleanup_invokes_callback_per_spec():
    specs: List[InboundCleanupSpec] = []

    await apply_inbound_cleanup_specs(target_collection="projects", on_spec=specs.append)

    assert {(s.source_collection, s.source_field) for s in specs} == {
        ("notes", "project_ids"),
        ("tasks", "project_ids"),
        ("meetings", "project_ids"),
        ("companies", "project_ids"),
        ("people", "project_ids"),
    }
