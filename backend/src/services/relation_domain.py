"""Pure planning of reverse-link mutations for the entity relation graph.

Nothing in this module performs I/O. Given snapshots of an entity before and
after a change, the planners compute which reverse links must be added or
removed so that every relation stays mutually consistent. Executing a plan is
the job of :mod:`relation_mutation_runner`.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Dict, Iterable, List, Optional, Sequence

from pydantic import BaseModel

from ..models.entities import ENTITY_COLLECTIONS, CollectionName
from ..models.relations import (
    InboundCleanupSpec,
    PlannedRelationMutation,
    RelationConfig,
    RelationPlan,
)


def _reverse(target_collection: CollectionName, target_field: str) -> RelationConfig:
    return RelationConfig(target_collection=target_collection, target_field=target_field)


# Keyed by (collection, relation field). A field missing here is not reverse-synced.
RELATION_CONFIG: Dict[CollectionName, Dict[str, RelationConfig]] = {
    "projects": {
        "person_ids": _reverse("people", "project_ids"),
        "company_ids": _reverse("companies", "project_ids"),
        "note_ids": _reverse("notes", "project_ids"),
        "task_ids": _reverse("tasks", "project_ids"),
        "meeting_ids": _reverse("meetings", "project_ids"),
    },
    "notes": {
        "related_note_ids": _reverse("notes", "related_note_ids"),
        "person_ids": _reverse("people", "note_ids"),
        "company_ids": _reverse("companies", "note_ids"),
        "project_ids": _reverse("projects", "note_ids"),
        "task_ids": _reverse("tasks", "note_ids"),
        "meeting_ids": _reverse("meetings", "note_ids"),
    },
    "tasks": {
        "person_ids": _reverse("people", "task_ids"),
        "company_ids": _reverse("companies", "task_ids"),
        "project_ids": _reverse("projects", "task_ids"),
        "note_ids": _reverse("notes", "task_ids"),
        "meeting_ids": _reverse("meetings", "task_ids"),
    },
    "meetings": {
        "person_ids": _reverse("people", "meeting_ids"),
        "company_ids": _reverse("companies", "meeting_ids"),
        "project_ids": _reverse("projects", "meeting_ids"),
        "note_ids": _reverse("notes", "meeting_ids"),
        "task_ids": _reverse("tasks", "meeting_ids"),
    },
    "companies": {
        "person_ids": _reverse("people", "company_ids"),
        "project_ids": _reverse("projects", "company_ids"),
        "note_ids": _reverse("notes", "company_ids"),
        "task_ids": _reverse("tasks", "company_ids"),
        "meeting_ids": _reverse("meetings", "company_ids"),
    },
    "people": {
        "company_ids": _reverse("companies", "person_ids"),
        "project_ids": _reverse("projects", "person_ids"),
        "note_ids": _reverse("notes", "person_ids"),
        "task_ids": _reverse("tasks", "person_ids"),
        "meeting_ids": _reverse("meetings", "person_ids"),
    },
}


def unique_entity_ids(values: Iterable[Any]) -> List[str]:
    """Drop empty or non-string values and duplicates, keeping first-seen order."""
    seen: Dict[str, None] = {}
    for value in values:
        if isinstance(value, str) and value and value not in seen:
            seen[value] = None
    return list(seen.keys())


def _read_field(entity: Any, field: str) -> Any:
    if isinstance(entity, Mapping):
        return entity.get(field)
    if isinstance(entity, BaseModel):
        return getattr(entity, field, None)
    return None


def read_relation_ids(entity: Any, field: str) -> List[str]:
    """
    Read a relation id list from an untyped record.

    Accepts plain mappings and pydantic models. Returns an empty list when the
    entity is missing, is not a record, or the field does not hold a list.
    """
    if entity is None:
        return []
    value = _read_field(entity, field)
    if isinstance(value, (list, tuple)):
        return list(value)
    return []


def read_entity_id(entity: Any) -> str:
    """Return the ``id`` of a record, raising ``ValueError`` when absent."""
    entity_id = _read_field(entity, "id")
    if not isinstance(entity_id, str) or not entity_id:
        raise ValueError("Entity must carry a non-empty string id")
    return entity_id


def plan_bidirectional_relation_mutations(
    *,
    collection: CollectionName,
    relation_fields: Sequence[str],
    next_entity: Any,
    previous_entity: Optional[Any] = None,
) -> RelationPlan:
    """
    Diff the relation fields of two entity snapshots.

    Ids only present in ``next_entity`` become additions, ids only present in
    ``previous_entity`` become removals. ``previous_entity`` is None on create.
    """
    collection_config = RELATION_CONFIG[collection]
    source_id = read_entity_id(next_entity)
    additions: List[PlannedRelationMutation] = []
    removals: List[PlannedRelationMutation] = []

    for field in relation_fields:
        config = collection_config.get(field)
        if config is None:
            continue

        previous_ids = unique_entity_ids(read_relation_ids(previous_entity, field))
        next_ids = unique_entity_ids(read_relation_ids(next_entity, field))
        previous_set = set(previous_ids)
        next_set = set(next_ids)

        removals.extend(
            PlannedRelationMutation(config=config, related_id=related_id, source_id=source_id)
            for related_id in previous_ids
            if related_id not in next_set
        )
        additions.extend(
            PlannedRelationMutation(config=config, related_id=related_id, source_id=source_id)
            for related_id in next_ids
            if related_id not in previous_set
        )

    return RelationPlan(additions=additions, removals=removals)


def plan_detach_relation_mutations(
    *,
    collection: CollectionName,
    relation_fields: Sequence[str],
    deleted_entity: Any,
) -> List[PlannedRelationMutation]:
    """Plan removal of every outbound reverse link held by a deleted entity."""
    collection_config = RELATION_CONFIG[collection]
    source_id = read_entity_id(deleted_entity)
    removals: List[PlannedRelationMutation] = []

    for field in relation_fields:
        config = collection_config.get(field)
        if config is None:
            continue
        for related_id in unique_entity_ids(read_relation_ids(deleted_entity, field)):
            removals.append(
                PlannedRelationMutation(config=config, related_id=related_id, source_id=source_id)
            )

    return removals


def plan_inbound_cleanup_specs(target_collection: CollectionName) -> List[InboundCleanupSpec]:
    """List every (collection, field) pair whose values may point at ``target_collection``."""
    specs: List[InboundCleanupSpec] = []
    for source_collection in ENTITY_COLLECTIONS:
        for source_field, config in RELATION_CONFIG[source_collection].items():
            if config.target_collection != target_collection:
                continue
            specs.append(
                InboundCleanupSpec(source_collection=source_collection, source_field=source_field)
            )
    return specs


__all__ = [
    "RELATION_CONFIG",
    "unique_entity_ids",
    "read_relation_ids",
    "read_entity_id",
    "plan_bidirectional_relation_mutations",
    "plan_detach_relation_mutations",
    "plan_inbound_cleanup_specs",
]
