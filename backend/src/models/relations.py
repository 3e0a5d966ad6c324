"""Relation graph models shared by the planner, runner and API."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .entities import CollectionName


class RelationConfig(BaseModel):
    """Reverse side of a relation field."""

    model_config = ConfigDict(frozen=True)

    target_collection: CollectionName
    target_field: str


class PlannedRelationMutation(BaseModel):
    """Add or remove ``source_id`` on the related entity's reverse field."""

    model_config = ConfigDict(frozen=True)

    config: RelationConfig
    related_id: str
    source_id: str


class InboundCleanupSpec(BaseModel):
    """A (collection, field) pair that may still reference a deleted entity."""

    model_config = ConfigDict(frozen=True)

    source_collection: CollectionName
    source_field: str


class RelationPlan(BaseModel):
    """Reverse-link additions and removals implied by one entity mutation."""

    additions: List[PlannedRelationMutation] = Field(default_factory=list)
    removals: List[PlannedRelationMutation] = Field(default_factory=list)


class RelationPlanRequest(BaseModel):
    """Request payload to plan reverse-link changes for an update."""

    collection: CollectionName
    relation_fields: Optional[List[str]] = Field(
        None, description="Fields to diff (None = every relation field of the collection)"
    )
    next_entity: Dict[str, Any]
    previous_entity: Optional[Dict[str, Any]] = None


class DetachPlanRequest(BaseModel):
    """Request payload to plan outbound link removal for a deleted entity."""

    collection: CollectionName
    relation_fields: Optional[List[str]] = None
    deleted_entity: Dict[str, Any]


__all__ = [
    "RelationConfig",
    "PlannedRelationMutation",
    "InboundCleanupSpec",
    "RelationPlan",
    "RelationPlanRequest",
    "DetachPlanRequest",
]
