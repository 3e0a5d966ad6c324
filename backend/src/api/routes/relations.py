"""Relation graph planning endpoints."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from fastapi import APIRouter, HTTPException, status

from ...models.entities import ENTITY_COLLECTIONS, CollectionName, relation_fields_for
from ...models.relations import (
    DetachPlanRequest,
    InboundCleanupSpec,
    PlannedRelationMutation,
    RelationConfig,
    RelationPlan,
    RelationPlanRequest,
)
from ...services.relation_domain import (
    RELATION_CONFIG,
    plan_bidirectional_relation_mutations,
    plan_detach_relation_mutations,
    plan_inbound_cleanup_specs,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/relations", tags=["relations"])


def _fields(collection: CollectionName, requested: Optional[List[str]]) -> List[str]:
    return requested if requested is not None else relation_fields_for(collection)


def _bad_request(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={"error": "validation_error", "message": message},
    )


@router.get("/config", response_model=Dict[str, Dict[str, RelationConfig]])
async def get_relation_config():
    """Return the reverse-link table keyed by collection then relation field."""
    return RELATION_CONFIG


@router.post("/plan", response_model=RelationPlan)
async def plan_relations(request: RelationPlanRequest):
    """
    Plan reverse-link additions and removals for a created or updated entity.

    Omit ``previous_entity`` for a create. ``relation_fields`` defaults to
    every relation field declared for the collection.
    """
    try:
        plan = plan_bidirectional_relation_mutations(
            collection=request.collection,
            relation_fields=_fields(request.collection, request.relation_fields),
            next_entity=request.next_entity,
            previous_entity=request.previous_entity,
        )
    except ValueError as exc:
        raise _bad_request(str(exc)) from exc

    logger.debug(
        f"Planned {len(plan.additions)} additions and {len(plan.removals)} removals "
        f"for {request.collection}"
    )
    return plan


@router.post("/detach-plan", response_model=List[PlannedRelationMutation])
async def plan_detach(request: DetachPlanRequest):
    """Plan removal of the reverse links held by an entity about to be deleted."""
    try:
        return plan_detach_relation_mutations(
            collection=request.collection,
            relation_fields=_fields(request.collection, request.relation_fields),
            deleted_entity=request.deleted_entity,
        )
    except ValueError as exc:
        raise _bad_request(str(exc)) from exc


@router.get("/inbound/{collection}", response_model=List[InboundCleanupSpec])
async def get_inbound_cleanup_specs(collection: str):
    """List the (collection, field) pairs that can reference ``collection``."""
    if collection not in ENTITY_COLLECTIONS:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": "not_found", "message": f"Unknown collection: {collection}"},
        )
    return plan_inbound_cleanup_specs(collection)
