"""Execute relation plans through caller-supplied callbacks."""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Awaitable, Callable, Iterable, Optional, Sequence, TypeVar, Union

from ..models.entities import CollectionName
from ..models.relations import InboundCleanupSpec, PlannedRelationMutation
from .relation_domain import (
    plan_bidirectional_relation_mutations,
    plan_detach_relation_mutations,
    plan_inbound_cleanup_specs,
)

T = TypeVar("T")

MaybeAwaitable = Union[None, Awaitable[None]]
MutationCallback = Callable[[PlannedRelationMutation], MaybeAwaitable]
SpecCallback = Callable[[InboundCleanupSpec], MaybeAwaitable]


async def _invoke(callback: Callable[[T], MaybeAwaitable], item: T) -> None:
    result = callback(item)
    if inspect.isawaitable(result):
        await result


async def _run_all(callback: Callable[[T], MaybeAwaitable], items: Iterable[T]) -> None:
    # First failure propagates; siblings that already applied are not rolled back.
    await asyncio.gather(*(_invoke(callback, item) for item in items))


async def apply_bidirectional_relation_mutations(
    *,
    collection: CollectionName,
    relation_fields: Sequence[str],
    next_entity: Any,
    previous_entity: Optional[Any] = None,
    on_add: MutationCallback,
    on_remove: MutationCallback,
) -> None:
    """
    Plan and apply reverse-link changes for a created or updated entity.

    All additions run concurrently and settle before any removal starts;
    removals then run concurrently. Callbacks may be plain functions or
    coroutines.
    """
    plan = plan_bidirectional_relation_mutations(
        collection=collection,
        relation_fields=relation_fields,
        next_entity=next_entity,
        previous_entity=previous_entity,
    )
    await _run_all(on_add, plan.additions)
    await _run_all(on_remove, plan.removals)


async def apply_detach_relation_mutations(
    *,
    collection: CollectionName,
    relation_fields: Sequence[str],
    deleted_entity: Any,
    on_remove: MutationCallback,
) -> None:
    """Remove every reverse link pointing back at a deleted entity."""
    removals = plan_detach_relation_mutations(
        collection=collection,
        relation_fields=relation_fields,
        deleted_entity=deleted_entity,
    )
    await _run_all(on_remove, removals)


async def apply_inbound_cleanup_specs(
    *,
    target_collection: CollectionName,
    on_spec: SpecCallback,
) -> None:
    """Invoke ``on_spec`` once per inbound cleanup spec, concurrently."""
    await _run_all(on_spec, plan_inbound_cleanup_specs(target_collection))


__all__ = [
    "apply_bidirectional_relation_mutations",
    "apply_detach_relation_mutations",
    "apply_inbound_cleanup_specs",
]
