"""Relation mutator backed by the local entity store."""

from __future__ import annotations

import logging

from ..models.relations import InboundCleanupSpec, RelationConfig
from .entity_store import EntityStore, utcnow_iso
from .relation_domain import read_relation_ids
from .relation_mutator import RelationMutator

logger = logging.getLogger(__name__)


class LocalRelationMutator(RelationMutator):
    """Apply reverse-link writes directly to an :class:`EntityStore`."""

    def __init__(self, store: EntityStore) -> None:
        self.store = store

    async def add_reverse_link(
        self, config: RelationConfig, related_id: str, source_id: str
    ) -> None:
        related = self.store.get_by_id(config.target_collection, related_id)
        if related is None:
            logger.debug(
                "Reverse link target missing; skipping add",
                extra={"collection": config.target_collection, "entity_id": related_id},
            )
            return

        current = read_relation_ids(related, config.target_field)
        if source_id in current:
            return

        related[config.target_field] = [*current, source_id]
        related["updated_at"] = utcnow_iso()
        self.store.set(config.target_collection, related)

    async def remove_reverse_link(
        self, config: RelationConfig, related_id: str, source_id: str
    ) -> None:
        related = self.store.get_by_id(config.target_collection, related_id)
        if related is None:
            return

        current = read_relation_ids(related, config.target_field)
        if source_id not in current:
            return

        related[config.target_field] = [value for value in current if value != source_id]
        related["updated_at"] = utcnow_iso()
        self.store.set(config.target_collection, related)

    async def cleanup_inbound_reference(
        self, spec: InboundCleanupSpec, deleted_id: str
    ) -> None:
        cleaned = 0
        for row in self.store.get_all(spec.source_collection):
            current = read_relation_ids(row, spec.source_field)
            if deleted_id not in current:
                continue
            row[spec.source_field] = [value for value in current if value != deleted_id]
            row["updated_at"] = utcnow_iso()
            self.store.set(spec.source_collection, row)
            cleaned += 1

        if cleaned:
            logger.info(
                "Removed dangling references",
                extra={
                    "collection": spec.source_collection,
                    "field": spec.source_field,
                    "deleted_id": deleted_id,
                    "rows": cleaned,
                },
            )


__all__ = ["LocalRelationMutator"]
