"""Relation-aware CRUD for one entity collection."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional
import uuid

from ..models.entities import ENTITY_ID_PREFIXES, CollectionName, relation_fields_for
from ..models.relations import InboundCleanupSpec, PlannedRelationMutation
from .entity_store import EntityRecord, EntityStore, utcnow_iso
from .relation_domain import read_relation_ids, unique_entity_ids
from .relation_mutation_runner import (
    apply_bidirectional_relation_mutations,
    apply_detach_relation_mutations,
    apply_inbound_cleanup_specs,
)
from .relation_mutator import RelationMutator

logger = logging.getLogger(__name__)

_PROTECTED_FIELDS = ("id", "created_at")


class RelationalEntityRepository:
    """
    CRUD for a single collection that keeps reverse links in sync.

    The primary write always lands first. Reverse-link sync runs afterwards
    and its failures are logged rather than raised, leaving the related
    records to be repaired by the next sync of the same entity.
    """

    def __init__(
        self,
        collection: CollectionName,
        store: EntityStore,
        mutator: RelationMutator,
    ) -> None:
        self.collection = collection
        self.store = store
        self.mutator = mutator
        self.relation_fields = relation_fields_for(collection)

    def _new_id(self) -> str:
        return f"{ENTITY_ID_PREFIXES[self.collection]}_{uuid.uuid4()}"

    def _normalize_relations(self, record: Dict[str, Any]) -> Dict[str, Any]:
        for field in self.relation_fields:
            record[field] = unique_entity_ids(read_relation_ids(record, field))
        return record

    async def _on_add(self, mutation: PlannedRelationMutation) -> None:
        await self.mutator.add_reverse_link(mutation.config, mutation.related_id, mutation.source_id)

    async def _on_remove(self, mutation: PlannedRelationMutation) -> None:
        await self.mutator.remove_reverse_link(
            mutation.config, mutation.related_id, mutation.source_id
        )

    async def _sync(self, next_entity: EntityRecord, previous_entity: Optional[EntityRecord]) -> None:
        try:
            await apply_bidirectional_relation_mutations(
                collection=self.collection,
                relation_fields=self.relation_fields,
                next_entity=next_entity,
                previous_entity=previous_entity,
                on_add=self._on_add,
                on_remove=self._on_remove,
            )
        except Exception:
            logger.warning(
                "Reverse relation sync failed",
                extra={"collection": self.collection, "entity_id": next_entity.get("id")},
                exc_info=True,
            )

    def get(self, entity_id: str) -> Optional[EntityRecord]:
        return self.store.get_by_id(self.collection, entity_id)

    def list(self) -> List[EntityRecord]:
        return self.store.get_all(self.collection)

    def list_by_relation(self, field: str, related_id: str) -> List[EntityRecord]:
        """Records whose ``field`` relation list contains ``related_id``."""
        return [row for row in self.list() if related_id in read_relation_ids(row, field)]

    async def create(self, data: Mapping[str, Any]) -> EntityRecord:
        now = utcnow_iso()
        record = dict(data)
        record["id"] = self._new_id()
        record["created_at"] = now
        record["updated_at"] = now
        self._normalize_relations(record)

        stored = self.store.set(self.collection, record)
        logger.info("Created entity", extra={"collection": self.collection, "entity_id": stored["id"]})
        await self._sync(stored, None)
        return stored

    async def update(self, entity_id: str, changes: Mapping[str, Any]) -> Optional[EntityRecord]:
        previous = self.get(entity_id)
        if previous is None:
            return None

        record = {**previous, **{k: v for k, v in changes.items() if k not in _PROTECTED_FIELDS}}
        record["updated_at"] = utcnow_iso()
        self._normalize_relations(record)

        stored = self.store.set(self.collection, record)
        logger.info("Updated entity", extra={"collection": self.collection, "entity_id": entity_id})
        await self._sync(stored, previous)
        return stored

    async def delete(self, entity_id: str) -> bool:
        existing = self.get(entity_id)
        if existing is None:
            return False

        self.store.delete(self.collection, entity_id)
        logger.info("Deleted entity", extra={"collection": self.collection, "entity_id": entity_id})

        async def _cleanup(spec: InboundCleanupSpec) -> None:
            await self.mutator.cleanup_inbound_reference(spec, entity_id)

        try:
            await apply_detach_relation_mutations(
                collection=self.collection,
                relation_fields=self.relation_fields,
                deleted_entity=existing,
                on_remove=self._on_remove,
            )
        except Exception:
            logger.warning(
                "Detaching reverse links after delete failed",
                extra={"collection": self.collection, "entity_id": entity_id},
                exc_info=True,
            )

        # Runs even after a failed detach: reverse links may be stale.
        try:
            await apply_inbound_cleanup_specs(
                target_collection=self.collection,
                on_spec=_cleanup,
            )
        except Exception:
            logger.warning(
                "Inbound reference cleanup after delete failed",
                extra={"collection": self.collection, "entity_id": entity_id},
                exc_info=True,
            )
        return True


__all__ = ["RelationalEntityRepository"]
