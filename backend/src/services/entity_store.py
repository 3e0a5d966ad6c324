"""SQLite-backed document store for workspace entities."""

from __future__ import annotations

from datetime import datetime, timezone
import json
import logging
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel

from ..models.entities import CollectionName
from .database import DatabaseService

logger = logging.getLogger(__name__)

EntityRecord = Dict[str, Any]


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds")


def _to_record(entity: Mapping[str, Any] | BaseModel) -> EntityRecord:
    if isinstance(entity, BaseModel):
        return entity.model_dump(mode="json")
    return dict(entity)


class EntityStore:
    """Store entities as JSON documents keyed by (collection, id)."""

    def __init__(self, db_service: DatabaseService | None = None) -> None:
        self.db_service = db_service or DatabaseService()
        self.db_service.initialize()

    def get_by_id(self, collection: CollectionName, entity_id: str) -> Optional[EntityRecord]:
        conn = self.db_service.connect()
        try:
            row = conn.execute(
                "SELECT data FROM entities WHERE collection = ? AND entity_id = ?",
                (collection, entity_id),
            ).fetchone()
        finally:
            conn.close()
        if row is None:
            return None
        return self._decode(collection, entity_id, row["data"])

    def get_all(self, collection: CollectionName) -> List[EntityRecord]:
        conn = self.db_service.connect()
        try:
            rows = conn.execute(
                """
                SELECT entity_id, data
                FROM entities
                WHERE collection = ?
                ORDER BY updated_at DESC, entity_id ASC
                """,
                (collection,),
            ).fetchall()
        finally:
            conn.close()

        records: List[EntityRecord] = []
        for row in rows:
            record = self._decode(collection, row["entity_id"], row["data"])
            if record is not None:
                records.append(record)
        return records

    def set(self, collection: CollectionName, entity: Mapping[str, Any] | BaseModel) -> EntityRecord:
        """Insert or replace an entity and return the stored record."""
        record = _to_record(entity)
        entity_id = record.get("id")
        if not isinstance(entity_id, str) or not entity_id:
            raise ValueError("Entity must carry a non-empty string id")
        updated_at = str(record.get("updated_at") or utcnow_iso())

        conn = self.db_service.connect()
        try:
            with conn:
                conn.execute(
                    """
                    INSERT INTO entities (collection, entity_id, data, updated_at)
                    VALUES (?, ?, ?, ?)
                    ON CONFLICT(collection, entity_id) DO UPDATE SET
                        data = excluded.data,
                        updated_at = excluded.updated_at
                    """,
                    (collection, entity_id, json.dumps(record), updated_at),
                )
        finally:
            conn.close()
        return record

    def delete(self, collection: CollectionName, entity_id: str) -> bool:
        conn = self.db_service.connect()
        try:
            with conn:
                cursor = conn.execute(
                    "DELETE FROM entities WHERE collection = ? AND entity_id = ?",
                    (collection, entity_id),
                )
        finally:
            conn.close()
        return cursor.rowcount > 0

    def _decode(self, collection: str, entity_id: str, raw: str) -> Optional[EntityRecord]:
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(
                "Skipping malformed entity row",
                extra={"collection": collection, "entity_id": entity_id},
            )
            return None
        if not isinstance(data, dict):
            logger.warning(
                "Skipping non-object entity row",
                extra={"collection": collection, "entity_id": entity_id},
            )
            return None
        return data


__all__ = ["EntityStore", "EntityRecord", "utcnow_iso"]
