"""Storage-specific reverse-link operations."""

from __future__ import annotations

import abc

from ..models.relations import InboundCleanupSpec, RelationConfig


class RelationMutator(abc.ABC):
    """
    Persistence side of relation sync, implemented once per storage backend.

    Planning and orchestration stay shared; implementations only know how to
    touch their own store. Every method must be idempotent: adding an id that
    is already present or removing one that is already absent succeeds as a
    no-op. A missing target entity may be ignored.
    """

    @abc.abstractmethod
    async def add_reverse_link(
        self, config: RelationConfig, related_id: str, source_id: str
    ) -> None:
        """Add ``source_id`` to ``config.target_field`` of the related entity."""

    @abc.abstractmethod
    async def remove_reverse_link(
        self, config: RelationConfig, related_id: str, source_id: str
    ) -> None:
        """Remove ``source_id`` from ``config.target_field`` of the related entity."""

    @abc.abstractmethod
    async def cleanup_inbound_reference(
        self, spec: InboundCleanupSpec, deleted_id: str
    ) -> None:
        """Strip ``deleted_id`` from ``spec.source_field`` across ``spec.source_collection``."""


__all__ = ["RelationMutator"]
