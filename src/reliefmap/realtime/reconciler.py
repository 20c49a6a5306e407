"""Client-side materialized entity list kept current by mutation events.

The reconciler is seeded from a query result and then patched by every
event it receives. Upsert-by-id is the only protection against duplicate
or reordered delivery:

- create: append unless the id is already present
- update: replace in place, or append if the id is missing
- delete: remove, no-op if absent

There are no sequence numbers, so an ``update`` delivered after a later
``delete`` for the same id brings the entity back. The view recovers on
the next full refetch (``seed``).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from reliefmap.core.models import EntityKind, GeoEntity, MutationAction, MutationEvent

if TYPE_CHECKING:
    from collections.abc import AsyncIterable, Iterable

logger = logging.getLogger(__name__)


class ViewerReconciler:
    """Ordered local copy of server entities.

    Args:
        entity_kind: When set, events for other kinds are ignored.
    """

    def __init__(self, entity_kind: EntityKind | None = None) -> None:
        self.entity_kind = entity_kind
        self._items: list[GeoEntity] = []

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, entity_id: object) -> bool:
        return self._index(entity_id) is not None

    @property
    def entities(self) -> list[GeoEntity]:
        """Snapshot of the local list, in order."""
        return list(self._items)

    def get(self, entity_id: str) -> GeoEntity | None:
        idx = self._index(entity_id)
        return self._items[idx] if idx is not None else None

    def _index(self, entity_id: object) -> int | None:
        for i, item in enumerate(self._items):
            if item.id == entity_id:
                return i
        return None

    def seed(self, entities: Iterable[GeoEntity]) -> None:
        """Replace the local list with a fresh query result.

        Duplicate ids in the input keep their first occurrence.
        """
        seen: set[str] = set()
        items: list[GeoEntity] = []
        for entity in entities:
            if entity.id in seen:
                continue
            seen.add(entity.id)
            items.append(entity)
        self._items = items

    def apply(self, event: MutationEvent) -> bool:
        """Patch the local list with one event.

        Returns:
            True if the list changed.
        """
        if self.entity_kind is not None and event.entity_kind != self.entity_kind:
            return False

        idx = self._index(event.entity_id)

        if event.action is MutationAction.DELETE:
            if idx is None:
                return False
            del self._items[idx]
            return True

        if event.entity is None:
            logger.warning(
                "Ignoring %s event for %s without an entity payload",
                event.action.value,
                event.entity_id,
            )
            return False

        if event.action is MutationAction.CREATE:
            if idx is not None:
                return False
            self._items.append(event.entity)
            return True

        # update
        if idx is None:
            self._items.append(event.entity)
        else:
            self._items[idx] = event.entity
        return True

    def apply_message(self, message: dict[str, Any]) -> bool:
        """Apply a decoded wire message (``MutationEvent.to_dict`` form)."""
        return self.apply(MutationEvent.from_dict(message))

    async def consume(self, events: AsyncIterable[MutationEvent]) -> int:
        """Apply every event from an async stream until it ends.

        Returns:
            Number of events that changed the list.
        """
        changed = 0
        async for event in events:
            if self.apply(event):
                changed += 1
        return changed
