"""Write path for resources and disasters.

Each committed transition publishes exactly one MutationEvent. Publishing
happens after the store write and is not transactional with it: if the
publish step fails the write stands and viewers stay stale until their
next full refetch.
"""

import logging
import uuid
from dataclasses import replace
from typing import Any, Protocol

from reliefmap.core.exceptions import EntityNotFoundError, InvalidInputError
from reliefmap.core.geocoding import LocationResolver
from reliefmap.core.models import (
    AuditEntry,
    EntityKind,
    EntityMetadata,
    GeoEntity,
    MutationEvent,
    utcnow,
)
from reliefmap.core.store import EntityStore

logger = logging.getLogger(__name__)


class Publisher(Protocol):
    def publish(self, event: MutationEvent) -> int: ...


def _require(**fields: Any) -> None:
    missing = [
        name for name, value in fields.items() if not value or not str(value).strip()
    ]
    if missing:
        raise InvalidInputError(
            f"Missing required fields: {', '.join(missing)}", field=missing[0]
        )


class EntityService:
    """Create, update and delete entities, resolving locations on the way in.

    Disasters carry an audit trail in their metadata: one ``create`` entry,
    then one ``update`` entry per update. Client-supplied trails are ignored.
    """

    def __init__(
        self,
        store: EntityStore,
        resolver: LocationResolver,
        publisher: Publisher | None = None,
    ):
        self.store = store
        self.resolver = resolver
        self.publisher = publisher

    def _publish(self, event: MutationEvent) -> None:
        if self.publisher is None:
            return
        try:
            self.publisher.publish(event)
        except Exception as e:
            logger.error(
                "Broadcast of %s %s %s failed: %s",
                event.entity_kind.value,
                event.action.value,
                event.entity_id,
                e,
            )

    @staticmethod
    def _audited(
        kind: EntityKind,
        metadata: EntityMetadata,
        action: str,
        trail: tuple[AuditEntry, ...] = (),
    ) -> EntityMetadata:
        if kind is not EntityKind.DISASTER:
            return replace(metadata, audit_trail=())
        return replace(metadata, audit_trail=(*trail, AuditEntry(action, utcnow())))

    def get(self, kind: EntityKind, entity_id: str) -> GeoEntity:
        """Fetch one entity.

        Raises:
            EntityNotFoundError: If no such entity exists
        """
        entity = self.store.get(kind, entity_id)
        if entity is None:
            raise EntityNotFoundError(kind.value, entity_id)
        return entity

    def create(
        self,
        kind: EntityKind,
        name: str,
        location_name: str,
        type: str,
        metadata: EntityMetadata | None = None,
        disaster_id: str | None = None,
    ) -> GeoEntity:
        """Resolve ``location_name`` (place name or "lat,lng"), insert, broadcast ``create``.

        Raises:
            InvalidInputError: If a required field is blank
            ResolutionNotFound: If the location cannot be resolved
            EntityNotFoundError: If ``disaster_id`` names a missing disaster
            QueryError: If the insert fails
        """
        _require(name=name, location_name=location_name, type=type)
        if disaster_id is not None:
            self.get(EntityKind.DISASTER, disaster_id)

        point = self.resolver.resolve_or_parse(location_name.strip())
        entity = GeoEntity(
            id=str(uuid.uuid4()),
            kind=kind,
            name=name.strip(),
            location_name=location_name.strip(),
            point=point,
            type=type.strip(),
            metadata=self._audited(kind, metadata or EntityMetadata(), "create"),
            disaster_id=disaster_id,
        )
        entity = self.store.insert(entity)

        logger.info(
            "%s created: %s (%s) at %s",
            kind.value.capitalize(),
            entity.id,
            entity.name,
            entity.location_name,
        )
        self._publish(MutationEvent.created(entity))
        return entity

    def update(
        self,
        kind: EntityKind,
        entity_id: str,
        name: str | None = None,
        location_name: str | None = None,
        type: str | None = None,
        metadata: EntityMetadata | None = None,
    ) -> GeoEntity:
        """Apply the given changes and broadcast ``update``.

        The point is re-resolved only when ``location_name`` actually changes.

        Raises:
            EntityNotFoundError: If no such entity exists
            ResolutionNotFound: If a new location cannot be resolved
            QueryError: If the update fails
        """
        existing = self.get(kind, entity_id)

        changes: dict[str, Any] = {}
        if name:
            changes["name"] = name.strip()
        if type:
            changes["type"] = type.strip()
        if metadata is not None:
            changes["metadata"] = metadata
        if location_name and location_name.strip() != existing.location_name:
            changes["location_name"] = location_name.strip()
            changes["point"] = self.resolver.resolve_or_parse(location_name.strip())

        changed = ", ".join(changes) or "no changes"
        changes["metadata"] = self._audited(
            kind,
            changes.get("metadata", existing.metadata),
            "update",
            existing.metadata.audit_trail,
        )
        entity = self.store.update(existing.with_changes(**changes))

        logger.info(
            "%s %s updated (%s)", kind.value.capitalize(), entity_id, changed
        )
        self._publish(MutationEvent.updated(entity))
        return entity

    def delete(self, kind: EntityKind, entity_id: str) -> None:
        """Delete the entity and broadcast ``delete`` with its id.

        Raises:
            EntityNotFoundError: If no such entity exists
        """
        if not self.store.delete(kind, entity_id):
            raise EntityNotFoundError(kind.value, entity_id)

        logger.info("%s %s deleted", kind.value.capitalize(), entity_id)
        self._publish(MutationEvent.deleted(kind, entity_id))
