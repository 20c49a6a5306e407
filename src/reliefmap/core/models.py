"""Core records shared by the resolver, query engine and realtime layer.

This module provides:
- Coordinates: a resolved point with its provider display name
- EntityMetadata / ContactInfo: typed optional attributes of an entity
- AuditEntry: one recorded write in a disaster's audit trail
- GeoEntity: a point-tagged resource or disaster
- MutationEvent: one committed create/update/delete, as broadcast to viewers
"""

import re
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from reliefmap.core.exceptions import InvalidLocationError

_POINT_RE = re.compile(
    r"^\s*POINT\s*\(\s*(-?\d+(?:\.\d+)?(?:[eE][-+]?\d+)?)\s+"
    r"(-?\d+(?:\.\d+)?(?:[eE][-+]?\d+)?)\s*\)\s*$",
    re.IGNORECASE,
)


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the TIMESTAMP column type."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_geography_point(lat: float, lng: float) -> str:
    """Return the canonical WKT text for a point, longitude first."""
    return f"POINT({lng} {lat})"


def parse_geography_point(text: str) -> tuple[float, float]:
    """Parse ``POINT(<lng> <lat>)`` text into ``(lat, lng)``.

    Raises:
        InvalidLocationError: If the text is not a WKT point
    """
    match = _POINT_RE.match(text or "")
    if not match:
        raise InvalidLocationError(f"Not a WKT point: '{text}'", field="location")
    lng, lat = float(match.group(1)), float(match.group(2))
    return lat, lng


def validate_lat_lng(lat: float, lng: float) -> None:
    """Raise InvalidLocationError unless lat/lng are finite and in range."""
    if not (-90.0 <= lat <= 90.0) or not (-180.0 <= lng <= 180.0):
        raise InvalidLocationError(
            f"Coordinates out of range: lat={lat}, lng={lng}", field="location"
        )


class EntityKind(str, Enum):
    """Kinds of searchable records."""

    RESOURCE = "resource"
    DISASTER = "disaster"


class MutationAction(str, Enum):
    """Write transitions that produce a broadcast event."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class Coordinates:
    """A resolved geography point. Immutable once returned by the resolver."""

    lat: float
    lng: float
    display_name: str = ""

    @property
    def point(self) -> str:
        """Canonical ``POINT(lng lat)`` text."""
        return to_geography_point(self.lat, self.lng)

    def to_dict(self) -> dict[str, Any]:
        """Resolver output contract returned to HTTP callers."""
        return {
            "coordinates": {"lat": self.lat, "lng": self.lng},
            "display_name": self.display_name,
            "geography_point": self.point,
        }

    def to_cache(self) -> dict[str, Any]:
        return {"lat": self.lat, "lng": self.lng, "displayName": self.display_name}

    @classmethod
    def from_cache(cls, value: dict[str, Any]) -> "Coordinates":
        return cls(
            lat=float(value["lat"]),
            lng=float(value["lng"]),
            display_name=value.get("displayName") or "",
        )


@dataclass(frozen=True)
class ContactInfo:
    """Structured contact details; every field is optional."""

    name: str | None = None
    phone: str | None = None
    email: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "phone": self.phone, "email": self.email}

    @classmethod
    def from_value(cls, value: Any) -> "ContactInfo | None":
        """Build from a dict or a free-text contact string."""
        if value is None or value == "":
            return None
        if isinstance(value, ContactInfo):
            return value
        if isinstance(value, str):
            return cls(name=value)
        return cls(
            name=value.get("name"),
            phone=value.get("phone"),
            email=value.get("email"),
        )


@dataclass(frozen=True)
class AuditEntry:
    """One write recorded on an entity (``create`` or ``update``)."""

    action: str
    timestamp: datetime

    def to_dict(self) -> dict[str, Any]:
        return {"action": self.action, "timestamp": self.timestamp.isoformat()}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AuditEntry":
        timestamp = data["timestamp"]
        if isinstance(timestamp, str):
            timestamp = datetime.fromisoformat(timestamp)
        return cls(action=data["action"], timestamp=timestamp)


@dataclass(frozen=True)
class EntityMetadata:
    """Typed optional attributes of an entity.

    Unknown keys in incoming payloads are ignored; absent keys stay None.
    """

    description: str | None = None
    contact: ContactInfo | None = None
    capacity: int | None = None
    availability_status: str | None = None
    tags: tuple[str, ...] = ()
    audit_trail: tuple[AuditEntry, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "description": self.description,
            "contact": self.contact.to_dict() if self.contact else None,
            "capacity": self.capacity,
            "availability_status": self.availability_status,
            "tags": list(self.tags),
            "audit_trail": [entry.to_dict() for entry in self.audit_trail],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "EntityMetadata":
        if not data:
            return cls()
        capacity = data.get("capacity")
        return cls(
            description=data.get("description"),
            contact=ContactInfo.from_value(
                data.get("contact", data.get("contact_info"))
            ),
            capacity=int(capacity) if capacity not in (None, "") else None,
            availability_status=data.get("availability_status"),
            tags=tuple(data.get("tags") or ()),
            audit_trail=tuple(
                AuditEntry.from_dict(entry) for entry in data.get("audit_trail") or ()
            ),
        )


@dataclass
class GeoEntity:
    """A point-tagged record (resource or disaster).

    Attributes:
        id: UUID string
        kind: What sort of record this is
        name: Resource name or disaster title
        location_name: Free-text place the point was resolved from
        point: Resolved coordinates, or None while unresolved
        type: Resource type / disaster category, matched exactly by filters
        metadata: Typed optional attributes
        created_at: Insertion timestamp (set by the store)
        disaster_id: Owning disaster for disaster-scoped resources
    """

    id: str
    kind: EntityKind
    name: str
    location_name: str
    point: Coordinates | None = None
    type: str = ""
    metadata: EntityMetadata = field(default_factory=EntityMetadata)
    created_at: datetime | None = None
    disaster_id: str | None = None

    @property
    def is_searchable(self) -> bool:
        """True when the entity can appear in radius searches."""
        return self.point is not None

    def with_changes(self, **changes: Any) -> "GeoEntity":
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        point = self.point
        return {
            "id": self.id,
            "kind": self.kind.value,
            "name": self.name,
            "location_name": self.location_name,
            "latitude": point.lat if point else None,
            "longitude": point.lng if point else None,
            "location_text": point.point if point else None,
            "display_name": point.display_name if point else None,
            "type": self.type,
            "metadata": self.metadata.to_dict(),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "disaster_id": self.disaster_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GeoEntity":
        """Inverse of ``to_dict``; also accepts ``location_text`` alone."""
        point = None
        lat, lng = data.get("latitude"), data.get("longitude")
        if lat is None and data.get("location_text"):
            lat, lng = parse_geography_point(data["location_text"])
        if lat is not None and lng is not None:
            point = Coordinates(
                lat=float(lat),
                lng=float(lng),
                display_name=data.get("display_name") or "",
            )
        created_at = data.get("created_at")
        if isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at)
        return cls(
            id=str(data["id"]),
            kind=EntityKind(data.get("kind", EntityKind.RESOURCE.value)),
            name=data.get("name", ""),
            location_name=data.get("location_name", ""),
            point=point,
            type=data.get("type") or "",
            metadata=EntityMetadata.from_dict(data.get("metadata")),
            created_at=created_at,
            disaster_id=data.get("disaster_id"),
        )


@dataclass(frozen=True)
class MutationEvent:
    """A one-shot notification of a committed write. Never persisted.

    ``entity`` is carried for create/update; delete carries only ``entity_id``.
    """

    entity_kind: EntityKind
    action: MutationAction
    entity_id: str
    entity: GeoEntity | None = None

    @classmethod
    def created(cls, entity: GeoEntity) -> "MutationEvent":
        return cls(entity.kind, MutationAction.CREATE, entity.id, entity)

    @classmethod
    def updated(cls, entity: GeoEntity) -> "MutationEvent":
        return cls(entity.kind, MutationAction.UPDATE, entity.id, entity)

    @classmethod
    def deleted(cls, kind: EntityKind, entity_id: str) -> "MutationEvent":
        return cls(kind, MutationAction.DELETE, entity_id)

    def to_dict(self) -> dict[str, Any]:
        message: dict[str, Any] = {
            "action": self.action.value,
            "entity_kind": self.entity_kind.value,
        }
        if self.action is MutationAction.DELETE or self.entity is None:
            message["entity_id"] = self.entity_id
        else:
            message["entity"] = self.entity.to_dict()
        return message

    @classmethod
    def from_dict(cls, message: dict[str, Any]) -> "MutationEvent":
        entity = None
        if message.get("entity"):
            entity = GeoEntity.from_dict(message["entity"])
        entity_id = message.get("entity_id") or (entity.id if entity else None)
        if entity_id is None:
            raise ValueError("Mutation message carries neither entity nor entity_id")
        return cls(
            entity_kind=EntityKind(message["entity_kind"]),
            action=MutationAction(message["action"]),
            entity_id=str(entity_id),
            entity=entity,
        )
