"""ReliefMap HTTP API: resolver, proximity search, entity CRUD and live events.

    Browser  →  POST /api/geocode/location  →  LocationResolver   →  providers
    Browser  →  GET  /api/resources         →  GeoQueryEngine     →  DuckDB
    Browser  →  POST /api/resources         →  EntityService      →  MessageBus
    Browser  ←  GET  /api/events            ←  MessageBus (SSE)

Run:
    reliefmap serve
    # or: uvicorn reliefmap.server:create_app --factory
"""

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, Field

from reliefmap import __version__
from reliefmap.api import ReliefMap
from reliefmap.core.exceptions import (
    BackendError,
    EntityNotFoundError,
    InvalidInputError,
    InvalidLocationError,
    QueryError,
    ReliefMapError,
    ResolutionNotFound,
)
from reliefmap.core.models import Coordinates, EntityKind, EntityMetadata, GeoEntity
from reliefmap.realtime.broadcaster import format_sse

logger = logging.getLogger(__name__)

# First match along the exception's MRO wins
_STATUS_CODES: dict[type[ReliefMapError], int] = {
    InvalidInputError: 400,
    EntityNotFoundError: 404,
    ResolutionNotFound: 404,
    QueryError: 500,
    BackendError: 500,
}


def status_for(exc: ReliefMapError) -> int:
    """HTTP status for a ReliefMap exception."""
    for klass in type(exc).__mro__:
        if klass in _STATUS_CODES:
            return _STATUS_CODES[klass]
    return 500


def error_body(exc: Exception) -> dict[str, str]:
    return {"error": type(exc).__name__, "message": str(exc)}


# ── Request bodies ──


class GeocodeRequest(BaseModel):
    location_name: str = ""


class ResourceCreate(BaseModel):
    name: str = ""
    location_name: str = ""
    type: str = ""
    metadata: dict[str, Any] | None = None
    disaster_id: str | None = None


class ResourceUpdate(BaseModel):
    name: str | None = None
    location_name: str | None = None
    type: str | None = None
    metadata: dict[str, Any] | None = None


class DisasterCreate(BaseModel):
    title: str = ""
    location_name: str = ""
    category: str = ""
    description: str | None = None
    tags: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] | None = None


class DisasterUpdate(BaseModel):
    title: str | None = None
    location_name: str | None = None
    category: str | None = None
    description: str | None = None
    tags: list[str] | None = None
    metadata: dict[str, Any] | None = None


# ── Helpers ──


def parse_metadata(data: dict[str, Any] | None) -> EntityMetadata | None:
    """Client metadata; ``audit_trail`` is server-managed and dropped."""
    if data is None:
        return None
    data = {k: v for k, v in data.items() if k != "audit_trail"}
    try:
        return EntityMetadata.from_dict(data)
    except (TypeError, ValueError) as e:
        raise InvalidInputError(f"Invalid metadata: {e}", field="metadata") from e


def parse_center(lat: str | None, lng: str | None) -> Coordinates | None:
    """Optional search center from query strings.

    Raises:
        InvalidLocationError: If only one of lat/lng is given or either is
            not a number
    """
    if lat is None and lng is None:
        return None
    if lat is None or lng is None:
        raise InvalidLocationError(
            "Both lat and lng are required for a radius search", field="location"
        )
    try:
        return Coordinates(float(lat), float(lng))
    except ValueError as e:
        raise InvalidLocationError(
            f"Invalid coordinates: lat={lat}, lng={lng}", field="location"
        ) from e


def serialize(entity: GeoEntity, distance_m: float | None = None) -> dict[str, Any]:
    data = entity.to_dict()
    if distance_m is not None:
        data["distance_meters"] = round(distance_m, 1)
    return data


def _disaster_metadata(
    base: EntityMetadata | None,
    description: str | None,
    tags: list[str] | None,
    extra: dict[str, Any] | None,
) -> EntityMetadata | None:
    if description is None and tags is None and extra is None:
        return None
    merged = base.to_dict() if base else {}
    merged.update(extra or {})
    if description is not None:
        merged["description"] = description
    if tags is not None:
        merged["tags"] = tags
    return parse_metadata(merged)


# ── Application ──


def create_app(core: ReliefMap | None = None) -> FastAPI:
    """Build the FastAPI application around one ReliefMap instance.

    Handlers that touch the store or the providers are plain ``def`` so
    FastAPI runs them in its threadpool; the message bus hands their events
    to the SSE streams thread-safely.
    """
    core = core or ReliefMap.from_config()

    @asynccontextmanager
    async def lifespan(application: FastAPI):
        logger.info(
            "ReliefMap API v%s up (%s, providers: %s)",
            __version__,
            core.backend.get_backend_info(),
            core.config.resolver.chain_id,
        )
        yield
        logger.info("ReliefMap API shutting down")

    app = FastAPI(title="ReliefMap API", version=__version__, lifespan=lifespan)
    app.state.core = core

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ReliefMapError)
    async def reliefmap_error_handler(request: Request, exc: ReliefMapError):
        status = status_for(exc)
        if status >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(error_body(exc), status_code=status)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            {"error": "InvalidInputError", "message": str(exc.errors())},
            status_code=400,
        )

    # ── Health & maintenance ──

    @app.get("/api/health")
    def health():
        return {
            "status": "ok",
            "version": __version__,
            "backend": core.backend.get_backend_info(),
            "providers": core.config.resolver.chain_id,
            "viewers": core.bus.subscriber_count,
        }

    @app.post("/api/cache/sweep")
    def sweep_cache():
        return {"deleted": core.sweep_cache()}

    # ── Geocoding ──

    @app.post("/api/geocode/location")
    def geocode_location(body: GeocodeRequest):
        coords = core.geocode(body.location_name)
        return {"location_name": body.location_name.strip(), **coords.to_dict()}

    # ── Search ──

    def _search(
        kind: EntityKind,
        lat: str | None,
        lng: str | None,
        radius: str | None,
        type_filter: str | None,
        sort: str | None,
        tag: str | None = None,
    ) -> list[dict[str, Any]]:
        center = parse_center(lat, lng)
        if center is None:
            entities = core.list_entities(kind=kind, type_filter=type_filter, tag=tag)
            return [serialize(e) for e in entities]

        pairs = core.find_near(
            center.lat,
            center.lng,
            radius_km=radius,
            type_filter=type_filter,
            kind=kind,
            sort_by_distance=sort == "distance",
        )
        if tag:
            pairs = [(e, d) for e, d in pairs if tag in e.metadata.tags]
        return [serialize(e, d) for e, d in pairs]

    # ── Resources ──

    @app.get("/api/resources")
    def list_resources(
        lat: str | None = Query(None),
        lng: str | None = Query(None),
        radius: str | None = Query(None),
        type: str | None = Query(None),
        sort: str | None = Query(None),
    ):
        return _search(EntityKind.RESOURCE, lat, lng, radius, type or None, sort)

    @app.get("/api/resources/{resource_id}")
    def get_resource(resource_id: str):
        return serialize(core.entities.get(EntityKind.RESOURCE, resource_id))

    @app.post("/api/resources", status_code=201)
    def create_resource(body: ResourceCreate):
        entity = core.create_resource(
            body.name,
            body.location_name,
            body.type,
            metadata=parse_metadata(body.metadata),
            disaster_id=body.disaster_id or None,
        )
        return serialize(entity)

    @app.put("/api/resources/{resource_id}")
    def update_resource(resource_id: str, body: ResourceUpdate):
        entity = core.entities.update(
            EntityKind.RESOURCE,
            resource_id,
            name=body.name,
            location_name=body.location_name,
            type=body.type,
            metadata=parse_metadata(body.metadata),
        )
        return serialize(entity)

    @app.delete("/api/resources/{resource_id}")
    def delete_resource(resource_id: str):
        core.entities.delete(EntityKind.RESOURCE, resource_id)
        return {"id": resource_id, "deleted": True}

    # ── Disasters ──

    @app.get("/api/disasters")
    def list_disasters(
        lat: str | None = Query(None),
        lng: str | None = Query(None),
        radius: str | None = Query(None),
        tag: str | None = Query(None),
        category: str | None = Query(None),
        sort: str | None = Query(None),
    ):
        return _search(
            EntityKind.DISASTER, lat, lng, radius, category or None, sort, tag=tag
        )

    @app.get("/api/disasters/{disaster_id}")
    def get_disaster(disaster_id: str):
        return serialize(core.entities.get(EntityKind.DISASTER, disaster_id))

    @app.get("/api/disasters/{disaster_id}/resources")
    def disaster_resources(
        disaster_id: str,
        radius: str | None = Query(None),
        type: str | None = Query(None),
    ):
        resources = core.resources_near_disaster(
            disaster_id, radius_km=radius, type_filter=type or None
        )
        return [serialize(r) for r in resources]

    @app.post("/api/disasters", status_code=201)
    def create_disaster(body: DisasterCreate):
        metadata = _disaster_metadata(
            None, body.description, body.tags or None, body.metadata
        )
        entity = core.create_disaster(
            body.title, body.location_name, body.category, metadata=metadata
        )
        return serialize(entity)

    @app.put("/api/disasters/{disaster_id}")
    def update_disaster(disaster_id: str, body: DisasterUpdate):
        existing = core.entities.get(EntityKind.DISASTER, disaster_id)
        metadata = _disaster_metadata(
            existing.metadata, body.description, body.tags, body.metadata
        )
        entity = core.entities.update(
            EntityKind.DISASTER,
            disaster_id,
            name=body.title,
            location_name=body.location_name,
            type=body.category,
            metadata=metadata,
        )
        return serialize(entity)

    @app.delete("/api/disasters/{disaster_id}")
    def delete_disaster(disaster_id: str):
        core.entities.delete(EntityKind.DISASTER, disaster_id)
        return {"id": disaster_id, "deleted": True}

    # ── Live events ──

    @app.get("/api/events")
    async def events():
        """Server-Sent Events stream of committed writes. No replay."""
        conn = core.bus.connect()

        async def frames():
            yield ": connected\n\n"
            async for event in core.bus.stream(conn):
                yield format_sse(event)

        return StreamingResponse(
            frames(),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        )

    return app
