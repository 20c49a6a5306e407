"""Tests for reliefmap.core.store.EntityStore against in-memory DuckDB."""

import typing

import pytest

from reliefmap.core.exceptions import QueryError
from reliefmap.core.models import (
    ContactInfo,
    Coordinates,
    EntityKind,
    EntityMetadata,
    GeoEntity,
)
from reliefmap.core.store import EntityStore


def _resource(id, lat=None, lng=None, type="shelter", **kw):
    point = Coordinates(lat, lng, f"{lat},{lng}") if lat is not None else None
    return GeoEntity(
        id=id,
        kind=EntityKind.RESOURCE,
        name=kw.pop("name", f"Resource {id}"),
        location_name=kw.pop("location_name", "somewhere"),
        point=point,
        type=type,
        **kw,
    )


@pytest.fixture
def store(backend):
    return EntityStore(backend)


class TestEntityStore:
    """Test CRUD over the entities table."""

    def test_insert_assigns_created_at(self, store):
        entity = store.insert(_resource("r1", 40.7, -74.0))
        assert entity.created_at is not None

    def test_get_round_trip(self, store):
        """Point, metadata and type survive storage."""
        metadata = EntityMetadata(
            description="Cots and water",
            contact=ContactInfo(phone="555-0100"),
            capacity=80,
            tags=("flood",),
        )
        store.insert(_resource("r1", 40.7128, -74.006, metadata=metadata))

        loaded = store.get(EntityKind.RESOURCE, "r1")
        assert loaded.point == Coordinates(40.7128, -74.006, "40.7128,-74.006")
        assert loaded.point.point == "POINT(-74.006 40.7128)"
        assert loaded.metadata == metadata
        assert loaded.type == "shelter"

    def test_get_missing(self, store):
        assert store.get(EntityKind.RESOURCE, "nope") is None

    def test_kinds_are_separate(self, store):
        """A resource id is not visible as a disaster."""
        store.insert(_resource("r1", 1.0, 1.0))
        assert store.get(EntityKind.DISASTER, "r1") is None

    def test_unresolved_entity_stored(self, store):
        store.insert(_resource("r1"))
        loaded = store.get(EntityKind.RESOURCE, "r1")
        assert loaded.point is None
        assert loaded.disaster_id is None

    def test_update(self, store):
        entity = store.insert(_resource("r1", 1.0, 1.0))
        store.update(entity.with_changes(name="Renamed", point=Coordinates(2.0, 2.0)))
        loaded = store.get(EntityKind.RESOURCE, "r1")
        assert loaded.name == "Renamed"
        assert (loaded.point.lat, loaded.point.lng) == (2.0, 2.0)

    def test_update_missing_raises(self, store):
        with pytest.raises(QueryError):
            store.update(_resource("ghost", 1.0, 1.0))

    def test_delete(self, store):
        store.insert(_resource("r1", 1.0, 1.0))
        assert store.delete(EntityKind.RESOURCE, "r1") is True
        assert store.delete(EntityKind.RESOURCE, "r1") is False
        assert store.get(EntityKind.RESOURCE, "r1") is None

    def test_duplicate_id_rejected(self, store):
        store.insert(_resource("r1", 1.0, 1.0))
        with pytest.raises(QueryError):
            store.insert(_resource("r1", 1.0, 1.0))

    def test_list_includes_unresolved(self, store):
        store.insert(_resource("a", 1.0, 1.0))
        store.insert(_resource("b"))
        assert {e.id for e in store.list(EntityKind.RESOURCE)} == {"a", "b"}

    def test_list_type_filter_exact(self, store):
        store.insert(_resource("a", 1.0, 1.0, type="shelter"))
        store.insert(_resource("b", 1.0, 1.0, type="Shelter"))
        assert [e.id for e in store.list(EntityKind.RESOURCE, type_filter="shelter")] == ["a"]

    def test_list_by_disaster(self, store):
        store.insert(_resource("a", 1.0, 1.0, disaster_id="d1"))
        store.insert(_resource("b", 1.0, 1.0))
        assert [e.id for e in store.list(EntityKind.RESOURCE, disaster_id="d1")] == ["a"]


class TestWithinBounds:
    """Test the bounding-box prefilter."""

    def test_box_excludes_outside_and_unresolved(self, store):
        store.insert(_resource("in", 10.0, 10.0))
        store.insert(_resource("out", 20.0, 10.0))
        store.insert(_resource("none"))

        found = store.within_bounds(EntityKind.RESOURCE, 9.0, 11.0, 9.0, 11.0)
        assert [e.id for e in found] == ["in"]

    def test_antimeridian_wrap(self, store):
        """min_lng > max_lng selects both sides of 180 degrees."""
        store.insert(_resource("east", 0.0, 179.9))
        store.insert(_resource("west", 0.0, -179.9))
        store.insert(_resource("far", 0.0, 0.0))

        found = store.within_bounds(EntityKind.RESOURCE, -1.0, 1.0, 179.5, -179.5)
        assert {e.id for e in found} == {"east", "west"}

    def test_type_filter(self, store):
        store.insert(_resource("a", 0.0, 0.0, type="water"))
        store.insert(_resource("b", 0.0, 0.0, type="food"))
        found = store.within_bounds(
            EntityKind.RESOURCE, -1.0, 1.0, -1.0, 1.0, type_filter="food"
        )
        assert [e.id for e in found] == ["b"]


class TestAnnotations:
    """The ``list`` method must not shadow the builtin in signatures."""

    @pytest.mark.parametrize("method", ["list", "within_bounds"])
    def test_return_hints_resolve_to_builtin_list(self, method):
        hints = typing.get_type_hints(getattr(EntityStore, method))
        assert hints["return"] == list[GeoEntity]
