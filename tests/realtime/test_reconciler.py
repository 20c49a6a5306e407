"""Tests for reliefmap.realtime.reconciler.ViewerReconciler.

Tests cover:
- Upsert-by-id for create/update, tolerant delete
- Duplicate and reordered delivery
- Kind filtering, wire messages and async consumption
"""

from reliefmap.core.models import EntityKind, GeoEntity, MutationEvent
from reliefmap.realtime.reconciler import ViewerReconciler


def _entity(entity_id, name="Shelter", kind=EntityKind.RESOURCE):
    return GeoEntity(id=entity_id, kind=kind, name=name, location_name="Queens")


class TestApply:
    """Test single-event patching."""

    def test_create_appends(self):
        view = ViewerReconciler()
        assert view.apply(MutationEvent.created(_entity("a"))) is True
        assert [e.id for e in view.entities] == ["a"]

    def test_duplicate_create_ignored(self):
        """Redelivered creates never duplicate an id."""
        view = ViewerReconciler()
        view.apply(MutationEvent.created(_entity("a")))
        assert view.apply(MutationEvent.created(_entity("a", name="again"))) is False
        assert len(view) == 1
        assert view.get("a").name == "Shelter"

    def test_update_replaces_in_place(self):
        view = ViewerReconciler()
        view.seed([_entity("a"), _entity("b"), _entity("c")])

        view.apply(MutationEvent.updated(_entity("b", name="Renamed")))

        assert [e.id for e in view.entities] == ["a", "b", "c"]
        assert view.get("b").name == "Renamed"

    def test_update_for_missing_id_appends(self):
        view = ViewerReconciler()
        view.apply(MutationEvent.updated(_entity("x")))
        assert "x" in view

    def test_delete_removes(self):
        view = ViewerReconciler()
        view.seed([_entity("a"), _entity("b")])
        assert view.apply(MutationEvent.deleted(EntityKind.RESOURCE, "a")) is True
        assert [e.id for e in view.entities] == ["b"]

    def test_delete_missing_is_noop(self):
        view = ViewerReconciler()
        view.seed([_entity("a")])
        assert view.apply(MutationEvent.deleted(EntityKind.RESOURCE, "zzz")) is False
        assert len(view) == 1

    def test_update_after_delete_resurrects(self):
        """Without sequence numbers a late update brings the entity back."""
        view = ViewerReconciler()
        view.seed([_entity("a")])

        view.apply(MutationEvent.deleted(EntityKind.RESOURCE, "a"))
        view.apply(MutationEvent.updated(_entity("a", name="stale")))

        assert view.get("a").name == "stale"

    def test_other_kinds_ignored_when_scoped(self):
        view = ViewerReconciler(EntityKind.RESOURCE)
        event = MutationEvent.created(_entity("d1", kind=EntityKind.DISASTER))
        assert view.apply(event) is False
        assert len(view) == 0

    def test_entities_is_a_copy(self):
        view = ViewerReconciler()
        view.seed([_entity("a")])
        view.entities.clear()
        assert len(view) == 1


class TestSeed:
    """Test initial population."""

    def test_seed_replaces_list(self):
        view = ViewerReconciler()
        view.seed([_entity("a")])
        view.seed([_entity("b"), _entity("c")])
        assert [e.id for e in view.entities] == ["b", "c"]

    def test_seed_deduplicates(self):
        view = ViewerReconciler()
        view.seed([_entity("a"), _entity("a", name="dup"), _entity("b")])
        assert [e.id for e in view.entities] == ["a", "b"]
        assert view.get("a").name == "Shelter"


class TestMessages:
    """Test wire-level input."""

    def test_apply_message_create_and_delete(self):
        view = ViewerReconciler()
        view.apply_message(MutationEvent.created(_entity("a")).to_dict())
        assert "a" in view

        view.apply_message(
            {"action": "delete", "entity_kind": "resource", "entity_id": "a"}
        )
        assert "a" not in view

    async def test_consume_stream(self):
        async def events():
            yield MutationEvent.created(_entity("a"))
            yield MutationEvent.created(_entity("a"))
            yield MutationEvent.created(_entity("b"))
            yield MutationEvent.deleted(EntityKind.RESOURCE, "a")

        view = ViewerReconciler()
        changed = await view.consume(events())

        assert changed == 3
        assert [e.id for e in view.entities] == ["b"]
