"""Tests for the in-memory relationship and flag stores."""

from visioner.store import InMemoryFlagStore, InMemoryRelationshipStore
from visioner.types import CoverState, VisibilityState


class TestRelationshipStore:
    def test_defaults(self):
        store = InMemoryRelationshipStore()
        assert store.get_visibility("a", "b") == VisibilityState.OBSERVED
        assert store.get_cover("a", "b") == CoverState.NONE

    def test_directional(self):
        store = InMemoryRelationshipStore()
        store.set_visibility("a", "b", VisibilityState.HIDDEN)
        assert store.get_visibility("a", "b") == VisibilityState.HIDDEN
        assert store.get_visibility("b", "a") == VisibilityState.OBSERVED
        assert store.write_count == 1

    def test_forget_token(self):
        store = InMemoryRelationshipStore()
        store.set_visibility("a", "b", VisibilityState.HIDDEN)
        store.set_visibility("c", "a", VisibilityState.CONCEALED)
        store.set_visibility("c", "b", VisibilityState.CONCEALED)
        store.set_cover("b", "a", CoverState.GREATER)
        store.forget_token("a")
        assert store.get_visibility("a", "b") == VisibilityState.OBSERVED
        assert store.get_cover("b", "a") == CoverState.NONE
        assert store.visibility_map("c") == {"b": VisibilityState.CONCEALED}


class TestFlagStore:
    def test_set_get_unset(self):
        flags = InMemoryFlagStore()
        flags.set_flag("t", "k", {"v": 1})
        assert flags.get_flag("t", "k") == {"v": 1}
        assert flags.unset_flag("t", "k")
        assert not flags.unset_flag("t", "k")
        assert flags.get_flag("t", "k") is None

    def test_stored_value_is_a_copy(self):
        flags = InMemoryFlagStore()
        value = {"v": 1}
        flags.set_flag("t", "k", value)
        value["v"] = 2
        assert flags.get_flag("t", "k") == {"v": 1}

    def test_token_ids_skip_empty(self):
        flags = InMemoryFlagStore()
        flags.set_flag("t1", "k", {})
        flags.set_flag("t2", "k", {})
        flags.unset_flag("t2", "k")
        assert flags.token_ids() == ["t1"]
