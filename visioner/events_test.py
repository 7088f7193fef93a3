"""Tests for the world-change event bus."""

from visioner.events import EventBus, EventType


class TestEventBus:
    def test_emit_reaches_subscriber(self):
        bus = EventBus()
        seen = []
        bus.on(EventType.TOKEN_UPDATED, seen.append)
        event = bus.emit(EventType.TOKEN_UPDATED, token_id="t1")
        assert seen == [event]
        assert event.data == {"token_id": "t1"}

    def test_only_matching_type(self):
        bus = EventBus()
        seen = []
        bus.on(EventType.WALL_CHANGED, seen.append)
        bus.emit(EventType.LIGHT_CHANGED)
        assert seen == []

    def test_duplicate_subscription_ignored(self):
        bus = EventBus()
        seen = []
        bus.on(EventType.WALL_CHANGED, seen.append)
        bus.on(EventType.WALL_CHANGED, seen.append)
        bus.emit(EventType.WALL_CHANGED)
        assert len(seen) == 1
        assert bus.listener_count(EventType.WALL_CHANGED) == 1

    def test_off(self):
        bus = EventBus()
        seen = []
        bus.on(EventType.WALL_CHANGED, seen.append)
        bus.off(EventType.WALL_CHANGED, seen.append)
        bus.off(EventType.LIGHT_CHANGED, seen.append)
        bus.emit(EventType.WALL_CHANGED)
        assert seen == []
        assert bus.listener_count() == 0

    def test_failing_handler_does_not_stop_others(self):
        bus = EventBus()
        seen = []

        def broken(event):
            raise RuntimeError("boom")

        bus.on(EventType.WALL_CHANGED, broken)
        bus.on(EventType.WALL_CHANGED, seen.append)
        bus.emit(EventType.WALL_CHANGED)
        assert len(seen) == 1

    def test_history_is_bounded(self):
        bus = EventBus(history_limit=3)
        for i in range(5):
            bus.emit(EventType.TOKEN_UPDATED, n=i)
        bus.emit(EventType.WALL_CHANGED)
        history = bus.get_history()
        assert len(history) == 3
        assert [e.data.get("n") for e in history] == [3, 4, None]
        assert len(bus.get_history(EventType.TOKEN_UPDATED)) == 2

    def test_str(self):
        event = EventBus().emit(EventType.TOKEN_DELETED, token_id="t")
        assert str(event) == "[token.deleted] {'token_id': 't'}"
