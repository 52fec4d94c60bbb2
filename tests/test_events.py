"""
Tests for the engine's EventBus.
"""
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from taverntally.core.events import DIAGNOSTIC_TYPES, Event, EventBus, EventType


class TestEventBus:
    def test_subscribe_and_emit(self):
        bus = EventBus()
        received = []
        bus.subscribe(EventType.MODE_ENTERED, received.append)

        bus.emit_simple(EventType.MODE_ENTERED, {"reason": "test"}, "test")
        bus.emit_simple(EventType.MODE_EXITED)

        assert len(received) == 1
        assert received[0].data == {"reason": "test"}

    def test_subscribe_all(self):
        bus = EventBus()
        received = []
        bus.subscribe_all(received.append)

        bus.emit_simple(EventType.MODE_ENTERED)
        bus.emit_simple(EventType.PHASE_CHANGED)

        assert [event.event_type for event in received] == [EventType.MODE_ENTERED, EventType.PHASE_CHANGED]

    def test_unsubscribe(self):
        bus = EventBus()
        received = []
        bus.subscribe(EventType.NEW_MATCH, received.append)
        bus.unsubscribe(EventType.NEW_MATCH, received.append)
        bus.emit_simple(EventType.NEW_MATCH)
        assert received == []

    def test_failing_handler_does_not_stop_others(self):
        bus = EventBus()
        received = []

        def broken(event):
            raise RuntimeError("boom")

        bus.subscribe(EventType.NEW_MATCH, broken)
        bus.subscribe(EventType.NEW_MATCH, received.append)
        bus.emit_simple(EventType.NEW_MATCH)

        assert len(received) == 1

    def test_only_diagnostics_are_kept(self):
        bus = EventBus()
        bus.emit_simple(EventType.MODE_ENTERED)
        bus.emit(Event(EventType.BOUNDS_VIOLATION, {"field": "hand_count"}, message="hand_count clamped"))
        assert [event.event_type for event in bus.history] == [EventType.BOUNDS_VIOLATION]

    def test_history_is_bounded(self):
        bus = EventBus(history_size=3)
        for i in range(5):
            bus.emit_simple(EventType.LINE_ERROR, {"n": i})
        assert [event.data["n"] for event in bus.history] == [2, 3, 4]

    def test_diagnostic_types(self):
        assert EventType.STUCK_PHASE.is_diagnostic
        assert not EventType.PHASE_CHANGED.is_diagnostic
        assert len(DIAGNOSTIC_TYPES) == 4

    def test_clear(self):
        bus = EventBus()
        received = []
        bus.subscribe_all(received.append)
        bus.emit_simple(EventType.AUTO_RESET)
        bus.clear()
        bus.emit_simple(EventType.AUTO_RESET)
        assert len(received) == 1
        assert len(bus.history) == 1
