"""
Diagnostic event bus for the classification engine.

The engine never raises to its caller. Everything worth knowing about
(bounds violations, stuck phases, stale-state resets, lines that failed to
parse) is published here instead, together with the mode/phase lifecycle
events the overlay uses to decide when to redraw.

Each engine owns its own EventBus; there is no process-wide instance.
"""
import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Callable, Deque, Dict, List, Optional

logger = logging.getLogger(__name__)


class EventType(Enum):
    """All event types the engine emits."""
    # Lifecycle
    MODE_ENTERED = auto()
    MODE_EXITED = auto()
    NEW_MATCH = auto()
    PHASE_CHANGED = auto()

    # Diagnostics
    BOUNDS_VIOLATION = auto()
    STUCK_PHASE = auto()
    AUTO_RESET = auto()
    LINE_ERROR = auto()

    @property
    def is_diagnostic(self) -> bool:
        return self in DIAGNOSTIC_TYPES


DIAGNOSTIC_TYPES = frozenset({
    EventType.BOUNDS_VIOLATION,
    EventType.STUCK_PHASE,
    EventType.AUTO_RESET,
    EventType.LINE_ERROR,
})


@dataclass
class Event:
    """
    Event with type and optional data.

    Attributes:
        event_type: The type of event being emitted
        data: Optional payload (dict for every event the engine emits)
        source: Component that raised it (e.g., "PhaseStateMachine")
        message: Human-readable summary, also written to the log
    """
    event_type: EventType
    data: Any = None
    source: str = ""
    message: str = ""


class EventBus:
    """
    Publish-subscribe bus with a bounded history of recent diagnostics.

    Handlers run synchronously in registration order. A handler that raises
    is logged and skipped; it never stops the other handlers or the engine.
    """

    def __init__(self, history_size: int = 200):
        self._handlers: Dict[EventType, List[Callable[[Event], None]]] = {}
        self._global_handlers: List[Callable[[Event], None]] = []
        self._handler_lock = threading.Lock()
        self.history: Deque[Event] = deque(maxlen=history_size)

    def subscribe(self, event_type: EventType, handler: Callable[[Event], None]):
        """Call `handler` for every event of `event_type`."""
        with self._handler_lock:
            self._handlers.setdefault(event_type, []).append(handler)
        logger.debug(f"Subscribed handler to {event_type.name}")

    def subscribe_all(self, handler: Callable[[Event], None]):
        """Call `handler` for every event."""
        with self._handler_lock:
            self._global_handlers.append(handler)
        logger.debug("Subscribed global event handler")

    def unsubscribe(self, event_type: EventType, handler: Callable[[Event], None]):
        with self._handler_lock:
            if handler in self._handlers.get(event_type, []):
                self._handlers[event_type].remove(handler)
                logger.debug(f"Unsubscribed handler from {event_type.name}")

    def emit(self, event: Event):
        """
        Deliver `event` to its subscribers.

        Diagnostics are also kept in `history` and logged at WARNING.
        """
        if event.event_type.is_diagnostic:
            self.history.append(event)
            logger.warning(f"[{event.event_type.name}] {event.message or event.data}")

        # Snapshot handlers so a handler may (un)subscribe while we iterate
        with self._handler_lock:
            specific_handlers = list(self._handlers.get(event.event_type, []))
            global_handlers = list(self._global_handlers)

        for handler in specific_handlers + global_handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Error in event handler for {event.event_type.name}: {e}", exc_info=True)

    def emit_simple(self, event_type: EventType, data: Optional[dict] = None, source: str = "", message: str = ""):
        """Emit without building the Event by hand."""
        self.emit(Event(event_type=event_type, data=data or {}, source=source, message=message))

    def clear(self):
        """Drop all handlers and history (tests)."""
        with self._handler_lock:
            self._handlers.clear()
            self._global_handlers.clear()
        self.history.clear()
