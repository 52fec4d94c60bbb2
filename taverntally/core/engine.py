"""
Classification engine: the one entry point for Power.log lines.

    engine = ClassificationEngine()
    engine.catch_up(trailing_lines)     # backlog first
    for line in live_lines:
        engine.process(line)
    engine.snapshot()                   # safe from any thread

`process` is serialized and never raises. All mutation of MatchState and the
zone sets happens inside it; readers get an immutable MatchSnapshot that is
republished after every call.
"""

import datetime
import logging
import threading
from contextlib import contextmanager
from typing import Callable, Dict, Iterable, List, Optional

from ..config.config_manager import EngineSettings
from .clock import Clock, SystemClock
from .events import Event, EventBus, EventType
from .mode import ModeDetector, ModeOutcome
from .patterns import LineKind, matches, might_match, search
from .phase import PhaseStateMachine, WatchdogAction
from .sources import LineSource
from .state import (
    BOARD_BOUNDS,
    HAND_BOUNDS,
    SHOP_BOUNDS,
    TIER_BOUNDS,
    ManualOverride,
    MatchSnapshot,
    MatchState,
    Phase,
    clamp,
)
from .watchdog import StalenessWatchdog
from .zones import Zone, ZoneTracker

logger = logging.getLogger(__name__)

SOURCE = "ClassificationEngine"


class ClassificationEngine:
    def __init__(self, clock: Optional[Clock] = None, settings: Optional[EngineSettings] = None,
                 event_bus: Optional[EventBus] = None):
        self.clock = clock or SystemClock()
        self.settings = settings or EngineSettings()
        now = self.clock.now()

        self.state = MatchState(now)
        self.zones = ZoneTracker(
            shop_zone_names=self.settings.shop_zone_names,
            shop_requires_card_id=self.settings.shop_requires_card_id,
        )
        self.mode = ModeDetector(
            marker_threshold=self.settings.catchup_marker_threshold,
            card_threshold=self.settings.catchup_card_threshold,
        )
        self.phase_machine = PhaseStateMachine(
            now,
            warn_after_seconds=self.settings.phase_warn_after_seconds,
            force_after_seconds=self.settings.phase_force_after_seconds,
        )
        self.watchdog = StalenessWatchdog(self.settings.stale_after_seconds)
        self.events = event_bus or EventBus(history_size=self.settings.diagnostics_buffer)

        self._override = ManualOverride()
        self._overflow: Dict[str, int] = {}
        self._process_lock = threading.Lock()
        self._processing_thread: Optional[int] = None
        self._snapshot: MatchSnapshot = self.state.snapshot(self._override)

        self.lines_processed = 0
        self.caught_up = False

    # ------------------------------------------------------------------
    # Input
    # ------------------------------------------------------------------

    @contextmanager
    def _exclusive(self):
        """Serialize all mutation and republish the snapshot afterwards."""
        if self._processing_thread == threading.get_ident():
            raise RuntimeError("ClassificationEngine is not reentrant (called from an event handler?)")
        with self._process_lock:
            self._processing_thread = threading.get_ident()
            try:
                yield
            finally:
                self._processing_thread = None
                self._publish()

    def process(self, line: str) -> None:
        """Interpret one log line. Never raises for bad input."""
        if line is None or not line.strip():
            return

        with self._exclusive():
            try:
                self._process_line(line.strip(), self.clock.now())
            except Exception as e:
                logger.error(f"Error processing log line: {e}", exc_info=True)
                self._emit(EventType.LINE_ERROR, f"Error processing log line: {e}",
                           line=line[:200], error=repr(e))
            finally:
                self.lines_processed += 1

    def catch_up(self, lines: Iterable[str]) -> bool:
        """
        Replay the trailing window of an existing log before live lines.

        Lines go through `process` as usual; afterwards the mode detector
        scans the window for a match already in progress. Returns True if
        the engine ends up in Battlegrounds mode.
        """
        window: List[str] = list(lines)[-self.settings.trailing_window_lines:]
        logger.info(f"Catching up on {len(window)} historical lines")
        for line in window:
            self.process(line)

        with self._exclusive():
            if not self.state.in_special_mode and self.mode.scan(window):
                self._enter_mode(self.clock.now(), "catch-up scan")
            self.caught_up = True
        return self.state.in_special_mode

    def run(self, source: LineSource) -> None:
        """Drain a line source: its backlog first, then every live line."""
        self.catch_up(source.history())
        for line in source.live():
            self.process(line)

    def reset(self, reason: str = "manual reset") -> None:
        """Full reset of match state and zone tracking."""
        with self._exclusive():
            self._full_reset(self.clock.now(), reason)

    # ------------------------------------------------------------------
    # Manual override
    # ------------------------------------------------------------------

    def set_manual_counts(self, hand: Optional[int] = None, board: Optional[int] = None,
                          shop: Optional[int] = None) -> None:
        """Force the published counts. None leaves that count parsed."""
        for name, value, bounds in (("hand", hand, HAND_BOUNDS), ("board", board, BOARD_BOUNDS),
                                    ("shop", shop, SHOP_BOUNDS)):
            if value is not None and clamp(value, bounds) != value:
                raise ValueError(f"Manual {name} count {value} outside {bounds[0]}-{bounds[1]}")

        with self._exclusive():
            self._override = ManualOverride(hand_count=hand, board_count=board, shop_count=shop)
            logger.info(f"Manual counts set: hand={hand} board={board} shop={shop}")

    def clear_manual_counts(self) -> None:
        with self._exclusive():
            self._override = ManualOverride()
            logger.info("Manual counts cleared")

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def snapshot(self) -> MatchSnapshot:
        """The latest published state. Safe to call from any thread."""
        return self._snapshot

    def in_special_mode(self) -> bool:
        return self._snapshot.in_special_mode

    def phase(self) -> Phase:
        return self._snapshot.phase

    def hand_count(self) -> int:
        return self._snapshot.hand_count

    def board_count(self) -> int:
        return self._snapshot.board_count

    def shop_count(self) -> int:
        return self._snapshot.shop_count

    def tavern_tier(self) -> int:
        return self._snapshot.tavern_tier

    def turn_number(self) -> int:
        return self._snapshot.turn_number

    @property
    def diagnostics(self) -> List[Event]:
        """Recent diagnostic events, oldest first."""
        return list(self.events.history)

    def subscribe(self, handler: Callable[[Event], None], event_type: Optional[EventType] = None) -> None:
        """Receive engine events; all of them unless `event_type` is given."""
        if event_type is None:
            self.events.subscribe_all(handler)
        else:
            self.events.subscribe(event_type, handler)

    # ------------------------------------------------------------------
    # Per-line pipeline
    # ------------------------------------------------------------------

    def _process_line(self, line: str, now: datetime.datetime):
        if self.watchdog.should_auto_reset(self.state, now):
            idle = self.watchdog.idle_seconds(self.state, now)
            self._full_reset(now, "stale-state auto-reset")
            self._emit(EventType.AUTO_RESET,
                       f"Stale-state auto-reset after {idle:.1f}s without Battlegrounds activity",
                       idle_seconds=idle)
            return

        if not might_match(line):
            return

        outcome = self.mode.observe(line)
        if outcome is ModeOutcome.NEW_MATCH:
            self._full_reset(now, "new match")
            self.events.emit_simple(EventType.NEW_MATCH, source=SOURCE, message="New match started")
            return
        if outcome is ModeOutcome.ENTERED_MODE:
            self._enter_mode(now, "Battlegrounds card entered play")
            return
        if outcome is ModeOutcome.EXITED_MODE:
            reason = self.mode.exit_reason
            self._full_reset(now, reason)
            self.events.emit_simple(EventType.MODE_EXITED, {"reason": reason}, SOURCE,
                                    f"Left Battlegrounds mode ({reason})")
            return

        if not self.state.in_special_mode:
            return

        activity = self._update_phase(line, now)
        activity = matches(LineKind.MODE_CARD, line) or activity

        if self.zones.apply_line(line) is not None:
            activity = True
            self._update_counts(now)

        turn_match = search(LineKind.TURN_NUMBER, line)
        if turn_match:
            activity = True
            self._update_turn(int(turn_match.group(1)), now)

        if activity:
            self.state.touch_activity(now)

        self._check_bounds(now)

    def _update_phase(self, line: str, now: datetime.datetime) -> bool:
        action = self.phase_machine.check_watchdog(now)
        stuck_for = self.phase_machine.seconds_since_transition(now)
        if action is WatchdogAction.WARNED:
            self._emit(EventType.STUCK_PHASE,
                       f"No phase transition for {stuck_for:.0f}s (phase {self.state.phase.name})",
                       phase=self.state.phase.name, seconds=stuck_for, forced=False)
        elif action is WatchdogAction.FORCED_SHOPPING:
            previous = self.state.phase
            self._emit(EventType.STUCK_PHASE, f"Phase stuck in {previous.name}; forced SHOPPING",
                       phase=previous.name, forced=True)
            self._set_phase(Phase.SHOPPING, now, "stuck-phase recovery")

        result = self.phase_machine.feed(line, now)
        if result.transitioned:
            self._set_phase(result.rule.to_phase, now, result.rule.name)
        return result.matched

    def _set_phase(self, phase: Phase, now: datetime.datetime, reason: str):
        previous = self.state.phase
        if self.state.set_phase(phase, now):
            self.events.emit_simple(EventType.PHASE_CHANGED,
                                    {"from": previous, "to": phase, "reason": reason}, SOURCE,
                                    f"{previous.name} -> {phase.name}")

    def _update_counts(self, now: datetime.datetime):
        """Copy zone cardinalities into MatchState, clamped to game bounds."""
        for name, zone, bounds, setter in (
            ("hand_count", Zone.HAND, HAND_BOUNDS, self.state.set_hand),
            ("board_count", Zone.BOARD, BOARD_BOUNDS, self.state.set_board),
            ("shop_count", Zone.SHOP, SHOP_BOUNDS, self.state.set_shop),
        ):
            raw = self.zones.count(zone)
            # Only overflow is reported, once per distinct overflowing value;
            # a short shop clamps silently
            if raw <= bounds[1]:
                self._overflow.pop(name, None)
            elif self._overflow.get(name) != raw:
                self._overflow[name] = raw
                self._emit(EventType.BOUNDS_VIOLATION,
                           f"{name} derived as {raw}, clamped to {bounds[1]}",
                           field=name, value=raw, clamped_to=bounds[1])
            if setter(raw, now):
                logger.debug(f"{name} -> {getattr(self.state, name)}")

    def _update_turn(self, turn: int, now: datetime.datetime):
        if turn < 0:
            self._emit(EventType.BOUNDS_VIOLATION, f"Negative turn number {turn} ignored",
                       field="turn_number", value=turn, clamped_to=self.state.turn_number)
            return
        if self.state.set_turn(turn, now):
            logger.info(f"Turn {turn}")

    def _check_bounds(self, now: datetime.datetime):
        violations = self.state.bounds_violations()
        if not violations:
            return
        fixes = {
            "hand_count": (HAND_BOUNDS, self.state.set_hand),
            "board_count": (BOARD_BOUNDS, self.state.set_board),
            "shop_count": (SHOP_BOUNDS, self.state.set_shop),
        }
        for name, value in violations.items():
            if name in fixes:
                bounds, setter = fixes[name]
                setter(value, now)
                fixed = clamp(value, bounds)
            elif name == "tavern_tier":
                fixed = clamp(value, TIER_BOUNDS)
                self.state.tavern_tier = fixed
                self.state.last_changed_at = now
            else:
                fixed = 0
                self.state.turn_number = fixed
                self.state.last_changed_at = now
            self._emit(EventType.BOUNDS_VIOLATION, f"{name}={value} out of range, clamped to {fixed}",
                       field=name, value=value, clamped_to=fixed)

    # ------------------------------------------------------------------
    # Mode transitions
    # ------------------------------------------------------------------

    def _enter_mode(self, now: datetime.datetime, reason: str):
        self.zones.clear()
        self._overflow.clear()
        self.state.reset(now)
        self.state.set_mode(True, now)
        self.phase_machine.reset(now, Phase.SHOPPING)
        logger.info(f"Battlegrounds mode ON ({reason}) - tier 1, shop 3, SHOPPING")
        self.events.emit_simple(EventType.MODE_ENTERED, {"reason": reason}, SOURCE,
                                f"Entered Battlegrounds mode ({reason})")

    def _full_reset(self, now: datetime.datetime, reason: str):
        was_in_mode = self.state.in_special_mode
        self.state.reset(now)
        self.zones.clear()
        self.mode.reset()
        self._overflow.clear()
        self.phase_machine.reset(now)
        logger.info(f"Full reset ({reason}); was in Battlegrounds: {was_in_mode}")

    def _emit(self, event_type: EventType, message: str, **data):
        self.events.emit_simple(event_type, data, SOURCE, message)

    def _publish(self):
        # Single reference assignment; readers never see a half-built snapshot
        self._snapshot = self.state.snapshot(self._override)
