"""
Shopping/combat phase state machine.

Transitions come from an ordered rule table. For each line the first rule
whose pattern matches AND whose source phase is the current phase fires,
and evaluation stops there, so one line can never trigger two
contradictory transitions.

Priority order:
    1. END_TURN                          Shopping -> Combat
    2. turn start tagged as opponent     Shopping -> Combat
    3. shop action (buy/sell/reroll/..)  Combat   -> Shopping
    4. turn start, not the opponent's    Combat   -> Shopping

A stuck-phase watchdog warns after 5 minutes without a transition and
forces Shopping after 10.
"""

import datetime
import logging
from dataclasses import dataclass
from enum import Enum, auto
from typing import Callable, List, Optional

from .patterns import LineKind, matches
from .state import Phase

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PhaseRule:
    """One (predicate, transition) entry of the rule table."""
    name: str
    predicate: Callable[[str], bool]
    from_phase: Phase
    to_phase: Phase


def _is_end_turn(line: str) -> bool:
    return matches(LineKind.END_TURN, line)


def _is_opponent_turn_start(line: str) -> bool:
    return matches(LineKind.TURN_START, line) and matches(LineKind.OPPONENT, line)


def _is_shop_action(line: str) -> bool:
    return matches(LineKind.SHOP_ACTION, line)


def _is_own_turn_start(line: str) -> bool:
    return matches(LineKind.TURN_START, line) and not matches(LineKind.OPPONENT, line)


PHASE_RULES: List[PhaseRule] = [
    PhaseRule("end_turn", _is_end_turn, Phase.SHOPPING, Phase.COMBAT),
    PhaseRule("opponent_turn_start", _is_opponent_turn_start, Phase.SHOPPING, Phase.COMBAT),
    PhaseRule("shop_action", _is_shop_action, Phase.COMBAT, Phase.SHOPPING),
    PhaseRule("own_turn_start", _is_own_turn_start, Phase.COMBAT, Phase.SHOPPING),
]


class WatchdogAction(Enum):
    NONE = auto()
    WARNED = auto()
    FORCED_SHOPPING = auto()


@dataclass(frozen=True)
class PhaseResult:
    """Outcome of feeding one line to the state machine."""
    matched: bool                       # some rule's pattern matched (phase activity)
    rule: Optional[PhaseRule] = None    # the rule that fired, if any

    @property
    def transitioned(self) -> bool:
        return self.rule is not None


class PhaseStateMachine:
    def __init__(self, now: datetime.datetime, warn_after_seconds: float = 300,
                 force_after_seconds: float = 600, rules: Optional[List[PhaseRule]] = None):
        self.warn_after = datetime.timedelta(seconds=warn_after_seconds)
        self.force_after = datetime.timedelta(seconds=force_after_seconds)
        self.rules = rules if rules is not None else PHASE_RULES
        self.phase = Phase.SHOPPING
        self.last_transition_at = now
        self._warned = False

    def reset(self, now: datetime.datetime, phase: Phase = Phase.SHOPPING):
        self.phase = phase
        self.last_transition_at = now
        self._warned = False

    def feed(self, line: str, now: datetime.datetime) -> PhaseResult:
        matched = False
        for rule in self.rules:
            if not rule.predicate(line):
                continue
            matched = True
            if rule.from_phase is not self.phase:
                # Already in the target phase; no-op keeps timestamps still
                continue
            self._transition(rule.to_phase, now)
            logger.info(f"Phase {rule.from_phase.name} -> {rule.to_phase.name} ({rule.name})")
            return PhaseResult(matched=True, rule=rule)
        return PhaseResult(matched=matched)

    def check_watchdog(self, now: datetime.datetime) -> WatchdogAction:
        """Evaluate the stuck-phase timers. Call once per processed line."""
        stuck_for = now - self.last_transition_at
        if stuck_for > self.force_after:
            previous = self.phase
            self._transition(Phase.SHOPPING, now)
            logger.warning(
                f"No phase transition for {stuck_for.total_seconds():.0f}s - "
                f"forcing SHOPPING (was {previous.name})"
            )
            return WatchdogAction.FORCED_SHOPPING
        if stuck_for > self.warn_after and not self._warned:
            self._warned = True
            return WatchdogAction.WARNED
        return WatchdogAction.NONE

    def seconds_since_transition(self, now: datetime.datetime) -> float:
        return (now - self.last_transition_at).total_seconds()

    def _transition(self, phase: Phase, now: datetime.datetime):
        self.phase = phase
        self.last_transition_at = now
        self._warned = False
