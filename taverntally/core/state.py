"""
Match state for a Battlegrounds session.

MatchState is the single mutable aggregate the engine writes to. Readers
never see it directly: after each processed line the engine publishes a
frozen MatchSnapshot built by `MatchState.snapshot()`.

Count bounds follow the game rules:
    hand  0-10
    board 0-7
    shop  3-7   (tier 1 shows 3 minions, tier 5+ shows 7)
    tier  1-6
"""

import dataclasses
import datetime
import logging
from enum import Enum, auto
from typing import Dict, Optional, Tuple

logger = logging.getLogger(__name__)


class Phase(Enum):
    """Where the player is in the shop/combat cycle."""
    SHOPPING = auto()
    COMBAT = auto()

    @property
    def is_combat(self) -> bool:
        return self is Phase.COMBAT


HAND_BOUNDS: Tuple[int, int] = (0, 10)
BOARD_BOUNDS: Tuple[int, int] = (0, 7)
SHOP_BOUNDS: Tuple[int, int] = (3, 7)
TIER_BOUNDS: Tuple[int, int] = (1, 6)

# Shop slots on offer -> tavern tier
SHOP_COUNT_TO_TIER: Dict[int, int] = {
    3: 1,
    4: 2,
    5: 3,
    6: 4,
    7: 5,
}

DEFAULT_SHOP_COUNT = SHOP_BOUNDS[0]
DEFAULT_TAVERN_TIER = TIER_BOUNDS[0]


def clamp(value: int, bounds: Tuple[int, int]) -> int:
    low, high = bounds
    return max(low, min(high, value))


def tier_for_shop_count(shop_count: int) -> Optional[int]:
    """Tavern tier implied by the number of shop slots, or None if it implies nothing."""
    return SHOP_COUNT_TO_TIER.get(shop_count)


@dataclasses.dataclass
class ManualOverride:
    """
    Counts forced by the user (manual mode).

    A field left as None falls through to the parsed count.
    """
    hand_count: Optional[int] = None
    board_count: Optional[int] = None
    shop_count: Optional[int] = None

    @property
    def active(self) -> bool:
        return any(value is not None for value in (self.hand_count, self.board_count, self.shop_count))


@dataclasses.dataclass(frozen=True)
class MatchSnapshot:
    """Immutable view of the match published to readers (the overlay)."""
    in_special_mode: bool
    phase: Phase
    hand_count: int
    board_count: int
    shop_count: int
    tavern_tier: int
    turn_number: int
    last_changed_at: datetime.datetime
    last_mode_activity_at: datetime.datetime

    # Parsed counts before any manual override
    parsed_hand_count: int = 0
    parsed_board_count: int = 0
    parsed_shop_count: int = DEFAULT_SHOP_COUNT
    manual_override: bool = False

    @property
    def in_combat(self) -> bool:
        return self.phase is Phase.COMBAT

    @property
    def in_shopping(self) -> bool:
        return self.phase is Phase.SHOPPING

    def __str__(self) -> str:
        return (
            f"BG:{self.in_special_mode} Hand:{self.hand_count} Board:{self.board_count} "
            f"Shop:{self.shop_count} Tier:{self.tavern_tier} Turn:{self.turn_number} "
            f"Phase:{self.phase.name}"
        )


@dataclasses.dataclass
class MatchState:
    """Live, mutable match summary. Only the engine writes to it."""
    created_at: dataclasses.InitVar[Optional[datetime.datetime]] = None

    in_special_mode: bool = False
    phase: Phase = Phase.SHOPPING
    hand_count: int = 0
    board_count: int = 0
    shop_count: int = DEFAULT_SHOP_COUNT
    tavern_tier: int = DEFAULT_TAVERN_TIER
    turn_number: int = 0
    last_changed_at: datetime.datetime = dataclasses.field(default=datetime.datetime.min)
    last_mode_activity_at: datetime.datetime = dataclasses.field(default=datetime.datetime.min)

    def __post_init__(self, created_at: Optional[datetime.datetime]):
        if created_at is not None:
            self.last_changed_at = created_at
            self.last_mode_activity_at = created_at

    def reset(self, now: datetime.datetime):
        """
        Back to defaults: out of mode, Shopping, empty zones, tier 1, turn 0.

        Timestamps only move if some value was not already at its default.
        """
        if self._values() == MatchState()._values():
            return
        self.in_special_mode = False
        self.phase = Phase.SHOPPING
        self.hand_count = 0
        self.board_count = 0
        self.shop_count = DEFAULT_SHOP_COUNT
        self.tavern_tier = DEFAULT_TAVERN_TIER
        self.turn_number = 0
        self.last_changed_at = now
        self.last_mode_activity_at = now

    # ========== setters (each returns True if the value changed) ==========

    def set_mode(self, in_mode: bool, now: datetime.datetime) -> bool:
        if self.in_special_mode == in_mode:
            return False
        self.in_special_mode = in_mode
        self.last_changed_at = now
        if in_mode:
            self.last_mode_activity_at = now
        return True

    def set_phase(self, phase: Phase, now: datetime.datetime) -> bool:
        if self.phase is phase:
            return False
        self.phase = phase
        self.last_changed_at = now
        return True

    def set_hand(self, count: int, now: datetime.datetime) -> bool:
        return self._set_count('hand_count', clamp(count, HAND_BOUNDS), now)

    def set_board(self, count: int, now: datetime.datetime) -> bool:
        return self._set_count('board_count', clamp(count, BOARD_BOUNDS), now)

    def set_shop(self, count: int, now: datetime.datetime) -> bool:
        if not self._set_count('shop_count', clamp(count, SHOP_BOUNDS), now):
            return False
        self._update_tier_from_shop_count()
        return True

    def set_turn(self, turn: int, now: datetime.datetime) -> bool:
        """Turn numbers only move forward within a match."""
        if turn <= self.turn_number:
            return False
        self.turn_number = turn
        self.last_changed_at = now
        return True

    def touch_activity(self, now: datetime.datetime):
        """Record that Battlegrounds-specific activity was just seen."""
        if self.in_special_mode:
            self.last_mode_activity_at = now

    def _values(self) -> Tuple:
        return (self.in_special_mode, self.phase, self.hand_count, self.board_count,
                self.shop_count, self.tavern_tier, self.turn_number)

    def _set_count(self, name: str, value: int, now: datetime.datetime) -> bool:
        if getattr(self, name) == value:
            return False
        setattr(self, name, value)
        self.last_changed_at = now
        return True

    def _update_tier_from_shop_count(self):
        tier = tier_for_shop_count(self.shop_count)
        if tier is not None and tier != self.tavern_tier:
            self.tavern_tier = clamp(tier, TIER_BOUNDS)
            logger.info(f"Tavern tier updated to {self.tavern_tier} based on shop count {self.shop_count}")

    # ========== validation / publishing ==========

    def bounds_violations(self) -> Dict[str, int]:
        """Fields currently outside their declared range (should always be empty)."""
        checks = {
            'hand_count': (self.hand_count, HAND_BOUNDS),
            'board_count': (self.board_count, BOARD_BOUNDS),
            'shop_count': (self.shop_count, SHOP_BOUNDS),
            'tavern_tier': (self.tavern_tier, TIER_BOUNDS),
        }
        violations = {
            name: value for name, (value, bounds) in checks.items()
            if clamp(value, bounds) != value
        }
        if self.turn_number < 0:
            violations['turn_number'] = self.turn_number
        return violations

    def is_valid(self) -> bool:
        return not self.bounds_violations()

    def snapshot(self, override: Optional[ManualOverride] = None) -> MatchSnapshot:
        override = override or ManualOverride()

        def effective(forced: Optional[int], parsed: int) -> int:
            return parsed if forced is None else forced

        return MatchSnapshot(
            in_special_mode=self.in_special_mode,
            phase=self.phase,
            hand_count=effective(override.hand_count, self.hand_count),
            board_count=effective(override.board_count, self.board_count),
            shop_count=effective(override.shop_count, self.shop_count),
            tavern_tier=self.tavern_tier,
            turn_number=self.turn_number,
            last_changed_at=self.last_changed_at,
            last_mode_activity_at=self.last_mode_activity_at,
            parsed_hand_count=self.hand_count,
            parsed_board_count=self.board_count,
            parsed_shop_count=self.shop_count,
            manual_override=override.active,
        )
