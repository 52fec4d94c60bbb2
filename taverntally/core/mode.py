import logging
from enum import Enum, auto
from typing import Iterable, Optional

from .patterns import LineKind, matches

logger = logging.getLogger(__name__)

# Lines that end a confirmed Battlegrounds session, with the reason reported
EXIT_MARKERS = (
    (LineKind.STANDARD_MATCH, "standard match setup detected"),
    (LineKind.GAME_COMPLETE, "game complete"),
)


class DetectionState(Enum):
    NOT_DETECTED = auto()
    PROVISIONAL = auto()   # game-type marker seen, economy not live yet
    CONFIRMED = auto()


class ModeOutcome(Enum):
    """What a single observed line did to mode detection."""
    NO_CHANGE = auto()
    ENTERED_MODE = auto()
    EXITED_MODE = auto()
    NEW_MATCH = auto()     # always followed by a full reset


class ModeDetector:
    """
    Decides whether the player is currently inside a Battlegrounds match.

    Confirmation needs real gameplay: a Battlegrounds card entering the play
    zone. The game-type marker shows up in lobby and loading lines long
    before minions exist, so on its own it only makes the detector
    PROVISIONAL, which lowers the bar for the catch-up scan.
    """

    def __init__(self, marker_threshold: int = 2, card_threshold: int = 5):
        self.marker_threshold = marker_threshold
        self.card_threshold = card_threshold
        self.state = DetectionState.NOT_DETECTED
        self.exit_reason: Optional[str] = None

    @property
    def confirmed(self) -> bool:
        return self.state is DetectionState.CONFIRMED

    @property
    def provisional(self) -> bool:
        return self.state is DetectionState.PROVISIONAL

    def observe(self, line: str) -> ModeOutcome:
        """Classify one live line against the mode rules."""
        if matches(LineKind.NEW_MATCH, line):
            self.state = DetectionState.NOT_DETECTED
            logger.info("New match marker - resetting mode detection")
            return ModeOutcome.NEW_MATCH

        if self.confirmed:
            for kind, reason in EXIT_MARKERS:
                if matches(kind, line):
                    self.state = DetectionState.NOT_DETECTED
                    self.exit_reason = reason
                    logger.info(f"Exiting Battlegrounds - {reason}")
                    return ModeOutcome.EXITED_MODE
            return ModeOutcome.NO_CHANGE

        if matches(LineKind.MODE_CARD, line) and matches(LineKind.ENTERING_PLAY, line):
            self.state = DetectionState.CONFIRMED
            logger.info("Battlegrounds confirmed - Battlegrounds card entered play")
            return ModeOutcome.ENTERED_MODE

        if any(matches(kind, line) for kind, _ in EXIT_MARKERS):
            if self.provisional:
                logger.info("Dropping provisional Battlegrounds detection - match over or not Battlegrounds")
            self.state = DetectionState.NOT_DETECTED
            return ModeOutcome.NO_CHANGE

        if matches(LineKind.MODE_MARKER, line) and not self.provisional:
            self.state = DetectionState.PROVISIONAL
            logger.info("Battlegrounds game type seen (waiting for play-zone confirmation)")

        return ModeOutcome.NO_CHANGE

    def scan(self, lines: Iterable[str]) -> bool:
        """
        Catch-up detection over the trailing window read at startup.

        Counts Battlegrounds card ids and notes whether the game-type marker
        appeared (or the detector is already provisional). Counting restarts
        at every new-match, standard-match or game-complete marker, so only
        the most recent match in the window counts. Returns True and confirms
        the mode if the evidence is strong enough.
        """
        if self.confirmed:
            return False

        card_count = 0
        marker_seen = self.provisional
        for line in lines:
            if matches(LineKind.NEW_MATCH, line) or any(matches(kind, line) for kind, _ in EXIT_MARKERS):
                card_count = 0
                marker_seen = False
                continue
            if matches(LineKind.MODE_MARKER, line):
                marker_seen = True
            if matches(LineKind.MODE_CARD, line):
                card_count += 1

        detected = (
            (marker_seen and card_count >= self.marker_threshold)
            or card_count >= self.card_threshold
        )
        logger.info(
            f"Catch-up scan: {card_count} Battlegrounds card lines, marker seen={marker_seen}, "
            f"detected={detected}"
        )
        if detected:
            self.state = DetectionState.CONFIRMED
        return detected

    def reset(self):
        self.state = DetectionState.NOT_DETECTED
