"""
Tests for Battlegrounds mode detection (live rules and the catch-up scan).
"""
import sys
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from taverntally.core.mode import DetectionState, ModeDetector, ModeOutcome

PREFIX = "D 23:30:00.0000000 GameState.DebugPrintPower() - "

MARKER = PREFIX + "GAME_TYPE_BATTLEGROUNDS"
CARD_IN_HAND = PREFIX + "TAG_CHANGE Entity=[entityName=Alleycat id=25 zone=SETASIDE cardId=BG_CFM_315] tag=ZONE value=HAND"
CARD_TO_PLAY = PREFIX + "ZONE_CHANGE Entity=[entityName=Alleycat id=25 zone=HAND cardId=BG_CFM_315] zone from HAND -> FRIENDLY PLAY"
PLAIN_CARD_TO_PLAY = PREFIX + "ZONE_CHANGE Entity=[entityName=Wisp id=40 zone=HAND cardId=CS2_231] zone from HAND -> FRIENDLY PLAY"
MULLIGAN = PREFIX + "TAG_CHANGE Entity=GameEntity tag=STEP value=BEGIN_MULLIGAN"
GAME_COMPLETE = PREFIX + "TAG_CHANGE Entity=GameEntity tag=STATE value=COMPLETE"
CREATE_GAME = PREFIX + "CREATE_GAME"


@pytest.fixture
def detector():
    return ModeDetector()


class TestLiveDetection:
    def test_marker_alone_is_provisional(self, detector):
        assert detector.observe(MARKER) is ModeOutcome.NO_CHANGE
        assert detector.state is DetectionState.PROVISIONAL
        assert not detector.confirmed

    def test_battlegrounds_card_in_hand_does_not_confirm(self, detector):
        detector.observe(CARD_IN_HAND)
        assert detector.state is DetectionState.NOT_DETECTED

    def test_battlegrounds_card_entering_play_confirms(self, detector):
        assert detector.observe(CARD_TO_PLAY) is ModeOutcome.ENTERED_MODE
        assert detector.confirmed

    def test_confirmation_needs_no_marker(self, detector):
        detector.observe(CARD_TO_PLAY)
        assert detector.confirmed

    def test_ordinary_card_entering_play_does_not_confirm(self, detector):
        detector.observe(MARKER)
        assert detector.observe(PLAIN_CARD_TO_PLAY) is ModeOutcome.NO_CHANGE
        assert not detector.confirmed

    def test_confirmed_only_reports_once(self, detector):
        detector.observe(CARD_TO_PLAY)
        assert detector.observe(CARD_TO_PLAY) is ModeOutcome.NO_CHANGE

    def test_standard_match_exits_confirmed_mode(self, detector):
        detector.observe(CARD_TO_PLAY)
        assert detector.observe(MULLIGAN) is ModeOutcome.EXITED_MODE
        assert detector.state is DetectionState.NOT_DETECTED

    def test_standard_match_drops_provisional(self, detector):
        detector.observe(MARKER)
        assert detector.observe(MULLIGAN) is ModeOutcome.NO_CHANGE
        assert detector.state is DetectionState.NOT_DETECTED

    def test_game_complete_exits_confirmed_mode(self, detector):
        detector.observe(CARD_TO_PLAY)
        assert detector.observe(GAME_COMPLETE) is ModeOutcome.EXITED_MODE
        assert detector.exit_reason == "game complete"
        assert detector.state is DetectionState.NOT_DETECTED

    def test_game_complete_drops_provisional(self, detector):
        detector.observe(MARKER)
        assert detector.observe(GAME_COMPLETE) is ModeOutcome.NO_CHANGE
        assert detector.state is DetectionState.NOT_DETECTED

    def test_new_match_resets_from_any_state(self, detector):
        detector.observe(CARD_TO_PLAY)
        assert detector.observe(CREATE_GAME) is ModeOutcome.NEW_MATCH
        assert detector.state is DetectionState.NOT_DETECTED

    def test_reset(self, detector):
        detector.observe(MARKER)
        detector.reset()
        assert detector.state is DetectionState.NOT_DETECTED


class TestCatchUpScan:
    def test_marker_plus_two_cards(self, detector):
        assert detector.scan([MARKER, CARD_IN_HAND, CARD_IN_HAND]) is True
        assert detector.confirmed

    def test_marker_plus_one_card_is_not_enough(self, detector):
        assert detector.scan([MARKER, CARD_IN_HAND]) is False
        assert not detector.confirmed

    def test_five_cards_without_marker(self, detector):
        assert detector.scan([CARD_IN_HAND] * 5) is True

    def test_four_cards_without_marker_is_not_enough(self, detector):
        assert detector.scan([CARD_IN_HAND] * 4) is False

    def test_provisional_state_counts_as_marker(self, detector):
        detector.observe(MARKER)
        assert detector.scan([CARD_IN_HAND, CARD_IN_HAND]) is True

    def test_count_restarts_after_new_match(self, detector):
        lines = [MARKER] + [CARD_IN_HAND] * 6 + [CREATE_GAME, CARD_IN_HAND]
        assert detector.scan(lines) is False

    def test_count_restarts_after_standard_match(self, detector):
        lines = [CARD_IN_HAND] * 6 + [MULLIGAN]
        assert detector.scan(lines) is False

    def test_count_restarts_after_game_complete(self, detector):
        lines = [MARKER] + [CARD_IN_HAND] * 6 + [GAME_COMPLETE]
        assert detector.scan(lines) is False

    def test_thresholds_are_configurable(self):
        detector = ModeDetector(marker_threshold=1, card_threshold=3)
        assert detector.scan([MARKER, CARD_IN_HAND]) is True
        assert ModeDetector(card_threshold=3).scan([CARD_IN_HAND] * 3) is True

    def test_already_confirmed_reports_nothing_new(self, detector):
        detector.observe(CARD_TO_PLAY)
        assert detector.scan([CARD_IN_HAND] * 5) is False
        assert detector.confirmed
