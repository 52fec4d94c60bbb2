"""
Tests for the Power.log pattern grammar.

Each LineKind is checked against real-looking lines on its own, so a rule
change shows up here before it shows up as a confusing engine failure.
"""
import sys
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from taverntally.core.patterns import LINE_PATTERNS, LineKind, classify, matches, might_match, search

PREFIX = "D 23:30:00.0000000 GameState.DebugPrintPower() - "


class TestRuleTable:
    """Every LineKind has exactly one compiled pattern."""

    def test_every_kind_has_a_pattern(self):
        assert set(LINE_PATTERNS) == set(LineKind)


class TestModeRules:
    def test_new_match(self):
        assert matches(LineKind.NEW_MATCH, PREFIX + "CREATE_GAME")
        assert not matches(LineKind.NEW_MATCH, PREFIX + "TAG_CHANGE Entity=GameEntity tag=STATE value=RUNNING")

    @pytest.mark.parametrize("line", [
        PREFIX + "GAME_TYPE_BATTLEGROUNDS",
        "D 10:00:00.0 LoadingScreen.OnSceneLoaded() - GameType=GT_BATTLEGROUNDS",
        "gametype=gt_battlegrounds",
    ])
    def test_mode_marker(self, line):
        assert matches(LineKind.MODE_MARKER, line)

    @pytest.mark.parametrize("card_id, expected", [
        ("BG21_013", True),
        ("BG_CFM_315", True),
        ("BGS_004", True),
        ("TB_BaconUps_061", True),
        ("TB_BaconShop_HERO_01", True),
        ("CFM_315", False),
        ("EX1_506", False),
        ("GAME_005", False),
    ])
    def test_mode_card_identifiers(self, card_id, expected):
        line = f"{PREFIX}TAG_CHANGE Entity=[entityName=X id=5 zone=HAND zonePos=1 cardId={card_id} player=2] tag=ATK value=1"
        assert matches(LineKind.MODE_CARD, line) is expected

    @pytest.mark.parametrize("line, expected", [
        ("Entity=[entityName=X id=5 zone=PLAY zonePos=1 cardId=BG21_013 player=2] tag=ATK value=3", True),
        ("TAG_CHANGE Entity=[entityName=X id=5 zone=HAND cardId=BG21_013] tag=ZONE value=PLAY", True),
        ("ZONE_CHANGE Entity=[X id=5 zone=HAND] zone from HAND -> PLAY", True),
        ("ZONE_CHANGE Entity=[X id=5 zone=HAND] zone from FRIENDLY HAND -> FRIENDLY PLAY", True),
        ("ZONE_CHANGE Entity=[X id=5 zone=HAND] zone from OPPOSING HAND -> OPPOSING PLAY", False),
        ("ZONE_CHANGE Entity=[X id=5 zone=DECK] zone from DECK -> HAND", False),
        ("Entity=[entityName=X id=5 zone=PLAYER] tag=ATK value=3", False),
    ])
    def test_entering_play(self, line, expected):
        assert matches(LineKind.ENTERING_PLAY, line) is expected

    @pytest.mark.parametrize("line", [
        PREFIX + "TAG_CHANGE Entity=GameEntity tag=STEP value=BEGIN_MULLIGAN",
        PREFIX + "TAG_CHANGE Entity=GameEntity tag=NEXT_STEP value=MAIN_READY",
        "GameType=GT_RANKED FormatType=FT_STANDARD",
    ])
    def test_standard_match(self, line):
        assert matches(LineKind.STANDARD_MATCH, line)

    @pytest.mark.parametrize("value,expected", [
        ("COMPLETE", True),
        ("RUNNING", False),
        ("COMPLETED", False),
    ])
    def test_game_complete(self, value, expected):
        line = PREFIX + f"TAG_CHANGE Entity=GameEntity tag=STATE value={value}"
        assert matches(LineKind.GAME_COMPLETE, line) is expected


class TestPhaseRules:
    def test_end_turn(self):
        assert matches(LineKind.END_TURN, "BLOCK_START SUB_ACTION_END_TURN")

    def test_turn_start_variants(self):
        assert matches(LineKind.TURN_START, "BLOCK_START ACTION_PHASE player")
        assert matches(LineKind.TURN_START, "tag=STEP value=MAIN_START_TRIGGERS")

    def test_opponent_tag(self):
        assert matches(LineKind.OPPONENT, "BLOCK_START ACTION_PHASE opponent")
        assert matches(LineKind.OPPONENT, "zone from OPPOSING PLAY ->")
        assert not matches(LineKind.OPPONENT, "BLOCK_START ACTION_PHASE player")

    @pytest.mark.parametrize("line", [
        "BUY action detected",
        "Network.SendChoices() - TavernShopUI REFRESH",
        "SELL minion",
        "REROLL requested",
        "GOLD_LOCK toggled",
        "FREEZE shop",
    ])
    def test_shop_actions(self, line):
        assert matches(LineKind.SHOP_ACTION, line)

    def test_shop_action_needs_whole_word(self):
        assert not matches(LineKind.SHOP_ACTION, "entityName=BUYBACK id=5")


class TestCapturingRules:
    def test_turn_number_captures_value(self):
        match = search(LineKind.TURN_NUMBER, PREFIX + "TAG_CHANGE Entity=GameEntity tag=TURN value=7")
        assert match is not None
        assert match.group(1) == "7"

    def test_zone_change_dialects(self):
        assert matches(LineKind.ZONE_CHANGE, "TAG_CHANGE Entity=[id=5] tag=ZONE value=HAND")
        assert matches(LineKind.ZONE_CHANGE, "ZONE_CHANGE Entity=[X id=5] zone from -> HAND")
        assert matches(LineKind.ZONE_CHANGE, "FULL_ENTITY - Updating [entityName=X id=5 zone=SETASIDE]")
        assert not matches(LineKind.ZONE_CHANGE, "TAG_CHANGE Entity=[id=5] tag=ATK value=3")


class TestClassify:
    def test_irrelevant_line_is_filtered_early(self):
        line = "D 10:00:00.0 Network.OnConnect() - connected"
        assert not might_match(line)
        assert classify(line) == frozenset()

    def test_confirmation_line_classifies_as_card_and_play(self):
        line = f"{PREFIX}ZONE_CHANGE Entity=[X id=25 zone=HAND cardId=BG_CFM_315] zone from HAND -> PLAY"
        kinds = classify(line)
        assert LineKind.MODE_CARD in kinds
        assert LineKind.ENTERING_PLAY in kinds
        assert LineKind.ZONE_CHANGE in kinds
        assert LineKind.NEW_MATCH not in kinds
