"""
Named pattern grammar for Hearthstone Power.log lines.

Every rule the engine applies is one entry of LINE_PATTERNS, keyed by a
LineKind. Components never do ad hoc substring checks; they ask
`matches(kind, line)` so the whole rule table can be tested on its own.

Example lines this grammar understands:
    D 23:30:00.0000000 GameState.DebugPrintPower() - CREATE_GAME
    D 23:30:01.0000000 GameState.DebugPrintPower() - GAME_TYPE_BATTLEGROUNDS
    ... TAG_CHANGE Entity=[entityName=Alleycat id=25 zone=HAND ... cardId=BG_CFM_315 player=2] tag=ZONE value=PLAY
    ... ZONE_CHANGE Entity=[Alleycat id=25 zone=HAND ...] zone from HAND -> FRIENDLY PLAY
    ... BLOCK_START SUB_ACTION_END_TURN
"""

import re
from enum import Enum, auto
from typing import Dict, FrozenSet, Optional, Pattern


class LineKind(Enum):
    """Kinds of log line the engine reacts to."""
    NEW_MATCH = auto()          # CREATE_GAME
    MODE_MARKER = auto()        # Battlegrounds game-type string
    MODE_CARD = auto()          # Battlegrounds card identifier
    ENTERING_PLAY = auto()      # Entity is in / moving to the play zone
    STANDARD_MATCH = auto()     # Mulligan / ranked markers of a normal match
    GAME_COMPLETE = auto()      # tag=STATE value=COMPLETE
    END_TURN = auto()
    TURN_START = auto()
    OPPONENT = auto()           # Line is tagged as the opponent's
    SHOP_ACTION = auto()        # Buy / sell / reroll / gold lock
    ZONE_CHANGE = auto()        # Any of the three zone-change dialects
    TURN_NUMBER = auto()        # tag=TURN value=N


# Compiled once; searched on every line.
LINE_PATTERNS: Dict[LineKind, Pattern] = {
    LineKind.NEW_MATCH: re.compile(r'CREATE_GAME'),
    LineKind.MODE_MARKER: re.compile(r'GT_BATTLEGROUNDS|GAME_TYPE_BATTLEGROUNDS', re.IGNORECASE),
    LineKind.MODE_CARD: re.compile(r'cardId=(?:BGS?\d*_|TB_Bacon)', re.IGNORECASE),
    LineKind.ENTERING_PLAY: re.compile(
        r'\bzone=PLAY\b|tag=ZONE value=PLAY\b|->\s*(?:FRIENDLY\s+)?PLAY\b'
    ),
    LineKind.STANDARD_MATCH: re.compile(r'MULLIGAN|MAIN_READY|GT_RANKED'),
    LineKind.GAME_COMPLETE: re.compile(r'TAG_CHANGE.*tag=STATE value=COMPLETE\b'),
    LineKind.END_TURN: re.compile(r'END_TURN'),
    LineKind.TURN_START: re.compile(r'ACTION_PHASE|MAIN_START_TRIGGERS|TURN_START'),
    LineKind.OPPONENT: re.compile(r'\bopponent\b|\bOPPOSING\b', re.IGNORECASE),
    LineKind.SHOP_ACTION: re.compile(r'\bBUY\b|\bSELL\b|\bREROLL\b|\bREFRESH\b|GOLD_LOCK|\bFREEZE\b'),
    LineKind.ZONE_CHANGE: re.compile(r'tag=ZONE value=|ZONE_CHANGE|FULL_ENTITY.*zone='),
    LineKind.TURN_NUMBER: re.compile(r'tag=TURN value=(-?\d+)'),
}

# Quick string checks before the regex pass. Lines containing none of these
# cannot match any rule.
QUICK_KEYWORDS = (
    'CREATE_GAME', 'BATTLEGROUNDS', 'cardId=', 'zone', 'ZONE', 'MULLIGAN', 'MAIN_READY',
    'GT_RANKED', 'END_TURN', 'ACTION_PHASE', 'MAIN_START', 'TURN', 'BUY', 'SELL',
    'REROLL', 'REFRESH', 'GOLD_LOCK', 'FREEZE', 'FULL_ENTITY', 'OPPONENT', 'OPPOSING',
    'STATE VALUE=COMPLETE',
)


def matches(kind: LineKind, line: str) -> bool:
    """Return True if `line` matches the rule named by `kind`."""
    return LINE_PATTERNS[kind].search(line) is not None


def search(kind: LineKind, line: str) -> Optional["re.Match"]:
    """Return the match object for `kind`, for rules that capture values."""
    return LINE_PATTERNS[kind].search(line)


def might_match(line: str) -> bool:
    """Cheap pre-filter; False means no rule can possibly match."""
    upper = line.upper()
    return any(keyword.upper() in upper for keyword in QUICK_KEYWORDS)


def classify(line: str) -> FrozenSet[LineKind]:
    """Every LineKind whose pattern matches `line`."""
    if not might_match(line):
        return frozenset()
    return frozenset(kind for kind, pattern in LINE_PATTERNS.items() if pattern.search(line))
