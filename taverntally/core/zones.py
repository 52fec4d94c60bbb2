import logging
import re
from dataclasses import dataclass
from enum import Enum, auto
from typing import Dict, Iterable, Optional, Set

from .patterns import LineKind, matches

logger = logging.getLogger(__name__)


class Zone(Enum):
    """Zones the tracker distinguishes. Everything else collapses into OTHER."""
    HAND = auto()
    BOARD = auto()
    SHOP = auto()
    OTHER = auto()


# Map Power.log zone names to our enum (shop names are configurable, see ZoneTracker)
ZONE_NAME_MAP = {
    "HAND": Zone.HAND,
    "PLAY": Zone.BOARD,
}

TRACKED_ZONES = (Zone.HAND, Zone.BOARD, Zone.SHOP)

# Entity descriptors can nest brackets ("UNKNOWN ENTITY [cardType=INVALID] id=45"),
# so the descriptor runs greedily up to the closing bracket before the keyword.
ZONE_CHANGE_PATTERNS = {
    # TAG_CHANGE Entity=[entityName=X id=25 zone=HAND ...] tag=ZONE value=PLAY
    'tag_change': re.compile(r'TAG_CHANGE Entity=\[(?P<entity>.*)\] tag=ZONE value=(?P<dest>\w+)'),
    # ZONE_CHANGE Entity=[X id=25 ...] zone from HAND -> FRIENDLY PLAY   (dest may be empty)
    'zone_change': re.compile(
        r'ZONE_CHANGE Entity=\[(?P<entity>.*)\] zone from .*?->\s*(?P<side>FRIENDLY\s+|OPPOSING\s+)?(?P<dest>\w*)'
    ),
    # FULL_ENTITY - Updating [entityName=X id=25 zone=SETASIDE ...] CardID=...
    'full_entity': re.compile(r'FULL_ENTITY.*?\bid=(?P<id>\d+).*?\bzone=(?P<dest>\w+)', re.IGNORECASE),
}
ENTITY_ID_PATTERN = re.compile(r'\bid=(\d+)')


@dataclass(frozen=True)
class ZoneChange:
    """A parsed zone-change event."""
    entity_id: int
    zone_name: str          # raw destination name from the log ("" when removed)
    opposing: bool = False  # destination explicitly on the opponent's side


def parse_zone_change(line: str) -> Optional[ZoneChange]:
    """
    Extract (entity id, destination zone name) from a zone-change line.

    Returns None if the line is not a zone change in any known dialect.
    Raises ValueError if the line looks like a zone change but the entity id
    is missing.
    """
    if not matches(LineKind.ZONE_CHANGE, line):
        return None

    match = ZONE_CHANGE_PATTERNS['tag_change'].search(line)
    if match:
        return ZoneChange(_entity_id(match.group('entity'), line), match.group('dest').upper())

    match = ZONE_CHANGE_PATTERNS['zone_change'].search(line)
    if match:
        side = (match.group('side') or '').strip().upper()
        return ZoneChange(
            _entity_id(match.group('entity'), line),
            match.group('dest').upper(),
            opposing=side == 'OPPOSING',
        )

    match = ZONE_CHANGE_PATTERNS['full_entity'].search(line)
    if match:
        return ZoneChange(int(match.group('id')), match.group('dest').upper())

    return None


def _entity_id(descriptor: str, line: str) -> int:
    match = ENTITY_ID_PATTERN.search(descriptor)
    if not match:
        raise ValueError(f"Zone change without an entity id: {line[:150]}")
    return int(match.group(1))


class ZoneTracker:
    """
    Tracks which entity sits in which of the hand / board / shop zones.

    An entity is in at most one zone. Counts are the size of each zone's set;
    clamping to game bounds is the caller's job.
    """

    def __init__(self, shop_zone_names: Iterable[str] = ("SETASIDE",), shop_requires_card_id: bool = True):
        self.shop_zone_names: Set[str] = {name.upper() for name in shop_zone_names}
        self.shop_requires_card_id = shop_requires_card_id
        self._zones: Dict[Zone, Set[int]] = {zone: set() for zone in TRACKED_ZONES}

    def resolve_zone(self, change: ZoneChange, line: str = "") -> Zone:
        """
        Decide which tracked zone a destination name means.

        Shop-zone names double as generic bookkeeping zones, so they only
        count as SHOP when the line also carries a Battlegrounds card id.
        """
        if change.opposing:
            return Zone.OTHER
        zone = ZONE_NAME_MAP.get(change.zone_name)
        if zone is not None:
            return zone
        if change.zone_name in self.shop_zone_names:
            if not self.shop_requires_card_id or matches(LineKind.MODE_CARD, line):
                return Zone.SHOP
        return Zone.OTHER

    def apply_zone_change(self, entity_id: int, new_zone: Zone) -> bool:
        """
        Move an entity to `new_zone`, or drop it when the zone is untracked.

        Returns True if membership actually changed.
        """
        previous = self.zone_of(entity_id)
        if previous == new_zone or (previous is None and new_zone not in TRACKED_ZONES):
            return False

        for members in self._zones.values():
            members.discard(entity_id)
        if new_zone in TRACKED_ZONES:
            self._zones[new_zone].add(entity_id)

        logger.debug(f"Entity {entity_id}: {previous.name if previous else '-'} -> {new_zone.name}")
        return True

    def apply_line(self, line: str) -> Optional[ZoneChange]:
        """Parse and apply a zone-change line. Returns the parsed change, if any."""
        change = parse_zone_change(line)
        if change is None:
            return None
        self.apply_zone_change(change.entity_id, self.resolve_zone(change, line))
        return change

    def zone_of(self, entity_id: int) -> Optional[Zone]:
        for zone, members in self._zones.items():
            if entity_id in members:
                return zone
        return None

    def count(self, zone: Zone) -> int:
        return len(self._zones.get(zone, ()))

    def entities(self, zone: Zone) -> Set[int]:
        """Copy of the entity ids currently in `zone`."""
        return set(self._zones.get(zone, ()))

    def clear(self):
        for members in self._zones.values():
            members.clear()
        logger.debug("Zone tracking cleared")

    def __len__(self) -> int:
        return sum(len(members) for members in self._zones.values())
