"""TavernTally: Battlegrounds shop/board/hand tracking from Hearthstone's Power.log."""

from .core import ClassificationEngine, MatchSnapshot, Phase
from .version import get_version

__all__ = ['ClassificationEngine', 'MatchSnapshot', 'Phase', 'get_version']
