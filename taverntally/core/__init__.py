# Battlegrounds log classification engine

from .clock import Clock, ManualClock, SystemClock
from .engine import ClassificationEngine
from .events import Event, EventBus, EventType
from .sources import FileReplaySource, LineSource, ListLineSource
from .state import ManualOverride, MatchSnapshot, MatchState, Phase

__all__ = [
    'ClassificationEngine',
    'Clock',
    'Event',
    'EventBus',
    'EventType',
    'FileReplaySource',
    'LineSource',
    'ListLineSource',
    'ManualClock',
    'ManualOverride',
    'MatchSnapshot',
    'MatchState',
    'Phase',
    'SystemClock',
]
