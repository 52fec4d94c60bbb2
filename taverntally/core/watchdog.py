import datetime

from .state import MatchState


class StalenessWatchdog:
    """
    Guards against false-positive Battlegrounds detection.

    If the engine believes it is in a match but has seen no Battlegrounds
    activity for `stale_after_seconds`, the detection is assumed wrong and
    the engine resets.
    """

    def __init__(self, stale_after_seconds: float = 10):
        self.stale_after = datetime.timedelta(seconds=stale_after_seconds)

    def should_auto_reset(self, state: MatchState, now: datetime.datetime) -> bool:
        return state.in_special_mode and now - state.last_mode_activity_at > self.stale_after

    def idle_seconds(self, state: MatchState, now: datetime.datetime) -> float:
        return (now - state.last_mode_activity_at).total_seconds()
