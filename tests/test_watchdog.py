"""
Tests for the stale-state watchdog.
"""
import datetime
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from taverntally.core.state import MatchState
from taverntally.core.watchdog import StalenessWatchdog

T0 = datetime.datetime(2024, 1, 1, 12, 0, 0)


def at(seconds):
    return T0 + datetime.timedelta(seconds=seconds)


def test_never_fires_outside_mode():
    state = MatchState(T0)
    assert not StalenessWatchdog().should_auto_reset(state, at(3600))


def test_fires_after_threshold():
    state = MatchState(T0)
    state.set_mode(True, T0)
    watchdog = StalenessWatchdog()

    assert not watchdog.should_auto_reset(state, at(10))
    assert watchdog.should_auto_reset(state, at(11))
    assert watchdog.idle_seconds(state, at(11)) == 11


def test_activity_postpones_reset():
    state = MatchState(T0)
    state.set_mode(True, T0)
    state.touch_activity(at(8))
    assert not StalenessWatchdog().should_auto_reset(state, at(15))


def test_custom_threshold():
    state = MatchState(T0)
    state.set_mode(True, T0)
    assert StalenessWatchdog(stale_after_seconds=30).should_auto_reset(state, at(20)) is False
