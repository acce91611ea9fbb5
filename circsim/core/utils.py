"""
Shared utility functions for circsim.
"""

from circsim.core.constants import MS_PER_MINUTE


def clamp(value: float, low: float, high: float) -> float:
    """
    Clamp value to the inclusive range [low, high].
    """
    if low > high:
        low, high = high, low
    return max(low, min(high, value))


def cycle_period(hr: float) -> float:
    """Cardiac cycle length (ms) for a heart rate in bpm."""
    return MS_PER_MINUTE / hr


def cycle_phase(t: float, period: float) -> float:
    """
    Position of t within its cardiac cycle, in [0, period).

    Python's float modulo already takes the sign of the divisor, so negative
    times (e.g. t - av_delay early in a run) map into the same range.
    """
    phase = t % period
    # -1e-18 % 1000.0 rounds to exactly 1000.0
    if phase >= period:
        return 0.0
    return phase
