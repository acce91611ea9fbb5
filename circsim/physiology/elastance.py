"""
Time-varying elastance model of a cardiac chamber.

Each chamber blends an exponential end-diastolic pressure-volume relation
with a linear end-systolic one. The blend is driven by an activation fraction
e(t) that follows a raised-cosine contraction and an exponential relaxation
tail once per cardiac cycle.
"""

import math

from circsim.core.utils import cycle_period, cycle_phase

_TAIL_SCALE = (2.0 + math.sqrt(2.0)) / 4.0

# Cap on math.exp arguments; math.exp raises OverflowError above ~709.
_MAX_EXPONENT = 700.0


def activation(t: float, tmax: float, tau: float, hr: float) -> float:
    """
    Activation fraction e(t) of a chamber.

    Args:
        t: Absolute time (ms); any sign, folded into the current cycle.
        tmax: Time to end-systole (ms)
        tau: Relaxation time constant (ms)
        hr: Heart rate (bpm)

    Returns:
        Dimensionless fraction, nominally 0-1. The diastolic baseline and the
        start of the relaxation tail sit slightly off the ideal curve; this
        is how the model is defined and must not be clipped.
    """
    period = cycle_period(hr)
    phase = cycle_phase(t, period)

    if phase < tmax:
        base = math.exp(min(-(period - 1.5 * tmax) / tau, _MAX_EXPONENT)) / 2.0
        return ((1.0 - math.cos(math.pi * phase / tmax)) / 2.0) * (1.0 - base) + base
    if phase < 9.0 * tmax / 8.0:
        return (math.cos(2.0 * math.pi * phase / tmax) + 1.0) / 2.0
    return math.exp(-(phase - 9.0 * tmax / 8.0) / tau) * _TAIL_SCALE


def passive_pressure(v: float, v0: float, alpha: float, beta: float) -> float:
    """End-diastolic (passive) pressure; zero at the unstressed volume."""
    return beta * (math.exp(min(alpha * (v - v0), _MAX_EXPONENT)) - 1.0)


def active_pressure(v: float, ees: float, v0: float) -> float:
    """End-systolic (active) pressure."""
    return ees * (v - v0)


def chamber_pressure(v: float, t: float, ees: float, v0: float, alpha: float, beta: float,
                     tmax: float, tau: float, av_delay: float, hr: float) -> float:
    """
    Chamber pressure (mmHg) at volume v and time t.

    av_delay shifts the chamber's activation relative to the cycle clock
    (atrioventricular conduction delay for the ventricles).
    """
    ped = passive_pressure(v, v0, alpha, beta)
    pes = active_pressure(v, ees, v0)
    return ped + activation(t - av_delay, tmax, tau, hr) * (pes - ped)
