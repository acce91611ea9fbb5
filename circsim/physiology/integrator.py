from typing import Sequence, Tuple

import numpy as np

from circsim.physiology.circulation import AuxOutputs, circulation_rhs
from circsim.physiology.params import SimulationParameters


def rk4_step(t: float, y: Sequence[float], dt: float,
             params: SimulationParameters) -> Tuple[float, np.ndarray, AuxOutputs]:
    """
    Advance the circulation by one classical 4th-order Runge-Kutta step.

    The returned auxiliary outputs come from the k1 evaluation, i.e. the
    start of the step, so displayed pressures lag the state by one step.
    Waveform consumers are aligned to this; do not swap in end-of-step values.

    Args:
        t: Time at the start of the step (ms)
        y: State at t
        dt: Step size (ms)
        params: Parameters held fixed for the whole step

    Returns:
        (t + dt, y at t + dt, aux at t)
    """
    y = np.asarray(y, dtype=float)
    half = dt / 2.0

    k1, aux = circulation_rhs(t, y, params)
    k2, _ = circulation_rhs(t + half, y + half * k1, params)
    k3, _ = circulation_rhs(t + half, y + half * k2, params)
    k4, _ = circulation_rhs(t + dt, y + dt * k3, params)

    y_next = y + dt * (k1 + 2.0 * k2 + 2.0 * k3 + k4) / 6.0
    return t + dt, y_next, aux
