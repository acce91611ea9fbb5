import math

from circsim.core.constants import VALVE_CLOSED_RESISTANCE


def valve_flow(delta_p: float, r: float, r_stenosis: float, r_regurg: float) -> float:
    """
    Flow (mL/ms) through a valve modelled as an asymmetric nonlinear resistor.

    Forward (delta_p > 0):  r_stenosis*Q^2 + r*Q = delta_p
    Backward (delta_p <= 0): r_regurg*Q^2 - r*Q = -delta_p, with Q <= 0

    A regurgitation resistance at or above VALVE_CLOSED_RESISTANCE is a
    competent valve and only leaks linearly through r + r_regurg.

    The quadratic roots are evaluated as 2*dP / (r + sqrt(disc)), the
    rationalized form of (-b + sqrt(disc)) / 2a, so both branches are exactly
    zero at zero gradient and do not lose precision for small gradients.
    The textbook backward root (-r - sqrt(disc)) / (2*r_regurg) is the other
    root of that quadratic and leaks -r/r_regurg at zero gradient.
    Parameters are validated upstream (r > 0, r_stenosis >= 0, r_regurg > 0),
    which keeps both discriminants >= r^2.
    """
    if delta_p > 0:
        if r_stenosis == 0:
            return delta_p / r
        disc = r * r + 4.0 * r_stenosis * delta_p
        return 2.0 * delta_p / (r + math.sqrt(disc))

    if r_regurg >= VALVE_CLOSED_RESISTANCE:
        return delta_p / (r + r_regurg)
    disc = r * r - 4.0 * r_regurg * delta_p
    return 2.0 * delta_p / (r + math.sqrt(disc))
