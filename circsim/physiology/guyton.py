"""
Steady-state venous return and Frank-Starling curves.

These are algebraic approximations used to plot operating points against the
running simulation; they never feed back into the integration.
"""

import math
from dataclasses import dataclass

from circsim.core.enums import Chamber
from circsim.core.utils import cycle_period
from circsim.physiology.params import SimulationParameters, chamber_params

# mL/ms -> L/min
_FLOW_TO_L_MIN = 60.0


@dataclass(frozen=True)
class GuytonParameters:
    """Resistance-weighted compliance sums (W, ms) and total compliances (mL/mmHg)."""
    w_s: float
    c_s: float
    w_p: float
    c_p: float

    @property
    def w_total(self) -> float:
        return self.w_s + self.w_p


def guyton_parameters(p: SimulationParameters) -> GuytonParameters:
    """
    Each compliance weighted by the resistance between it and the atrium it drains into.
    """
    w_s = (p.cas_prox * (p.rda + p.ras + p.rcs + p.rvs)
           + p.cda * (p.ras + p.rcs + p.rvs)
           + p.cas * (p.rcs + p.rvs)
           + p.cvs * p.rvs)
    c_s = p.cas_prox + p.cda + p.cas + p.cvs

    w_p = (p.cap_prox * (p.rcp + p.rap + p.rvp)
           + p.cap * (p.rap + p.rvp)
           + p.cvp * p.rvp)
    c_p = p.cap_prox + p.cap + p.cvp
    return GuytonParameters(w_s=w_s, c_s=c_s, w_p=w_p, c_p=c_p)


def venous_return(p: SimulationParameters, total_volume: float, chamber_volume: float,
                  pra: float, pla: float) -> float:
    """
    Linear venous return (L/min) for given right and left atrial pressures.

    Args:
        total_volume: Total circulating volume (mL)
        chamber_volume: Mean volume held in the four heart chambers (mL)
        pra: Right atrial pressure (mmHg)
        pla: Left atrial pressure (mmHg)
    """
    g = guyton_parameters(p)
    if g.w_total == 0:
        return 0.0
    stressed = total_volume - chamber_volume - (g.c_s * pra + g.c_p * pla)
    return (stressed / g.w_total) * _FLOW_TO_L_MIN


def arterial_elastance(p: SimulationParameters, ventricle: Chamber = Chamber.LV) -> float:
    """Effective arterial elastance (mmHg/mL) seen by a ventricle: R_downstream / T."""
    if ventricle == Chamber.RV:
        resistance = p.rap_prox + p.rcp + p.rap + p.rvp
    elif ventricle == Chamber.LV:
        resistance = p.ras_prox + p.rda + p.ras + p.rcs + p.rvs
    else:
        raise ValueError(f"Arterial elastance is defined for ventricles only, got {ventricle}")
    return resistance / cycle_period(p.hr)


def starling_cardiac_output(p_ed: float, ees: float, alpha: float, beta: float,
                            ea: float, hr: float) -> float:
    """
    Cardiac output (L/min) predicted from end-diastolic pressure.

    SV = Ees/(Ees+Ea) * ln((Ped+beta)/beta) / alpha, floored at zero.
    """
    if p_ed < 0:
        return 0.0
    sv = (ees / (ees + ea)) * (1.0 / alpha) * math.log((p_ed + beta) / beta)
    return max(0.0, sv) * hr / 1000.0


def starling_curve(p: SimulationParameters, ventricle: Chamber, p_ed: float) -> float:
    """Starling cardiac output for one ventricle using its own parameters."""
    c = chamber_params(p, ventricle)
    return starling_cardiac_output(p_ed, c.ees, c.alpha, c.beta,
                                   arterial_elastance(p, ventricle), p.hr)
