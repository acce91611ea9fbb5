"""
Right-hand side of the 12-compartment circulation ODE.

State layout (charges, mL), see circsim.core.constants.STATE_LABELS:

    0 qvs       systemic veins
    1 qas       systemic arteries
    2 qap       pulmonary arteries
    3 qvp       pulmonary veins
    4 qlv       left ventricle
    5 qla       left atrium
    6 qrv       right ventricle
    7 qra       right atrium
    8 qas_prox  proximal aorta (compliance chamber)
    9 qda       distal aorta
   10 qap_prox  proximal pulmonary artery (compliance chamber)
   11 qtube     reservoir, constant

Flows follow the electrical analogy: I = (P_up - P_down) / R for resistive
segments and valve_flow() for the four heart valves. Each derivative is
inflow minus outflow at its node.
"""

from typing import NamedTuple, Sequence, Tuple

import numpy as np

from circsim.physiology.elastance import chamber_pressure
from circsim.physiology.params import SimulationParameters
from circsim.physiology.valves import valve_flow


class AuxOutputs(NamedTuple):
    """Quantities computed alongside the derivative; not integrated."""
    plv: float
    pla: float
    prv: float
    pra: float
    aop: float   # proximal aortic pressure
    pap: float   # proximal pulmonary artery pressure
    imv: float   # mitral flow (mL/ms)
    iasp: float  # aortic valve flow (mL/ms)


def circulation_rhs(t: float, y: Sequence[float], p: SimulationParameters) -> Tuple[np.ndarray, AuxOutputs]:
    """
    Evaluate dy/dt and the auxiliary pressures at (t, y).

    Args:
        t: Absolute simulation time (ms)
        y: 12-element state vector
        p: Parameters in effect for this evaluation

    Returns:
        (dy, aux) with dy in mL/ms.
    """
    qvs, qas, qap, qvp, qlv, qla, qrv, qra, qas_prox, qda, qap_prox, _qtube = y
    hr = p.hr

    plv = chamber_pressure(qlv, t, p.lv_ees, p.lv_v0, p.lv_alpha, p.lv_beta,
                           p.lv_tmax, p.lv_tau, p.lv_av_delay, hr)
    pla = chamber_pressure(qla, t, p.la_ees, p.la_v0, p.la_alpha, p.la_beta,
                           p.la_tmax, p.la_tau, p.la_av_delay, hr)
    prv = chamber_pressure(qrv, t, p.rv_ees, p.rv_v0, p.rv_alpha, p.rv_beta,
                           p.rv_tmax, p.rv_tau, p.rv_av_delay, hr)
    pra = chamber_pressure(qra, t, p.ra_ees, p.ra_v0, p.ra_alpha, p.ra_beta,
                           p.ra_tmax, p.ra_tau, p.ra_av_delay, hr)

    paop = qas_prox / p.cas_prox
    papp = qap_prox / p.cap_prox
    pda = qda / p.cda
    pas = qas / p.cas
    pvs = qvs / p.cvs
    pvp = qvp / p.cvp
    pap = qap / p.cap

    # Systemic segments
    ida = (paop - pda) / p.rda
    ias = (pda - pas) / p.ras
    ics = (pas - pvs) / p.rcs
    ivs = (pvs - pra) / p.rvs

    # Pulmonary segments
    icp = (papp - pap) / p.rcp
    iap = (pap - pvp) / p.rap
    ivp = (pvp - pla) / p.rvp

    # Valves
    itv = valve_flow(pra - prv, p.rtv, p.rtvs, p.rtvr)
    imv = valve_flow(pla - plv, p.rmv, p.rmvs, p.rmvr)
    iasp = valve_flow(plv - paop, p.ras_prox, p.ravs, p.ravr)
    iapp = valve_flow(prv - papp, p.rap_prox, p.rpvs, p.rpvr)

    dy = np.array([
        ics - ivs,        # qvs
        ias - ics,        # qas
        icp - iap,        # qap
        iap - ivp,        # qvp
        imv - iasp,       # qlv
        ivp - imv,        # qla
        itv - iapp,       # qrv
        ivs - itv,        # qra
        iasp - ida,       # qas_prox
        ida - ias,        # qda
        iapp - icp,       # qap_prox
        0.0,              # qtube
    ])
    aux = AuxOutputs(
        plv=float(plv), pla=float(pla), prv=float(prv), pra=float(pra),
        aop=float(paop), pap=float(papp), imv=float(imv), iasp=float(iasp),
    )
    return dy, aux


def total_volume(y: Sequence[float]) -> float:
    """Sum of all compartments, reservoir included."""
    return float(np.sum(y))
