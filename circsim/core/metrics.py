from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from circsim.core.constants import METRICS_MIN_WINDOW, IDX_QLV
from circsim.core.state import SimulationOutput
from circsim.core.utils import cycle_period


@dataclass(frozen=True)
class HemodynamicMetrics:
    """Beat-level summary of the most recent cardiac cycle."""
    sbp: float    # Systolic aortic pressure (mmHg)
    dbp: float    # Diastolic aortic pressure (mmHg)
    map: float    # Mean aortic pressure (mmHg)
    pa_sys: float  # Systolic pulmonary artery pressure (mmHg)
    pa_dia: float  # Diastolic pulmonary artery pressure (mmHg)
    cvp: float    # Mean right atrial pressure (mmHg)
    pcwp: float   # Mean left atrial pressure (mmHg)
    sv: float     # Stroke volume (mL)
    co: float     # Cardiac output (L/min)
    ea_lv: float  # Effective arterial elastance, ESP/SV (mmHg/mL)
    hr: float     # Heart rate the window was sized with (bpm)


def last_cycle(outputs: Sequence[SimulationOutput], hr: float,
               now: Optional[float] = None) -> Sequence[SimulationOutput]:
    """Records within one cycle length of `now` (default: newest record)."""
    if not outputs:
        return ()
    end = outputs[-1].t if now is None else now
    start = end - cycle_period(hr)
    return [o for o in outputs if start <= o.t <= end]


def compute_metrics(outputs: Sequence[SimulationOutput], hr: float,
                    now: Optional[float] = None) -> Optional[HemodynamicMetrics]:
    """
    Compute beat metrics over the last cardiac cycle.

    End-systolic pressure is approximated by peak LV pressure. Returns None
    when the window holds fewer than METRICS_MIN_WINDOW records.
    """
    window = last_cycle(outputs, hr, now)
    if len(window) < METRICS_MIN_WINDOW:
        return None

    aux = np.array([o.aux for o in window], dtype=float)  # columns follow AuxOutputs
    plv, pla, _prv, pra, aop, pap = (aux[:, i] for i in range(6))
    lv_volume = np.array([o.y[IDX_QLV] for o in window], dtype=float)

    sv = float(np.max(lv_volume) - np.min(lv_volume))
    esp = float(np.max(plv))
    return HemodynamicMetrics(
        sbp=float(np.max(aop)),
        dbp=float(np.min(aop)),
        map=float(np.mean(aop)),
        pa_sys=float(np.max(pap)),
        pa_dia=float(np.min(pap)),
        cvp=float(np.mean(pra)),
        pcwp=float(np.mean(pla)),
        sv=sv,
        co=sv * hr / 1000.0,
        ea_lv=esp / sv if sv > 0 else 0.0,
        hr=hr,
    )
