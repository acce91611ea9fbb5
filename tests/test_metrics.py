import math

import pytest

from circsim.core.constants import STATE_SIZE, IDX_QLV
from circsim.core.metrics import compute_metrics, last_cycle
from circsim.core.state import SimulationOutput
from circsim.physiology.circulation import AuxOutputs


def _synthetic_beat(t0=0.0, period=1000.0, dt=2.0, cycles=2):
    """Sinusoidal pressures and LV volume with known extrema."""
    outputs = []
    n = int(cycles * period / dt)
    for i in range(n + 1):
        t = t0 + i * dt
        s = math.sin(2.0 * math.pi * (t - t0) / period)
        y = [0.0] * STATE_SIZE
        y[IDX_QLV] = 90.0 + 35.0 * s   # 55..125 mL
        aux = AuxOutputs(
            plv=60.0 + 60.0 * s,
            pla=8.0,
            prv=10.0,
            pra=4.0,
            aop=95.0 + 25.0 * s,       # 70..120 mmHg
            pap=18.0 + 7.0 * s,        # 11..25 mmHg
            imv=0.0,
            iasp=0.0,
        )
        outputs.append(SimulationOutput(t=t, y=tuple(y), aux=aux))
    return outputs


def test_last_cycle_window():
    outputs = _synthetic_beat(cycles=3)
    window = last_cycle(outputs, hr=60.0)
    assert window[0].t == pytest.approx(outputs[-1].t - 1000.0)
    assert window[-1] is outputs[-1]


def test_last_cycle_empty():
    assert last_cycle([], hr=60.0) == ()


def test_compute_metrics_known_waveform():
    m = compute_metrics(_synthetic_beat(), hr=60.0)
    assert m.sbp == pytest.approx(120.0, abs=0.01)
    assert m.dbp == pytest.approx(70.0, abs=0.01)
    assert m.map == pytest.approx(95.0, abs=0.1)
    assert m.pa_sys == pytest.approx(25.0, abs=0.01)
    assert m.pa_dia == pytest.approx(11.0, abs=0.01)
    assert m.cvp == pytest.approx(4.0)
    assert m.pcwp == pytest.approx(8.0)
    assert m.sv == pytest.approx(70.0, abs=0.01)
    assert m.co == pytest.approx(70.0 * 60.0 / 1000.0, abs=0.01)
    assert m.ea_lv == pytest.approx(120.0 / 70.0, abs=0.01)


def test_too_few_records():
    outputs = _synthetic_beat(dt=200.0, cycles=1)
    assert compute_metrics(outputs, hr=60.0) is None


def test_window_anchored_at_now():
    outputs = _synthetic_beat(cycles=3)
    m = compute_metrics(outputs, hr=60.0, now=outputs[-1].t + 5000.0)
    assert m is None
