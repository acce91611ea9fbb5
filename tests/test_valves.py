import pytest

from circsim.core.constants import VALVE_CLOSED_RESISTANCE
from circsim.physiology.valves import valve_flow


VALVES = [
    # (r, r_stenosis, r_regurg)
    (2.5, 0.0, VALVE_CLOSED_RESISTANCE),
    (2.5, 0.05, VALVE_CLOSED_RESISTANCE),
    (30.0, 0.0, 50.0),
    (30.0, 0.2, 0.5),
    (15.0, 1.0, 1e-3),
]


@pytest.mark.parametrize("r,rs,rr", VALVES)
def test_zero_gradient_zero_flow(r, rs, rr):
    assert valve_flow(0.0, r, rs, rr) == 0.0


@pytest.mark.parametrize("r,rs,rr", VALVES)
def test_flow_follows_gradient_sign(r, rs, rr):
    assert valve_flow(5.0, r, rs, rr) > 0.0
    assert valve_flow(-5.0, r, rs, rr) < 0.0


@pytest.mark.parametrize("r,rs,rr", VALVES)
def test_continuous_through_zero(r, rs, rr):
    eps = 1e-9
    assert abs(valve_flow(eps, r, rs, rr)) < 1e-9
    assert abs(valve_flow(-eps, r, rs, rr)) < 1e-9


def test_open_valve_is_linear_without_stenosis():
    assert valve_flow(10.0, 2.5, 0.0, VALVE_CLOSED_RESISTANCE) == pytest.approx(4.0)


def test_competent_valve_leaks_linearly():
    r, rr = 2.5, VALVE_CLOSED_RESISTANCE
    flow = valve_flow(-10.0, r, 0.0, rr)
    assert flow == pytest.approx(-10.0 / (r + rr))
    assert abs(flow) < 1e-3


class TestQuadraticBranches:
    def test_stenosis_satisfies_forward_quadratic(self):
        r, rs, dp = 30.0, 0.2, 40.0
        q = valve_flow(dp, r, rs, 0.5)
        assert rs * q * q + r * q == pytest.approx(dp)

    def test_regurgitation_satisfies_backward_quadratic(self):
        r, rr, dp = 30.0, 0.5, -40.0
        q = valve_flow(dp, r, 0.0, rr)
        assert q < 0
        assert rr * q * q - r * q == pytest.approx(-dp)

    def test_stenosis_reduces_forward_flow(self):
        open_flow = valve_flow(40.0, 30.0, 0.0, VALVE_CLOSED_RESISTANCE)
        stenotic = valve_flow(40.0, 30.0, 0.5, VALVE_CLOSED_RESISTANCE)
        assert 0.0 < stenotic < open_flow

    def test_lower_regurgitation_resistance_leaks_more(self):
        mild = valve_flow(-40.0, 30.0, 0.0, 10.0)
        severe = valve_flow(-40.0, 30.0, 0.0, 0.1)
        assert severe < mild < 0.0

    def test_small_gradient_keeps_precision(self):
        """Rationalized root stays close to the linear limit dP/r for tiny gradients."""
        r = 2.5
        dp = 1e-10
        assert valve_flow(dp, r, 0.05, 1.0) == pytest.approx(dp / r, rel=1e-6)
        assert valve_flow(-dp, r, 0.05, 1.0) == pytest.approx(-dp / r, rel=1e-6)
