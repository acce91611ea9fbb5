import numpy as np
import pytest
from scipy.integrate import solve_ivp

from circsim.core.constants import INITIAL_STATE_VECTOR, INITIAL_TIME, PHYSICS_DT_MS, STATE_SIZE
from circsim.physiology.circulation import AuxOutputs, circulation_rhs, total_volume
from circsim.physiology.integrator import rk4_step


@pytest.fixture
def y0():
    return np.array(INITIAL_STATE_VECTOR, dtype=float)


def _integrate(params, y, t, steps, dt=PHYSICS_DT_MS):
    for _ in range(steps):
        t, y, _aux = rk4_step(t, y, dt, params)
    return t, y


class TestRightHandSide:
    def test_shape(self, default_params, y0):
        dy, aux = circulation_rhs(INITIAL_TIME, y0, default_params)
        assert dy.shape == (STATE_SIZE,)
        assert isinstance(aux, AuxOutputs)

    def test_reservoir_is_constant(self, default_params, y0):
        for t in (INITIAL_TIME, 1100.0, 1300.0, 1700.0):
            dy, _ = circulation_rhs(t, y0, default_params)
            assert dy[-1] == 0.0

    def test_closed_loop_conserves_volume(self, default_params, y0):
        """Every flow leaves one compartment and enters another."""
        for t in (INITIAL_TIME, 1050.0, 1250.0, 1400.0, 1800.0):
            dy, _ = circulation_rhs(t, y0, default_params)
            assert np.sum(dy) == pytest.approx(0.0, abs=1e-12)

    def test_aux_pressures_follow_compliances(self, default_params, y0):
        _, aux = circulation_rhs(INITIAL_TIME, y0, default_params)
        assert aux.aop == pytest.approx(y0[8] / default_params.cas_prox)
        assert aux.pap == pytest.approx(y0[10] / default_params.cap_prox)

    def test_leaky_valve_allows_backflow(self, default_params, y0):
        """With aortic regurgitation the valve conducts while LV pressure is below aortic."""
        leaky = default_params.copy(ravr=0.5)
        _, competent = circulation_rhs(INITIAL_TIME, y0, default_params)
        _, regurgitant = circulation_rhs(INITIAL_TIME, y0, leaky)
        assert competent.plv < competent.aop
        assert regurgitant.iasp < competent.iasp < 0.0


def test_total_volume_includes_reservoir(y0):
    assert total_volume(y0) == pytest.approx(sum(INITIAL_STATE_VECTOR))
    assert total_volume(y0) - total_volume(y0[:-1]) == pytest.approx(10.0)


class TestRK4:
    def test_deterministic(self, default_params, y0):
        a = _integrate(default_params, y0.copy(), INITIAL_TIME, 300)
        b = _integrate(default_params, y0.copy(), INITIAL_TIME, 300)
        assert a[0] == b[0]
        assert np.array_equal(a[1], b[1])

    def test_does_not_mutate_input(self, default_params, y0):
        before = y0.copy()
        rk4_step(INITIAL_TIME, y0, PHYSICS_DT_MS, default_params)
        assert np.array_equal(y0, before)

    def test_aux_from_step_start(self, default_params, y0):
        """Auxiliary outputs describe the state at the start of the step."""
        t_next, _, aux = rk4_step(INITIAL_TIME, y0, PHYSICS_DT_MS, default_params)
        _, expected = circulation_rhs(INITIAL_TIME, y0, default_params)
        assert t_next == pytest.approx(INITIAL_TIME + PHYSICS_DT_MS)
        assert aux == expected

    def test_conserves_total_volume(self, default_params, y0):
        _, y = _integrate(default_params, y0, INITIAL_TIME, 1000)
        assert total_volume(y) == pytest.approx(total_volume(y0), abs=1e-8)
        assert y[-1] == y0[-1]

    def test_matches_reference_solver(self, default_params, y0):
        """Fixed 2 ms steps track a tight adaptive solution through atrial and ventricular systole."""
        # Settle past the start-up transient first.
        t_start, y_start = _integrate(default_params, y0, INITIAL_TIME, 2000)
        t_end, y_rk4 = _integrate(default_params, y_start, t_start, 250)

        ref = solve_ivp(
            lambda t, y: circulation_rhs(t, y, default_params)[0],
            (t_start, t_end), y_start,
            method="LSODA", rtol=1e-8, atol=1e-8, max_step=0.5,
        )
        assert ref.success
        np.testing.assert_allclose(y_rk4, ref.y[:, -1], atol=5.0)

    def test_stays_physiological_over_many_beats(self, default_params, y0):
        _, y = _integrate(default_params, y0, INITIAL_TIME, 5000)
        assert np.all(np.isfinite(y))
        assert np.all(y[:-1] > 0.0)
