"""
Phase detection and deferred parameter commits.

Live parameters edited by the user are not visible to the integrator until a
physiologically safe point in the cycle:

- End-diastole (cycle phase wraps): structural parameters (HR, resistances,
  compliances, Ees/V0) are committed and the volume-matching loop runs.
- End-systole (phase crosses the active LV Tmax): systolic timing parameters
  (alpha, beta, tau, Tmax, AV delay) are committed.

A commit never leaves the active set with a Tmax too long for the active HR:
at end-diastole such a mix pulls the live timing in early, at end-systole the
timing commit waits for the next end-diastole.

Detection runs before each step over the interval covered by the previous
step, (t - dt, t], so a commit always lands between two steps.
"""

import logging
from dataclasses import dataclass
from typing import Tuple

from circsim.core.constants import IDX_QVS
from circsim.core.enums import PhaseEvent
from circsim.core.state import PhysicsState, SimInstance, SimulationConfig
from circsim.core.utils import clamp, cycle_period, cycle_phase
from circsim.physiology.circulation import total_volume
from circsim.physiology.params import (
    SimulationParameters, STRUCTURAL_FIELDS, TIMING_FIELDS, commit_fields, cycle_timing_problem,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PhaseEvents:
    end_diastole: bool = False
    end_systole: bool = False

    def fired(self) -> Tuple[PhaseEvent, ...]:
        events = ()
        if self.end_diastole:
            events += (PhaseEvent.END_DIASTOLE,)
        if self.end_systole:
            events += (PhaseEvent.END_SYSTOLE,)
        return events


def detect_phase_events(t_before: float, t_after: float, active: SimulationParameters) -> PhaseEvents:
    """
    Classify the phase boundaries crossed between t_before and t_after.

    Both tests use the active parameters only: a live HR or LV Tmax that has
    not been committed yet must not move the boundaries.
    """
    period = cycle_period(active.hr)
    prev_phase = cycle_phase(t_before, period)
    curr_phase = cycle_phase(t_after, period)
    tmax = active.lv_tmax
    return PhaseEvents(
        end_diastole=curr_phase < prev_phase,
        end_systole=prev_phase < tmax <= curr_phase,
    )


def volume_correction(target: float, current: float, max_delta: float) -> float:
    """Per-beat volume correction, rate-limited to +/- max_delta."""
    return clamp(target - current, -max_delta, max_delta)


class ParameterSynchronizer:
    """Commits live parameters into an instance's active snapshot at phase events."""

    def __init__(self, config: SimulationConfig):
        self.dt = config.dt_ms
        self.max_volume_delta = config.max_volume_delta
        self.volume_deadband = config.volume_deadband

    def synchronize(self, state: PhysicsState, instance: SimInstance) -> PhaseEvents:
        """
        Run phase detection for the step about to start at state.t and apply commits.
        """
        events = detect_phase_events(state.t - self.dt, state.t, state.active_params)
        live = instance.params

        if events.end_diastole:
            committed = commit_fields(state.active_params, live, STRUCTURAL_FIELDS)
            if cycle_timing_problem(committed):
                # New HR is too fast for the active Tmax; take the live timing with it.
                committed = commit_fields(committed, live, TIMING_FIELDS)
                logger.debug("[%s] timing committed early with HR %.0f", instance.id, live.hr)
            state.active_params = committed
            state.beats += 1
            self._match_volume(state, instance.target_volume)
            logger.debug("[%s] end-diastole commit at t=%.1f (volume delta %.1f mL)",
                         instance.id, state.t, state.last_volume_delta)

        if events.end_systole:
            committed = commit_fields(state.active_params, live, TIMING_FIELDS)
            state.systoles += 1
            if cycle_timing_problem(committed):
                # Live Tmax only fits the live HR; both go in at the next end-diastole.
                logger.debug("[%s] end-systole commit held until HR %.0f is active",
                             instance.id, live.hr)
            else:
                state.active_params = committed
                logger.debug("[%s] end-systole commit at t=%.1f", instance.id, state.t)

        return events

    def _match_volume(self, state: PhysicsState, target: float) -> None:
        delta = volume_correction(target, total_volume(state.y), self.max_volume_delta)
        if abs(delta) > self.volume_deadband:
            y = state.y.copy()
            y[IDX_QVS] += delta
            state.y = y
            state.last_volume_delta = delta
        else:
            state.last_volume_delta = 0.0
