import logging
import math
from dataclasses import replace
from typing import List, Optional

import numpy as np

from circsim.core.constants import INITIAL_STATE_VECTOR, METRICS_MIN_BUFFER
from circsim.core.enums import ParameterGroup
from circsim.core.instances import InstanceManager
from circsim.core.metrics import HemodynamicMetrics, compute_metrics
from circsim.core.recorder import DataRecorder
from circsim.core.scheduler import RealTimeScheduler
from circsim.core.state import (
    PhysicsSnapshot, PhysicsState, SimInstance, SimulationConfig, SimulationOutput,
)
from circsim.core.sync import ParameterSynchronizer
from circsim.core.utils import cycle_period
from circsim.physiology.circulation import total_volume
from circsim.physiology.integrator import rk4_step
from circsim.physiology.params import (
    SimulationParameters, apply_changes, scale_group, validate_params,
)

logger = logging.getLogger(__name__)

DEFAULT_TARGET_VOLUME = total_volume(INITIAL_STATE_VECTOR)


class SimulationEngine:
    """
    Main simulation orchestrator.
    Owns every instance's physics state, turns frame deltas into fixed
    physics steps and produces read-only snapshots.

    State ownership:
    - Live parameters / target volume (SimInstance) are edited through the
      engine's setters at any time and validated on the way in.
    - PhysicsState (time, state vector, buffer, active parameters) is written
      only by the step loop. Consumers get PhysicsSnapshot copies.
    """
    def __init__(self, config: Optional[SimulationConfig] = None):
        self.config = config or SimulationConfig()
        self.manager = InstanceManager(self.config)
        self.scheduler = RealTimeScheduler(
            dt_ms=self.config.dt_ms,
            max_steps_per_frame=self.config.max_steps_per_frame,
            playback_speed=self.config.playback_speed,
        )
        self.synchronizer = ParameterSynchronizer(self.config)
        self.recorder: Optional[DataRecorder] = None

        # Control flags.
        self.running = False
        self.total_steps = 0
        self._next_id = 1

    # ------------------------------------------------------------------
    # Instances
    # ------------------------------------------------------------------

    @property
    def instance_ids(self) -> List[str]:
        return self.manager.ids()

    @property
    def current_time(self) -> float:
        """Latest simulated time (ms) on the shared timeline."""
        return self.manager.shared_time()

    def add_instance(self, name: Optional[str] = None,
                     params: Optional[SimulationParameters] = None,
                     target_volume: Optional[float] = None,
                     clone_from: Optional[str] = None) -> str:
        """
        Add a simulated subject and return its id.

        With clone_from, unspecified parameters and target volume are copied
        from that instance's live values. The new instance starts at the
        latest time reached by any existing instance.
        """
        if clone_from is not None:
            source = self._instance(clone_from)
            params = params if params is not None else source.params
            target_volume = target_volume if target_volume is not None else source.target_volume

        params = validate_params(params if params is not None else SimulationParameters())
        if target_volume is None:
            target_volume = DEFAULT_TARGET_VOLUME
        self._check_volume(target_volume)

        instance_id = str(self._next_id)
        self._next_id += 1
        if name is None:
            index = len(self.manager)
            name = f"Heart {chr(ord('A') + index)}" if index < 26 else f"Heart {instance_id}"

        self.manager.add(SimInstance(id=instance_id, name=name, params=params,
                                     target_volume=float(target_volume)))
        return instance_id

    def remove_instance(self, instance_id: str):
        self._instance(instance_id)
        self.manager.remove(instance_id)

    def reset_instance(self, instance_id: str):
        """
        Restart an instance from the canonical initial state with its live
        parameters, at the current shared time. Clears a divergence freeze.
        """
        self._instance(instance_id)
        self.manager.reset(instance_id)

    def get_instance(self, instance_id: str) -> SimInstance:
        """Copy of the live side of an instance."""
        return replace(self._instance(instance_id))

    def update_params(self, instance_id: str, **changes: float):
        """
        Edit live parameters. Takes effect at the next matching phase boundary.

        Raises ParameterValidationError and leaves the live parameters as they
        were if the result would be invalid.
        """
        instance = self._instance(instance_id)
        instance.params = apply_changes(instance.params, changes)

    def set_params(self, instance_id: str, params: SimulationParameters):
        instance = self._instance(instance_id)
        instance.params = validate_params(params)

    def set_target_volume(self, instance_id: str, volume: float):
        self._check_volume(volume)
        self._instance(instance_id).target_volume = float(volume)

    def set_group_total(self, instance_id: str, group: ParameterGroup, total: float):
        """Rescale a resistance/compliance group of the live parameters to a new total."""
        instance = self._instance(instance_id)
        instance.params = validate_params(scale_group(instance.params, group, total))

    # ------------------------------------------------------------------
    # Run control
    # ------------------------------------------------------------------

    def start(self):
        """Start the simulation loop."""
        self.running = True
        self.scheduler.reset()
        logger.info("Engine started with %d instance(s)", len(self.manager))

    def stop(self):
        """Stop the simulation."""
        self.running = False
        self.scheduler.reset()
        logger.info("Engine stopped after %d steps", self.total_steps)

    def pause(self):
        self.scheduler.pause()

    def play(self):
        self.scheduler.play()

    @property
    def paused(self) -> bool:
        return self.scheduler.paused

    def set_speed(self, speed: float):
        self.scheduler.set_speed(speed)
        self.config.playback_speed = speed

    def tick(self, wall_dt_ms: float) -> int:
        """
        Advance by one rendered frame. Returns the number of physics steps run.
        """
        if not self.running:
            return 0
        steps = self.scheduler.tick(wall_dt_ms)
        for _ in range(steps):
            self._step_all()
        return steps

    def step(self):
        """Run exactly one physics step on every instance, bypassing the scheduler."""
        if not self.running:
            return
        self._step_all()

    def _step_all(self):
        dt = self.config.dt_ms
        recorder = self.recorder
        for instance, state in self.manager.pairs():
            if state.diverged:
                continue
            self.synchronizer.synchronize(state, instance)

            try:
                t_next, y_next, aux = rk4_step(state.t, state.y, dt, state.active_params)
            except (ArithmeticError, ValueError) as exc:
                self._freeze(instance, state, repr(exc))
                continue
            if not np.isfinite(y_next).all():
                self._freeze(instance, state, "non-finite state")
                continue
            state.t = t_next
            state.y = y_next

            output = SimulationOutput(t=t_next, y=tuple(y_next.tolist()), aux=aux)
            state.buffer.append(output)
            if recorder is not None:
                recorder.log(instance.id, output)
        self.total_steps += 1

    def _freeze(self, instance: SimInstance, state: PhysicsState, reason: str):
        """Stop integrating one instance; the others keep running."""
        state.diverged = True
        logger.warning("[%s] %s diverged at t=%.1f ms (%s); instance frozen until reset_instance()",
                       instance.id, instance.name, state.t, reason)

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    def get_snapshot(self, instance_id: str) -> PhysicsSnapshot:
        self._instance(instance_id)
        state = self.manager.states[instance_id]
        return PhysicsSnapshot(
            instance_id=instance_id,
            t=state.t,
            y=tuple(state.y.tolist()),
            active_params=state.active_params,
            outputs=state.buffer.snapshot(),
            beats=state.beats,
            systoles=state.systoles,
            diverged=state.diverged,
        )

    def get_latest_output(self, instance_id: str) -> Optional[SimulationOutput]:
        return self._state(instance_id).buffer.latest()

    def get_metrics(self, instance_id: str) -> Optional[HemodynamicMetrics]:
        """Beat metrics for the last cycle, or None until enough history exists."""
        state = self._state(instance_id)
        if len(state.buffer) < METRICS_MIN_BUFFER:
            return None
        hr = state.active_params.hr
        window = state.buffer.since(state.t - cycle_period(hr))
        return compute_metrics(window, hr, now=state.t)

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def start_recording(self, output_dir: str = "recordings", sample_interval_ms: float = 10.0):
        self.stop_recording()
        self.recorder = DataRecorder(output_dir=output_dir, sample_interval_ms=sample_interval_ms)
        self.recorder.start()
        if not self.recorder.is_recording:
            self.recorder = None

    def stop_recording(self):
        if self.recorder:
            self.recorder.stop()
            self.recorder = None

    # ------------------------------------------------------------------

    def _instance(self, instance_id: str) -> SimInstance:
        try:
            return self.manager.instances[instance_id]
        except KeyError:
            raise KeyError(f"Unknown instance '{instance_id}'") from None

    def _state(self, instance_id: str) -> PhysicsState:
        self._instance(instance_id)
        return self.manager.states[instance_id]

    @staticmethod
    def _check_volume(volume: float):
        if not math.isfinite(volume) or volume < 0:
            raise ValueError(f"target volume must be a finite, non-negative number (got {volume})")
