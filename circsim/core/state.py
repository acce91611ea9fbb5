from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, Optional, Tuple

import numpy as np

from circsim.core.constants import (
    PHYSICS_DT_MS, MAX_STEPS_PER_FRAME, BUFFER_RETENTION_MS,
    MAX_VOLUME_DELTA, VOLUME_DEADBAND, INITIAL_TIME, STATE_LABELS,
)
from circsim.physiology.circulation import AuxOutputs
from circsim.physiology.params import SimulationParameters

if TYPE_CHECKING:
    from circsim.core.buffer import OutputBuffer


@dataclass
class SimulationConfig:
    """Configuration for the simulation engine."""
    dt_ms: float = PHYSICS_DT_MS  # Fixed physics step (ms)
    max_steps_per_frame: int = MAX_STEPS_PER_FRAME

    # Rolling output history per instance (ms of simulated time).
    buffer_retention_ms: float = BUFFER_RETENTION_MS

    # Volume-matching loop, applied once per beat at end-diastole.
    max_volume_delta: float = MAX_VOLUME_DELTA  # mL
    volume_deadband: float = VOLUME_DEADBAND    # mL

    # Runtime settings.
    playback_speed: float = 1.0  # Simulated ms per wall-clock ms
    initial_time: float = INITIAL_TIME

    def __post_init__(self):
        if self.dt_ms <= 0:
            raise ValueError(f"dt_ms must be > 0 (got {self.dt_ms})")
        if self.max_steps_per_frame < 1:
            raise ValueError(f"max_steps_per_frame must be >= 1 (got {self.max_steps_per_frame})")
        if self.buffer_retention_ms <= 0:
            raise ValueError(f"buffer_retention_ms must be > 0 (got {self.buffer_retention_ms})")
        if self.playback_speed < 0:
            raise ValueError(f"playback_speed must be >= 0 (got {self.playback_speed})")


@dataclass
class SimInstance:
    """
    User-facing side of a simulated subject.

    params and target_volume are the "live" values: they may change at any
    time and are sampled by the physics only at phase boundaries.
    """
    id: str
    name: str
    params: SimulationParameters = field(default_factory=SimulationParameters)
    target_volume: float = 0.0


@dataclass(frozen=True)
class SimulationOutput:
    """One buffered integration result."""
    t: float
    y: Tuple[float, ...]
    aux: AuxOutputs

    def value(self, label: str) -> float:
        """State component by label (e.g. 'qlv')."""
        return self.y[STATE_LABELS.index(label)]

    def as_dict(self) -> Dict[str, float]:
        row: Dict[str, float] = {"t": self.t}
        row.update(zip(STATE_LABELS, self.y))
        row.update(self.aux._asdict())
        return row


@dataclass(slots=True)
class PhysicsState:
    """
    Integration state of one instance. Written only by the engine's step loop.

    active_params is the snapshot the integrator uses; it changes only at
    end-diastole / end-systole commits, never inside a step.
    """
    t: float
    y: np.ndarray
    active_params: SimulationParameters
    buffer: "OutputBuffer"
    beats: int = 0      # end-diastole events seen
    systoles: int = 0   # end-systole events seen
    last_volume_delta: float = 0.0
    diverged: bool = False  # set when a step produced a non-finite state; no further steps


@dataclass(frozen=True)
class PhysicsSnapshot:
    """Read-only copy of a PhysicsState handed to consumers."""
    instance_id: str
    t: float
    y: Tuple[float, ...]
    active_params: SimulationParameters
    outputs: Tuple[SimulationOutput, ...]
    beats: int = 0
    systoles: int = 0
    diverged: bool = False

    @property
    def latest(self) -> Optional[SimulationOutput]:
        return self.outputs[-1] if self.outputs else None
