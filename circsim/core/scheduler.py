import logging
import math
import time
from typing import Optional

from circsim.core.constants import PHYSICS_DT_MS, MAX_STEPS_PER_FRAME

logger = logging.getLogger(__name__)


class RealTimeScheduler:
    """
    Turns variable wall-clock frame deltas into a whole number of fixed physics steps.

    Simulated time owed is kept in an accumulator and the remainder of each
    frame is carried forward. If a frame owes more than max_steps_per_frame
    steps (tab in background, debugger pause, slow machine) the frame runs the
    cap and the debt is dropped instead of being caught up later.
    """
    def __init__(self, dt_ms: float = PHYSICS_DT_MS, max_steps_per_frame: int = MAX_STEPS_PER_FRAME,
                 playback_speed: float = 1.0):
        self.dt_ms = dt_ms
        self.max_steps_per_frame = max_steps_per_frame
        self.playback_speed = playback_speed
        self.paused = False

        self.accumulator = 0.0
        self.total_steps = 0
        self.overload_count = 0
        self.last_overloaded = False

    def set_speed(self, speed: float):
        if speed < 0:
            raise ValueError(f"playback speed must be >= 0 (got {speed})")
        self.playback_speed = speed

    def pause(self):
        self.paused = True

    def play(self):
        self.paused = False

    def reset(self):
        self.accumulator = 0.0
        self.last_overloaded = False

    def tick(self, wall_dt_ms: float) -> int:
        """
        Account for one rendered frame and return how many physics steps to run.

        Args:
            wall_dt_ms: Wall-clock time since the previous frame (ms).
                Negative deltas (clock adjustments) count as zero.
        """
        if self.paused:
            self.accumulator = 0.0
            return 0

        self.accumulator += max(0.0, wall_dt_ms) * self.playback_speed
        steps = math.floor(self.accumulator / self.dt_ms)

        if steps > self.max_steps_per_frame:
            dropped = steps - self.max_steps_per_frame
            steps = self.max_steps_per_frame
            self.accumulator = 0.0
            self.overload_count += 1
            if not self.last_overloaded:
                logger.warning("Scheduler overloaded: dropped %d physics steps (%.0f ms simulated)",
                               dropped, dropped * self.dt_ms)
            else:
                logger.debug("Scheduler still overloaded: dropped %d steps", dropped)
            self.last_overloaded = True
        else:
            self.accumulator -= steps * self.dt_ms
            self.last_overloaded = False

        self.total_steps += steps
        return steps


class FrameClock:
    """Wall-clock source of frame deltas for drivers without a display refresh callback."""

    def __init__(self):
        self._last: Optional[float] = None

    def delta_ms(self) -> float:
        """Milliseconds since the previous call; 0.0 on the first call."""
        now = time.perf_counter()
        if self._last is None:
            self._last = now
            return 0.0
        delta = (now - self._last) * 1000.0
        self._last = now
        return delta
