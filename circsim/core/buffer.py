from collections import deque
from typing import Optional, Tuple

from circsim.core.constants import BUFFER_RETENTION_MS
from circsim.core.state import SimulationOutput


class OutputBuffer:
    """
    Time-bounded history of integration results for one instance.

    Append-only from the scheduler's side. Once the newest record is more than
    retention_ms ahead of the oldest, the oldest records are dropped. With a
    fixed step this removes exactly one record per append in steady state.

    Readers on another cadence should take snapshot() rather than hold on to
    the live deque.
    """
    def __init__(self, retention_ms: float = BUFFER_RETENTION_MS):
        if retention_ms <= 0:
            raise ValueError(f"retention_ms must be > 0 (got {retention_ms})")
        self.retention_ms = retention_ms
        self._records = deque()

    def append(self, output: SimulationOutput) -> None:
        records = self._records
        records.append(output)
        cutoff = output.t - self.retention_ms
        while records[0].t < cutoff:
            records.popleft()

    def clear(self) -> None:
        self._records.clear()

    def __len__(self) -> int:
        return len(self._records)

    def latest(self) -> Optional[SimulationOutput]:
        return self._records[-1] if self._records else None

    def oldest(self) -> Optional[SimulationOutput]:
        return self._records[0] if self._records else None

    def span(self) -> float:
        """Simulated time covered by the retained records (ms)."""
        if not self._records:
            return 0.0
        return self._records[-1].t - self._records[0].t

    def snapshot(self) -> Tuple[SimulationOutput, ...]:
        """Immutable copy of every retained record, oldest first."""
        return tuple(self._records)

    def since(self, t_start: float) -> Tuple[SimulationOutput, ...]:
        """Records with t >= t_start, oldest first."""
        recent = []
        for record in reversed(self._records):
            if record.t < t_start:
                break
            recent.append(record)
        recent.reverse()
        return tuple(recent)
