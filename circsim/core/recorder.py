import csv
import logging
import os
import time
from typing import Dict, Sequence

import pandas as pd

from circsim.core.constants import STATE_LABELS
from circsim.core.state import SimulationOutput
from circsim.physiology.circulation import AuxOutputs

logger = logging.getLogger(__name__)

COLUMNS = ["t", *STATE_LABELS, *AuxOutputs._fields]


class DataRecorder:
    """
    Records simulation outputs to CSV, one row per sampled step per instance.
    """
    def __init__(self, output_dir: str = ".", sample_interval_ms: float = 10.0):
        self.output_dir = output_dir
        self.filename = f"circsim_log_{int(time.time())}.csv"
        self.file_path = os.path.join(output_dir, self.filename)
        self.file = None
        self.writer = None
        self.is_recording = False
        self.sample_interval_ms = max(0.0, sample_interval_ms)
        self._last_sample_time: Dict[str, float] = {}
        self.rows_written = 0

    def start(self):
        try:
            os.makedirs(self.output_dir, exist_ok=True)
            self.file = open(self.file_path, 'w', newline='')
            self.writer = csv.writer(self.file)
            self.is_recording = True
            self.writer.writerow(["instance", *COLUMNS])
            logger.info("Recording to %s", self.file_path)
        except OSError as e:
            logger.warning("Failed to start recording: %s", e)
            self.is_recording = False

    def log(self, instance_id: str, output: SimulationOutput):
        if not self.is_recording or not self.writer:
            return

        if self.sample_interval_ms > 0.0:
            last = self._last_sample_time.get(instance_id)
            if last is not None and (output.t - last) < self.sample_interval_ms:
                return
            self._last_sample_time[instance_id] = output.t

        self.writer.writerow([instance_id, output.t, *output.y, *output.aux])
        self.rows_written += 1

    def stop(self):
        if self.file:
            self.file.close()
            self.file = None
            logger.info("Recording stopped (%d rows)", self.rows_written)
        self.writer = None
        self.is_recording = False


def outputs_to_frame(outputs: Sequence[SimulationOutput]) -> pd.DataFrame:
    """Tabulate a buffer snapshot, one row per record."""
    return pd.DataFrame([o.as_dict() for o in outputs], columns=COLUMNS)
