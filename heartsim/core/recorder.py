import csv
import logging
import os
import time
from typing import Dict, Optional

from heartsim.patient.patient import Patient
from .state import SimulationState

logger = logging.getLogger(__name__)

HEADER = (
    "timestamp",
    "patient_id",
    "rhythm",
    "heart_rate",
    "bp_systolic",
    "bp_diastolic",
    "spo2",
    "temperature",
    "respiratory_rate",
    "lead_off",
    "active_alerts",
    "unacknowledged_alerts",
    "risk_level",
)


class VitalsRecorder:
    """
    Records per-patient vitals to CSV, one row per patient per sample.
    """
    def __init__(self, output_dir: str = ".", sample_interval_sec: float = 1.0):
        self.output_dir = output_dir
        self.filename = f"heartsim_vitals_{int(time.time())}.csv"
        self.file_path = os.path.join(output_dir, self.filename)
        self.file = None
        self.writer = None
        self.is_recording = False
        self.sample_interval_sec = max(0.0, sample_interval_sec)
        self._last_sample_time: Dict[str, float] = {}

    def start(self):
        try:
            os.makedirs(self.output_dir, exist_ok=True)
            self.file = open(self.file_path, "w", newline="")
            self.writer = csv.writer(self.file)
            self.writer.writerow(HEADER)
            self.is_recording = True
        except OSError as e:
            logger.error("Failed to start recording to %s: %s", self.file_path, e)
            self.is_recording = False

    def log(self, now: float, patient: Patient, sim: SimulationState):
        if not self.is_recording or not self.writer:
            return

        if self.sample_interval_sec > 0.0:
            last: Optional[float] = self._last_sample_time.get(patient.id)
            if last is not None and (now - last) < self.sample_interval_sec:
                return
            self._last_sample_time[patient.id] = now

        m = sim.metrics
        self.writer.writerow((
            f"{now:.3f}",
            patient.id,
            patient.active_rhythm.name,
            m.heart_rate,
            m.blood_pressure.systolic,
            m.blood_pressure.diastolic,
            m.spo2,
            m.temperature,
            m.respiratory_rate,
            int(sim.is_lead_off),
            len(sim.alerts),
            len(sim.unacknowledged_alerts()),
            sim.ai.risk_level.value,
        ))

    def stop(self):
        if self.file:
            self.file.close()
            self.file = None
        self.writer = None
        self.is_recording = False
