import math
from dataclasses import replace
from typing import Tuple

import numpy as np

from heartsim.core.constants import PlethTuning
from heartsim.core.state import EMPTY_PATTERN, SimulationState

_SPO2_PULSE = np.array([0, 0.4, 0.8, 1.0, 0.7, 0.5, 0.3, 0.15, 0], dtype=float)
_SPO2_PULSE.flags.writeable = False


class SpO2Monitor:
    """
    Plethysmograph generator.

    One pulse pattern is walked per organized beat. Each sample is shaped by
    a half-sine envelope and scaled by SpO2 / 100, floored so a desaturated
    patient still shows a visible pulse.
    """
    def __init__(self, tuning: PlethTuning = None):
        self.tuning = tuning or PlethTuning()
        self._pulse = _SPO2_PULSE

    def amplitude(self, index: int, spo2: float) -> float:
        t = self.tuning
        envelope = math.sin(index / t.envelope_points * math.pi) * spo2 / 100.0
        return t.pulse_scale * max(t.min_amplitude, envelope)

    def step(self, sim: SimulationState, allow_new_pulse: bool = True) -> Tuple[SimulationState, float]:
        """Return (new state, pleth sample)."""
        pattern = sim.spo2_pattern
        cursor = sim.spo2_cursor
        due = sim.spo2_pulse_due

        if not allow_new_pulse:
            # A beat scheduled before the lead came off is dropped, not replayed later.
            due = False
        elif due and len(pattern) == 0:
            pattern, cursor, due = self._pulse, 0, False

        value = self.tuning.baseline
        if cursor < len(pattern):
            value += float(pattern[cursor]) * self.amplitude(cursor, sim.metrics.spo2)
            cursor += 1
        if cursor >= len(pattern):
            pattern, cursor = EMPTY_PATTERN, 0

        return replace(sim, spo2_pattern=pattern, spo2_cursor=cursor, spo2_pulse_due=due), value
