import math
from dataclasses import replace
from typing import Tuple

from heartsim.core.constants import SAMPLES_PER_SECOND, RespTuning
from heartsim.core.state import SimulationState


class RespirationMonitor:
    """Impedance-style respiration trace: a sinusoid at the current rate."""
    def __init__(self, sampling_rate: int = SAMPLES_PER_SECOND, tuning: RespTuning = None):
        self.sampling_rate = sampling_rate
        self.tuning = tuning or RespTuning()

    def step(self, sim: SimulationState) -> Tuple[SimulationState, float]:
        rate = sim.metrics.respiratory_rate
        phase = sim.resp_phase
        if rate > 0:
            phase = (phase + rate / 60.0 / self.sampling_rate) % 1.0
        # rate 0 -> infinite period, phase frozen
        value = self.tuning.amplitude * math.sin(2.0 * math.pi * phase)
        return replace(sim, resp_phase=phase), value
