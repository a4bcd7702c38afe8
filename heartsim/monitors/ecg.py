import math
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Tuple

import numpy as np

from heartsim.core.constants import SAMPLES_PER_SECOND
from heartsim.core.state import EMPTY_PATTERN, SimulationState

if TYPE_CHECKING:
    from heartsim.core.rhythms import RhythmDefinition
    from heartsim.patient.patient import PacerSettings


def _pattern(values) -> np.ndarray:
    arr = np.asarray(values, dtype=float)
    arr.flags.writeable = False
    return arr


# One sample per 25 ms tick. Amplitudes in arbitrary display units.
ECG_BASE_PATTERN = _pattern([0, 0, 0.1, 0.2, 0.1, 0, -0.1, 0.5, 1.5, -0.8, 0.2, 0, 0.1, 0.2, 0.3, 0.2, 0.1, 0, 0, 0])
ECG_VT_PATTERN = _pattern([0.5, 1.0, 0.5, 0, -0.5, -1.0, -0.5, 0, 0.6, 1.1, 0.6, 0, -0.6, -1.1, -0.6, 0])
ECG_VF_PATTERN = _pattern([0.3, -0.2, 0.5, -0.4, 0.2, -0.1, 0.4, -0.3, 0.1, 0, 0.2, -0.2, 0.3, -0.1, 0.1, -0.3])
ECG_TDP_PATTERN = _pattern([0.5, 1, -0.5, -1.2, 0.3, 0.8, -0.2, -0.9, 0.1, 0.5, -0.1, -0.5, 0.6, 1.1, -0.6, -1.3])
ECG_ESCAPE_PATTERN = _pattern([-0.1, 0.5, 1.5, -0.8, 0.2, 0])  # ventricular escape QRS
ECG_P_WAVE_PATTERN = _pattern([0, 0, 0.1, 0.2, 0.1, 0, 0, 0])
ECG_ASYSTOLE_PATTERN = _pattern(np.zeros(10))

ECG_AFIB_QRS_PATTERN = _pattern([0, -0.1, 0.5, 1.5, -0.8, 0.2, 0, 0.1, 0.2, 0.1, 0])
ECG_AFIB_FIBRILLATORY_WAVE = _pattern([0, 0.05, -0.05, 0.03, -0.03, 0.06, -0.04, 0.02, -0.02])
ECG_AFLUTTER_PATTERN = _pattern([
    0.0, 0.2, 0.4, 0.2, 0.0, -0.2, -0.4, -0.2,   # F-wave 1 (sawtooth)
    0.0, 0.2, 0.4, 0.2, 0.0, -0.2, -0.4, -0.2,   # F-wave 2
    0.0, 0.1, 0.8, 1.5, -0.6, 0.1, 0.0,          # narrow QRS
    0.0, 0.0, 0.0, 0.0,
])
ECG_SVT_PATTERN = _pattern([0, 0, 0.5, 1.5, -0.8, 0.2, 0, 0.1, 0.1, 0, 0])

ECG_PACER_SPIKE_PATTERN = _pattern([0, 2.8, 0])
ECG_PACED_QRS_PATTERN = _pattern([0, 0.2, 0.6, 1.0, 0.4, -0.3, -0.5, -0.2, 0])
ECG_PACED_BEAT_PATTERN = _pattern(np.concatenate([ECG_PACER_SPIKE_PATTERN, ECG_PACED_QRS_PATTERN]))

# Index in ECG_BASE_PATTERN where the P wave (and its isoelectric tail) ends
# and the QRS begins; PR prolongation inserts samples here.
PR_SPLIT_INDEX = 6

# Extra PR samples added per conducted beat of a Wenckebach cycle.
WENCKEBACH_PR_INCREMENT = 2


def stretch_pattern(pattern: np.ndarray, target_length: int) -> np.ndarray:
    """
    Resample a beat pattern to exactly target_length samples.

    Longer targets repeat samples as evenly as possible; shorter targets
    keep every k-th sample.
    """
    if target_length <= 0:
        return EMPTY_PATTERN
    if len(pattern) == 0:
        return _pattern(np.zeros(target_length))
    n = len(pattern)
    if target_length >= n:
        factor = target_length / n
        repeats = [
            max(1, round(factor * (i + 1)) - round(factor * i)) for i in range(n)
        ]
        out = np.repeat(pattern, repeats)
        if len(out) < target_length:
            out = np.concatenate([out, np.full(target_length - len(out), pattern[-1])])
        return _pattern(out[:target_length])
    idx = (np.arange(target_length) * n) // target_length
    return _pattern(pattern[idx])


def with_pr_delay(pattern: np.ndarray, extra_points: int) -> np.ndarray:
    """Insert isoelectric samples between the P wave and the QRS."""
    if extra_points <= 0:
        return pattern
    return _pattern(np.concatenate([
        pattern[:PR_SPLIT_INDEX], np.zeros(extra_points), pattern[PR_SPLIT_INDEX:]
    ]))


@dataclass(frozen=True)
class BeatDecision:
    target_rate: float
    interval_samples: float  # math.inf when no further beat is scheduled
    paced: bool


class ECGMonitor:
    """
    Beat scheduler and pattern walker for one ECG lead.

    Holds no per-patient data: step() reads a SimulationState and returns a
    new one together with the sample to append.
    """
    def __init__(self, rng: np.random.Generator = None, sampling_rate: int = SAMPLES_PER_SECOND):
        self.rng = rng if rng is not None else np.random.default_rng()
        self.sampling_rate = sampling_rate

    def samples_per_beat(self, rate: float) -> float:
        if rate <= 0:
            return math.inf
        return round((60.0 / rate) * self.sampling_rate)

    def decide_beat(self, rhythm: "RhythmDefinition", pacer: "PacerSettings") -> BeatDecision:
        """Draw the intrinsic rate once; demand pacing captures when it is too slow."""
        intrinsic = rhythm.simulated_heart_rate(self.rng)
        if pacer.is_on and intrinsic < pacer.rate:
            return BeatDecision(pacer.rate, self.samples_per_beat(pacer.rate), True)
        return BeatDecision(intrinsic, self.samples_per_beat(intrinsic), False)

    def select_pattern(self, rhythm: "RhythmDefinition", sim: SimulationState,
                       decision: BeatDecision) -> Tuple[np.ndarray, bool, int]:
        """
        Pick the pattern for a new beat.

        Returns (pattern, conducted, next av_cycle_beat). conducted is False
        for non-perfusing rhythms and for AV-blocked beats (P wave only).
        """
        if decision.paced:
            return ECG_PACED_BEAT_PATTERN, True, 0

        conducted = rhythm.generates_organized_beat
        beat = sim.av_cycle_beat

        if rhythm.wenckebach_cycle:
            next_beat = (beat + 1) % rhythm.wenckebach_cycle
            if beat == rhythm.wenckebach_cycle - 1:
                return ECG_P_WAVE_PATTERN, False, next_beat
            pattern = with_pr_delay(rhythm.beat_pattern, WENCKEBACH_PR_INCREMENT * beat)
            return pattern, conducted, next_beat

        if rhythm.conduction_ratio:
            n_conducted, n_blocked = rhythm.conduction_ratio
            next_beat = (beat + 1) % (n_conducted + n_blocked)
            if beat >= n_conducted:
                return ECG_P_WAVE_PATTERN, False, next_beat
            return rhythm.beat_pattern, conducted, next_beat

        return with_pr_delay(rhythm.beat_pattern, rhythm.pr_points), conducted, 0

    def step(self, sim: SimulationState, rhythm: "RhythmDefinition",
             pacer: "PacerSettings", now: float) -> Tuple[SimulationState, float]:
        changes = {}
        pattern = sim.ecg_pattern
        cursor = sim.ecg_cursor
        countdown = sim.next_beat_samples

        if countdown <= 0:
            decision = self.decide_beat(rhythm, pacer)
            pattern, conducted, av_beat = self.select_pattern(rhythm, sim, decision)
            if len(pattern) > decision.interval_samples:
                pattern = stretch_pattern(pattern, int(decision.interval_samples))
            cursor = 0
            countdown = decision.interval_samples
            changes.update(
                target_heart_rate=decision.target_rate,
                av_cycle_beat=av_beat,
                last_beat_time=now,
            )
            if conducted:
                changes["spo2_pulse_due"] = True
        countdown -= 1

        if cursor < len(pattern):
            value = float(pattern[cursor])
            cursor += 1
        elif rhythm.baseline_pattern is not None:
            base = rhythm.baseline_pattern
            value = float(base[sim.sample_time % len(base)])
        else:
            value = 0.0
        if cursor >= len(pattern):
            pattern, cursor = EMPTY_PATTERN, 0

        atrial, p_changes = self._step_atrial(sim, rhythm, now)
        changes.update(p_changes)

        new_sim = replace(
            sim,
            next_beat_samples=countdown,
            ecg_pattern=pattern,
            ecg_cursor=cursor,
            **changes,
        )
        return new_sim, value + atrial

    def _step_atrial(self, sim: SimulationState, rhythm: "RhythmDefinition", now: float):
        """Independent P-wave track for AV dissociation."""
        pattern = sim.p_wave_pattern
        cursor = sim.p_wave_cursor
        changes = {}
        if rhythm.atrial_rate and now - sim.last_p_wave_time >= 60.0 / rhythm.atrial_rate:
            pattern, cursor = ECG_P_WAVE_PATTERN, 0
            changes["last_p_wave_time"] = now
        if len(pattern) == 0:
            return 0.0, changes

        value = float(pattern[cursor])
        cursor += 1
        if cursor >= len(pattern):
            pattern, cursor = EMPTY_PATTERN, 0
        changes.update(p_wave_pattern=pattern, p_wave_cursor=cursor)
        return value, changes
