"""
Rhythm catalog.

Static table of cardiac rhythm definitions: waveform pattern, heart-rate
generator and conduction flags. Nothing here holds state; the only source
of variation is the random generator passed to simulated_heart_rate().
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Optional, Tuple, Union

import numpy as np

from heartsim.core.enums import CardiacRhythm
from heartsim.monitors.ecg import (
    ECG_AFIB_FIBRILLATORY_WAVE,
    ECG_AFIB_QRS_PATTERN,
    ECG_AFLUTTER_PATTERN,
    ECG_ASYSTOLE_PATTERN,
    ECG_BASE_PATTERN,
    ECG_ESCAPE_PATTERN,
    ECG_SVT_PATTERN,
    ECG_TDP_PATTERN,
    ECG_VF_PATTERN,
    ECG_VT_PATTERN,
)


class UnknownRhythm(KeyError):
    """Raised by lookup() for an identifier outside the catalog."""


@dataclass(frozen=True, eq=False)
class RhythmDefinition:
    rhythm: CardiacRhythm
    beat_pattern: np.ndarray
    rate_range: Tuple[float, float]  # (lo, hi) bpm; lo == hi for fixed rates
    is_lethal: bool = False
    generates_organized_beat: bool = True

    atrial_rate: Optional[float] = None   # dissociated P waves (3rd degree block)
    pr_points: int = 0                    # fixed PR prolongation (1st degree block)
    wenckebach_cycle: int = 0             # beats per Mobitz I cycle, last one dropped
    conduction_ratio: Optional[Tuple[int, int]] = None  # Mobitz II (conducted, blocked)
    baseline_pattern: Optional[np.ndarray] = None       # emitted between beats

    @property
    def name(self) -> str:
        return self.rhythm.value

    def simulated_heart_rate(self, rng: np.random.Generator) -> int:
        """
        Instantaneous rate for one beat decision. Call once per beat and
        keep the result; every call draws a new value.
        """
        lo, hi = self.rate_range
        if lo == hi:
            return int(lo)
        return int(round(rng.uniform(lo, hi)))


def _define(rhythm, pattern, rate_range, **kwargs):
    return rhythm, RhythmDefinition(rhythm, pattern, rate_range, **kwargs)


RHYTHMS = MappingProxyType(dict([
    _define(CardiacRhythm.NSR, ECG_BASE_PATTERN, (60, 100)),
    _define(CardiacRhythm.VT, ECG_VT_PATTERN, (180, 180), is_lethal=True),
    _define(CardiacRhythm.SINUS_TACHYCARDIA, ECG_BASE_PATTERN, (101, 150)),
    _define(CardiacRhythm.SINUS_BRADYCARDIA, ECG_BASE_PATTERN, (40, 59)),
    _define(CardiacRhythm.VENTRICULAR_FIBRILLATION, ECG_VF_PATTERN, (300, 300),
            is_lethal=True, generates_organized_beat=False),
    _define(CardiacRhythm.TORSADES_DE_POINTES, ECG_TDP_PATTERN, (200, 250), is_lethal=True),
    _define(CardiacRhythm.FIRST_DEGREE_AV_BLOCK, ECG_BASE_PATTERN, (60, 100), pr_points=5),
    _define(CardiacRhythm.SECOND_DEGREE_AV_BLOCK_TYPE_I, ECG_BASE_PATTERN, (50, 90),
            wenckebach_cycle=5),
    _define(CardiacRhythm.SECOND_DEGREE_AV_BLOCK_TYPE_II, ECG_BASE_PATTERN, (40, 70),
            conduction_ratio=(3, 1)),
    _define(CardiacRhythm.THIRD_DEGREE_AV_BLOCK, ECG_ESCAPE_PATTERN, (40, 40), atrial_rate=70),
    _define(CardiacRhythm.ATRIAL_FIBRILLATION, ECG_AFIB_QRS_PATTERN, (70, 160),
            baseline_pattern=ECG_AFIB_FIBRILLATORY_WAVE),
    _define(CardiacRhythm.ATRIAL_FLUTTER, ECG_AFLUTTER_PATTERN, (150, 150)),
    _define(CardiacRhythm.SVT, ECG_SVT_PATTERN, (150, 220)),
    _define(CardiacRhythm.ASYSTOLE, ECG_ASYSTOLE_PATTERN, (0, 0),
            is_lethal=True, generates_organized_beat=False),
]))


def lookup(rhythm: Union[CardiacRhythm, str]) -> RhythmDefinition:
    """Resolve a CardiacRhythm, its member name or its display name."""
    if isinstance(rhythm, CardiacRhythm):
        return RHYTHMS[rhythm]
    if isinstance(rhythm, str):
        if rhythm in CardiacRhythm.__members__:
            return RHYTHMS[CardiacRhythm[rhythm]]
        for member in CardiacRhythm:
            if member.value == rhythm:
                return RHYTHMS[member]
    raise UnknownRhythm(rhythm)
