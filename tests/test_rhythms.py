import numpy as np
import pytest

from heartsim.core.enums import CardiacRhythm
from heartsim.core.rhythms import RHYTHMS, UnknownRhythm, lookup


def test_catalog_covers_every_rhythm():
    assert set(RHYTHMS) == set(CardiacRhythm)
    for rhythm, definition in RHYTHMS.items():
        assert definition.rhythm is rhythm
        assert len(definition.beat_pattern) > 0


@pytest.mark.parametrize("rhythm", list(CardiacRhythm))
def test_simulated_rate_stays_in_range(rhythm):
    rng = np.random.default_rng(0)
    definition = lookup(rhythm)
    lo, hi = definition.rate_range
    rates = [definition.simulated_heart_rate(rng) for _ in range(200)]
    assert all(lo <= r <= hi for r in rates)


def test_fixed_rates():
    rng = np.random.default_rng(0)
    assert lookup(CardiacRhythm.VT).simulated_heart_rate(rng) == 180
    assert lookup(CardiacRhythm.VENTRICULAR_FIBRILLATION).simulated_heart_rate(rng) == 300
    assert lookup(CardiacRhythm.ASYSTOLE).simulated_heart_rate(rng) == 0


def test_normal_sinus_rate_varies_per_call():
    rng = np.random.default_rng(3)
    nsr = lookup(CardiacRhythm.NSR)
    rates = {nsr.simulated_heart_rate(rng) for _ in range(50)}
    assert len(rates) > 1
    assert min(rates) >= 60 and max(rates) <= 100


def test_lethal_flags():
    lethal = {r for r, d in RHYTHMS.items() if d.is_lethal}
    assert lethal == {
        CardiacRhythm.VT,
        CardiacRhythm.VENTRICULAR_FIBRILLATION,
        CardiacRhythm.TORSADES_DE_POINTES,
        CardiacRhythm.ASYSTOLE,
    }
    assert not lookup(CardiacRhythm.ASYSTOLE).generates_organized_beat
    assert not lookup(CardiacRhythm.VENTRICULAR_FIBRILLATION).generates_organized_beat


def test_lookup_accepts_member_name_and_display_name():
    assert lookup("VT").rhythm is CardiacRhythm.VT
    assert lookup("Atrial Fibrillation").rhythm is CardiacRhythm.ATRIAL_FIBRILLATION
    assert lookup(CardiacRhythm.SVT).name == "Supraventricular Tachycardia"


def test_lookup_unknown_raises():
    with pytest.raises(UnknownRhythm):
        lookup("Junctional Rhythm")
    with pytest.raises(KeyError):
        lookup(42)


def test_patterns_are_read_only():
    pattern = lookup(CardiacRhythm.NSR).beat_pattern
    with pytest.raises(ValueError):
        pattern[0] = 5.0
