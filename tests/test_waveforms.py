import math
from dataclasses import replace

import numpy as np
import pytest

from heartsim.core.constants import ECG_TICK_SEC, WAVEFORM_POINTS, PlethTuning
from heartsim.core.enums import CardiacRhythm, PacerMode
from heartsim.core.rhythms import lookup
from heartsim.core.state import SimulationState, WaveformBuffer
from heartsim.monitors.ecg import (
    ECG_BASE_PATTERN,
    ECG_P_WAVE_PATTERN,
    ECG_PACED_BEAT_PATTERN,
    ECGMonitor,
    BeatDecision,
    stretch_pattern,
    with_pr_delay,
)
from heartsim.monitors.respiration import RespirationMonitor
from heartsim.monitors.spo2 import SpO2Monitor
from heartsim.patient.patient import PacerSettings


def run_ticks(engine, n, clock):
    for _ in range(n):
        engine.step_waveforms(clock.advance(ECG_TICK_SEC))


class TestWaveformBuffer:
    def test_seeded_indices_precede_zero(self):
        buf = WaveformBuffer.filled()
        assert len(buf) == WAVEFORM_POINTS
        assert buf.times[0] == -WAVEFORM_POINTS
        assert buf.times[-1] == -1

    def test_push_slides_window(self):
        buf = WaveformBuffer.filled(length=4)
        new = buf.push(0, 1.5)
        assert list(new.times) == [-3, -2, -1, 0]
        assert new.newest == (0, 1.5)
        # the source buffer is unchanged
        assert buf.newest == (-1, 0.0)
        with pytest.raises(ValueError):
            new.values[0] = 2.0


class TestSimulationState:
    def test_bare_state_has_empty_read_only_patterns(self):
        sim = SimulationState()
        for pattern in (sim.ecg_pattern, sim.p_wave_pattern, sim.spo2_pattern):
            assert len(pattern) == 0
            assert not pattern.flags.writeable
        assert sim.next_beat_samples == 0
        assert len(sim.ecg) == WAVEFORM_POINTS


class TestEngineWaveforms:
    def test_buffers_keep_length_and_monotonic_indices(self, engine, clock):
        run_ticks(engine, 100, clock)
        for patient in engine.patients:
            sim = engine.simulation_state(patient.id)
            for buf in (sim.ecg, sim.spo2_wave, sim.resp_wave):
                assert len(buf) == WAVEFORM_POINTS
                assert np.all(np.diff(buf.times) == 1)
                assert buf.times[-1] == 99
            assert sim.sample_time == 100

    def test_new_patient_first_sample_is_zero(self, empty_engine, clock):
        patient = empty_engine.add_patient(name="Test Patient")
        assert empty_engine.simulation_state(patient.id).next_beat_samples == 0

        run_ticks(empty_engine, 1, clock)
        sim = empty_engine.simulation_state(patient.id)
        assert sim.ecg.newest == (0, 0.0)

    def test_one_qrs_per_beat_cycle(self, empty_engine, clock):
        patient = empty_engine.add_patient(name="Test Patient")
        run_ticks(empty_engine, 1, clock)
        sim = empty_engine.simulation_state(patient.id)
        interval = int(sim.next_beat_samples) + 1
        assert interval == round(60 / sim.target_heart_rate * 40)

        run_ticks(empty_engine, interval - 1, clock)
        values = empty_engine.simulation_state(patient.id).ecg.values[-interval:]
        assert np.count_nonzero(values == ECG_BASE_PATTERN.max()) == 1

    def test_demand_pacer_captures_slow_rhythm(self, empty_engine, clock):
        patient = empty_engine.add_patient(name="Paced")
        empty_engine.set_rhythm(patient.id, CardiacRhythm.SINUS_BRADYCARDIA)
        empty_engine.update_pacer_settings(patient.id, mode="demand", rate=70)

        run_ticks(empty_engine, 1, clock)
        sim = empty_engine.simulation_state(patient.id)
        assert sim.target_heart_rate == 70
        assert sim.next_beat_samples == round(60 / 70 * 40) - 1
        assert sim.ecg.newest[1] == 0.0

        run_ticks(empty_engine, 1, clock)
        assert empty_engine.simulation_state(patient.id).ecg.newest[1] == pytest.approx(2.8)

    def test_pacer_does_not_fire_over_faster_rhythm(self, empty_engine, clock):
        patient = empty_engine.add_patient(name="Tachy")
        empty_engine.set_rhythm(patient.id, CardiacRhythm.VT)
        empty_engine.update_pacer_settings(patient.id, mode=PacerMode.DEMAND, rate=60)
        run_ticks(empty_engine, 1, clock)
        assert empty_engine.simulation_state(patient.id).target_heart_rate == 180

    def test_lead_off_flattens_ecg_but_keeps_respiration(self, engine, clock):
        pid = engine.patients[0].id
        run_ticks(engine, 5, clock)
        engine.toggle_ecg_lead_off(pid)
        phase_before = engine.simulation_state(pid).resp_phase

        run_ticks(engine, 60, clock)
        sim = engine.simulation_state(pid)
        assert np.all(sim.ecg.values[-60:] == 0.0)
        assert sim.metrics.heart_rate == 0
        assert sim.resp_phase != phase_before

    def test_asystole_end_to_end(self, engine, clock):
        pid = engine.patients[1].id
        engine.set_rhythm(pid, CardiacRhythm.ASYSTOLE)
        assert engine.simulation_state(pid).target_heart_rate == 0

        run_ticks(engine, 1, clock)
        sim = engine.simulation_state(pid)
        assert sim.target_heart_rate == 0
        assert math.isinf(sim.next_beat_samples)

        run_ticks(engine, 80, clock)
        sim = engine.simulation_state(pid)
        assert np.all(sim.ecg.values[-81:] == 0.0)

        engine.step_vitals(clock())
        m = engine.simulation_state(pid).metrics
        assert (m.blood_pressure.systolic, m.blood_pressure.diastolic) == (0, 0)
        assert m.spo2 == 0
        assert m.respiratory_rate == 0


class TestECGMonitor:
    def test_samples_per_beat(self):
        monitor = ECGMonitor(np.random.default_rng(0), 40)
        assert monitor.samples_per_beat(60) == 40
        assert monitor.samples_per_beat(75) == 32
        assert math.isinf(monitor.samples_per_beat(0))

    def test_stretch_pattern_exact_length(self):
        pattern = np.arange(10, dtype=float)
        assert len(stretch_pattern(pattern, 4)) == 4
        assert len(stretch_pattern(pattern, 25)) == 25
        assert len(stretch_pattern(pattern, 0)) == 0
        shrunk = stretch_pattern(pattern, 5)
        assert list(shrunk) == [0, 2, 4, 6, 8]

    def test_fast_rhythm_pattern_is_compressed(self):
        monitor = ECGMonitor(np.random.default_rng(0), 40)
        sim = SimulationState.initial(75, 14)
        sim, _ = monitor.step(sim, lookup(CardiacRhythm.VENTRICULAR_FIBRILLATION), PacerSettings(), 0.0)
        # 300 bpm -> 8 samples per beat, shorter than the 16-sample pattern
        assert len(sim.ecg_pattern) == 8
        assert sim.next_beat_samples == 7

    def test_fast_pacer_resamples_paced_beat(self):
        monitor = ECGMonitor(np.random.default_rng(0), 40)
        sim = SimulationState.initial(50, 14)
        pacer = PacerSettings(mode=PacerMode.DEMAND, rate=300)
        sim, _ = monitor.step(sim, lookup(CardiacRhythm.SINUS_BRADYCARDIA), pacer, 0.0)
        assert sim.target_heart_rate == 300
        assert sim.next_beat_samples == 7
        assert len(ECG_PACED_BEAT_PATTERN) > 8
        assert np.array_equal(sim.ecg_pattern, stretch_pattern(ECG_PACED_BEAT_PATTERN, 8))

    def test_first_degree_block_prolongs_pr(self):
        monitor = ECGMonitor(np.random.default_rng(0), 40)
        sim = SimulationState.initial(75, 14)
        decision = BeatDecision(75, 32, False)
        pattern, conducted, _ = monitor.select_pattern(
            lookup(CardiacRhythm.FIRST_DEGREE_AV_BLOCK), sim, decision
        )
        assert conducted
        assert len(pattern) == len(ECG_BASE_PATTERN) + 5

    def test_wenckebach_drops_last_beat_of_cycle(self):
        monitor = ECGMonitor(np.random.default_rng(0), 40)
        rhythm = lookup(CardiacRhythm.SECOND_DEGREE_AV_BLOCK_TYPE_I)
        decision = BeatDecision(60, 40, False)

        lengths = []
        sim = SimulationState.initial(60, 14)
        for beat in range(rhythm.wenckebach_cycle):
            sim = replace(sim, av_cycle_beat=beat)
            pattern, conducted, next_beat = monitor.select_pattern(rhythm, sim, decision)
            lengths.append((len(pattern), conducted))
            assert next_beat == (beat + 1) % rhythm.wenckebach_cycle

        conducted_lengths = [n for n, ok in lengths[:-1]]
        assert all(ok for _, ok in lengths[:-1])
        assert conducted_lengths == sorted(conducted_lengths)
        assert conducted_lengths[1] > conducted_lengths[0]
        assert lengths[-1] == (len(ECG_P_WAVE_PATTERN), False)

    def test_mobitz_two_blocks_fixed_ratio(self):
        monitor = ECGMonitor(np.random.default_rng(0), 40)
        rhythm = lookup(CardiacRhythm.SECOND_DEGREE_AV_BLOCK_TYPE_II)
        decision = BeatDecision(60, 40, False)
        sim = SimulationState.initial(60, 14)
        outcomes = []
        for beat in range(4):
            _, conducted, _ = monitor.select_pattern(rhythm, replace(sim, av_cycle_beat=beat), decision)
            outcomes.append(conducted)
        assert outcomes == [True, True, True, False]

    def test_third_degree_block_runs_independent_p_waves(self):
        monitor = ECGMonitor(np.random.default_rng(0), 40)
        rhythm = lookup(CardiacRhythm.THIRD_DEGREE_AV_BLOCK)
        sim = SimulationState.initial(40, 14)

        sim, _ = monitor.step(sim, rhythm, PacerSettings(), 100.0)
        assert sim.last_p_wave_time == 100.0
        assert sim.p_wave_cursor == 1

        # Too soon for the next atrial beat: the track just advances.
        sim, _ = monitor.step(sim, rhythm, PacerSettings(), 100.025)
        assert sim.last_p_wave_time == 100.0
        assert sim.p_wave_cursor == 2

    def test_blocked_beat_does_not_trigger_pleth_pulse(self):
        monitor = ECGMonitor(np.random.default_rng(0), 40)
        rhythm = lookup(CardiacRhythm.SECOND_DEGREE_AV_BLOCK_TYPE_II)
        sim = replace(SimulationState.initial(60, 14), av_cycle_beat=3)
        sim, _ = monitor.step(sim, rhythm, PacerSettings(), 0.0)
        assert not sim.spo2_pulse_due

    def test_with_pr_delay_inserts_flat_segment(self):
        out = with_pr_delay(ECG_BASE_PATTERN, 3)
        assert len(out) == len(ECG_BASE_PATTERN) + 3
        assert list(out[6:9]) == [0.0, 0.0, 0.0]
        assert with_pr_delay(ECG_BASE_PATTERN, 0) is ECG_BASE_PATTERN


class TestPlethAndRespiration:
    def test_pleth_pulse_walks_once(self):
        monitor = SpO2Monitor()
        baseline = PlethTuning().baseline
        sim = replace(SimulationState.initial(75, 14), spo2_pulse_due=True)

        values = []
        for _ in range(12):
            sim, v = monitor.step(sim)
            values.append(v)
        assert not sim.spo2_pulse_due
        assert max(values) > baseline
        assert values[-1] == baseline

    def test_pleth_drops_pulse_when_new_pulses_blocked(self):
        monitor = SpO2Monitor()
        baseline = PlethTuning().baseline
        sim = replace(SimulationState.initial(75, 14), spo2_pulse_due=True)
        sim, v = monitor.step(sim, allow_new_pulse=False)
        assert v == baseline
        assert not sim.spo2_pulse_due

        # Nothing stale is replayed once pulses are allowed again.
        sim, v = monitor.step(sim)
        assert v == baseline

    def test_respiration_period_follows_rate(self):
        monitor = RespirationMonitor(40)
        sim = SimulationState.initial(75, 15)  # 15/min -> 160 samples per breath
        for _ in range(40):
            sim, _ = monitor.step(sim)
        assert sim.resp_phase == pytest.approx(0.25)

    def test_respiration_freezes_at_zero_rate(self):
        monitor = RespirationMonitor(40)
        sim = replace(SimulationState.initial(75, 0), resp_phase=0.3)
        sim, value = monitor.step(sim)
        assert sim.resp_phase == 0.3
        assert value == pytest.approx(math.sin(2 * math.pi * 0.3))
