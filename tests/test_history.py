import csv

import pandas as pd

from heartsim.core.history import VITAL_COLUMNS, hr_trend_series, summarize, vitals_frame
from heartsim.core.recorder import HEADER, VitalsRecorder
from heartsim.core.state import BloodPressure, CardiacMetrics, LoggedVitals


def _logged():
    return [
        LoggedVitals(1_700_000_000.0, CardiacMetrics(heart_rate=70, blood_pressure=BloodPressure(110, 70))),
        LoggedVitals(1_700_000_060.0, CardiacMetrics(heart_rate=80, blood_pressure=BloodPressure(130, 90))),
    ]


def test_vitals_frame_indexed_by_utc_time():
    df = vitals_frame(_logged())
    assert list(df.columns) == VITAL_COLUMNS
    assert isinstance(df.index, pd.DatetimeIndex)
    assert str(df.index.tz) == "UTC"
    assert df.index.name == "time"
    assert df["heart_rate"].tolist() == [70, 80]


def test_summarize():
    summary = summarize(vitals_frame(_logged()))
    assert list(summary.index) == VITAL_COLUMNS
    assert summary.loc["heart_rate", "mean"] == 75
    assert summary.loc["bp_systolic", "min"] == 110
    assert summary.loc["bp_diastolic", "max"] == 90


def test_empty_history():
    df = vitals_frame([])
    assert df.empty
    summary = summarize(df)
    assert list(summary.index) == VITAL_COLUMNS
    assert summary.isna().all().all()


def test_engine_history_feeds_frame(engine, clock):
    engine.config.auto_log_interval_sec = 0.5
    engine.advance(3.0, start=clock())
    sim = engine.simulation_state(engine.patients[0].id)
    df = vitals_frame(sim.logged_vitals)
    assert len(df) == 3
    assert df.index.is_monotonic_increasing


class TestRecorder:
    def test_records_one_row_per_patient_per_tick(self, engine, clock, tmp_path):
        engine.start_recording(output_dir=str(tmp_path), sample_interval_sec=1.0)
        path = engine.recorder.file_path
        engine.advance(3.0, start=clock())
        engine.stop_recording()
        assert engine.recorder is None

        with open(path, newline="") as f:
            rows = list(csv.reader(f))
        assert tuple(rows[0]) == HEADER
        assert len(rows) - 1 == 3 * len(engine.patients)
        assert {r[1] for r in rows[1:]} == {p.id for p in engine.patients}

    def test_rate_limit_per_patient(self, engine, clock, tmp_path):
        engine.start_recording(output_dir=str(tmp_path), sample_interval_sec=2.5)
        path = engine.recorder.file_path
        engine.advance(3.0, start=clock())
        engine.stop_recording()

        with open(path, newline="") as f:
            rows = list(csv.reader(f))[1:]
        assert len(rows) == len(engine.patients)

    def test_log_is_noop_when_not_started(self, engine, tmp_path):
        recorder = VitalsRecorder(output_dir=str(tmp_path))
        patient = engine.patients[0]
        recorder.log(0.0, patient, engine.simulation_state(patient.id))
        assert list(tmp_path.iterdir()) == []


def test_hr_trend_series_from_engine(engine, clock):
    t0 = clock()
    engine.advance(4.0, start=t0)
    sim = engine.simulation_state(engine.patients[0].id)
    trend = hr_trend_series(sim.hr_trend)
    assert len(trend) == 4
    assert trend.name == "heart_rate"
    assert str(trend.index.tz) == "UTC"
    assert trend.index[0] == pd.Timestamp(t0 + 1.0, unit="s", tz="UTC")
    assert trend.iloc[-1] == sim.metrics.heart_rate
    assert hr_trend_series(()).empty
