"""Tabular views over logged vitals (pandas)."""

from typing import Iterable, Tuple

import pandas as pd

from .state import LoggedVitals

VITAL_COLUMNS = [
    "heart_rate",
    "bp_systolic",
    "bp_diastolic",
    "spo2",
    "temperature",
    "respiratory_rate",
]


def vitals_frame(logged_vitals: Iterable[LoggedVitals]) -> pd.DataFrame:
    """One row per logged snapshot, indexed by UTC timestamp."""
    rows = [
        {
            "timestamp": v.timestamp,
            "heart_rate": v.metrics.heart_rate,
            "bp_systolic": v.metrics.blood_pressure.systolic,
            "bp_diastolic": v.metrics.blood_pressure.diastolic,
            "spo2": v.metrics.spo2,
            "temperature": v.metrics.temperature,
            "respiratory_rate": v.metrics.respiratory_rate,
        }
        for v in logged_vitals
    ]
    df = pd.DataFrame(rows, columns=["timestamp"] + VITAL_COLUMNS)
    stamps = df.pop("timestamp").astype(float)
    df.index = pd.DatetimeIndex(pd.to_datetime(stamps, unit="s", utc=True), name="time")
    return df


def hr_trend_series(hr_trend: Iterable[Tuple[float, float]]) -> pd.Series:
    """Per-second heart-rate trend as a Series indexed by UTC timestamp."""
    samples = list(hr_trend)
    stamps = [t for t, _ in samples]
    index = pd.DatetimeIndex(pd.to_datetime(stamps, unit="s", utc=True), name="time")
    return pd.Series([hr for _, hr in samples], index=index, name="heart_rate", dtype=float)


def summarize(df: pd.DataFrame) -> pd.DataFrame:
    """min / mean / max per vital sign (rows are the vitals)."""
    if df.empty:
        return pd.DataFrame(index=VITAL_COLUMNS, columns=["min", "mean", "max"], dtype=float)
    return df[VITAL_COLUMNS].agg(["min", "mean", "max"]).T
