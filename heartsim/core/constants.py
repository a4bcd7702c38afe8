"""
Timing, threshold and waveform constants for HeartSim.

This module centralizes magic numbers used throughout the simulation.

NOTE: Only add constants here that are ACTIVELY IMPORTED elsewhere.
"""

from dataclasses import dataclass

# Loop timing.

# High-frequency (waveform) tick period (seconds). 25 ms -> 40 samples/s.
ECG_TICK_SEC = 0.025
SAMPLES_PER_SECOND = round(1.0 / ECG_TICK_SEC)

# Low-frequency (vitals/alerts) tick period (seconds)
VITALS_TICK_SEC = 1.0

# Waveform display window (seconds) and the resulting ring-buffer length
ECG_WINDOW_SEC = 10
WAVEFORM_POINTS = ECG_WINDOW_SEC * SAMPLES_PER_SECOND

# Slow metric drift cadences (seconds).
BP_UPDATE_INTERVAL_SEC = 5 * 60
TEMP_UPDATE_INTERVAL_SEC = 10 * 60
RR_UPDATE_INTERVAL_SEC = 2 * 60

# Bounded random drift per update
BP_SYSTOLIC_DRIFT = 3
BP_DIASTOLIC_DRIFT = 2
TEMP_DRIFT_C = 0.1
RR_DRIFT = 1

# Respiratory rate clamp (breaths/min)
RR_MIN = 8
RR_MAX = 35

# Heart-rate convergence toward the beat target (bpm per vitals tick)
HR_CONVERGENCE_STEP = 2

# Vitals logging.
AUTO_LOG_INTERVAL_SEC = 60
VITALS_LOG_CAP = 200

# Heart-rate trend: 5 minutes of one-second samples
HR_TREND_POINTS = 5 * 60

# AI risk analysis.
AI_ANALYSIS_INTERVAL_SEC = 10 * 60
AI_MIN_LOGGED_VITALS = 20  # fewer than half of this -> insufficient data
AI_DELAY_RANGE_SEC = (1.5, 3.0)

# Lead-off technical alarm.
LEAD_OFF_MESSAGE = "ECG Lead Off"
LEAD_OFF_METRIC = "ECG"

# Default pacer programming (bpm).
DEFAULT_PACER_RATE = 70

# Metric display names used in alert messages.
METRIC_HEART_RATE = "Heart Rate"
METRIC_SPO2 = "SpO₂"
METRIC_SYSTOLIC = "BP Systolic"
METRIC_DIASTOLIC = "BP Diastolic"
METRIC_TEMPERATURE = "Temperature"
METRIC_RESP_RATE = "Respiratory Rate"


@dataclass(frozen=True)
class ThresholdSet:
    """Global alert thresholds for one metric (None = no alarm in that direction)."""
    low_critical: float = None
    low_warning: float = None
    high_warning: float = None
    high_critical: float = None


# Global default alert thresholds, keyed by metric display name.
ALERT_THRESHOLDS = {
    METRIC_HEART_RATE: ThresholdSet(40, 50, 110, 130),
    METRIC_SYSTOLIC: ThresholdSet(80, 90, 160, 180),
    METRIC_DIASTOLIC: ThresholdSet(50, 60, 100, 110),
    METRIC_SPO2: ThresholdSet(88, 92),
    METRIC_TEMPERATURE: ThresholdSet(35.0, 35.8, 38.0, 39.5),
    METRIC_RESP_RATE: ThresholdSet(8, 10, 24, 30),
}


@dataclass(frozen=True)
class PlethTuning:
    """SpO2 plethysmograph shaping."""
    baseline: float = 0.2          # visual floor outside any pulse
    pulse_scale: float = 0.5       # pattern amplitude multiplier
    envelope_points: int = 18      # half-sine envelope span (samples)
    min_amplitude: float = 0.5     # floor on the SpO2/100 scaling


@dataclass(frozen=True)
class RespTuning:
    amplitude: float = 1.0
