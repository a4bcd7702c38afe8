from dataclasses import dataclass, field, replace
from typing import FrozenSet, Optional, Tuple

import numpy as np

from .constants import (
    AI_ANALYSIS_INTERVAL_SEC,
    AI_DELAY_RANGE_SEC,
    AUTO_LOG_INTERVAL_SEC,
    WAVEFORM_POINTS,
    PlethTuning,
)
from .enums import AlertSeverity, FeedbackLabel, RiskLevel


@dataclass
class SimulationConfig:
    """Runtime configuration for the simulation engine."""
    rng_seed: Optional[int] = None

    # AI analysis worker settings.
    analysis_delay_range: Tuple[float, float] = AI_DELAY_RANGE_SEC
    analysis_workers: int = 2
    ai_analysis_interval_sec: float = AI_ANALYSIS_INTERVAL_SEC

    auto_log_interval_sec: float = AUTO_LOG_INTERVAL_SEC


@dataclass(frozen=True)
class BloodPressure:
    systolic: float = 120.0
    diastolic: float = 80.0


@dataclass(frozen=True)
class CardiacMetrics:
    heart_rate: float = 75.0        # bpm
    blood_pressure: BloodPressure = field(default_factory=BloodPressure)
    spo2: float = 98.0              # %
    temperature: float = 37.0       # Celsius
    respiratory_rate: float = 14.0  # breaths/min


@dataclass(frozen=True)
class Alert:
    id: str
    message: str
    severity: AlertSeverity
    metric: str
    timestamp: float


@dataclass(frozen=True)
class LoggedVitals:
    timestamp: float
    metrics: CardiacMetrics


@dataclass(frozen=True)
class AlarmFeedbackEntry:
    id: str
    patient_id: str
    alert: Alert  # snapshot at the time of feedback
    feedback: FeedbackLabel
    feedback_timestamp: float


@dataclass(frozen=True)
class AIState:
    risk_score: float = 0.0
    risk_level: RiskLevel = RiskLevel.PENDING
    reasoning: str = "Awaiting initial analysis."
    confidence: float = 0.0
    last_analyzed: float = 0.0
    is_loading: bool = False
    error: Optional[str] = None


def _frozen(arr: np.ndarray) -> np.ndarray:
    arr.flags.writeable = False
    return arr


@dataclass(frozen=True, eq=False)
class WaveformBuffer:
    """
    Fixed-length sliding window of (sequence index, amplitude) samples.

    push() returns a new buffer; the arrays of an existing buffer are
    read-only and never change.
    """
    times: np.ndarray
    values: np.ndarray

    @classmethod
    def filled(cls, length: int = WAVEFORM_POINTS, value: float = 0.0) -> "WaveformBuffer":
        # Seed indices are negative so the first real sample (index 0)
        # continues the sequence.
        times = np.arange(-length, 0, dtype=np.int64)
        values = np.full(length, value, dtype=float)
        return cls(_frozen(times), _frozen(values))

    def push(self, time: int, value: float) -> "WaveformBuffer":
        times = np.empty_like(self.times)
        values = np.empty_like(self.values)
        times[:-1] = self.times[1:]
        values[:-1] = self.values[1:]
        times[-1] = time
        values[-1] = value
        return WaveformBuffer(_frozen(times), _frozen(values))

    @property
    def newest(self) -> Tuple[int, float]:
        return int(self.times[-1]), float(self.values[-1])

    def __len__(self) -> int:
        return len(self.values)


EMPTY_PATTERN = _frozen(np.zeros(0))


@dataclass(frozen=True, eq=False)
class SimulationState:
    """Immutable per-patient snapshot; every tick builds a new one."""
    metrics: CardiacMetrics = field(default_factory=CardiacMetrics)

    # Waveform windows.
    ecg: WaveformBuffer = field(default_factory=WaveformBuffer.filled)
    spo2_wave: WaveformBuffer = field(
        default_factory=lambda: WaveformBuffer.filled(value=PlethTuning().baseline))
    resp_wave: WaveformBuffer = field(default_factory=WaveformBuffer.filled)
    sample_time: int = 0  # next sequence index, monotonic per patient

    # Beat timing.
    next_beat_samples: float = 0.0  # math.inf = no beat scheduled
    ecg_pattern: np.ndarray = field(default_factory=lambda: EMPTY_PATTERN)
    ecg_cursor: int = 0
    last_beat_time: float = 0.0
    target_heart_rate: float = 75.0
    av_cycle_beat: int = 0  # position in a Wenckebach / Mobitz II cycle

    # Dissociated atrial track (3rd degree AV block).
    last_p_wave_time: float = 0.0
    p_wave_pattern: np.ndarray = field(default_factory=lambda: EMPTY_PATTERN)
    p_wave_cursor: int = 0

    # SpO2 pulse.
    spo2_pulse_due: bool = False
    spo2_pattern: np.ndarray = field(default_factory=lambda: EMPTY_PATTERN)
    spo2_cursor: int = 0

    # Respiration phase as a fraction of one cycle.
    resp_phase: float = 0.0

    # Slow drift gates (seconds since epoch).
    last_bp_update: float = 0.0
    last_temp_update: float = 0.0
    last_rr_update: float = 0.0

    # Alarms.
    alerts: Tuple[Alert, ...] = ()
    acknowledged_alert_ids: FrozenSet[str] = frozenset()
    alarm_feedback_log: Tuple[AlarmFeedbackEntry, ...] = ()

    # History.
    logged_vitals: Tuple[LoggedVitals, ...] = ()
    hr_trend: Tuple[Tuple[float, float], ...] = ()

    ai: AIState = field(default_factory=AIState)
    is_lead_off: bool = False

    @classmethod
    def initial(cls, heart_rate: float, respiratory_rate: float) -> "SimulationState":
        return cls(
            metrics=CardiacMetrics(heart_rate=heart_rate, respiratory_rate=respiratory_rate),
            target_heart_rate=heart_rate,
        )

    def is_acknowledged(self, alert: Alert) -> bool:
        return alert.id in self.acknowledged_alert_ids

    def unacknowledged_alerts(self, severity: Optional[AlertSeverity] = None) -> Tuple[Alert, ...]:
        return tuple(
            a for a in self.alerts
            if not self.is_acknowledged(a)
            and (severity is None or a.severity == severity)
        )

    def with_metrics(self, **changes) -> "SimulationState":
        return replace(self, metrics=replace(self.metrics, **changes))
