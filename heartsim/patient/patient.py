from dataclasses import dataclass, field, fields
from typing import Optional, Tuple

from heartsim.core.constants import (
    DEFAULT_PACER_RATE,
    METRIC_DIASTOLIC,
    METRIC_HEART_RATE,
    METRIC_RESP_RATE,
    METRIC_SPO2,
    METRIC_SYSTOLIC,
    METRIC_TEMPERATURE,
)
from heartsim.core.enums import CardiacRhythm, CodeStatus, PacerMode


@dataclass(frozen=True)
class PacerSettings:
    mode: PacerMode = PacerMode.OFF
    rate: int = DEFAULT_PACER_RATE  # bpm

    @property
    def is_on(self) -> bool:
        return self.mode != PacerMode.OFF


@dataclass(frozen=True)
class MetricThresholds:
    """Per-patient overrides; None falls back to the global default."""
    low_warning: Optional[float] = None
    low_critical: Optional[float] = None
    high_warning: Optional[float] = None
    high_critical: Optional[float] = None


# Metric display name -> PersonalizedThresholds field.
_THRESHOLD_FIELDS = {
    METRIC_HEART_RATE: "heart_rate",
    METRIC_SYSTOLIC: "bp_systolic",
    METRIC_DIASTOLIC: "bp_diastolic",
    METRIC_SPO2: "spo2",
    METRIC_TEMPERATURE: "temperature",
    METRIC_RESP_RATE: "respiratory_rate",
}


@dataclass(frozen=True)
class PersonalizedThresholds:
    heart_rate: Optional[MetricThresholds] = None
    bp_systolic: Optional[MetricThresholds] = None
    bp_diastolic: Optional[MetricThresholds] = None
    spo2: Optional[MetricThresholds] = None  # low alarms only
    temperature: Optional[MetricThresholds] = None
    respiratory_rate: Optional[MetricThresholds] = None

    def for_metric(self, metric: str) -> Optional[MetricThresholds]:
        attr = _THRESHOLD_FIELDS.get(metric)
        return getattr(self, attr) if attr else None


@dataclass(frozen=True)
class Patient:
    """
    Patient demographics plus the simulation controls a clinician can set
    (rhythm, pacer, alarm limits).

    Records are immutable; registry updates swap in a new record built with
    dataclasses.replace.
    """
    id: str
    name: str
    age: int = 0
    gender: str = ""
    room: str = ""
    notes: str = ""
    diagnosis: str = ""
    code_status: CodeStatus = CodeStatus.FULL_CODE
    active_rhythm: CardiacRhythm = CardiacRhythm.NSR
    pacer: PacerSettings = field(default_factory=PacerSettings)
    thresholds: PersonalizedThresholds = field(default_factory=PersonalizedThresholds)
    noise_signatures: Tuple[str, ...] = ()
    source: str = "Manual Entry"

    def __post_init__(self):
        # Accept any iterable of tags from callers.
        if not isinstance(self.noise_signatures, tuple):
            object.__setattr__(self, "noise_signatures", tuple(self.noise_signatures))


# Fields a caller may supply when admitting a patient.
DETAIL_FIELDS = ("name", "age", "gender", "room", "notes", "diagnosis", "code_status")

# Fields update_patient_details() may change (everything but the id).
EDITABLE_FIELDS = tuple(f.name for f in fields(Patient) if f.name != "id")
