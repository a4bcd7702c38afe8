"""
Session persistence.

The engine exposes a plain dict (snapshot) shaped as

    {"patients": [...],
     "persistent_patient_data": {patient_id: {"logged_vitals": [...],
                                              "alarm_feedback_log": [...],
                                              "ai_state": {...}}}}

SessionStore keeps one such document per organization as a JSON file.
Loading never raises: a missing or unreadable file yields the built-in
patient set.
"""

import json
import logging
import os
import re
import tempfile
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Tuple

from .enums import AlertSeverity, CardiacRhythm, CodeStatus, FeedbackLabel, PacerMode, RiskLevel
from .state import (
    AIState,
    AlarmFeedbackEntry,
    Alert,
    BloodPressure,
    CardiacMetrics,
    LoggedVitals,
    SimulationState,
)
from heartsim.patient.patient import MetricThresholds, PacerSettings, Patient, PersonalizedThresholds
from heartsim.patient.roster import DEFAULT_PATIENTS

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

_THRESHOLD_KEYS = ("low_warning", "low_critical", "high_warning", "high_critical")
_PERSONALIZED_KEYS = (
    "heart_rate", "bp_systolic", "bp_diastolic", "spo2", "temperature", "respiratory_rate",
)


class PersistenceError(RuntimeError):
    """Saving a session failed."""


@dataclass(frozen=True)
class PersistedPatientData:
    logged_vitals: Tuple[LoggedVitals, ...] = ()
    alarm_feedback_log: Tuple[AlarmFeedbackEntry, ...] = ()
    ai: AIState = field(default_factory=AIState)


# Encoding.

def _thresholds_to_dict(t: PersonalizedThresholds) -> dict:
    out = {}
    for key in _PERSONALIZED_KEYS:
        metric = getattr(t, key)
        if metric is not None:
            out[key] = {k: getattr(metric, k) for k in _THRESHOLD_KEYS if getattr(metric, k) is not None}
    return out


def patient_to_dict(p: Patient) -> dict:
    return {
        "id": p.id,
        "name": p.name,
        "age": p.age,
        "gender": p.gender,
        "room": p.room,
        "notes": p.notes,
        "diagnosis": p.diagnosis,
        "code_status": p.code_status.value,
        "active_rhythm": p.active_rhythm.name,
        "pacer": {"mode": p.pacer.mode.value, "rate": p.pacer.rate},
        "thresholds": _thresholds_to_dict(p.thresholds),
        "noise_signatures": list(p.noise_signatures),
        "source": p.source,
    }


def metrics_to_dict(m: CardiacMetrics) -> dict:
    return {
        "heart_rate": m.heart_rate,
        "blood_pressure": {"systolic": m.blood_pressure.systolic,
                           "diastolic": m.blood_pressure.diastolic},
        "spo2": m.spo2,
        "temperature": m.temperature,
        "respiratory_rate": m.respiratory_rate,
    }


def alert_to_dict(a: Alert) -> dict:
    return {
        "id": a.id,
        "message": a.message,
        "severity": a.severity.value,
        "metric": a.metric,
        "timestamp": a.timestamp,
    }


def ai_state_to_dict(ai: AIState) -> dict:
    return {
        "risk_score": ai.risk_score,
        "risk_level": ai.risk_level.value,
        "reasoning": ai.reasoning,
        "confidence": ai.confidence,
        "last_analyzed": ai.last_analyzed,
        "is_loading": ai.is_loading,
        "error": ai.error,
    }


def engine_snapshot(patients: Iterable[Patient], states: Mapping[str, SimulationState]) -> dict:
    patients = list(patients)
    persistent = {}
    for p in patients:
        sim = states.get(p.id)
        if sim is None:
            continue
        persistent[p.id] = {
            "logged_vitals": [
                {"timestamp": v.timestamp, "metrics": metrics_to_dict(v.metrics)}
                for v in sim.logged_vitals
            ],
            "alarm_feedback_log": [
                {
                    "id": e.id,
                    "patient_id": e.patient_id,
                    "alert": alert_to_dict(e.alert),
                    "feedback": e.feedback.value,
                    "feedback_timestamp": e.feedback_timestamp,
                }
                for e in sim.alarm_feedback_log
            ],
            "ai_state": ai_state_to_dict(sim.ai),
        }
    return {
        "version": SCHEMA_VERSION,
        "patients": [patient_to_dict(p) for p in patients],
        "persistent_patient_data": persistent,
    }


# Decoding. These raise KeyError/TypeError/ValueError on malformed input.

def _thresholds_from_dict(data: Mapping) -> PersonalizedThresholds:
    kwargs = {}
    for key in _PERSONALIZED_KEYS:
        if data.get(key) is not None:
            kwargs[key] = MetricThresholds(**{k: data[key].get(k) for k in _THRESHOLD_KEYS})
    return PersonalizedThresholds(**kwargs)


def patient_from_dict(data: Mapping) -> Patient:
    pacer = data.get("pacer") or {}
    return Patient(
        id=str(data["id"]),
        name=str(data["name"]),
        age=int(data.get("age", 0)),
        gender=data.get("gender", ""),
        room=data.get("room", ""),
        notes=data.get("notes", ""),
        diagnosis=data.get("diagnosis", ""),
        code_status=CodeStatus(data.get("code_status", CodeStatus.FULL_CODE.value)),
        active_rhythm=CardiacRhythm[data.get("active_rhythm", CardiacRhythm.NSR.name)],
        pacer=PacerSettings(
            mode=PacerMode(pacer.get("mode", PacerMode.OFF.value)),
            rate=int(pacer.get("rate", PacerSettings().rate)),
        ),
        thresholds=_thresholds_from_dict(data.get("thresholds") or {}),
        noise_signatures=tuple(data.get("noise_signatures") or ()),
        source=data.get("source", "Manual Entry"),
    )


def metrics_from_dict(data: Mapping) -> CardiacMetrics:
    bp = data["blood_pressure"]
    return CardiacMetrics(
        heart_rate=float(data["heart_rate"]),
        blood_pressure=BloodPressure(float(bp["systolic"]), float(bp["diastolic"])),
        spo2=float(data["spo2"]),
        temperature=float(data["temperature"]),
        respiratory_rate=float(data["respiratory_rate"]),
    )


def alert_from_dict(data: Mapping) -> Alert:
    return Alert(
        id=str(data["id"]),
        message=str(data["message"]),
        severity=AlertSeverity(data["severity"]),
        metric=str(data["metric"]),
        timestamp=float(data["timestamp"]),
    )


def ai_state_from_dict(data: Mapping) -> AIState:
    default = AIState()
    return AIState(
        risk_score=float(data.get("risk_score", default.risk_score)),
        risk_level=RiskLevel(data.get("risk_level", default.risk_level.value)),
        reasoning=data.get("reasoning", default.reasoning),
        confidence=float(data.get("confidence", default.confidence)),
        last_analyzed=float(data.get("last_analyzed", default.last_analyzed)),
        # In-flight and error flags do not survive a session boundary.
        is_loading=False,
        error=None,
    )


def _persisted_from_dict(data: Mapping) -> PersistedPatientData:
    vitals = tuple(
        LoggedVitals(float(v["timestamp"]), metrics_from_dict(v["metrics"]))
        for v in data.get("logged_vitals") or ()
    )
    feedback = tuple(
        AlarmFeedbackEntry(
            id=str(e["id"]),
            patient_id=str(e["patient_id"]),
            alert=alert_from_dict(e["alert"]),
            feedback=FeedbackLabel(e["feedback"]),
            feedback_timestamp=float(e["feedback_timestamp"]),
        )
        for e in data.get("alarm_feedback_log") or ()
    )
    ai_data = data.get("ai_state")
    ai = ai_state_from_dict(ai_data) if ai_data else AIState()
    return PersistedPatientData(vitals, feedback, ai)


def restore_snapshot(data: Mapping) -> Tuple[List[Patient], Dict[str, PersistedPatientData]]:
    raw_patients = data["patients"]
    if not isinstance(raw_patients, list):
        raise TypeError("'patients' must be a list")
    patients = [patient_from_dict(p) for p in raw_patients]
    ids = [p.id for p in patients]
    if len(set(ids)) != len(ids):
        raise ValueError("duplicate patient ids in snapshot")

    raw_persistent = data.get("persistent_patient_data") or {}
    persisted = {
        pid: _persisted_from_dict(raw_persistent[pid])
        for pid in ids if pid in raw_persistent
    }
    return patients, persisted


def default_snapshot() -> dict:
    return {
        "version": SCHEMA_VERSION,
        "patients": [patient_to_dict(p) for p in DEFAULT_PATIENTS],
        "persistent_patient_data": {},
    }


class SessionStore:
    """
    One JSON document per organization under `directory`.
    """
    def __init__(self, directory: str = "."):
        self.directory = directory

    def path_for(self, organization: str) -> str:
        safe = re.sub(r"[^A-Za-z0-9_.-]+", "_", organization.strip()) or "default"
        return os.path.join(self.directory, f"heartsim_{safe}.json")

    def load(self, organization: str) -> dict:
        """
        Return a validated snapshot for the organization. Falls back to the
        default patient set when the file is missing or unusable.
        """
        path = self.path_for(organization)
        if not os.path.exists(path):
            logger.info("No saved session at %s, using default patients", path)
            return default_snapshot()
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            restore_snapshot(data)
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            logger.error("Failed to load session from %s: %s", path, e)
            return default_snapshot()
        return data

    def save(self, organization: str, snapshot: Mapping) -> str:
        path = self.path_for(organization)
        try:
            os.makedirs(self.directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(prefix=".heartsim_", suffix=".json", dir=self.directory)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(snapshot, f, ensure_ascii=False, indent=2)
                os.replace(tmp_path, path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except (OSError, TypeError, ValueError) as e:
            logger.error("Failed to save session to %s: %s", path, e)
            raise PersistenceError(f"could not save session for {organization!r}: {e}") from e
        return path
