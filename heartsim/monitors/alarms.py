import uuid
from typing import Dict, Iterable, Optional, Tuple

from heartsim.core.constants import (
    ALERT_THRESHOLDS,
    LEAD_OFF_MESSAGE,
    LEAD_OFF_METRIC,
    ThresholdSet,
)
from heartsim.core.enums import AlertSeverity
from heartsim.core.state import Alert
from heartsim.patient.patient import MetricThresholds, PersonalizedThresholds

LOW = "low"
HIGH = "high"

# (severity, direction) -> ThresholdSet / MetricThresholds attribute
_QUADRANTS = {
    (AlertSeverity.CRITICAL, LOW): "low_critical",
    (AlertSeverity.WARNING, LOW): "low_warning",
    (AlertSeverity.WARNING, HIGH): "high_warning",
    (AlertSeverity.CRITICAL, HIGH): "high_critical",
}

METRIC_NORMAL = "normal"


def resolve_threshold(metric: str, severity: AlertSeverity, direction: str,
                      global_thresholds: Dict[str, ThresholdSet] = None,
                      personalized: Optional[MetricThresholds] = None) -> Optional[float]:
    """Personalized override for the quadrant if set, else the global default."""
    attr = _QUADRANTS[(severity, direction)]
    if personalized is not None and getattr(personalized, attr) is not None:
        return getattr(personalized, attr)
    defaults = (global_thresholds if global_thresholds is not None else ALERT_THRESHOLDS).get(metric)
    return getattr(defaults, attr) if defaults is not None else None


def check_threshold(metric: str, value: float,
                    global_thresholds: Dict[str, ThresholdSet] = None,
                    personalized: Optional[MetricThresholds] = None,
                    severity: AlertSeverity = AlertSeverity.WARNING,
                    direction: str = LOW) -> bool:
    threshold = resolve_threshold(metric, severity, direction, global_thresholds, personalized)
    if threshold is None:
        return False
    if direction == LOW:
        return value < threshold
    return value > threshold


def alert_message(metric: str, value: float, direction: str) -> str:
    return f"{metric} {'Low' if direction == LOW else 'High'}: {value:g}"


def raise_alert(alerts: Tuple[Alert, ...], message: str, severity: AlertSeverity,
                metric: str, timestamp: float) -> Tuple[Alert, ...]:
    """
    Append a new alert unless one with the same message and severity is
    already active. Returns the (possibly unchanged) alerts tuple.
    """
    for existing in alerts:
        if existing.message == message and existing.severity == severity:
            return alerts
    alert = Alert(
        id=uuid.uuid4().hex,
        message=message,
        severity=severity,
        metric=metric,
        timestamp=timestamp,
    )
    return alerts + (alert,)


def lead_off_alert(timestamp: float) -> Alert:
    return Alert(
        id=uuid.uuid4().hex,
        message=LEAD_OFF_MESSAGE,
        severity=AlertSeverity.CRITICAL,
        metric=LEAD_OFF_METRIC,
        timestamp=timestamp,
    )


def is_lead_off_alert(alert: Alert) -> bool:
    return alert.message == LEAD_OFF_MESSAGE and alert.metric == LEAD_OFF_METRIC


def metric_status(metric: str, value: float,
                  personalized: Optional[PersonalizedThresholds] = None,
                  global_thresholds: Dict[str, ThresholdSet] = None) -> str:
    """Classify a value as 'critical', 'warning' or 'normal' (UI colouring)."""
    overrides = personalized.for_metric(metric) if personalized is not None else None
    for severity in (AlertSeverity.CRITICAL, AlertSeverity.WARNING):
        for direction in (LOW, HIGH):
            if check_threshold(metric, value, global_thresholds, overrides, severity, direction):
                return severity.value
    return METRIC_NORMAL


class AlarmSystem:
    """
    Threshold alarms for patient monitors.

    Each (metric, severity, direction) quadrant is evaluated on its own, so a
    metric may hold a warning and a critical alert at the same time.
    """
    def __init__(self, thresholds: Dict[str, ThresholdSet] = None):
        self.thresholds = thresholds or ALERT_THRESHOLDS

    def evaluate(self, alerts: Tuple[Alert, ...], metric: str, value: float,
                 personalized: Optional[PersonalizedThresholds], timestamp: float,
                 quadrants: Iterable[Tuple[AlertSeverity, str]] = None) -> Tuple[Alert, ...]:
        overrides = personalized.for_metric(metric) if personalized is not None else None
        for severity, direction in (quadrants or _QUADRANTS):
            if check_threshold(metric, value, self.thresholds, overrides, severity, direction):
                alerts = raise_alert(
                    alerts, alert_message(metric, value, direction), severity, metric, timestamp
                )
        return alerts
