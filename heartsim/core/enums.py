from enum import Enum


class CardiacRhythm(Enum):
    """Cardiac Rhythm Types"""
    NSR = "Normal Sinus Rhythm"
    VT = "Ventricular Tachycardia"
    SINUS_TACHYCARDIA = "Sinus Tachycardia"
    SINUS_BRADYCARDIA = "Sinus Bradycardia"
    VENTRICULAR_FIBRILLATION = "Ventricular Fibrillation"
    TORSADES_DE_POINTES = "Torsades de Pointes"
    FIRST_DEGREE_AV_BLOCK = "1st Degree AV Block"
    SECOND_DEGREE_AV_BLOCK_TYPE_I = "2nd Deg AV Block Type I"
    SECOND_DEGREE_AV_BLOCK_TYPE_II = "2nd Deg AV Block Type II"
    THIRD_DEGREE_AV_BLOCK = "3rd Degree AV Block"
    ATRIAL_FIBRILLATION = "Atrial Fibrillation"
    ATRIAL_FLUTTER = "Atrial Flutter"
    SVT = "Supraventricular Tachycardia"
    ASYSTOLE = "Asystole"


class AlertSeverity(Enum):
    WARNING = "warning"
    CRITICAL = "critical"


class PacerMode(Enum):
    """Pacemaker modes (demand is VVI-like)."""
    OFF = "Off"
    DEMAND = "Demand"


class RiskLevel(Enum):
    STABLE = "Stable"
    LOW = "Low Risk"
    MODERATE = "Moderate Risk"
    HIGH = "High Risk"
    CRITICAL = "Critical Risk"
    PENDING = "Pending Analysis"
    INSUFFICIENT_DATA = "Insufficient Data"
    ERROR = "Error Analyzing"


class FeedbackLabel(Enum):
    """Clinician verdict on an alarm."""
    TRUE_POSITIVE = "true_positive"
    FALSE_POSITIVE = "false_positive"


class CodeStatus(Enum):
    DNR = "DNR"
    DNI = "DNI"
    NC = "NC"
    CCO = "CCO"
    FULL_CODE = "FULL_CODE"
