"""Built-in patient set used on first launch and when stored data is unusable."""

from heartsim.core.enums import CardiacRhythm, CodeStatus, PacerMode
from heartsim.patient.patient import Patient, PacerSettings


DEFAULT_PATIENTS = (
    Patient(
        id="PID00123",
        name="John Doe",
        age=68,
        gender="Male",
        room="ICU-305",
        notes="Patient stable, slight arrhythmia observed overnight.",
        diagnosis="Atrial Fibrillation (Mild)",
        code_status=CodeStatus.FULL_CODE,
    ),
    Patient(
        id="PID00124",
        name="Jane Smith",
        age=74,
        gender="Female",
        room="ICU-306",
        notes="Post-op recovery, vitals within expected range. Monitor for pain.",
        diagnosis="Post-Coronary Artery Bypass Graft",
        code_status=CodeStatus.DNR,
    ),
    Patient(
        id="PID00125",
        name="Robert Jones",
        age=82,
        gender="Male",
        room="ICU-307",
        notes="CHF Exacerbation. Monitoring fluid status closely.",
        diagnosis="Congestive Heart Failure",
        code_status=CodeStatus.DNI,
        active_rhythm=CardiacRhythm.ATRIAL_FIBRILLATION,
        pacer=PacerSettings(mode=PacerMode.DEMAND, rate=60),
    ),
)
