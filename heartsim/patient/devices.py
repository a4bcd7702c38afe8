"""
Simulated bedside and wearable monitors.

Nothing here talks to real hardware: scan() returns a fixed catalog and
connect() admits the monitor's patient into the engine.
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Tuple

from heartsim.core.enums import CodeStatus
from heartsim.patient.patient import Patient

if TYPE_CHECKING:
    from heartsim.core.engine import SimulationEngine

logger = logging.getLogger(__name__)

NETWORK = "network"
BLUETOOTH = "bluetooth"

STATUS_READY = "Online - Ready to Connect"
STATUS_OFFLINE = "Offline"


class DeviceOfflineError(RuntimeError):
    """The selected monitor is not reachable."""


@dataclass(frozen=True)
class MonitorPatientData:
    name: str
    age: int
    gender: str
    diagnosis: str


@dataclass(frozen=True)
class MockMonitor:
    id: str
    location: str
    model: str
    status: str
    patient: MonitorPatientData

    @property
    def is_online(self) -> bool:
        return self.status == STATUS_READY


NETWORK_MONITORS = (
    MockMonitor("GE-CARESCAPE-A1B2C3D4", "Room 401-A", "GE CARESCAPE B650", STATUS_READY,
                MonitorPatientData("Patient 401-A", 58, "Female", "Post-PCI Monitoring")),
    MockMonitor("PHILIPS-IVUE-X3-E5F6G7H8", "Room 402-B", "Philips IntelliVue X3", STATUS_READY,
                MonitorPatientData("Patient 402-B", 72, "Male", "Sepsis Query")),
    MockMonitor("MINDRAY-BENEVISION-T1U2V3W4", "PACU-1", "Mindray BeneVision N17", STATUS_READY,
                MonitorPatientData("Patient PACU-1", 52, "Male", "Post-Anesthesia Care")),
    MockMonitor("DRAGER-INFINITY-I9J0K1L2", "ED-Bay-3", "Dräger Infinity M540", STATUS_OFFLINE,
                MonitorPatientData("Patient ED-3", 45, "Male", "Chest Pain")),
    MockMonitor("NIHON-KOHDEN-BSM-M3N4O5P6", "ICU-308", "Nihon Kohden BSM-6000", STATUS_READY,
                MonitorPatientData("Patient ICU-308", 66, "Female", "Acute Respiratory Failure")),
    MockMonitor("PHILIPS-MX750-L3M4N5O6", "CCU-Bed-5", "Philips IntelliVue MX750", STATUS_READY,
                MonitorPatientData("Patient CCU-5", 64, "Male", "Post-MI Stenting")),
    MockMonitor("GE-SOLAR-8000M-P7Q8R9S0", "OR-2", "GE Solar 8000M", STATUS_READY,
                MonitorPatientData("Patient OR-2", 77, "Female", "Pre-Op for CABG")),
)

BLUETOOTH_MONITORS = (
    MockMonitor("ZEPHYR-BP-XYZ-789", "Ambulatory", "Zephyr BioPatch", STATUS_READY,
                MonitorPatientData("Ambulatory Patient 1", 62, "Male", "Holter Monitoring")),
    MockMonitor("MASIMO-RD-ABC-123", "Post-Op Ward", "Masimo Radius-7", STATUS_READY,
                MonitorPatientData("Post-Op Patient 3", 55, "Female", "Continuous SpO2")),
    MockMonitor("VITALCONNECT-VT-DEF-456", "Telemetry-5", "VitalConnect VitalPatch", STATUS_OFFLINE,
                MonitorPatientData("Telemetry Patient 5", 81, "Male", "Arrhythmia Detection")),
)

_CATALOGS = {
    NETWORK: NETWORK_MONITORS,
    BLUETOOTH: BLUETOOTH_MONITORS,
}

_SOURCE_LABELS = {
    NETWORK: "Network",
    BLUETOOTH: "Bluetooth",
}


def scan(kind: str = NETWORK) -> Tuple[MockMonitor, ...]:
    """Monitors visible on the given transport ('network' or 'bluetooth')."""
    try:
        return _CATALOGS[kind.lower()]
    except KeyError:
        raise ValueError(f"Unknown scan type: {kind!r}") from None


def kind_of(monitor: MockMonitor) -> str:
    for kind, catalog in _CATALOGS.items():
        if monitor in catalog:
            return kind
    return NETWORK


def connect(engine: "SimulationEngine", monitor: MockMonitor) -> Patient:
    """Admit the monitor's patient; raises DeviceOfflineError if it is offline."""
    if not monitor.is_online:
        raise DeviceOfflineError(f"{monitor.model} at {monitor.location} is offline")
    source = f"{_SOURCE_LABELS[kind_of(monitor)]}: {monitor.model}"
    data = monitor.patient
    logger.info("Connecting to %s (%s)", monitor.id, source)
    return engine.add_patient(
        {
            "name": data.name,
            "age": data.age,
            "gender": data.gender,
            "diagnosis": data.diagnosis,
            "room": monitor.location,
            "code_status": CodeStatus.FULL_CODE,
        },
        source=source,
    )
