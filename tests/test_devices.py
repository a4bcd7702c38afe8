import pytest

from heartsim.core.enums import CardiacRhythm, CodeStatus
from heartsim.patient import devices


def test_scan_catalogs():
    network = devices.scan(devices.NETWORK)
    bluetooth = devices.scan("Bluetooth")
    assert len(network) == 7
    assert len(bluetooth) == 3
    assert sum(not m.is_online for m in network) == 1
    assert all(devices.kind_of(m) == devices.BLUETOOTH for m in bluetooth)


def test_scan_unknown_kind():
    with pytest.raises(ValueError):
        devices.scan("infrared")


def test_connect_admits_patient(engine):
    monitor = devices.scan(devices.NETWORK)[0]
    patient = devices.connect(engine, monitor)

    assert patient.source == "Network: GE CARESCAPE B650"
    assert patient.room == monitor.location
    assert patient.name == monitor.patient.name
    assert patient.diagnosis == monitor.patient.diagnosis
    assert patient.code_status == CodeStatus.FULL_CODE
    assert patient.active_rhythm == CardiacRhythm.NSR
    assert engine.selected_patient_id == patient.id
    assert engine.simulation_state(patient.id) is not None


def test_connect_bluetooth_label(engine):
    patient = devices.connect(engine, devices.scan(devices.BLUETOOTH)[1])
    assert patient.source == "Bluetooth: Masimo Radius-7"


def test_offline_monitor_refuses(engine):
    offline = next(m for m in devices.scan(devices.NETWORK) if not m.is_online)
    count = len(engine.patients)
    with pytest.raises(devices.DeviceOfflineError):
        devices.connect(engine, offline)
    assert len(engine.patients) == count
