import sys

from PySide6.QtWidgets import (
    QApplication,
    QFrame,
    QHBoxLayout,
    QLabel,
    QMainWindow,
    QPushButton,
    QVBoxLayout,
    QWidget,
)
from PySide6.QtCore import QTimer

from heartsim.core.constants import ECG_TICK_SEC, VITALS_TICK_SEC
from heartsim.core.engine import SimulationEngine
from heartsim.core.persistence import PersistenceError, SessionStore
from heartsim.ui.controls_widget import ControlPanelWidget
from heartsim.ui.monitor_widget import PatientMonitorWidget
from heartsim.ui.styles import (
    COLORS,
    FONTS,
    get_bar_style,
    get_base_widget_style,
    get_button_style,
    get_toggle_button_style,
)

DEFAULT_ORGANIZATION = "default"


class MainWindow(QMainWindow):
    """Ward view: bedside monitor for the selected patient plus the control panel."""
    def __init__(self, engine: SimulationEngine = None, store: SessionStore = None,
                 organization: str = DEFAULT_ORGANIZATION):
        super().__init__()
        self.setWindowTitle(f"HeartSim - Cardiac Telemetry ({organization})")
        self.resize(1500, 880)
        self.setStyleSheet(get_base_widget_style())

        self.store = store
        self.organization = organization
        if engine is None:
            snapshot = store.load(organization) if store is not None else None
            engine = SimulationEngine.from_snapshot(snapshot) if snapshot else SimulationEngine()
        self.engine = engine

        self.setup_ui()

        # Waveform loop (40 Hz) and vitals loop (1 Hz) run together.
        self.ecg_timer = QTimer(self)
        self.ecg_timer.setInterval(int(ECG_TICK_SEC * 1000))
        self.ecg_timer.timeout.connect(self.waveform_tick)

        self.vitals_timer = QTimer(self)
        self.vitals_timer.setInterval(int(VITALS_TICK_SEC * 1000))
        self.vitals_timer.timeout.connect(self.vitals_tick)

    def setup_ui(self):
        central = QWidget()
        self.setCentralWidget(central)

        main_layout = QHBoxLayout(central)
        main_layout.setContentsMargins(0, 0, 0, 0)
        main_layout.setSpacing(0)

        # Left Side: Monitor + Control Bar
        monitor_container = QWidget()
        mon_layout = QVBoxLayout(monitor_container)
        mon_layout.setContentsMargins(0, 0, 0, 0)
        mon_layout.setSpacing(0)

        self.monitor = PatientMonitorWidget()
        mon_layout.addWidget(self.monitor, stretch=1)

        ctrl_bar = QFrame()
        ctrl_bar.setStyleSheet(get_bar_style("top"))
        ctrl_bar.setFixedHeight(56)
        ctrl_layout = QHBoxLayout(ctrl_bar)
        ctrl_layout.setContentsMargins(16, 8, 16, 8)
        ctrl_layout.setSpacing(16)

        self.btn_start = QPushButton("Start")
        self.btn_start.clicked.connect(self.toggle_simulation)
        ctrl_layout.addWidget(self.btn_start)

        self.btn_record = QPushButton("Record")
        self.btn_record.setCheckable(True)
        self.btn_record.setStyleSheet(get_toggle_button_style(COLORS['danger']))
        self.btn_record.toggled.connect(self.toggle_recording)
        ctrl_layout.addWidget(self.btn_record)

        self.lbl_status = QLabel("READY")
        ctrl_layout.addWidget(self.lbl_status)
        ctrl_layout.addStretch()

        self.lbl_census = QLabel("")
        self.lbl_census.setStyleSheet(
            f"color: {COLORS['text_secondary']}; font-size: {FONTS['size_medium']}; font-weight: 600;"
        )
        ctrl_layout.addWidget(self.lbl_census)

        mon_layout.addWidget(ctrl_bar)
        main_layout.addWidget(monitor_container, stretch=7)

        # Right Side: Controls
        self.controls = ControlPanelWidget(self.engine)
        main_layout.addWidget(self.controls, stretch=3)

        self.controls.sync_with_engine()
        self._set_run_state("ready")
        self.refresh()

    def _set_status(self, text, color):
        self.lbl_status.setText(text)
        self.lbl_status.setStyleSheet(
            f"color: {color}; font-size: {FONTS['size_small']}; font-weight: 600;"
        )

    def _set_run_state(self, state):
        if state == "running":
            self.btn_start.setText("Pause")
            self.btn_start.setStyleSheet(
                get_button_style(variant="warning", padding="8px 20px", min_width=110)
            )
            self._set_status("RUNNING", COLORS['success'])
            return
        if state == "paused":
            self.btn_start.setText("Resume")
            self.btn_start.setStyleSheet(
                get_button_style(variant="primary", outlined=True, padding="8px 20px", min_width=110)
            )
            self._set_status("PAUSED", COLORS['warning'])
            return
        self.btn_start.setText("Start")
        self.btn_start.setStyleSheet(
            get_button_style(variant="primary", padding="8px 20px", min_width=110)
        )
        self._set_status("READY", COLORS['text_dim'])

    def toggle_simulation(self):
        if self.engine.running:
            self.engine.stop()
            self.ecg_timer.stop()
            self.vitals_timer.stop()
            self._set_run_state("paused")
            self.save_session()
        else:
            self.engine.start()
            self.ecg_timer.start()
            self.vitals_timer.start()
            self._set_run_state("running")

    def toggle_recording(self, checked: bool):
        if checked:
            self.engine.start_recording(output_dir="recordings")
            self.btn_record.setText("Recording")
        else:
            self.engine.stop_recording()
            self.btn_record.setText("Record")

    def waveform_tick(self):
        self.engine.step_waveforms()
        self.refresh()

    def vitals_tick(self):
        self.engine.step_vitals()
        self.controls.sync_with_engine()
        self.save_session()

    def refresh(self):
        patient = self.engine.selected_patient
        sim = self.engine.simulation_state(patient.id) if patient is not None else None
        self.monitor.update_from(patient, sim)

        alarming = sum(1 for p in self.engine.patients if self.engine.unacknowledged_alerts(p.id))
        self.lbl_census.setText(f"{len(self.engine.patients)} patients  •  {alarming} alarming")

    def save_session(self):
        if self.store is None:
            return
        try:
            self.store.save(self.organization, self.engine.snapshot())
        except PersistenceError as e:
            # Keep running; the next vitals tick retries.
            self.statusBar().showMessage(str(e), 5000)

    def closeEvent(self, event):
        self.ecg_timer.stop()
        self.vitals_timer.stop()
        self.save_session()
        self.engine.dispose()
        super().closeEvent(event)


def main(engine: SimulationEngine = None, store: SessionStore = None,
         organization: str = DEFAULT_ORGANIZATION):
    app = QApplication.instance() or QApplication(sys.argv)
    window = MainWindow(engine=engine, store=store, organization=organization)
    window.show()
    return app.exec()


if __name__ == "__main__":
    sys.exit(main(store=SessionStore(".")))
