from PySide6.QtWidgets import (
    QComboBox,
    QGroupBox,
    QHBoxLayout,
    QInputDialog,
    QLabel,
    QListWidget,
    QListWidgetItem,
    QPushButton,
    QSpinBox,
    QVBoxLayout,
    QWidget,
)
from PySide6.QtCore import Qt

from heartsim.core.enums import AlertSeverity, CardiacRhythm, FeedbackLabel, PacerMode
from heartsim.core.rhythms import RHYTHMS
from heartsim.patient import devices

from .styles import (
    COLORS,
    FONTS,
    STYLE_COMBOBOX,
    STYLE_LIST,
    STYLE_SPINBOX,
    get_button_style,
    get_toggle_button_style,
)


class ControlPanelWidget(QWidget):
    """Right-hand panel: patient list plus controls for the selected patient."""
    def __init__(self, engine):
        super().__init__()
        self.engine = engine
        self._syncing = False

        self.setStyleSheet(f"background-color: {COLORS['panel']};")
        self.layout = QVBoxLayout(self)
        self.layout.setContentsMargins(10, 10, 10, 10)
        self.layout.setSpacing(10)

        self._build_patient_list()
        self._build_rhythm_group()
        self._build_alarm_group()
        self.layout.addStretch()

    # --- Construction ---

    def _group(self, title):
        box = QGroupBox(title)
        box.setStyleSheet(f"""
            QGroupBox {{
                color: {COLORS['text_secondary']};
                font-weight: 600;
                font-size: {FONTS['size_small']};
                border: 1px solid {COLORS['border']};
                border-radius: 8px;
                margin-top: 8px;
                padding-top: 10px;
            }}
        """)
        layout = QVBoxLayout(box)
        layout.setSpacing(6)
        self.layout.addWidget(box)
        return layout

    def _build_patient_list(self):
        layout = self._group("PATIENTS")
        self.patient_list = QListWidget()
        self.patient_list.setStyleSheet(STYLE_LIST)
        self.patient_list.currentItemChanged.connect(self._on_patient_selected)
        layout.addWidget(self.patient_list)

        row = QHBoxLayout()
        self.btn_add = QPushButton("Add")
        self.btn_add.setStyleSheet(get_button_style(variant="primary", padding="6px 12px"))
        self.btn_add.clicked.connect(self.add_patient)
        row.addWidget(self.btn_add)

        self.btn_connect = QPushButton("Connect Monitor")
        self.btn_connect.setStyleSheet(get_button_style(variant="info", outlined=True, padding="6px 12px"))
        self.btn_connect.clicked.connect(self.connect_monitor)
        row.addWidget(self.btn_connect)

        self.btn_delete = QPushButton("Delete")
        self.btn_delete.setStyleSheet(get_button_style(variant="danger", outlined=True, padding="6px 12px"))
        self.btn_delete.clicked.connect(self.delete_patient)
        row.addWidget(self.btn_delete)
        layout.addLayout(row)

    def _build_rhythm_group(self):
        layout = self._group("RHYTHM & PACER")

        self.cb_rhythm = QComboBox()
        self.cb_rhythm.setStyleSheet(STYLE_COMBOBOX)
        for rhythm, definition in RHYTHMS.items():
            self.cb_rhythm.addItem(definition.name, rhythm.name)
        self.cb_rhythm.currentIndexChanged.connect(self._on_rhythm_changed)
        layout.addWidget(self.cb_rhythm)

        row = QHBoxLayout()
        lbl = QLabel("Pacer:")
        lbl.setStyleSheet(f"color: {COLORS['text_dim']}; font-size: {FONTS['size_small']};")
        row.addWidget(lbl)

        self.cb_pacer = QComboBox()
        self.cb_pacer.setStyleSheet(STYLE_COMBOBOX)
        for mode in PacerMode:
            self.cb_pacer.addItem(mode.value, mode.name)
        self.cb_pacer.currentIndexChanged.connect(self._on_pacer_changed)
        row.addWidget(self.cb_pacer)

        self.sb_pacer_rate = QSpinBox()
        self.sb_pacer_rate.setRange(30, 180)
        self.sb_pacer_rate.setSuffix(" bpm")
        self.sb_pacer_rate.setStyleSheet(STYLE_SPINBOX)
        self.sb_pacer_rate.valueChanged.connect(self._on_pacer_changed)
        row.addWidget(self.sb_pacer_rate)
        layout.addLayout(row)

    def _build_alarm_group(self):
        layout = self._group("ALARMS")

        self.btn_lead_off = QPushButton("ECG Lead Off")
        self.btn_lead_off.setCheckable(True)
        self.btn_lead_off.setStyleSheet(get_toggle_button_style(COLORS['danger']))
        self.btn_lead_off.clicked.connect(self._on_lead_off)
        layout.addWidget(self.btn_lead_off)

        self.btn_ack = QPushButton("Acknowledge All")
        self.btn_ack.setStyleSheet(get_button_style(variant="warning", padding="6px 12px"))
        self.btn_ack.clicked.connect(self._on_acknowledge)
        layout.addWidget(self.btn_ack)

        row = QHBoxLayout()
        self.cb_feedback_severity = QComboBox()
        self.cb_feedback_severity.setStyleSheet(STYLE_COMBOBOX)
        for severity in (AlertSeverity.CRITICAL, AlertSeverity.WARNING):
            self.cb_feedback_severity.addItem(severity.value.capitalize(), severity.name)
        row.addWidget(self.cb_feedback_severity)

        self.btn_true_pos = QPushButton("True +")
        self.btn_true_pos.setStyleSheet(get_button_style(variant="success", outlined=True, padding="6px 10px"))
        self.btn_true_pos.clicked.connect(lambda: self._on_feedback(FeedbackLabel.TRUE_POSITIVE))
        row.addWidget(self.btn_true_pos)

        self.btn_false_pos = QPushButton("False +")
        self.btn_false_pos.setStyleSheet(get_button_style(variant="neutral", outlined=True, padding="6px 10px"))
        self.btn_false_pos.clicked.connect(lambda: self._on_feedback(FeedbackLabel.FALSE_POSITIVE))
        row.addWidget(self.btn_false_pos)
        layout.addLayout(row)

    # --- Engine sync ---

    def sync_with_engine(self):
        """Pull the registry and selected patient into the widgets."""
        self._syncing = True
        try:
            selected = self.engine.selected_patient_id
            ids = [p.id for p in self.engine.patients]
            listed = [self.patient_list.item(i).data(Qt.UserRole) for i in range(self.patient_list.count())]
            if ids != listed:
                self.patient_list.clear()
                for p in self.engine.patients:
                    item = QListWidgetItem(f"{p.room}  {p.name}".strip())
                    item.setData(Qt.UserRole, p.id)
                    self.patient_list.addItem(item)
            for i in range(self.patient_list.count()):
                item = self.patient_list.item(i)
                patient = self.engine.get_patient(item.data(Qt.UserRole))
                if patient is not None:
                    item.setText(f"{patient.room}  {patient.name}".strip())
                if item.data(Qt.UserRole) == selected:
                    self.patient_list.setCurrentRow(i)

            patient = self.engine.selected_patient
            enabled = patient is not None
            for w in (self.cb_rhythm, self.cb_pacer, self.sb_pacer_rate, self.btn_lead_off,
                      self.btn_ack, self.btn_true_pos, self.btn_false_pos, self.btn_delete):
                w.setEnabled(enabled)
            if patient is None:
                return

            self.cb_rhythm.setCurrentIndex(self.cb_rhythm.findData(patient.active_rhythm.name))
            self.cb_pacer.setCurrentIndex(self.cb_pacer.findData(patient.pacer.mode.name))
            self.sb_pacer_rate.setValue(patient.pacer.rate)
            sim = self.engine.simulation_state(patient.id)
            self.btn_lead_off.setChecked(bool(sim and sim.is_lead_off))
        finally:
            self._syncing = False

    # --- Handlers ---

    def _on_patient_selected(self, current, _previous):
        if self._syncing or current is None:
            return
        self.engine.select_patient(current.data(Qt.UserRole))
        self.sync_with_engine()

    def _on_rhythm_changed(self, _index):
        patient = self.engine.selected_patient
        if self._syncing or patient is None:
            return
        rhythm = CardiacRhythm[self.cb_rhythm.currentData()]
        if rhythm != patient.active_rhythm:
            self.engine.set_rhythm(patient.id, rhythm)

    def _on_pacer_changed(self, _value):
        patient = self.engine.selected_patient
        if self._syncing or patient is None:
            return
        self.engine.update_pacer_settings(
            patient.id, mode=PacerMode[self.cb_pacer.currentData()], rate=self.sb_pacer_rate.value()
        )

    def _on_lead_off(self):
        patient = self.engine.selected_patient
        if patient is not None:
            self.engine.toggle_ecg_lead_off(patient.id)
        self.sync_with_engine()

    def _on_acknowledge(self):
        patient = self.engine.selected_patient
        if patient is not None:
            self.engine.acknowledge_alerts(patient.id)

    def _on_feedback(self, label):
        patient = self.engine.selected_patient
        if patient is None:
            return
        self.engine.provide_alarm_feedback(
            patient.id, label, AlertSeverity[self.cb_feedback_severity.currentData()]
        )
        self.sync_with_engine()

    def add_patient(self):
        name, ok = QInputDialog.getText(self, "Add Patient", "Patient name:")
        if not ok:
            return
        room, ok = QInputDialog.getText(self, "Add Patient", "Room:")
        if not ok:
            return
        self.engine.add_patient(name=name.strip() or "Unnamed Patient", room=room.strip())
        self.sync_with_engine()

    def connect_monitor(self):
        kind, ok = QInputDialog.getItem(
            self, "Connect Monitor", "Connection:", [devices.NETWORK, devices.BLUETOOTH], 0, False
        )
        if not ok:
            return
        found = devices.scan(kind)
        labels = [f"{m.model} ({m.status})" for m in found]
        choice, ok = QInputDialog.getItem(self, "Connect Monitor", "Monitor:", labels, 0, False)
        if not ok:
            return
        monitor = found[labels.index(choice)]
        try:
            devices.connect(self.engine, monitor)
        except devices.DeviceOfflineError as e:
            self.window().statusBar().showMessage(str(e), 5000)
            return
        self.sync_with_engine()

    def delete_patient(self):
        patient = self.engine.selected_patient
        if patient is not None:
            self.engine.delete_patient(patient.id)
        self.sync_with_engine()
