import pyqtgraph as pg
from PySide6.QtWidgets import QWidget, QVBoxLayout, QHBoxLayout, QLabel, QFrame
from PySide6.QtCore import Qt
from PySide6.QtGui import QFont

from heartsim.core.constants import (
    METRIC_DIASTOLIC,
    METRIC_HEART_RATE,
    METRIC_RESP_RATE,
    METRIC_SPO2,
    METRIC_SYSTOLIC,
    METRIC_TEMPERATURE,
)
from heartsim.core.rhythms import lookup
from heartsim.monitors.alarms import METRIC_NORMAL, metric_status

from .styles import (
    COLORS,
    RISK_COLORS,
    get_base_widget_style,
    get_rgba,
    get_tinted_frame_style,
    status_color,
)

_SEVERITY_RANK = {METRIC_NORMAL: 0, 'warning': 1, 'critical': 2}


class NumericDisplay(QFrame):
    """
    A unified widget for displaying a single vital sign numeric value.
    Handles styling, layout, and alarm states internally.
    """
    def __init__(self, label, unit="", color=COLORS['text'], initial_value="--", size_variant="normal"):
        super().__init__()
        self.base_color = color
        self.label_text = label
        self.current_status = METRIC_NORMAL

        self.layout = QVBoxLayout(self)
        self.layout.setSpacing(0)

        if size_variant == "compact":
            self.layout.setContentsMargins(8, 4, 8, 6)
            self._val_size, self._lbl_size = "24px", "11px"
        else:
            self.layout.setContentsMargins(10, 6, 10, 8)
            self._val_size, self._lbl_size = "38px", "12px"

        self.lbl_title = QLabel(label)
        self.layout.addWidget(self.lbl_title, alignment=Qt.AlignRight)

        self.lbl_val = QLabel(initial_value)
        self.lbl_val.setAlignment(Qt.AlignRight)
        self.layout.addWidget(self.lbl_val)

        if unit:
            self.lbl_unit = QLabel(unit)
            self.lbl_unit.setStyleSheet(f"color: {COLORS['text_dim']}; font-size: 11px; font-family: Arial;")
            self.layout.addWidget(self.lbl_unit, alignment=Qt.AlignRight)

        self._apply_style(self.base_color, 0.05, 1)

    def _apply_style(self, color, alpha, border_width):
        self.setStyleSheet(f"""
            QFrame {{
                background-color: {get_rgba(color, alpha)};
                border: {border_width}px solid {color if border_width > 1 else get_rgba(COLORS['border'], 0.5)};
                border-radius: 6px;
            }}
        """)
        self.lbl_title.setStyleSheet(
            f"color: {color}; font-size: {self._lbl_size}; font-weight: 600; font-family: Arial; border: none;"
        )
        self.lbl_val.setStyleSheet(
            f"color: {color}; font-size: {self._val_size}; font-weight: 700; font-family: Arial; border: none;"
        )

    def set_value(self, text):
        self.lbl_val.setText(text)

    def set_status(self, status: str):
        """'normal', 'warning' or 'critical'."""
        if status == self.current_status:
            return
        self.current_status = status
        if status == METRIC_NORMAL:
            self._apply_style(self.base_color, 0.05, 1)
        else:
            self._apply_style(status_color(status), 0.15, 2)


class PatientMonitorWidget(QWidget):
    """Bedside monitor for one patient: ECG, pleth and respiration traces plus numerics."""
    def __init__(self):
        super().__init__()
        self.setStyleSheet(get_base_widget_style())
        self.patient_id = None

        self.layout = QVBoxLayout(self)
        self.layout.setContentsMargins(0, 0, 0, 0)
        self.layout.setSpacing(0)

        self.setup_ui()

    def setup_ui(self):
        # --- Top Status Bar ---
        header = QFrame()
        header.setStyleSheet(f"background-color: {COLORS['header']}; border-bottom: 1px solid {COLORS['border']};")
        header.setFixedHeight(32)
        header_layout = QHBoxLayout(header)
        header_layout.setContentsMargins(12, 0, 12, 0)

        self.lbl_patient = QLabel("No patient selected")
        self.lbl_patient.setStyleSheet(f"color: {COLORS['text_secondary']}; font-size: 12px; font-weight: 500;")
        header_layout.addWidget(self.lbl_patient)
        header_layout.addStretch()

        self.lbl_rhythm = QLabel("")
        self.lbl_rhythm.setStyleSheet(f"color: {COLORS['ecg']}; font-size: 12px; font-weight: 600;")
        header_layout.addWidget(self.lbl_rhythm)
        self.layout.addWidget(header)

        # --- Main Content ---
        content = QFrame()
        content.setStyleSheet(f"background-color: {COLORS['background_alt']};")
        content_layout = QHBoxLayout(content)
        content_layout.setContentsMargins(4, 4, 4, 4)
        content_layout.setSpacing(4)
        self.layout.addWidget(content, stretch=1)

        wave_frame = QFrame()
        wave_frame.setStyleSheet("background: transparent; border: none;")
        wave_layout = QVBoxLayout(wave_frame)
        wave_layout.setContentsMargins(0, 0, 0, 0)
        wave_layout.setSpacing(2)
        content_layout.addWidget(wave_frame, stretch=70)

        num_frame = QFrame()
        num_frame.setStyleSheet(f"background-color: {COLORS['panel']}; border-left: 1px solid {COLORS['border']};")
        num_layout = QVBoxLayout(num_frame)
        num_layout.setContentsMargins(6, 6, 6, 6)
        num_layout.setSpacing(6)
        content_layout.addWidget(num_frame, stretch=25)

        # --- Plots ---
        self.ecg_plot, self.ecg_curve = self.create_plot(COLORS['ecg'], "ECG  Lead II", y_range=(-1.5, 3.0))
        self.spo2_plot, self.spo2_curve = self.create_plot(COLORS['spo2'], "SpO₂  Pleth", y_range=(0.0, 1.0))
        self.resp_plot, self.resp_curve = self.create_plot(COLORS['resp'], "Resp  Impedance", y_range=(-1.2, 1.2))
        wave_layout.addWidget(self.ecg_plot)
        wave_layout.addWidget(self.spo2_plot)
        wave_layout.addWidget(self.resp_plot)

        self.lbl_lead_off = QLabel("ECG LEAD OFF")
        self.lbl_lead_off.setAlignment(Qt.AlignCenter)
        self.lbl_lead_off.setStyleSheet(f"color: {COLORS['danger']}; font-size: 14px; font-weight: 700;")
        self.lbl_lead_off.setVisible(False)
        wave_layout.insertWidget(0, self.lbl_lead_off)

        # --- Numerics ---
        self.num_hr = NumericDisplay("Heart rate", "bpm", COLORS['ecg'])
        self.num_spo2 = NumericDisplay("SpO₂", "%", COLORS['spo2'])
        self.num_bp = NumericDisplay("NIBP", "mmHg", COLORS['bp'], "--/--")
        self.num_rr = NumericDisplay("Resp rate", "/min", COLORS['resp'], size_variant="compact")
        self.num_temp = NumericDisplay("Temp", "°C", COLORS['temp'], size_variant="compact")
        for w in (self.num_hr, self.num_spo2, self.num_bp, self.num_rr, self.num_temp):
            num_layout.addWidget(w)

        self.ai_panel = self._create_ai_panel()
        num_layout.addWidget(self.ai_panel)

        self.lbl_alerts = QLabel("")
        self.lbl_alerts.setWordWrap(True)
        self.lbl_alerts.setStyleSheet(f"color: {COLORS['text_secondary']}; font-size: 11px;")
        num_layout.addWidget(self.lbl_alerts)
        num_layout.addStretch()

    def _create_ai_panel(self):
        frame = QFrame()
        frame.setStyleSheet(get_tinted_frame_style(COLORS['ai'], alpha=0.05, radius=6))
        layout = QVBoxLayout(frame)
        layout.setContentsMargins(8, 6, 8, 6)
        layout.setSpacing(2)

        title = QLabel("AI RISK")
        title.setStyleSheet(f"color: {COLORS['ai']}; font-weight: 700; font-size: 11px; border: none;")
        layout.addWidget(title)

        self.lbl_risk_level = QLabel("--")
        self.lbl_risk_level.setStyleSheet(f"color: {COLORS['text']}; font-size: 16px; font-weight: 700; border: none;")
        layout.addWidget(self.lbl_risk_level)

        self.lbl_risk_reason = QLabel("")
        self.lbl_risk_reason.setWordWrap(True)
        self.lbl_risk_reason.setStyleSheet(f"color: {COLORS['text_secondary']}; font-size: 11px; border: none;")
        layout.addWidget(self.lbl_risk_reason)
        return frame

    def create_plot(self, color, title, y_range):
        plot = pg.PlotWidget()
        plot.setBackground(COLORS['background_alt'])
        plot.showGrid(x=False, y=False)
        plot.setMouseEnabled(x=False, y=False)
        plot.hideAxis('bottom')

        axis = plot.getAxis('left')
        axis.setWidth(35)
        axis.setStyle(showValues=False, tickLength=0)
        axis.setPen(pg.mkPen(color=COLORS['background_alt']))
        plot.setYRange(y_range[0], y_range[1], padding=0.05)
        plot.setMinimumHeight(80)

        text = pg.TextItem(text=title, color=color, anchor=(0, 0))
        text.setFont(QFont('Arial', 9, QFont.Weight.Medium))
        plot.addItem(text)
        text.setPos(0, y_range[1])

        plot.setAntialiasing(True)
        plot.setClipToView(True)

        pen = pg.mkPen(color=color, width=2.0)
        curve = plot.plot(pen=pen)
        return plot, curve

    def update_patient_info(self, patient):
        if patient is None:
            self.patient_id = None
            self.lbl_patient.setText("No patient selected")
            self.lbl_rhythm.setText("")
            return
        self.patient_id = patient.id
        info = [f"{patient.name}", f"{patient.age}y {patient.gender}".strip(), patient.room,
                patient.code_status.value]
        if patient.pacer.is_on:
            info.append(f"Pacer {patient.pacer.mode.value} {patient.pacer.rate}")
        self.lbl_patient.setText("  •  ".join(i for i in info if i))
        self.lbl_rhythm.setText(lookup(patient.active_rhythm).name)

    def update_waveforms(self, sim):
        # Buffers are fixed-length snapshots; plot them whole.
        self.ecg_curve.setData(sim.ecg.times, sim.ecg.values)
        self.spo2_curve.setData(sim.spo2_wave.times, sim.spo2_wave.values)
        self.resp_curve.setData(sim.resp_wave.times, sim.resp_wave.values)
        self.lbl_lead_off.setVisible(sim.is_lead_off)

    def update_numerics(self, patient, sim):
        m = sim.metrics
        thresholds = patient.thresholds
        self.num_hr.set_value("---" if sim.is_lead_off else f"{int(m.heart_rate)}")
        self.num_spo2.set_value(f"{int(m.spo2)}")
        self.num_bp.set_value(f"{int(m.blood_pressure.systolic)}/{int(m.blood_pressure.diastolic)}")
        self.num_rr.set_value(f"{int(m.respiratory_rate)}")
        self.num_temp.set_value(f"{m.temperature:.1f}")

        self.num_hr.set_status(
            METRIC_NORMAL if sim.is_lead_off
            else metric_status(METRIC_HEART_RATE, m.heart_rate, thresholds)
        )
        self.num_spo2.set_status(metric_status(METRIC_SPO2, m.spo2, thresholds))
        self.num_bp.set_status(max(
            metric_status(METRIC_SYSTOLIC, m.blood_pressure.systolic, thresholds),
            metric_status(METRIC_DIASTOLIC, m.blood_pressure.diastolic, thresholds),
            key=_SEVERITY_RANK.get,
        ))
        self.num_rr.set_status(metric_status(METRIC_RESP_RATE, m.respiratory_rate, thresholds))
        self.num_temp.set_status(metric_status(METRIC_TEMPERATURE, m.temperature, thresholds))

        ai = sim.ai
        level_text = "Analyzing..." if ai.is_loading else ai.risk_level.value
        if not ai.is_loading and ai.risk_score:
            level_text += f"  {ai.risk_score:.0f}"
        self.lbl_risk_level.setText(level_text)
        self.lbl_risk_level.setStyleSheet(
            f"color: {RISK_COLORS.get(ai.risk_level, COLORS['text'])}; font-size: 16px; "
            "font-weight: 700; border: none;"
        )
        self.lbl_risk_reason.setText(ai.error or ai.reasoning)

    def update_alarms(self, sim):
        pending = sim.unacknowledged_alerts()
        if not pending:
            self.lbl_alerts.setText("")
            return
        lines = [f"[{a.severity.value.upper()}] {a.message}" for a in pending[-5:]]
        self.lbl_alerts.setText("\n".join(lines))

    def update_from(self, patient, sim):
        """Refresh everything from one read-only snapshot."""
        self.update_patient_info(patient)
        if patient is None or sim is None:
            return
        self.update_waveforms(sim)
        self.update_numerics(patient, sim)
        self.update_alarms(sim)
