import logging
import time
import uuid
from dataclasses import replace
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union

import numpy as np

from .constants import ECG_TICK_SEC, SAMPLES_PER_SECOND, VITALS_TICK_SEC
from .enums import AlertSeverity, CardiacRhythm, CodeStatus, FeedbackLabel, PacerMode, RiskLevel
from .persistence import engine_snapshot, restore_snapshot
from .recorder import VitalsRecorder
from .rhythms import lookup
from .state import (
    EMPTY_PATTERN,
    AIState,
    AlarmFeedbackEntry,
    Alert,
    SimulationConfig,
    SimulationState,
)
from .step_helpers import StepHelpersMixin
from heartsim.analysis.risk import AnalysisResult, AnalysisService, MockRiskAnalyzer
from heartsim.monitors.alarms import AlarmSystem, is_lead_off_alert, lead_off_alert
from heartsim.monitors.ecg import ECGMonitor
from heartsim.monitors.respiration import RespirationMonitor
from heartsim.monitors.spo2 import SpO2Monitor
from heartsim.patient.patient import DETAIL_FIELDS, EDITABLE_FIELDS, PacerSettings, Patient

logger = logging.getLogger(__name__)

MANUAL_ENTRY = "Manual Entry"
ANALYSIS_ERROR_REASONING = "An error occurred during analysis."

# Initial respiratory rate draw (breaths/min, inclusive).
INITIAL_RR_RANGE = (12, 18)

VITALS_EVERY_N_TICKS = round(VITALS_TICK_SEC / ECG_TICK_SEC)


class SimulationEngine(StepHelpersMixin):
    """
    Multi-patient telemetry orchestrator.

    Owns the patient registry (an ordered list of immutable Patient records)
    and one SimulationState per patient, keyed by id. The two loops are
    driven from outside: step_waveforms() every 25 ms and step_vitals()
    every second (a Qt timer pair in the UI, advance() in headless runs).
    Both re-read the registry on every call, so a patient added between
    ticks is stepped on the next one and a deleted patient never again.

    Operations that name an unknown patient id do nothing.
    """
    def __init__(self, patients: Iterable[Patient] = (), config: SimulationConfig = None,
                 clock: Callable[[], float] = time.time,
                 analysis: AnalysisService = None):
        self.config = config or SimulationConfig()
        self.clock = clock
        self.rng = np.random.default_rng(self.config.rng_seed)

        # Monitors.
        self.ecg_monitor = ECGMonitor(self.rng, SAMPLES_PER_SECOND)
        self.spo2_monitor = SpO2Monitor()
        self.resp_monitor = RespirationMonitor(SAMPLES_PER_SECOND)
        self.alarms = AlarmSystem()

        # AI analysis runs off-thread with its own generator.
        if analysis is None:
            analyzer = MockRiskAnalyzer(
                np.random.default_rng(int(self.rng.integers(0, 2**32))),
                delay_range=self.config.analysis_delay_range,
            )
            analysis = AnalysisService(analyzer, max_workers=self.config.analysis_workers,
                                       clock=clock)
        self.analysis = analysis

        self.recorder: Optional[VitalsRecorder] = None

        # Registry and per-patient state.
        self._patients: List[Patient] = []
        self._states: Dict[str, SimulationState] = {}
        self._selected_id: Optional[str] = None

        # Control flags.
        self.running = False

        now = self.clock()
        for patient in patients:
            self._admit(patient, now)
        if self._patients:
            self._selected_id = self._patients[0].id

    # Read side.

    @property
    def patients(self) -> Tuple[Patient, ...]:
        return tuple(self._patients)

    @property
    def selected_patient_id(self) -> Optional[str]:
        return self._selected_id

    @property
    def selected_patient(self) -> Optional[Patient]:
        return self.get_patient(self._selected_id) if self._selected_id else None

    def get_patient(self, patient_id: str) -> Optional[Patient]:
        for patient in self._patients:
            if patient.id == patient_id:
                return patient
        return None

    def simulation_state(self, patient_id: str) -> Optional[SimulationState]:
        return self._states.get(patient_id)

    def unacknowledged_alerts(self, patient_id: str,
                              severity: Optional[AlertSeverity] = None) -> Tuple[Alert, ...]:
        sim = self._states.get(patient_id)
        if sim is None:
            return ()
        return sim.unacknowledged_alerts(severity)

    # Registry helpers.

    def _index_of(self, patient_id: str) -> Optional[int]:
        for i, patient in enumerate(self._patients):
            if patient.id == patient_id:
                return i
        return None

    def _replace_patient(self, patient_id: str, **changes) -> Optional[Patient]:
        idx = self._index_of(patient_id)
        if idx is None:
            logger.debug("Ignoring update for unknown patient %s", patient_id)
            return None
        updated = replace(self._patients[idx], **changes)
        self._patients[idx] = updated
        return updated

    def _state_for_update(self, patient_id: str) -> Optional[SimulationState]:
        sim = self._states.get(patient_id)
        if sim is None:
            logger.debug("No simulation state for patient %s", patient_id)
        return sim

    def _new_patient_id(self) -> str:
        while True:
            candidate = f"PID{uuid.uuid4().hex[:8].upper()}"
            if self._index_of(candidate) is None:
                return candidate

    def _initial_state(self, patient: Patient, now: float) -> SimulationState:
        rhythm = lookup(patient.active_rhythm)
        heart_rate = rhythm.simulated_heart_rate(self.rng)
        resp_rate = int(self.rng.integers(INITIAL_RR_RANGE[0], INITIAL_RR_RANGE[1] + 1))
        sim = SimulationState.initial(heart_rate, resp_rate)
        return replace(
            sim,
            last_bp_update=now,
            last_temp_update=now,
            last_rr_update=now,
        )

    def _admit(self, patient: Patient, now: float,
               state: Optional[SimulationState] = None) -> None:
        self._patients.append(patient)
        self._states[patient.id] = state if state is not None else self._initial_state(patient, now)

    # Patient management.

    def add_patient(self, details: Optional[Mapping] = None, source: str = MANUAL_ENTRY,
                    **kwargs) -> Patient:
        """
        Admit a new patient and select it.

        details/kwargs may carry demographics (see DETAIL_FIELDS). The rhythm
        starts as normal sinus with the pacer off and no threshold overrides.
        """
        fields = dict(details or {}, **kwargs)
        unknown = set(fields) - set(DETAIL_FIELDS)
        if unknown:
            logger.debug("Ignoring non-demographic fields on add: %s", sorted(unknown))
        data = {k: v for k, v in fields.items() if k in DETAIL_FIELDS}
        if isinstance(data.get("code_status"), str):
            data["code_status"] = CodeStatus(data["code_status"])
        data.setdefault("name", "Unnamed Patient")

        patient = Patient(
            id=self._new_patient_id(),
            active_rhythm=CardiacRhythm.NSR,
            pacer=PacerSettings(),
            source=source,
            **data,
        )
        self._admit(patient, self.clock())
        self._selected_id = patient.id
        logger.info("Added patient %s (%s) from %s", patient.id, patient.name, source)
        return patient

    def delete_patient(self, patient_id: str) -> None:
        idx = self._index_of(patient_id)
        if idx is None:
            logger.debug("Ignoring delete for unknown patient %s", patient_id)
            return
        del self._patients[idx]
        self._states.pop(patient_id, None)

        if self._selected_id == patient_id:
            if self._patients:
                self._selected_id = self._patients[min(idx, len(self._patients) - 1)].id
            else:
                self._selected_id = None
        logger.info("Deleted patient %s", patient_id)

    def select_patient(self, patient_id: str) -> None:
        if self._index_of(patient_id) is None:
            logger.debug("Ignoring selection of unknown patient %s", patient_id)
            return
        self._selected_id = patient_id

    def update_patient_details(self, patient_id: str, details: Optional[Mapping] = None,
                               **kwargs) -> None:
        changes = dict(details or {}, **kwargs)
        rhythm = changes.pop("active_rhythm", None)
        changes = {k: v for k, v in changes.items() if k in EDITABLE_FIELDS}
        if isinstance(changes.get("code_status"), str):
            changes["code_status"] = CodeStatus(changes["code_status"])
        if changes:
            self._replace_patient(patient_id, **changes)
        if rhythm is not None:
            self.set_rhythm(patient_id, rhythm)

    def update_pacer_settings(self, patient_id: str, mode: Union[PacerMode, str, None] = None,
                              rate: Optional[int] = None) -> None:
        patient = self.get_patient(patient_id)
        if patient is None:
            logger.debug("Ignoring pacer update for unknown patient %s", patient_id)
            return
        pacer = patient.pacer
        if mode is not None:
            if not isinstance(mode, PacerMode):
                mode = PacerMode[mode.upper()] if mode.upper() in PacerMode.__members__ else PacerMode(mode)
            pacer = replace(pacer, mode=mode)
        if rate is not None:
            pacer = replace(pacer, rate=int(rate))
        self._replace_patient(patient_id, pacer=pacer)

    def update_noise_signatures(self, patient_id: str, tags: Iterable[str]) -> None:
        self._replace_patient(patient_id, noise_signatures=tuple(tags))

    def set_rhythm(self, patient_id: str, rhythm: Union[CardiacRhythm, str]) -> None:
        """
        Switch the active rhythm.

        The target rate is redrawn immediately and the beat countdown is
        cleared, so the next waveform tick starts a beat of the new rhythm.
        Raises UnknownRhythm for an identifier outside the catalog.
        """
        definition = lookup(rhythm)
        if self._replace_patient(patient_id, active_rhythm=definition.rhythm) is None:
            return
        sim = self._states.get(patient_id)
        if sim is not None:
            self._states[patient_id] = replace(
                sim,
                target_heart_rate=definition.simulated_heart_rate(self.rng),
                next_beat_samples=0.0,
                ecg_pattern=EMPTY_PATTERN,
                ecg_cursor=0,
                av_cycle_beat=0,
                p_wave_pattern=EMPTY_PATTERN,
                p_wave_cursor=0,
            )
        logger.info("Patient %s rhythm set to %s", patient_id, definition.name)

    # Alarms.

    def acknowledge_alerts(self, patient_id: str, severity: Optional[AlertSeverity] = None) -> None:
        sim = self._state_for_update(patient_id)
        if sim is None:
            return
        ids = {a.id for a in sim.alerts if severity is None or a.severity == severity}
        self._states[patient_id] = replace(
            sim, acknowledged_alert_ids=sim.acknowledged_alert_ids | ids
        )

    def provide_alarm_feedback(self, patient_id: str, label: Union[FeedbackLabel, str],
                               severity: AlertSeverity) -> None:
        """
        Record a verdict for every unacknowledged alert of the given severity
        and acknowledge them. Feedback on the lead-off alert also reconnects
        the lead.
        """
        sim = self._state_for_update(patient_id)
        if sim is None:
            return
        label = FeedbackLabel(label)
        now = self.clock()

        entries = []
        reconnect = False
        for alert in sim.unacknowledged_alerts(severity):
            if is_lead_off_alert(alert):
                reconnect = True
            entries.append(AlarmFeedbackEntry(
                id=uuid.uuid4().hex,
                patient_id=patient_id,
                alert=alert,
                feedback=label,
                feedback_timestamp=now,
            ))

        sim = replace(
            sim,
            alarm_feedback_log=sim.alarm_feedback_log + tuple(entries),
            acknowledged_alert_ids=sim.acknowledged_alert_ids | {e.alert.id for e in entries},
        )
        if reconnect:
            sim = replace(
                sim,
                is_lead_off=False,
                alerts=tuple(a for a in sim.alerts if not is_lead_off_alert(a)),
            )
        self._states[patient_id] = sim

    def toggle_ecg_lead_off(self, patient_id: str) -> None:
        sim = self._state_for_update(patient_id)
        if sim is None:
            return
        if sim.is_lead_off:
            alerts = tuple(a for a in sim.alerts if not is_lead_off_alert(a))
        elif any(is_lead_off_alert(a) for a in sim.alerts):
            alerts = sim.alerts
        else:
            alerts = sim.alerts + (lead_off_alert(self.clock()),)
        self._states[patient_id] = replace(sim, is_lead_off=not sim.is_lead_off, alerts=alerts)

    # Loop control.

    def start(self):
        """Start the simulation loops."""
        self.running = True

    def stop(self):
        """Stop the simulation."""
        self.running = False

    def step_waveforms(self, now: Optional[float] = None) -> None:
        """High-frequency tick: one ECG/pleth/respiration sample per patient."""
        if not self.running:
            return
        now = self.clock() if now is None else now
        self.apply_analysis_results(now)
        for patient in list(self._patients):
            self._step_waveforms_for(patient, now)

    def step_vitals(self, now: Optional[float] = None) -> None:
        """Low-frequency tick: metrics, alerts, vitals log, AI scheduling."""
        if not self.running:
            return
        now = self.clock() if now is None else now
        self.apply_analysis_results(now)
        for patient in list(self._patients):
            self._step_vitals_for(patient, now)

    def advance(self, seconds: float, start: Optional[float] = None) -> float:
        """
        Drive both loops in virtual time for `seconds`.

        Waveform ticks run every ECG_TICK_SEC and a vitals tick follows every
        VITALS_EVERY_N_TICKS-th waveform tick. Returns the last timestamp.
        """
        t0 = self.clock() if start is None else start
        n_ticks = int(round(seconds / ECG_TICK_SEC))
        now = t0
        for k in range(1, n_ticks + 1):
            now = t0 + k * ECG_TICK_SEC
            self.step_waveforms(now)
            if k % VITALS_EVERY_N_TICKS == 0:
                self.step_vitals(now)
        return now

    def apply_analysis_results(self, now: Optional[float] = None) -> int:
        """Merge finished analyses into current state. Returns how many were applied."""
        now = self.clock() if now is None else now
        applied = 0
        for result in self.analysis.drain():
            sim = self._states.get(result.patient_id)
            if sim is None:
                logger.warning("Dropping analysis result for removed patient %s", result.patient_id)
                continue
            self._states[result.patient_id] = replace(sim, ai=self._ai_state_from(result, now))
            applied += 1
        return applied

    @staticmethod
    def _ai_state_from(result: AnalysisResult, now: float) -> AIState:
        if not result.ok:
            return AIState(
                risk_level=RiskLevel.ERROR,
                reasoning=ANALYSIS_ERROR_REASONING,
                last_analyzed=now,
                is_loading=False,
                error=result.error,
            )
        a = result.assessment
        logger.info("Analysis for %s: %s (%.0f), waited %.1fs to apply", result.patient_id,
                    a.risk_level.value, a.risk_score, max(0.0, now - result.completed_at))
        return AIState(
            risk_score=a.risk_score,
            risk_level=a.risk_level,
            reasoning=a.reasoning,
            confidence=a.confidence,
            last_analyzed=now,
            is_loading=False,
            error=None,
        )

    def dispose(self) -> None:
        """Stop both loops and release the analysis workers."""
        self.stop()
        self.stop_recording()
        self.analysis.shutdown(wait=False)

    # Recording.

    def start_recording(self, output_dir: str = ".", sample_interval_sec: float = 1.0):
        self.recorder = VitalsRecorder(output_dir=output_dir, sample_interval_sec=sample_interval_sec)
        self.recorder.start()

    def stop_recording(self):
        if self.recorder:
            self.recorder.stop()
            self.recorder = None

    # Persistence.

    def snapshot(self) -> dict:
        """Plain JSON-ready view of the registry and the persistent per-patient data."""
        return engine_snapshot(self._patients, self._states)

    @classmethod
    def from_snapshot(cls, data: Mapping, config: SimulationConfig = None, **kwargs) -> "SimulationEngine":
        """
        Build an engine from snapshot() output. Waveforms and timers start
        fresh; logged vitals, feedback and the last AI output are restored
        with the in-flight and error flags cleared.
        """
        patients, persisted = restore_snapshot(data)
        engine = cls((), config=config, **kwargs)
        now = engine.clock()
        for patient in patients:
            sim = engine._initial_state(patient, now)
            saved = persisted.get(patient.id)
            if saved is not None:
                sim = replace(
                    sim,
                    logged_vitals=saved.logged_vitals,
                    alarm_feedback_log=saved.alarm_feedback_log,
                    ai=replace(saved.ai, is_loading=False, error=None),
                )
            engine._admit(patient, now, sim)
        if engine._patients:
            engine._selected_id = engine._patients[0].id
        return engine
