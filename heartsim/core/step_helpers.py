"""
Step Helper Methods Mixin for SimulationEngine.

This module contains the private _step_* methods that implement the per-patient
update logic for the two simulation loops. They are extracted here for
maintainability while preserving the SimulationEngine API.
"""

import logging
from dataclasses import replace
from typing import TYPE_CHECKING

from .constants import (
    BP_DIASTOLIC_DRIFT,
    BP_SYSTOLIC_DRIFT,
    BP_UPDATE_INTERVAL_SEC,
    HR_CONVERGENCE_STEP,
    HR_TREND_POINTS,
    METRIC_HEART_RATE,
    METRIC_SPO2,
    RR_DRIFT,
    RR_MAX,
    RR_MIN,
    RR_UPDATE_INTERVAL_SEC,
    TEMP_DRIFT_C,
    TEMP_UPDATE_INTERVAL_SEC,
    VITALS_LOG_CAP,
)
from .enums import AlertSeverity
from .rhythms import lookup
from .state import BloodPressure, LoggedVitals, SimulationState
from heartsim.monitors.alarms import HIGH, LOW
from heartsim.patient.patient import Patient

if TYPE_CHECKING:
    from .engine import SimulationEngine

logger = logging.getLogger(__name__)

HR_ALERT_QUADRANTS = (
    (AlertSeverity.CRITICAL, LOW),
    (AlertSeverity.WARNING, LOW),
    (AlertSeverity.CRITICAL, HIGH),
    (AlertSeverity.WARNING, HIGH),
)
SPO2_ALERT_QUADRANTS = (
    (AlertSeverity.CRITICAL, LOW),
    (AlertSeverity.WARNING, LOW),
)


class StepHelpersMixin:
    """
    Mixin providing step helper methods for SimulationEngine.

    These methods implement the per-patient update logic:
    - Waveforms (ECG beat scheduling, pleth pulse, respiration)
    - Heart-rate convergence and slow metric drift
    - Lethal-rhythm override
    - Threshold alerts
    - Vitals logging and AI re-analysis scheduling
    """

    def _step_waveforms_for(self: "SimulationEngine", patient: Patient, now: float) -> None:
        sim = self._states.get(patient.id)
        if sim is None:
            return

        if sim.is_lead_off:
            # No beat logic; the pleth finishes any pulse in progress and
            # respiration keeps animating from the last metrics.
            sim = sim.with_metrics(heart_rate=0)
            ecg_value = 0.0
            sim, pleth_value = self.spo2_monitor.step(sim, allow_new_pulse=False)
        else:
            rhythm = lookup(patient.active_rhythm)
            sim, ecg_value = self.ecg_monitor.step(sim, rhythm, patient.pacer, now)
            sim, pleth_value = self.spo2_monitor.step(sim)
        sim, resp_value = self.resp_monitor.step(sim)

        self._states[patient.id] = self._push_samples(sim, ecg_value, pleth_value, resp_value)

    @staticmethod
    def _push_samples(sim: SimulationState, ecg_value: float, pleth_value: float,
                      resp_value: float) -> SimulationState:
        t = sim.sample_time
        return replace(
            sim,
            ecg=sim.ecg.push(t, ecg_value),
            spo2_wave=sim.spo2_wave.push(t, pleth_value),
            resp_wave=sim.resp_wave.push(t, resp_value),
            sample_time=t + 1,
        )

    def _step_vitals_for(self: "SimulationEngine", patient: Patient, now: float) -> None:
        sim = self._states.get(patient.id)
        if sim is None:
            return
        rhythm = lookup(patient.active_rhythm)

        sim = self._converge_heart_rate(sim, now)
        sim = self._drift_metrics(sim, now)

        if rhythm.is_lethal:
            sim = sim.with_metrics(
                blood_pressure=BloodPressure(0, 0), spo2=0, respiratory_rate=0
            )

        sim = self._evaluate_alerts(sim, patient, now)
        sim = self._log_vitals(sim, now)
        self._states[patient.id] = sim

        self._maybe_request_analysis(patient, now)

        if self.recorder is not None:
            self.recorder.log(now, patient, self._states[patient.id])

    def _converge_heart_rate(self, sim: SimulationState, now: float) -> SimulationState:
        current = sim.metrics.heart_rate
        if sim.is_lead_off:
            hr = 0
        else:
            diff = sim.target_heart_rate - current
            hr = current + max(-HR_CONVERGENCE_STEP, min(HR_CONVERGENCE_STEP, diff))
        trend = (sim.hr_trend + ((now, hr),))[-HR_TREND_POINTS:]
        return replace(sim, metrics=replace(sim.metrics, heart_rate=hr), hr_trend=trend)

    def _drift_metrics(self: "SimulationEngine", sim: SimulationState, now: float) -> SimulationState:
        """Bounded random walk on BP, temperature and RR, each on its own cadence."""
        m = sim.metrics
        changes = {}
        if now - sim.last_bp_update > BP_UPDATE_INTERVAL_SEC:
            bp = m.blood_pressure
            m = replace(m, blood_pressure=BloodPressure(
                bp.systolic + int(self.rng.integers(-BP_SYSTOLIC_DRIFT, BP_SYSTOLIC_DRIFT + 1)),
                bp.diastolic + int(self.rng.integers(-BP_DIASTOLIC_DRIFT, BP_DIASTOLIC_DRIFT + 1)),
            ))
            changes["last_bp_update"] = now
        if now - sim.last_temp_update > TEMP_UPDATE_INTERVAL_SEC:
            delta = round(float(self.rng.uniform(-TEMP_DRIFT_C, TEMP_DRIFT_C)), 1)
            m = replace(m, temperature=round(m.temperature + delta, 1))
            changes["last_temp_update"] = now
        if now - sim.last_rr_update > RR_UPDATE_INTERVAL_SEC:
            rr = m.respiratory_rate + int(self.rng.integers(-RR_DRIFT, RR_DRIFT + 1))
            m = replace(m, respiratory_rate=max(RR_MIN, min(RR_MAX, rr)))
            changes["last_rr_update"] = now
        if not changes:
            return sim
        return replace(sim, metrics=m, **changes)

    def _evaluate_alerts(self: "SimulationEngine", sim: SimulationState, patient: Patient,
                         now: float) -> SimulationState:
        alerts = sim.alerts
        if not sim.is_lead_off:
            # A disconnected lead reads 0 bpm; the technical alarm covers it.
            alerts = self.alarms.evaluate(
                alerts, METRIC_HEART_RATE, sim.metrics.heart_rate, patient.thresholds, now,
                HR_ALERT_QUADRANTS,
            )
        alerts = self.alarms.evaluate(
            alerts, METRIC_SPO2, sim.metrics.spo2, patient.thresholds, now, SPO2_ALERT_QUADRANTS,
        )
        if alerts is sim.alerts:
            return sim
        for alert in alerts[len(sim.alerts):]:
            logger.info("Alert raised for %s: %s (%s)", patient.id, alert.message, alert.severity.value)
        return replace(sim, alerts=alerts)

    def _log_vitals(self: "SimulationEngine", sim: SimulationState, now: float) -> SimulationState:
        log = sim.logged_vitals
        if log and now - log[-1].timestamp <= self.config.auto_log_interval_sec:
            return sim
        log = (log + (LoggedVitals(now, sim.metrics),))[-VITALS_LOG_CAP:]
        return replace(sim, logged_vitals=log)

    def _maybe_request_analysis(self: "SimulationEngine", patient: Patient, now: float) -> None:
        sim = self._states[patient.id]
        ai = sim.ai
        if ai.is_loading or now - ai.last_analyzed <= self.config.ai_analysis_interval_sec:
            return
        # Mark in flight before submitting so the next tick cannot double-submit.
        self._states[patient.id] = replace(sim, ai=replace(ai, is_loading=True))
        self.analysis.submit(patient, self._states[patient.id])
