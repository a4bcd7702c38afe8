from dataclasses import replace

import numpy as np
import pytest

from conftest import DeferredExecutor, ImmediateExecutor
from heartsim.analysis.risk import (
    DEFAULT_ERROR_MESSAGE,
    AnalysisService,
    MockRiskAnalyzer,
)
from heartsim.core.constants import METRIC_HEART_RATE, METRIC_SPO2
from heartsim.core.enums import AlertSeverity, CardiacRhythm, RiskLevel
from heartsim.core.state import Alert, CardiacMetrics, LoggedVitals, SimulationState
from heartsim.patient.patient import Patient


def make_state(n_logged=12, heart_rate=75, alerts=()):
    metrics = CardiacMetrics(heart_rate=heart_rate)
    logged = tuple(LoggedVitals(float(i * 60), metrics) for i in range(n_logged))
    return replace(SimulationState.initial(heart_rate, 14), logged_vitals=logged, alerts=alerts)


def make_alert(severity, metric, message):
    return Alert(id=f"{metric}-{severity.value}", message=message, severity=severity,
                 metric=metric, timestamp=0.0)


@pytest.fixture
def analyzer():
    return MockRiskAnalyzer(np.random.default_rng(11), delay_range=(0.0, 0.0))


class TestRuleLadder:
    def test_lethal_rhythm_is_critical(self, analyzer):
        patient = Patient(id="P1", name="A", active_rhythm=CardiacRhythm.VT)
        result = analyzer.analyze(patient, make_state())
        assert result.risk_level == RiskLevel.CRITICAL
        assert 90 <= result.risk_score <= 98
        assert "Ventricular Tachycardia" in result.reasoning
        assert 85 <= result.confidence <= 98

    def test_critical_alert_is_high(self, analyzer):
        alert = make_alert(AlertSeverity.CRITICAL, METRIC_HEART_RATE, "Heart Rate Low: 35")
        result = analyzer.analyze(Patient(id="P1", name="A"), make_state(alerts=(alert,)))
        assert result.risk_level == RiskLevel.HIGH
        assert 75 <= result.risk_score <= 90
        assert "Heart Rate Low: 35" in result.reasoning

    def test_chf_desaturation_mentions_decompensation(self, analyzer):
        alert = make_alert(AlertSeverity.CRITICAL, METRIC_SPO2, "SpO₂ Low: 85")
        patient = Patient(id="P1", name="A", diagnosis="Congestive Heart Failure")
        result = analyzer.analyze(patient, make_state(alerts=(alert,)))
        assert result.risk_level == RiskLevel.HIGH
        assert "CHF decompensation" in result.reasoning

    def test_acknowledged_alerts_are_ignored(self, analyzer):
        alert = make_alert(AlertSeverity.CRITICAL, METRIC_HEART_RATE, "Heart Rate Low: 35")
        state = replace(make_state(alerts=(alert,)), acknowledged_alert_ids=frozenset({alert.id}))
        result = analyzer.analyze(Patient(id="P1", name="A"), state)
        assert result.risk_level == RiskLevel.STABLE

    def test_abnormal_rhythm_is_moderate(self, analyzer):
        patient = Patient(id="P1", name="A", active_rhythm=CardiacRhythm.ATRIAL_FIBRILLATION,
                          diagnosis="Mitral Stenosis")
        result = analyzer.analyze(patient, make_state())
        assert result.risk_level == RiskLevel.MODERATE
        assert 50 <= result.risk_score <= 75
        assert "Mitral Stenosis" in result.reasoning

    def test_warning_alert_is_moderate(self, analyzer):
        alert = make_alert(AlertSeverity.WARNING, METRIC_HEART_RATE, "Heart Rate Low: 45")
        result = analyzer.analyze(Patient(id="P1", name="A"), make_state(alerts=(alert,)))
        assert result.risk_level == RiskLevel.MODERATE
        assert 30 <= result.risk_score <= 50

    @pytest.mark.parametrize("rhythm,heart_rate", [
        (CardiacRhythm.SINUS_TACHYCARDIA, 110),
        (CardiacRhythm.NSR, 105),
        (CardiacRhythm.SINUS_BRADYCARDIA, 55),
    ])
    def test_rate_excursions_are_low(self, analyzer, rhythm, heart_rate):
        patient = Patient(id="P1", name="A", active_rhythm=rhythm)
        result = analyzer.analyze(patient, make_state(heart_rate=heart_rate))
        assert result.risk_level == RiskLevel.LOW

    def test_normal_patient_is_stable(self, analyzer):
        result = analyzer.analyze(Patient(id="P1", name="A"), make_state())
        assert result.risk_level == RiskLevel.STABLE
        assert 5 <= result.risk_score <= 20

    def test_insufficient_history_overrides_everything(self, analyzer):
        patient = Patient(id="P1", name="A", active_rhythm=CardiacRhythm.VT)
        result = analyzer.analyze(patient, make_state(n_logged=9))
        assert result.risk_level == RiskLevel.INSUFFICIENT_DATA
        assert result.risk_score == 0

    def test_delay_uses_injected_sleep(self):
        slept = []
        analyzer = MockRiskAnalyzer(np.random.default_rng(0), delay_range=(1.5, 3.0), sleep=slept.append)
        analyzer.analyze(Patient(id="P1", name="A"), make_state())
        assert len(slept) == 1
        assert 1.5 <= slept[0] <= 3.0


class TestAnalysisService:
    def test_results_are_tagged_and_drained_once(self, analyzer, clock):
        service = AnalysisService(analyzer, executor=ImmediateExecutor(), clock=clock)
        service.submit(Patient(id="P1", name="A"), make_state())
        service.submit(Patient(id="P2", name="B"), make_state())
        assert service.pending == 0

        results = service.drain()
        assert [r.patient_id for r in results] == ["P1", "P2"]
        assert all(r.ok and r.completed_at == clock() for r in results)
        assert service.drain() == []

    def test_pending_counts_in_flight_jobs(self, analyzer, clock):
        executor = DeferredExecutor()
        service = AnalysisService(analyzer, executor=executor, clock=clock)
        service.submit(Patient(id="P1", name="A"), make_state())
        assert service.pending == 1
        assert service.drain() == []
        executor.run_all()
        assert service.pending == 0
        assert len(service.drain()) == 1

    def test_failures_become_error_results(self, clock):
        class Broken:
            def analyze(self, patient, state):
                raise ValueError()

        service = AnalysisService(Broken(), executor=ImmediateExecutor(), clock=clock)
        service.submit(Patient(id="P1", name="A"), make_state())
        (result,) = service.drain()
        assert not result.ok
        assert result.assessment is None
        assert result.error == DEFAULT_ERROR_MESSAGE

    def test_owned_pool_runs_jobs(self, analyzer):
        service = AnalysisService(analyzer, max_workers=1)
        future = service.submit(Patient(id="P1", name="A"), make_state())
        assessment = future.result(timeout=5)
        service.shutdown(wait=True)
        assert assessment.risk_level == RiskLevel.STABLE
        assert [r.patient_id for r in service.drain()] == ["P1"]

    def test_wait_returns_once_queued_jobs_finish(self):
        analyzer = MockRiskAnalyzer(np.random.default_rng(0), delay_range=(0.05, 0.05))
        service = AnalysisService(analyzer, max_workers=1)
        for pid in ("P1", "P2", "P3"):
            service.submit(Patient(id=pid, name=pid), make_state())
        try:
            assert service.wait(timeout=10)
            assert service.pending == 0
            assert sorted(r.patient_id for r in service.drain()) == ["P1", "P2", "P3"]
        finally:
            service.shutdown()

    def test_wait_times_out_while_jobs_are_held(self, analyzer, clock):
        executor = DeferredExecutor()
        service = AnalysisService(analyzer, executor=executor, clock=clock)
        service.submit(Patient(id="P1", name="A"), make_state())
        assert not service.wait(timeout=0.01)
        executor.run_all()
        assert service.wait(timeout=0.01)
