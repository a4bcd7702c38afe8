"""
Mock risk analysis.

MockRiskAnalyzer scores a patient with a fixed rule ladder after a simulated
network delay. AnalysisService runs it on a thread pool and posts tagged
results to a queue that the engine drains on its own thread.
"""

import logging
import queue
import threading
import time
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

import numpy as np

from heartsim.core.constants import AI_DELAY_RANGE_SEC, AI_MIN_LOGGED_VITALS
from heartsim.core.enums import AlertSeverity, CardiacRhythm, RiskLevel
from heartsim.core.rhythms import lookup
from heartsim.core.state import SimulationState
from heartsim.patient.patient import Patient

logger = logging.getLogger(__name__)

DEFAULT_ERROR_MESSAGE = "Mock analysis failed."

# Rhythms that do not by themselves raise the risk to Moderate.
BENIGN_RHYTHMS = frozenset({
    CardiacRhythm.NSR,
    CardiacRhythm.SINUS_TACHYCARDIA,
    CardiacRhythm.SINUS_BRADYCARDIA,
    CardiacRhythm.FIRST_DEGREE_AV_BLOCK,
})

CHF_DIAGNOSIS = "Congestive Heart Failure"


@dataclass(frozen=True)
class RiskAssessment:
    risk_score: float      # 0-100
    risk_level: RiskLevel
    reasoning: str
    confidence: float      # 0-100


@dataclass(frozen=True)
class AnalysisResult:
    """Completion message for one analysis job. Exactly one of assessment/error is set."""
    patient_id: str
    assessment: Optional[RiskAssessment] = None
    error: Optional[str] = None
    completed_at: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None


class MockRiskAnalyzer:
    """Rule-based stand-in for a remote risk model."""

    def __init__(self, rng: np.random.Generator = None,
                 delay_range: Tuple[float, float] = AI_DELAY_RANGE_SEC,
                 sleep: Callable[[float], None] = time.sleep):
        self.rng = rng if rng is not None else np.random.default_rng()
        self.delay_range = delay_range
        self._sleep = sleep
        # Generators are not thread-safe and analyses may overlap.
        self._rng_lock = threading.Lock()

    def _uniform(self, lo: float, hi: float, decimals: int = 0) -> float:
        with self._rng_lock:
            value = float(self.rng.uniform(lo, hi))
        return round(value, decimals) if decimals else float(round(value))

    def analyze(self, patient: Patient, state: SimulationState) -> RiskAssessment:
        lo, hi = self.delay_range
        if hi > 0:
            with self._rng_lock:
                delay = float(self.rng.uniform(lo, hi))
            self._sleep(delay)

        rhythm = lookup(patient.active_rhythm)
        metrics = state.metrics
        unacknowledged = state.unacknowledged_alerts()
        critical = [a for a in unacknowledged if a.severity == AlertSeverity.CRITICAL]
        warning = [a for a in unacknowledged if a.severity == AlertSeverity.WARNING]

        if rhythm.is_lethal:
            score = self._uniform(90, 98)
            level = RiskLevel.CRITICAL
            reasoning = f"Lethal rhythm ({rhythm.name}) detected, immediate intervention required."
        elif critical:
            score = self._uniform(75, 90)
            level = RiskLevel.HIGH
            alert = critical[0]
            if patient.diagnosis == CHF_DIAGNOSIS and "SpO" in alert.metric:
                reasoning = (f"High risk due to critical alert for {alert.message}, "
                             "indicating potential CHF decompensation.")
            else:
                reasoning = f"High risk due to critical alert for {alert.metric}: {alert.message}."
        elif patient.active_rhythm not in BENIGN_RHYTHMS:
            score = self._uniform(50, 75)
            level = RiskLevel.MODERATE
            context = f" in patient with {patient.diagnosis}" if patient.diagnosis else ""
            reasoning = f"Moderate risk due to sustained abnormal rhythm ({rhythm.name}){context}."
        elif warning:
            score = self._uniform(30, 50)
            level = RiskLevel.MODERATE
            reasoning = f"Moderate risk due to warning for {warning[0].metric}."
        elif patient.active_rhythm == CardiacRhythm.SINUS_TACHYCARDIA or metrics.heart_rate > 100:
            score = self._uniform(20, 40)
            level = RiskLevel.LOW
            reasoning = "Low risk, monitoring for sustained tachycardia is advised."
        elif patient.active_rhythm == CardiacRhythm.SINUS_BRADYCARDIA or metrics.heart_rate < 60:
            score = self._uniform(20, 40)
            level = RiskLevel.LOW
            reasoning = "Low risk, monitoring for symptomatic bradycardia."
        else:
            score = self._uniform(5, 20)
            level = RiskLevel.STABLE
            reasoning = "Patient vitals are stable and within normal parameters."

        if len(state.logged_vitals) < AI_MIN_LOGGED_VITALS / 2:
            score = 0.0
            level = RiskLevel.INSUFFICIENT_DATA
            reasoning = "Insufficient historical data for a comprehensive analysis."

        return RiskAssessment(
            risk_score=score,
            risk_level=level,
            reasoning=reasoning,
            confidence=self._uniform(85, 98),
        )


class AnalysisService:
    """
    Fire-and-forget analysis jobs.

    submit() never blocks and never raises for a failing analysis; the
    outcome arrives later through drain().
    """

    def __init__(self, analyzer: MockRiskAnalyzer = None, executor: Executor = None,
                 max_workers: int = 2, clock: Callable[[], float] = time.time):
        self.analyzer = analyzer or MockRiskAnalyzer()
        self._owns_executor = executor is None
        self.executor = executor or ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="heartsim-ai"
        )
        self.clock = clock
        self.results: "queue.Queue[AnalysisResult]" = queue.Queue()
        self._pending = 0
        self._pending_lock = threading.Lock()
        self._idle = threading.Condition(self._pending_lock)

    @property
    def pending(self) -> int:
        with self._pending_lock:
            return self._pending

    def submit(self, patient: Patient, state: SimulationState) -> Future:
        with self._pending_lock:
            self._pending += 1
        future = self.executor.submit(self.analyzer.analyze, patient, state)
        future.add_done_callback(lambda f, pid=patient.id: self._on_done(pid, f))
        return future

    def _finished(self) -> None:
        with self._idle:
            self._pending -= 1
            self._idle.notify_all()

    def _on_done(self, patient_id: str, future: Future) -> None:
        if future.cancelled():
            self._finished()
            return
        exc = future.exception()
        if exc is None:
            result = AnalysisResult(patient_id, assessment=future.result(), completed_at=self.clock())
        else:
            logger.error("Risk analysis failed for %s: %s", patient_id, exc)
            result = AnalysisResult(patient_id, error=str(exc) or DEFAULT_ERROR_MESSAGE,
                                    completed_at=self.clock())
        self.results.put(result)
        self._finished()

    def wait(self, timeout: float = None) -> bool:
        """Block until no analysis is in flight. False if the timeout expired first."""
        with self._idle:
            return self._idle.wait_for(lambda: self._pending == 0, timeout)

    def drain(self) -> List[AnalysisResult]:
        out = []
        while True:
            try:
                out.append(self.results.get_nowait())
            except queue.Empty:
                return out

    def shutdown(self, wait: bool = False) -> None:
        if self._owns_executor:
            self.executor.shutdown(wait=wait, cancel_futures=True)
