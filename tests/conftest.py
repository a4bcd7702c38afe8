from concurrent.futures import Executor, Future
from pathlib import Path
import sys

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import numpy as np
import pytest

from heartsim.analysis.risk import AnalysisService, MockRiskAnalyzer
from heartsim.core.engine import SimulationEngine
from heartsim.core.state import SimulationConfig
from heartsim.patient.roster import DEFAULT_PATIENTS


START_TIME = 1_700_000_000.0


class FakeClock:
    """Manually advanced wall clock."""
    def __init__(self, start=START_TIME):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds
        return self.now


class ImmediateExecutor(Executor):
    """Runs each job inline; the returned future is already done."""
    def submit(self, fn, *args, **kwargs):
        future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)
        return future


class DeferredExecutor(Executor):
    """Holds jobs until run_all(), so tests can act while analyses are in flight."""
    def __init__(self):
        self.jobs = []

    def submit(self, fn, *args, **kwargs):
        future = Future()
        self.jobs.append((future, fn, args, kwargs))
        return future

    def run_all(self):
        jobs, self.jobs = self.jobs, []
        for future, fn, args, kwargs in jobs:
            try:
                future.set_result(fn(*args, **kwargs))
            except Exception as e:
                future.set_exception(e)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config():
    return SimulationConfig(rng_seed=1234, analysis_delay_range=(0.0, 0.0))


def make_analysis(clock, executor=None, analyzer=None):
    analyzer = analyzer or MockRiskAnalyzer(np.random.default_rng(7), delay_range=(0.0, 0.0))
    return AnalysisService(analyzer, executor=executor or ImmediateExecutor(), clock=clock)


@pytest.fixture
def analysis(clock):
    """Analysis service that completes every job during submit()."""
    return make_analysis(clock)


@pytest.fixture
def engine(config, clock, analysis):
    """Running engine over the built-in patients, seeded and on a fake clock."""
    engine = SimulationEngine(DEFAULT_PATIENTS, config=config, clock=clock, analysis=analysis)
    engine.start()
    yield engine
    engine.dispose()


@pytest.fixture
def empty_engine(config, clock, analysis):
    engine = SimulationEngine((), config=config, clock=clock, analysis=analysis)
    engine.start()
    yield engine
    engine.dispose()
