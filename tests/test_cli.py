import json

import pandas as pd
import pytest

from heartsim.cli import load_config, main
from heartsim.core.enums import RiskLevel
from heartsim.core.persistence import SessionStore
from heartsim.patient.roster import DEFAULT_PATIENTS


@pytest.fixture
def fast_config(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"rng_seed": 5, "analysis_delay_range": [0, 0], "bogus": 1}))
    return path


def test_load_config_merges_known_keys(fast_config):
    config = load_config(str(fast_config))
    assert config.rng_seed == 5
    assert config.analysis_delay_range == (0, 0)
    assert not hasattr(config, "bogus")


def test_headless_run_saves_session_and_history(tmp_path, fast_config, capsys):
    history = tmp_path / "history.csv"
    code = main([
        "--mode", "headless",
        "--duration", "3",
        "--config", str(fast_config),
        "--organization", "Test Ward",
        "--data-dir", str(tmp_path / "data"),
        "--export-history", str(history),
    ])
    assert code == 0

    out = capsys.readouterr().out
    assert "Simulation completed" in out
    assert DEFAULT_PATIENTS[0].name in out

    saved = SessionStore(str(tmp_path / "data")).load("Test Ward")
    assert [p["id"] for p in saved["patients"]] == [p.id for p in DEFAULT_PATIENTS]
    assert set(saved["persistent_patient_data"]) == {p.id for p in DEFAULT_PATIENTS}

    df = pd.read_csv(history)
    assert set(df["patient_id"]) == {p.id for p in DEFAULT_PATIENTS}


def test_bad_config_path_fails(tmp_path):
    assert main(["--mode", "headless", "--config", str(tmp_path / "missing.json")]) == 1


def test_headless_run_applies_delayed_analyses(tmp_path, capsys):
    # Default config: each analysis sleeps 1.5-3.0 real seconds.
    code = main([
        "--mode", "headless",
        "--duration", "2",
        "--organization", "Slow Ward",
        "--data-dir", str(tmp_path),
    ])
    assert code == 0

    out = capsys.readouterr().out
    assert "Waiting for 3 risk analyses" in out
    assert "HR trend (2s)" in out

    saved = SessionStore(str(tmp_path)).load("Slow Ward")
    for data in saved["persistent_patient_data"].values():
        assert data["ai_state"]["risk_level"] == RiskLevel.INSUFFICIENT_DATA.value
        assert data["ai_state"]["is_loading"] is False
