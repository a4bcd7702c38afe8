import argparse
import dataclasses
import json
import logging
import sys
import time

import pandas as pd

from heartsim.core.engine import SimulationEngine
from heartsim.core.history import hr_trend_series, summarize, vitals_frame
from heartsim.core.persistence import PersistenceError, SessionStore
from heartsim.core.state import SimulationConfig

logger = logging.getLogger("heartsim")

# Headless runs advance in chunks of this many simulated seconds between progress lines.
PROGRESS_CHUNK_SEC = 10.0
# Real seconds to wait for in-flight risk analyses before the final summary.
ANALYSIS_WAIT_SEC = 30.0


def load_config(path):
    """SimulationConfig with any matching keys from a JSON file applied."""
    if not path:
        return SimulationConfig()
    with open(path, 'r') as f:
        data = json.load(f)
    known = {f.name for f in dataclasses.fields(SimulationConfig)}
    unknown = set(data) - known
    if unknown:
        logger.warning("Ignoring unknown config keys: %s", ", ".join(sorted(unknown)))
    kwargs = {k: v for k, v in data.items() if k in known}
    if "analysis_delay_range" in kwargs:
        kwargs["analysis_delay_range"] = tuple(kwargs["analysis_delay_range"])
    return SimulationConfig(**kwargs)


def history_table(engine):
    """All patients' logged vitals stacked into one frame with a patient_id column."""
    frames = []
    for patient in engine.patients:
        df = vitals_frame(engine.simulation_state(patient.id).logged_vitals)
        df.insert(0, "patient_id", patient.id)
        frames.append(df)
    if not frames:
        return pd.DataFrame()
    return pd.concat(frames)


def run_headless(args, config):
    """Run simulation in headless mode."""
    print(f"Starting Headless Simulation (Duration: {args.duration}s, organization: {args.organization})...")

    store = SessionStore(args.data_dir)
    engine = SimulationEngine.from_snapshot(store.load(args.organization), config=config)
    if args.record:
        engine.start_recording(output_dir=args.record_dir, sample_interval_sec=args.record_interval)
    engine.start()

    start_real = time.time()
    now = engine.clock()
    remaining = args.duration
    elapsed = 0.0
    try:
        while remaining > 0:
            chunk = min(PROGRESS_CHUNK_SEC, remaining)
            now = engine.advance(chunk, start=now)
            remaining -= chunk
            elapsed += chunk
            for patient in engine.patients:
                sim = engine.simulation_state(patient.id)
                m = sim.metrics
                print(
                    f"Time: {elapsed:7.1f}s | {patient.id} | HR: {m.heart_rate:5.0f} | "
                    f"BP: {m.blood_pressure.systolic:.0f}/{m.blood_pressure.diastolic:.0f} | "
                    f"SpO2: {m.spo2:.0f} | RR: {m.respiratory_rate:.0f} | "
                    f"Alerts: {len(sim.unacknowledged_alerts())} | AI: {sim.ai.risk_level.value}"
                )
        pending = engine.analysis.pending
        if pending:
            print(f"Waiting for {pending} risk analyses to finish...")
            if not engine.analysis.wait(timeout=ANALYSIS_WAIT_SEC):
                logger.warning("Risk analyses still running after %.0fs; saving without them",
                               ANALYSIS_WAIT_SEC)
        engine.apply_analysis_results(now)
    finally:
        engine.dispose()

    end_real = time.time()
    print(f"Simulation completed in {end_real - start_real:.2f}s real time.")

    for patient in engine.patients:
        sim = engine.simulation_state(patient.id)
        summary = summarize(vitals_frame(sim.logged_vitals))
        trend = hr_trend_series(sim.hr_trend)
        print(f"\n{patient.name} ({patient.id})  AI: {sim.ai.risk_level.value}")
        print(summary.round(1).to_string())
        if not trend.empty:
            print(f"HR trend ({len(trend)}s): min {trend.min():.0f} | mean {trend.mean():.0f} | max {trend.max():.0f}")

    if args.export_history:
        history_table(engine).to_csv(args.export_history)
        print(f"History written to {args.export_history}")

    try:
        path = store.save(args.organization, engine.snapshot())
        print(f"Session saved to {path}")
    except PersistenceError as e:
        print(f"Error saving session: {e}")
        return 1
    return 0


def run_ui(args, config):
    """Run simulation with UI."""
    from PySide6.QtWidgets import QApplication
    from heartsim.ui.main_window import MainWindow

    app = QApplication.instance()
    if not app:
        app = QApplication(sys.argv)

    store = SessionStore(args.data_dir)
    engine = SimulationEngine.from_snapshot(store.load(args.organization), config=config)
    window = MainWindow(engine=engine, store=store, organization=args.organization)
    window.show()
    return app.exec()


def main(argv=None):
    parser = argparse.ArgumentParser(description="HeartSim - Multi-patient Cardiac Telemetry Simulator")
    parser.add_argument("--mode", choices=["ui", "headless"], default="ui", help="Run mode (default: ui)")
    parser.add_argument("--duration", type=float, default=60.0, help="Duration for headless mode in seconds")
    parser.add_argument("--config", type=str, help="Path to JSON configuration file")
    parser.add_argument("--organization", type=str, default="default", help="Organization whose session to load")
    parser.add_argument("--data-dir", type=str, default=".", help="Directory holding saved sessions")
    parser.add_argument("--record", action="store_true", help="Enable CSV recording of vitals")
    parser.add_argument("--record-dir", type=str, default="recordings", help="Output directory for recordings")
    parser.add_argument("--record-interval", type=float, default=1.0, help="Sample interval in seconds for CSV")
    parser.add_argument("--export-history", type=str, help="Write logged vitals to this CSV (headless only)")
    parser.add_argument("--log-level", default="WARNING",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Logging level")

    args = parser.parse_args(argv)
    logging.basicConfig(level=args.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    try:
        config = load_config(args.config)
    except (OSError, ValueError, TypeError) as e:
        print(f"Error loading config: {e}")
        return 1

    if args.mode == "headless":
        return run_headless(args, config)
    if args.record:
        logger.warning("--record is ignored in UI mode; use the Record button")
    return run_ui(args, config)


if __name__ == "__main__":
    sys.exit(main())
