import argparse
import json
import os
import sys
import time

# Adjust path to find modules if running locally without install
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from circsim.core.engine import SimulationEngine
from circsim.core.metrics import HemodynamicMetrics
from circsim.core.scheduler import FrameClock
from circsim.core.state import SimulationConfig
from circsim.logging_config import DEFAULT_LOG_LEVEL, LOG_LEVELS, setup_logging
from circsim.physiology.params import (
    ParameterValidationError, SimulationParameters, apply_changes,
)


def format_metrics(m: HemodynamicMetrics) -> str:
    return (f"ABP {m.sbp:.0f}/{m.dbp:.0f} | PAP {m.pa_sys:.0f}/{m.pa_dia:.0f} | "
            f"CVP {m.cvp:.1f} | PCWP {m.pcwp:.1f} | SV {m.sv:.1f} mL | "
            f"CO {m.co:.2f} L/min | Ea {m.ea_lv:.2f}")


def build_engine(config_data: dict, args) -> SimulationEngine:
    """Create an engine and its instances from CLI arguments and an optional JSON config."""
    config = SimulationConfig(playback_speed=config_data.get('playback_speed', args.speed))
    engine = SimulationEngine(config)

    instance_entries = config_data.get('instances') or [{} for _ in range(args.instances)]
    for entry in instance_entries:
        params = apply_changes(SimulationParameters(), entry.get('params', {}))
        engine.add_instance(
            name=entry.get('name'),
            params=params,
            target_volume=entry.get('target_volume'),
        )
    return engine


def run_headless(args):
    """Run simulation in headless mode."""
    print(f"Starting Headless Simulation (Duration: {args.duration}s, Speed: {args.speed}x)...")

    config_data = {}
    if args.config:
        try:
            with open(args.config, 'r') as f:
                config_data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            print(f"Error loading config: {e}")
            sys.exit(1)

    try:
        engine = build_engine(config_data, args)
    except (ParameterValidationError, ValueError) as e:
        print(f"Invalid configuration: {e}")
        sys.exit(1)

    if engine.config.playback_speed <= 0:
        print("Playback speed must be > 0 for a headless run.")
        sys.exit(1)

    if args.record:
        engine.start_recording(output_dir=args.record_dir, sample_interval_ms=args.record_interval)
    engine.start()

    ids = engine.instance_ids
    t_start = engine.current_time
    t_end = t_start + args.duration * 1000.0
    frame_ms = 1000.0 / args.fps
    clock = FrameClock() if args.realtime else None
    next_report = t_start + 1000.0

    start_real = time.time()
    t_now = t_start
    while t_now < t_end:
        if clock is not None:
            engine.tick(clock.delta_ms())
            time.sleep(frame_ms / 1000.0)
        else:
            engine.tick(frame_ms)
        t_now = engine.current_time

        if t_now >= next_report:
            next_report += 1000.0
            for instance_id in ids:
                metrics = engine.get_metrics(instance_id)
                name = engine.get_instance(instance_id).name
                if metrics:
                    print(f"Time: {(t_now - t_start) / 1000.0:6.1f}s | {name} | {format_metrics(metrics)}")

    engine.stop()
    engine.stop_recording()
    end_real = time.time()

    print(f"Simulation completed in {end_real - start_real:.2f}s real time.")
    print(f"Steps: {engine.total_steps} | Overload frames: {engine.scheduler.overload_count}")
    for instance_id in ids:
        snap = engine.get_snapshot(instance_id)
        name = engine.get_instance(instance_id).name
        status = " (diverged, frozen)" if snap.diverged else ""
        print(f"{name}: {snap.beats} beats, {snap.systoles} systoles, t={snap.t:.1f} ms{status}")


def main():
    parser = argparse.ArgumentParser(description="circsim - Real-time circulation simulator")
    parser.add_argument("--duration", type=float, default=30.0, help="Simulated duration in seconds (default: 30)")
    parser.add_argument("--speed", type=float, default=1.0, help="Playback speed multiplier (default: 1.0)")
    parser.add_argument("--fps", type=float, default=60.0, help="Frame rate driving the scheduler (default: 60)")
    parser.add_argument("--realtime", action="store_true", help="Drive frames from the wall clock")
    parser.add_argument("--instances", type=int, default=1, help="Number of instances without a config file")
    parser.add_argument("--config", type=str, help="Path to JSON config file")
    parser.add_argument("--record", action="store_true", help="Record outputs to CSV")
    parser.add_argument("--record-dir", type=str, default="recordings", help="Output directory for recordings")
    parser.add_argument("--record-interval", type=float, default=10.0,
                        help="Recording sample interval in simulated ms (0 = every step)")
    parser.add_argument("--log-level", choices=LOG_LEVELS, default=DEFAULT_LOG_LEVEL)
    parser.add_argument("--log-file", type=str, help="Also write log records to this file")
    parser.add_argument("--trace-beats", action="store_true",
                        help="Log every phase commit and overload frame (with --log-level DEBUG)")

    args = parser.parse_args()
    if args.fps <= 0:
        parser.error("--fps must be > 0")
    if args.instances < 1:
        parser.error("--instances must be >= 1")

    setup_logging(args.log_level, log_file=args.log_file, trace_beats=args.trace_beats)
    run_headless(args)


if __name__ == "__main__":
    main()
