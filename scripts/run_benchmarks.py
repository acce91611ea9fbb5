"""
Throughput benchmarks for the circulation model and the engine step loop.

Each benchmark runs a callable `calls` times after `warmup` untimed calls.
Engine benchmarks also report the real-time factor: simulated ms produced
per wall-clock ms. Anything below 1.0 cannot keep up with the display.
"""
import argparse
import fnmatch
import sys
from dataclasses import dataclass
from pathlib import Path
from time import perf_counter
from typing import Callable, Dict, List, Optional

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import numpy as np

from circsim.core.constants import INITIAL_STATE_VECTOR, INITIAL_TIME, PHYSICS_DT_MS
from circsim.core.engine import SimulationEngine
from circsim.physiology.circulation import circulation_rhs
from circsim.physiology.elastance import activation
from circsim.physiology.integrator import rk4_step
from circsim.physiology.params import SimulationParameters
from circsim.physiology.valves import valve_flow


@dataclass
class BenchmarkResult:
    name: str
    seconds: float
    calls: int
    sim_ms_per_call: Optional[float] = None  # set for benchmarks that advance simulated time

    @property
    def us_per_call(self) -> float:
        return self.seconds / self.calls * 1e6 if self.calls else 0.0

    @property
    def realtime_factor(self) -> Optional[float]:
        if self.sim_ms_per_call is None or self.seconds <= 0:
            return None
        return (self.calls * self.sim_ms_per_call) / (self.seconds * 1000.0)


def _timed(fn: Callable[[int], None], calls: int, warmup: int) -> float:
    for i in range(warmup):
        fn(i)
    start = perf_counter()
    for i in range(calls):
        fn(i)
    return perf_counter() - start


# -----------------------------------------------------------------------------
# Model
# -----------------------------------------------------------------------------


def bench_activation(calls: int, warmup: int) -> BenchmarkResult:
    def call(i: int) -> None:
        activation(float(i), 300.0, 25.0, 60.0)

    return BenchmarkResult("model.activation", _timed(call, calls, warmup), calls)


def bench_valve(calls: int, warmup: int) -> BenchmarkResult:
    gradients = (-8.0, -0.5, 0.5, 12.0)

    def call(i: int) -> None:
        valve_flow(gradients[i & 3], 2.5, 0.01, 50.0)

    return BenchmarkResult("model.valve_leaky", _timed(call, calls, warmup), calls)


def bench_rhs(calls: int, warmup: int) -> BenchmarkResult:
    params = SimulationParameters()
    y = np.array(INITIAL_STATE_VECTOR)

    def call(i: int) -> None:
        circulation_rhs(INITIAL_TIME + PHYSICS_DT_MS * i, y, params)

    return BenchmarkResult("model.rhs", _timed(call, calls, warmup), calls)


def bench_rk4(calls: int, warmup: int) -> BenchmarkResult:
    params = SimulationParameters()
    t, y = INITIAL_TIME, np.array(INITIAL_STATE_VECTOR)

    def call(_: int) -> None:
        nonlocal t, y
        t, y, _aux = rk4_step(t, y, PHYSICS_DT_MS, params)

    return BenchmarkResult("model.rk4", _timed(call, calls, warmup), calls, PHYSICS_DT_MS)


# -----------------------------------------------------------------------------
# Engine
# -----------------------------------------------------------------------------


def _started_engine(instances: int) -> SimulationEngine:
    engine = SimulationEngine()
    for _ in range(instances):
        engine.add_instance()
    engine.start()
    return engine


def _bench_engine_steps(name: str, instances: int, calls: int, warmup: int) -> BenchmarkResult:
    engine = _started_engine(instances)

    def call(_: int) -> None:
        engine.step()

    return BenchmarkResult(name, _timed(call, calls, warmup), calls, PHYSICS_DT_MS)


def bench_engine_single(calls: int, warmup: int) -> BenchmarkResult:
    return _bench_engine_steps("engine.single", 1, calls, warmup)


def bench_engine_four(calls: int, warmup: int) -> BenchmarkResult:
    return _bench_engine_steps("engine.four_instances", 4, calls, warmup)


def bench_engine_frames(calls: int, warmup: int) -> BenchmarkResult:
    """One call is one jittery ~60 Hz frame fed through the scheduler."""
    engine = _started_engine(1)
    frame_ms = (15.0, 17.5, 16.0, 18.2)

    def call(i: int) -> None:
        engine.tick(frame_ms[i & 3])

    result = BenchmarkResult("engine.frames_60hz", _timed(call, calls, warmup), calls)
    result.sim_ms_per_call = sum(frame_ms) / len(frame_ms)
    return result


BENCHMARKS: Dict[str, Callable[[int, int], BenchmarkResult]] = {
    "model.activation": bench_activation,
    "model.valve_leaky": bench_valve,
    "model.rhs": bench_rhs,
    "model.rk4": bench_rk4,
    "engine.single": bench_engine_single,
    "engine.four_instances": bench_engine_four,
    "engine.frames_60hz": bench_engine_frames,
}


# -----------------------------------------------------------------------------
# Main
# -----------------------------------------------------------------------------


def select(patterns: str) -> List[str]:
    """Benchmark names matching comma-separated glob patterns ("model.*,engine.single")."""
    chosen: List[str] = []
    for pattern in (p.strip() for p in patterns.split(",") if p.strip()):
        if "." not in pattern and "*" not in pattern:
            pattern = f"{pattern}.*"
        matches = fnmatch.filter(BENCHMARKS, pattern)
        if not matches:
            raise ValueError(f"No benchmark matches '{pattern}'")
        chosen.extend(m for m in matches if m not in chosen)
    return chosen


def render(results: List[BenchmarkResult]) -> str:
    width = max(len(r.name) for r in results)
    lines = [f"{'benchmark':<{width}}  {'total ms':>10}  {'us/call':>9}  {'x realtime':>10}"]
    lines.append("=" * len(lines[0]))
    for r in results:
        factor = r.realtime_factor
        factor_text = f"{factor:10.1f}" if factor is not None else f"{'-':>10}"
        lines.append(f"{r.name:<{width}}  {r.seconds * 1000.0:10.2f}  {r.us_per_call:9.2f}  {factor_text}")
    return "\n".join(lines)


def main() -> int:
    parser = argparse.ArgumentParser(description="circsim throughput benchmarks")
    parser.add_argument("--bench", default="*", help="Glob pattern(s), comma separated (default: all)")
    parser.add_argument("--calls", type=int, default=10_000)
    parser.add_argument("--warmup", type=int, default=500)
    parser.add_argument("--profile", action="store_true", help="Print the top cProfile entries per benchmark")
    args = parser.parse_args()

    try:
        names = select(args.bench)
    except ValueError as exc:
        print(exc, file=sys.stderr)
        return 2

    results = []
    for name in names:
        if args.profile:
            import cProfile
            import pstats

            profiler = cProfile.Profile()
            results.append(profiler.runcall(BENCHMARKS[name], args.calls, args.warmup))
            print(f"\n-- {name}")
            pstats.Stats(profiler).strip_dirs().sort_stats("tottime").print_stats(15)
        else:
            results.append(BENCHMARKS[name](args.calls, args.warmup))

    print(render(results))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
