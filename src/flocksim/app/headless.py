from __future__ import annotations

import argparse
import contextlib
import csv
import json
import logging
import math
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, TextIO

from ..sim.core.config import SimulationConfig
from ..sim.core.world import World
from ..sim.types.metrics import TickMetrics

logger = logging.getLogger(__name__)

LOG_FORMATS = ("basic", "detailed")

_BASIC_HEADER = ["tick", "population", "neighbor_checks", "avg_speed", "polarization", "tick_ms"]

_DETAILED_HEADER = [
    "tick",
    "population",
    "neighbor_checks",
    "neighbor_checks_per_agent",
    "avg_speed",
    "min_speed",
    "max_speed",
    "polarization",
    "occupied_cells",
    "avg_agents_per_cell",
    "max_cell_occupancy",
    "outside_screen",
    "wall_evasion",
    "has_target",
    "leader_id",
    "tick_ms",
    "tick_ms_per_agent",
]

# Frame budgets at 60 and 30 fps.
_TICK_BUDGETS_MS = {"tick_ms_gt_16": 1000.0 / 60.0, "tick_ms_gt_33": 1000.0 / 30.0}


def _ratio(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator else 0.0


class MetricsLog:
    """CSV writer for per-tick metrics, one row per tick."""

    def __init__(self, path: Path, log_format: str):
        self.path = Path(path)
        self.detailed = log_format == "detailed"
        self._handle: Optional[TextIO] = None
        self._writer: Any = None

    def __enter__(self) -> "MetricsLog":
        self._handle = self.path.open("w", newline="")
        self._writer = csv.writer(self._handle)
        self._writer.writerow(_DETAILED_HEADER if self.detailed else _BASIC_HEADER)
        return self

    def __exit__(self, *exc_info: object) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None

    def write(self, world: World, metrics: TickMetrics, tick_ms: float) -> None:
        if self.detailed:
            self._writer.writerow(self._detailed_row(world, metrics, tick_ms))
        else:
            self._writer.writerow(
                [
                    metrics.tick,
                    metrics.population,
                    metrics.neighbor_checks,
                    f"{metrics.average_speed:.4f}",
                    f"{metrics.polarization:.4f}",
                    f"{tick_ms:.3f}",
                ]
            )

    @staticmethod
    def _detailed_row(world: World, metrics: TickMetrics, tick_ms: float) -> List[object]:
        width = world.config.screen_width
        height = world.config.screen_height
        speeds = [agent.velocity.length() for agent in world.agents]
        outside = sum(
            1
            for agent in world.agents
            if not (0.0 <= agent.position.x <= width and 0.0 <= agent.position.y <= height)
        )
        population = metrics.population
        return [
            metrics.tick,
            population,
            metrics.neighbor_checks,
            f"{_ratio(metrics.neighbor_checks, population):.4f}",
            f"{metrics.average_speed:.4f}",
            f"{min(speeds, default=0.0):.4f}",
            f"{max(speeds, default=0.0):.4f}",
            f"{metrics.polarization:.4f}",
            metrics.occupied_cells,
            f"{_ratio(population, metrics.occupied_cells):.4f}",
            metrics.max_cell_occupancy,
            outside,
            int(metrics.wall_evasion),
            int(metrics.has_target),
            -1 if metrics.leader_id is None else metrics.leader_id,
            f"{tick_ms:.3f}",
            f"{_ratio(tick_ms, population):.4f}",
        ]


def _percentile(sorted_values: Sequence[float], fraction: float) -> float:
    if not sorted_values:
        return 0.0
    pos = (len(sorted_values) - 1) * fraction
    low = math.floor(pos)
    high = math.ceil(pos)
    return float(sorted_values[low] + (sorted_values[high] - sorted_values[low]) * (pos - low))


def _summary_stats(values: Sequence[float]) -> Dict[str, float]:
    ordered = sorted(values)
    stats = {
        "min": float(ordered[0]) if ordered else 0.0,
        "max": float(ordered[-1]) if ordered else 0.0,
        "avg": float(sum(ordered) / len(ordered)) if ordered else 0.0,
    }
    for name, fraction in (("p50", 0.50), ("p90", 0.90), ("p95", 0.95), ("p99", 0.99)):
        stats[name] = _percentile(ordered, fraction)
    return stats


class RunSummary:
    """Collects per-tick series and renders the JSON run summary."""

    SERIES = ("tick_ms", "neighbor_checks", "polarization")

    def __init__(self, window: int):
        self.window = max(1, int(window))
        self.series: Dict[str, List[float]] = {name: [] for name in self.SERIES}
        self.peaks: Dict[str, Dict[str, float]] = {
            "tick_ms": {"value": -1.0, "tick": -1},
            "neighbor_checks": {"value": -1.0, "tick": -1},
        }

    def add(self, metrics: TickMetrics, tick_ms: float) -> None:
        values = {
            "tick_ms": tick_ms,
            "neighbor_checks": float(metrics.neighbor_checks),
            "polarization": metrics.polarization,
        }
        for name, value in values.items():
            self.series[name].append(value)
        for name, peak in self.peaks.items():
            if values[name] > peak["value"]:
                peak["value"] = values[name]
                peak["tick"] = metrics.tick

    def to_dict(self, **header: Any) -> Dict[str, Any]:
        tick_ms = self.series["tick_ms"]
        summary: Dict[str, Any] = dict(header)
        for name in self.SERIES:
            summary[name] = _summary_stats(self.series[name])
        summary["over_threshold"] = {
            name: sum(1 for value in tick_ms if value > budget) for name, budget in _TICK_BUDGETS_MS.items()
        }
        summary["peaks"] = {
            "tick_ms": dict(self.peaks["tick_ms"]),
            "neighbor_checks": {
                "value": int(self.peaks["neighbor_checks"]["value"]),
                "tick": self.peaks["neighbor_checks"]["tick"],
            },
        }
        tail: Dict[str, Any] = {"window": self.window}
        for name in self.SERIES:
            tail[name] = _summary_stats(self.series[name][-self.window :])
        summary["tail_window"] = tail
        return summary


def run_headless(
    steps: int,
    seed: Optional[int],
    log_path: Optional[Path],
    deterministic_log: bool = False,
    log_format: str = "detailed",
    summary_path: Optional[Path] = None,
    summary_window: int = 5000,
    config: Optional[SimulationConfig] = None,
    boid_count: Optional[int] = None,
    wall_evasion: Optional[bool] = None,
    leader: bool = False,
    target: Optional[Sequence[float]] = None,
) -> World:
    """Run `steps` ticks without a display and return the final world.

    With `deterministic_log`, `tick_ms` is written as zero so that two runs
    with the same seed produce byte-identical CSV files.
    """

    log_mode = log_format.lower().strip()
    if log_mode not in LOG_FORMATS:
        raise ValueError(f"Unknown log format: {log_format}")

    # Overrides apply to a copy; the caller's config is left as it was.
    config = replace(config) if config is not None else SimulationConfig()
    if seed is not None:
        config.seed = seed
    if boid_count is not None:
        config.boid_count = boid_count
    if wall_evasion is not None:
        config.wall_evasion = wall_evasion
    world = World(config)
    if leader:
        world.toggle_leader()
    if target is not None:
        world.set_target(target)

    summary = RunSummary(summary_window) if summary_path else None
    log_context = MetricsLog(log_path, log_mode) if log_path else contextlib.nullcontext()
    with log_context as metrics_log:
        for _ in range(steps):
            metrics = world.step()
            tick_ms = 0.0 if deterministic_log else metrics.tick_duration_ms
            if summary is not None:
                summary.add(metrics, tick_ms)
            if metrics_log is not None:
                metrics_log.write(world, metrics, tick_ms)

    if summary is not None and summary_path:
        payload = summary.to_dict(
            steps=steps,
            seed=config.seed,
            boid_count=len(world.agents),
            log_format=log_mode,
            deterministic_log=deterministic_log,
        )
        Path(summary_path).write_text(json.dumps(payload, indent=2))
        logger.info("Wrote run summary to %s", summary_path)

    if world.metrics is not None:
        logger.info(
            "Finished %d ticks: avg speed %.3f, polarization %.3f",
            world.tick,
            world.metrics.average_speed,
            world.metrics.polarization,
        )
    return world


def main() -> None:
    parser = argparse.ArgumentParser(description="Headless flocking simulation")
    parser.add_argument("--steps", type=int, default=3000)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--config", type=Path, default=None, help="YAML simulation config")
    parser.add_argument("--boids", type=int, default=None, help="Override the number of boids")
    parser.add_argument("--no-walls", action="store_true", help="Start with wall evasion off (positions wrap)")
    parser.add_argument("--leader", action="store_true", help="Start with leader mode on")
    parser.add_argument("--target", type=float, nargs=2, metavar=("X", "Y"), default=None)
    parser.add_argument("--log", type=Path, default=None, help="CSV file for per-tick metrics")
    parser.add_argument("--log-format", choices=LOG_FORMATS, default="detailed")
    parser.add_argument("--summary", type=Path, default=None, help="JSON file for run summary stats")
    parser.add_argument("--summary-window", type=int, default=5000, help="Tail window (ticks) for the summary")
    parser.add_argument(
        "--deterministic-log",
        action="store_true",
        help="Write tick_ms as 0.000 so runs with the same seed log identically",
    )
    parser.add_argument("--log-level", default="INFO", help="Python logging level")
    args = parser.parse_args()
    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    config = SimulationConfig.from_yaml(args.config) if args.config else None
    run_headless(
        args.steps,
        args.seed,
        args.log,
        deterministic_log=args.deterministic_log,
        log_format=args.log_format,
        summary_path=args.summary,
        summary_window=args.summary_window,
        config=config,
        boid_count=args.boids,
        wall_evasion=False if args.no_walls else None,
        leader=args.leader,
        target=args.target,
    )


if __name__ == "__main__":
    main()
