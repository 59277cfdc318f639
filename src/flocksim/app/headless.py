from __future__ import annotations

import argparse
import csv
import json
import logging
import math
from pathlib import Path
from typing import Optional

from ..sim.core.config import SimulationConfig
from ..sim.core.world import World
from ..sim.types.metrics import TickMetrics

logger = logging.getLogger(__name__)


_BASIC_HEADER = [
    "tick",
    "population",
    "neighbor_checks",
    "avg_speed",
    "polarization",
    "spread",
    "tick_ms",
]

_DETAILED_HEADER = [
    "tick",
    "sim_time",
    "population",
    "neighbor_checks",
    "neighbor_links",
    "avg_speed",
    "polarization",
    "spread",
    "tick_ms",
    "neighbors_per_agent",
    "checks_per_agent",
    "tick_ms_per_agent",
    "min_speed",
    "max_speed",
    "avg_cohesion_force",
    "avg_separation_force",
    "avg_alignment_force",
    "avg_boundary_force",
    "agents_in_margin",
    "isolated_agents",
]


def _format_basic_row(metrics: TickMetrics, tick_ms: float) -> list[object]:
    return [
        metrics.tick,
        metrics.population,
        metrics.neighbor_checks,
        f"{metrics.average_speed:.4f}",
        f"{metrics.polarization:.4f}",
        f"{metrics.spread:.4f}",
        f"{tick_ms:.3f}",
    ]


def _format_detailed_row(world: World, metrics: TickMetrics, tick_ms: float) -> list[object]:
    population = metrics.population
    if population <= 0:
        neighbors_per_agent = 0.0
        checks_per_agent = 0.0
        tick_ms_per_agent = 0.0
        min_speed = 0.0
        max_speed = 0.0
        avg_cohesion = 0.0
        avg_separation = 0.0
        avg_alignment = 0.0
        avg_boundary = 0.0
        in_margin = 0
        isolated = 0
    else:
        neighbors_per_agent = metrics.neighbor_links / population
        checks_per_agent = metrics.neighbor_checks / population
        tick_ms_per_agent = tick_ms / population

        config = world.config
        margin = config.boundary.margin
        width = config.world.width
        height = config.world.height
        min_speed = math.inf
        max_speed = 0.0
        cohesion_sum = 0.0
        separation_sum = 0.0
        alignment_sum = 0.0
        boundary_sum = 0.0
        in_margin = 0
        isolated = 0

        for agent in world.agents:
            speed = math.hypot(agent.velocity.x, agent.velocity.y)
            min_speed = min(min_speed, speed)
            max_speed = max(max_speed, speed)
            forces = agent.forces
            cohesion_sum += forces.cohesion.length()
            separation_sum += forces.separation.length()
            alignment_sum += forces.alignment.length()
            boundary_sum += forces.boundary.length()
            x = agent.position.x
            y = agent.position.y
            if min(x, width - x, y, height - y) < margin:
                in_margin += 1
            if not agent.neighbors:
                isolated += 1

        avg_cohesion = cohesion_sum / population
        avg_separation = separation_sum / population
        avg_alignment = alignment_sum / population
        avg_boundary = boundary_sum / population

    return [
        metrics.tick,
        f"{metrics.sim_time:.4f}",
        population,
        metrics.neighbor_checks,
        metrics.neighbor_links,
        f"{metrics.average_speed:.4f}",
        f"{metrics.polarization:.4f}",
        f"{metrics.spread:.4f}",
        f"{tick_ms:.3f}",
        f"{neighbors_per_agent:.4f}",
        f"{checks_per_agent:.4f}",
        f"{tick_ms_per_agent:.4f}",
        f"{min_speed:.4f}",
        f"{max_speed:.4f}",
        f"{avg_cohesion:.6f}",
        f"{avg_separation:.6f}",
        f"{avg_alignment:.6f}",
        f"{avg_boundary:.6f}",
        in_margin,
        isolated,
    ]


def _percentile(sorted_values: list[float], percentile: float) -> float:
    if not sorted_values:
        return 0.0
    if len(sorted_values) == 1:
        return float(sorted_values[0])
    pos = (len(sorted_values) - 1) * percentile
    low = int(math.floor(pos))
    high = int(math.ceil(pos))
    if low == high:
        return float(sorted_values[low])
    weight = pos - low
    return float(sorted_values[low] + (sorted_values[high] - sorted_values[low]) * weight)


def _summary_stats(values: list[float]) -> dict[str, float]:
    if not values:
        return {"min": 0.0, "max": 0.0, "avg": 0.0, "p50": 0.0, "p90": 0.0, "p95": 0.0, "p99": 0.0}
    sorted_values = sorted(values)
    total = sum(values)
    count = len(values)
    return {
        "min": float(sorted_values[0]),
        "max": float(sorted_values[-1]),
        "avg": float(total / count),
        "p50": _percentile(sorted_values, 0.50),
        "p90": _percentile(sorted_values, 0.90),
        "p95": _percentile(sorted_values, 0.95),
        "p99": _percentile(sorted_values, 0.99),
    }


def _correlation(xs: list[float], ys: list[float]) -> float:
    if len(xs) != len(ys) or len(xs) < 2:
        return 0.0
    mean_x = sum(xs) / len(xs)
    mean_y = sum(ys) / len(ys)
    num = 0.0
    denom_x = 0.0
    denom_y = 0.0
    for x, y in zip(xs, ys):
        dx = x - mean_x
        dy = y - mean_y
        num += dx * dy
        denom_x += dx * dx
        denom_y += dy * dy
    denom = math.sqrt(denom_x * denom_y)
    if denom == 0.0:
        return 0.0
    return float(num / denom)


def run_headless(
    steps: int,
    seed: Optional[int],
    log_path: Optional[Path],
    deterministic_log: bool = False,
    log_format: str = "detailed",
    summary_path: Optional[Path] = None,
    summary_window: int = 500,
    config_path: Optional[Path] = None,
) -> World:
    log_mode = log_format.lower().strip()
    if log_mode not in {"basic", "detailed"}:
        raise ValueError(f"Unknown log format: {log_format}")

    config = SimulationConfig.from_yaml(config_path) if config_path else SimulationConfig()
    if seed is not None:
        config.seed = seed
    world = World(config)
    logger.info(
        "Running %d steps with %d agents (seed=%d, dt=%s)",
        steps,
        len(world.agents),
        config.seed,
        config.time_step,
    )

    writer = None
    csv_file = None
    if log_path:
        csv_file = Path(log_path).open("w", newline="")
        writer = csv.writer(csv_file)
        writer.writerow(_DETAILED_HEADER if log_mode == "detailed" else _BASIC_HEADER)

    tick_ms_series: list[float] = []
    polarization_series: list[float] = []
    spread_series: list[float] = []
    neighbor_checks_series: list[int] = []
    max_tick_ms = (-1.0, -1)
    max_polarization = (-1.0, -1)

    try:
        for _ in range(steps):
            metrics = world.tick()
            tick_ms = 0.0 if deterministic_log else metrics.tick_duration_ms

            if summary_path:
                tick_ms_series.append(tick_ms)
                polarization_series.append(metrics.polarization)
                spread_series.append(metrics.spread)
                neighbor_checks_series.append(metrics.neighbor_checks)
                if tick_ms > max_tick_ms[0]:
                    max_tick_ms = (tick_ms, metrics.tick)
                if metrics.polarization > max_polarization[0]:
                    max_polarization = (metrics.polarization, metrics.tick)

            if writer:
                if log_mode == "detailed":
                    writer.writerow(_format_detailed_row(world, metrics, tick_ms))
                else:
                    writer.writerow(_format_basic_row(metrics, tick_ms))
    finally:
        if csv_file:
            csv_file.close()

    if summary_path:
        window = max(1, int(summary_window))
        tail_slice = slice(max(0, len(tick_ms_series) - window), len(tick_ms_series))
        summary = {
            "steps": steps,
            "seed": config.seed,
            "population": len(world.agents),
            "log_format": log_mode,
            "deterministic_log": deterministic_log,
            "tick_ms": _summary_stats(tick_ms_series),
            "polarization": _summary_stats(polarization_series),
            "spread": _summary_stats(spread_series),
            "neighbor_checks": _summary_stats([float(v) for v in neighbor_checks_series]),
            "correlations": {
                "tick_ms_vs_neighbor_checks": _correlation(
                    tick_ms_series, [float(v) for v in neighbor_checks_series]
                ),
                "polarization_vs_spread": _correlation(polarization_series, spread_series),
            },
            "peaks": {
                "tick_ms": {"value": float(max_tick_ms[0]), "tick": max_tick_ms[1]},
                "polarization": {"value": float(max_polarization[0]), "tick": max_polarization[1]},
            },
            "tail_window": {
                "window": window,
                "tick_ms": _summary_stats(tick_ms_series[tail_slice]),
                "polarization": _summary_stats(polarization_series[tail_slice]),
                "spread": _summary_stats(spread_series[tail_slice]),
            },
        }
        Path(summary_path).write_text(json.dumps(summary, indent=2))

    logger.info("Finished at tick %d (sim_time=%.3f)", world.tick_count, world.sim_time)
    return world


def main() -> None:
    parser = argparse.ArgumentParser(description="Headless flocking simulation")
    parser.add_argument("--steps", type=int, default=1000)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--config", type=Path, default=None, help="YAML file with simulation settings")
    parser.add_argument("--log", type=Path, default=None, help="CSV file to write metrics")
    parser.add_argument(
        "--log-format",
        choices=["basic", "detailed"],
        default="detailed",
        help="CSV format to write when --log is provided.",
    )
    parser.add_argument(
        "--summary",
        type=Path,
        default=None,
        help="Optional JSON file to write summary stats for the run.",
    )
    parser.add_argument(
        "--summary-window",
        type=int,
        default=500,
        help="Tail window size (ticks) for summary stats.",
    )
    parser.add_argument(
        "--deterministic-log",
        action="store_true",
        help="Write deterministic CSV (tick_ms is forced to 0.000 so identical seeds match).",
    )
    parser.add_argument("--log-level", default="INFO", help="Python logging level (DEBUG, INFO, ...)")
    args = parser.parse_args()
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    run_headless(
        args.steps,
        args.seed,
        args.log,
        deterministic_log=args.deterministic_log,
        log_format=args.log_format,
        summary_path=args.summary,
        summary_window=args.summary_window,
        config_path=args.config,
    )


if __name__ == "__main__":
    main()
