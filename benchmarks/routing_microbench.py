#!/usr/bin/env python3
"""
ConditionalRouter Micro-benchmark Harness.

Benchmarks graph rebuilds and `ConditionalRouter.route()` queries on a
deterministic grid of ways carrying synthetic conditional tags.
"""

from __future__ import annotations

import argparse
from dataclasses import dataclass
from datetime import datetime, timezone
import json
import math
from pathlib import Path
import random
import statistics
import sys
import time
from typing import Any, Optional

from loguru import logger

# Ensure repository root is importable when executing this file directly.
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from condroute import ConditionalRouter, GraphNode, MapEntity


ROAD_TYPES = ("primary", "secondary", "tertiary", "residential", "service")
CONDITIONAL_TEMPLATES = (
    ("access:conditional", "no @ (Mo-Fr 07:00-19:00)"),
    ("hgv:conditional", "no @ (weight>7.5)"),
    ("maxspeed:conditional", "30 @ (22:00-06:00)"),
    ("maxspeed:conditional", "20 @ (Mo-Fr 07:00-09:00,16:00-18:00)"),
    ("motor_vehicle:conditional", "no @ (Sa-Su; Jul-Aug)"),
    ("oneway:conditional", "yes @ (Mo-Fr 06:00-10:00)"),
    ("parking:conditional", "no @ (Mo-Sa 08:00-18:00)"),
)
PROFILE_NAMES = ("car", "hgv", "bicycle", "pedestrian")
QUERY_TIMES = (
    datetime(2023, 10, 16, 8, 0),
    datetime(2023, 10, 16, 23, 0),
    datetime(2023, 10, 14, 12, 0),
)


@dataclass(frozen=True)
class ScenarioConfig:
    """Benchmark scenario configuration."""

    grid_size: int
    restricted_share: float
    warmup_runs: int
    measured_runs: int
    seed: int


def build_synthetic_ways(grid_size: int, restricted_share: float, seed: int) -> list[MapEntity]:
    """
    Build a deterministic grid where every cell side is a two-node way.

    Node coordinates are spaced ~100 m apart around (13.4, 52.5).
    """
    rng = random.Random(seed)
    step = 0.001

    def node(row: int, col: int) -> GraphNode:
        return GraphNode(row * grid_size + col, 13.4 + col * step, 52.5 + row * step)

    ways: list[MapEntity] = []
    for row in range(grid_size):
        for col in range(grid_size):
            neighbours = []
            if col < grid_size - 1:
                neighbours.append((row, col + 1))
            if row < grid_size - 1:
                neighbours.append((row + 1, col))

            for other_row, other_col in neighbours:
                tags = {"highway": ROAD_TYPES[(row + col) % len(ROAD_TYPES)]}
                if rng.random() < restricted_share:
                    key, value = CONDITIONAL_TEMPLATES[rng.randrange(len(CONDITIONAL_TEMPLATES))]
                    tags[key] = value
                ways.append(MapEntity(
                    id=len(ways),
                    tags=tags,
                    nodes=[node(row, col), node(other_row, other_col)],
                ))
    return ways


def percentile(values: list[float], percentile_rank: float) -> float:
    """Compute percentile with linear interpolation."""
    if not values:
        return 0.0
    ordered = sorted(values)
    if len(ordered) == 1:
        return ordered[0]

    position = (len(ordered) - 1) * percentile_rank
    lower = math.floor(position)
    upper = math.ceil(position)
    if lower == upper:
        return ordered[lower]

    fraction = position - lower
    return ordered[lower] + (ordered[upper] - ordered[lower]) * fraction


def _summarize(values: list[float]) -> dict[str, float]:
    return {
        "min": min(values),
        "max": max(values),
        "mean": statistics.mean(values),
        "median": statistics.median(values),
        "p95": percentile(values, 0.95),
    }


def run_scenario(config: ScenarioConfig) -> dict[str, Any]:
    """Run one benchmark scenario and return structured metrics."""
    ways = build_synthetic_ways(config.grid_size, config.restricted_share, config.seed)
    router = ConditionalRouter()

    rebuild_ms: list[float] = []
    for _ in range(config.warmup_runs + config.measured_runs):
        started = time.perf_counter()
        stats = router.rebuild(ways)
        rebuild_ms.append((time.perf_counter() - started) * 1000.0)
    rebuild_ms = rebuild_ms[config.warmup_runs:]

    start = 0
    end = config.grid_size * config.grid_size - 1
    queries = [(profile, at) for profile in PROFILE_NAMES for at in QUERY_TIMES]

    for profile, at in queries[: config.warmup_runs]:
        router.route(start, end, profile, at)

    route_ms: list[float] = []
    found = 0
    for _ in range(config.measured_runs):
        for profile, at in queries:
            started = time.perf_counter()
            result = router.route(start, end, profile, at)
            route_ms.append((time.perf_counter() - started) * 1000.0)
            found += int(result.found)

    return {
        "scenario": {
            "grid_size": config.grid_size,
            "restricted_share": config.restricted_share,
            "seed": config.seed,
            "warmup_runs": config.warmup_runs,
            "measured_runs": config.measured_runs,
        },
        "graph": stats.to_dict(),
        "parse_issues": len(router.parse_issues),
        "rebuild_ms": _summarize(rebuild_ms),
        "route_ms": _summarize(route_ms),
        "routes": {"found": found, "total": len(route_ms)},
    }


def print_human_summary(result: dict[str, Any]) -> None:
    """Print compact human-readable summary for CLI runs."""
    scenario = result["scenario"]
    graph = result["graph"]
    rebuild = result["rebuild_ms"]
    route = result["route_ms"]

    print(
        f"[Scenario] grid={scenario['grid_size']}x{scenario['grid_size']}, "
        f"restricted={scenario['restricted_share']:.0%}, runs={scenario['measured_runs']}"
    )
    print(
        f"  Graph: nodes={graph['node_count']}, edges={graph['edge_count']}, "
        f"restricted_edges={graph['restricted_edges']}"
    )
    print(f"  Rebuild(ms): mean={rebuild['mean']:.2f}, p95={rebuild['p95']:.2f}")
    print(
        f"  Route(ms): mean={route['mean']:.2f}, median={route['median']:.2f}, "
        f"p95={route['p95']:.2f}, max={route['max']:.2f}"
    )
    print(f"  Routes found: {result['routes']['found']}/{result['routes']['total']}")


def evaluate_threshold_warnings(
    result: dict[str, Any],
    warn_p95_route_ms: Optional[float],
) -> list[str]:
    """Evaluate the optional route latency threshold for one scenario."""
    warnings: list[str] = []
    route = result["route_ms"]
    if warn_p95_route_ms is not None and route["p95"] > warn_p95_route_ms:
        warnings.append(
            f"grid={result['scenario']['grid_size']}: p95 route latency "
            f"{route['p95']:.2f} ms exceeds {warn_p95_route_ms:.2f} ms"
        )
    return warnings


def main() -> None:
    parser = argparse.ArgumentParser(description="Benchmark conditional routing.")
    parser.add_argument(
        "--grid-sizes",
        nargs="+",
        type=int,
        default=[20, 50],
        help="Grid sizes to benchmark (N produces N*N nodes).",
    )
    parser.add_argument(
        "--restricted-share",
        type=float,
        default=0.3,
        help="Share of ways carrying a conditional tag.",
    )
    parser.add_argument("--warmup-runs", type=int, default=1, help="Warmup iterations per scenario.")
    parser.add_argument("--runs", type=int, default=3, help="Measured iterations per scenario.")
    parser.add_argument("--seed", type=int, default=7, help="Random seed for deterministic ways.")
    parser.add_argument("--output", type=str, default="", help="Optional path to write JSON results.")
    parser.add_argument(
        "--warn-p95-route-ms",
        type=float,
        default=None,
        help="Optional warning threshold for p95 route latency per scenario.",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Exit non-zero when the warning threshold is exceeded.",
    )
    args = parser.parse_args()

    # Silence library logging while timing
    logger.remove()

    started_at = datetime.now(timezone.utc).isoformat()
    results: list[dict[str, Any]] = []
    warnings: list[str] = []

    for grid_size in args.grid_sizes:
        scenario = ScenarioConfig(
            grid_size=grid_size,
            restricted_share=args.restricted_share,
            warmup_runs=args.warmup_runs,
            measured_runs=args.runs,
            seed=args.seed,
        )
        result = run_scenario(scenario)
        results.append(result)
        print_human_summary(result)
        warnings.extend(evaluate_threshold_warnings(result, args.warn_p95_route_ms))

    if warnings:
        print("[Warnings]")
        for warning in warnings:
            print(f"  - {warning}")

    payload = {
        "benchmark": "routing_microbench",
        "started_at": started_at,
        "python": {
            "version": f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}",
        },
        "results": results,
        "warnings": warnings,
    }

    if args.output:
        with open(args.output, "w", encoding="utf-8") as handle:
            json.dump(payload, handle, indent=2)
        print(f"[Output] wrote JSON results to {args.output}")
    else:
        print(json.dumps(payload, indent=2))

    if args.strict and warnings:
        raise SystemExit(2)


if __name__ == "__main__":
    main()
