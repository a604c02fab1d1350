#!/usr/bin/env python3
"""Command-line runner for the inventory network simulator."""

from __future__ import annotations
import argparse
import json
import logging
from pathlib import Path
from typing import List, Optional

from engine import (
    DEFAULT_CONFIG,
    count_scenarios,
    deep_merge,
    logs_to_frames,
    network_from_config,
    rank_scenarios,
    results_to_frame,
    run_all,
)

logger = logging.getLogger("scm_cli")

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def load_config(path: Path) -> dict:
    text = path.read_text()
    data = json.loads(text)
    return data


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Inventory network (s,S) scenario simulator")
    parser.add_argument("config", type=Path, help="Path to JSON config file (settings + Tables)")
    parser.add_argument("--replications", type=int, default=None, help="Replications per scenario")
    parser.add_argument("--days", type=int, default=None, help="Simulated days per replication")
    parser.add_argument("--seed", type=int, default=None, help="Base random seed")
    parser.add_argument("--workers", type=int, default=None, help="Worker processes (1 = serial)")
    parser.add_argument("--logs", type=Path, default=None, help="Directory for CSV logs")
    parser.add_argument("--count-only", action="store_true", help="Print the scenario count and exit")
    parser.add_argument("--service-target", type=float, default=None, help="Minimum fill rate / ELT in percent")
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    return parser


def _overrides(args: argparse.Namespace) -> dict:
    out = {}
    if args.replications is not None:
        out["replications"] = int(args.replications)
    if args.days is not None:
        out["N_DAYS"] = int(args.days)
    if args.seed is not None:
        out["seed"] = int(args.seed)
    if args.workers is not None:
        out["max_workers"] = int(args.workers)
    return out


def _progress(done: int, total: int) -> None:
    print(f"  scenario {done}/{total}", flush=True)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO, format=LOG_FORMAT)

    cfg = deep_merge(DEFAULT_CONFIG, load_config(args.config))
    cfg = deep_merge(cfg, _overrides(args))
    network = network_from_config(cfg)

    if args.count_only:
        print(count_scenarios(network))
        return 0

    with_logs = args.logs is not None
    run = run_all(
        network,
        int(cfg["replications"]),
        horizon_days=int(cfg["N_DAYS"]),
        base_seed=cfg.get("seed"),
        collect_logs=with_logs,
        collect_inventory=with_logs,
        progress_cb=_progress,
        max_workers=cfg.get("max_workers") or 1,
    )

    if not run.scenario_results:
        logger.warning("No scenarios to simulate")
        return 1

    ranked = rank_scenarios(results_to_frame(run.scenario_results), service_target=args.service_target)
    cols = ["SrNo", "Scenario", "CostMean", "CostSD", "FillRateMean", "ELTMean", "ServiceTargetMet"]
    print("Scenario ranking:")
    print(ranked[cols].to_string(index=False))

    if with_logs:
        args.logs.mkdir(parents=True, exist_ok=True)
        results_to_frame(run.scenario_results).to_csv(args.logs / "scenario_results.csv", index=False)
        for name, frame in logs_to_frames(run).items():
            out_path = args.logs / f"{name}.csv"
            frame.to_csv(out_path, index=False)
        print(f"Saved logs → {args.logs}")
    if run.diagnostics:
        print(f"{len(run.diagnostics)} data issue(s) resolved with defaults (see warnings above)")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
