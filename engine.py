"""Scenario sweep runner.

Runs every scenario for ``R`` replications, reduces the replication outputs to
min/max/mean/sd statistics and optionally gathers the simulation logs. This is
the public entry point; ``engine_core`` holds the per-replication state
machine.
"""

from __future__ import annotations

import copy
import logging
from concurrent.futures import Future, ProcessPoolExecutor
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, Sequence

import numpy as np
import pandas as pd

from engine_core import (
    DEFAULT_HORIZON_DAYS,
    CostBreakdown,
    HandlingDetails,
    InventoryDetails,
    InventorySnapshot,
    OrderLogEntry,
    ProductFlowEntry,
    ProductionDetails,
    ProductionLogEntry,
    ReplicationResult,
    TransportationDetails,
    TripLogEntry,
    run_replication,
)
from network import Diagnostic, NetworkInput
from sampler import round_half_up
from scenarios import Scenario, count_scenarios as _count_scenarios, generate_scenarios

logger = logging.getLogger(__name__)

# Inventory snapshots are kept for this many replications per scenario.
INVENTORY_SNAPSHOT_REPLICATIONS = 3

ProgressCallback = Callable[[int, int], None]


class CancelToken(Protocol):
    def is_set(self) -> bool:
        ...


class SimulationCancelled(RuntimeError):
    """Raised when the cancel token is set between units of work."""


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------
DEFAULT_CONFIG: Dict[str, Any] = {
    "N_DAYS": DEFAULT_HORIZON_DAYS,
    "seed": None,
    "replications": 10,
    "max_workers": 1,
    "Tables": {},
}


def deep_merge(base: Dict, overrides: Optional[Dict]) -> Dict:
    """Recursive copy + merge."""
    if not overrides:
        return copy.deepcopy(base)
    out = copy.deepcopy(base)
    for key, val in overrides.items():
        if isinstance(val, dict) and isinstance(out.get(key), dict):
            out[key] = deep_merge(out[key], val)
        else:
            out[key] = copy.deepcopy(val)
    return out


def validate_config(cfg: Dict, required: Optional[Iterable[str]] = None) -> None:
    """Shallow validation for run configuration dictionaries.

    Parameters
    ----------
    cfg : Dict
        Configuration to validate.
    required : Iterable[str]
        Top-level keys that must be present (default ``("Tables",)``).
    """

    if not isinstance(cfg, dict):
        raise TypeError("Configuration must be a dictionary")
    for key in required or ("Tables",):
        if key not in cfg:
            raise KeyError(f"Missing configuration section '{key}'")
    if not isinstance(cfg["Tables"], dict):
        raise TypeError("'Tables' must map table names to row lists")
    if int(cfg.get("N_DAYS", DEFAULT_HORIZON_DAYS)) <= 0:
        raise ValueError("N_DAYS must be positive")
    if int(cfg.get("replications", 1)) <= 0:
        raise ValueError("replications must be positive")


def network_from_config(cfg: Dict) -> NetworkInput:
    validate_config(cfg)
    return NetworkInput.from_tables(cfg["Tables"])


def run_config(
    cfg: Dict,
    *,
    with_logs: bool = False,
    progress_cb: Optional[ProgressCallback] = None,
    cancel_event: Optional[CancelToken] = None,
) -> SimulationRun:
    """Run the sweep described by a config dict (defaults merged in)."""

    cfg = deep_merge(DEFAULT_CONFIG, cfg)
    network = network_from_config(cfg)
    return run_all(
        network,
        int(cfg["replications"]),
        horizon_days=int(cfg["N_DAYS"]),
        base_seed=cfg.get("seed"),
        collect_logs=with_logs,
        collect_inventory=with_logs,
        progress_cb=progress_cb,
        max_workers=cfg.get("max_workers") or 1,
        cancel_event=cancel_event,
    )


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class SummaryStats:
    min: float
    max: float
    mean: float
    sd: float


@dataclass(frozen=True)
class ScenarioResult:
    sr_no: int
    scenario_description: str
    cost_min: float
    cost_max: float
    cost_mean: float
    cost_sd: float
    service_level_min: float
    service_level_max: float
    service_level_mean: float
    service_level_sd: float
    elt_service_level_min: float
    elt_service_level_max: float
    elt_service_level_mean: float
    elt_service_level_sd: float
    cost_breakdown: CostBreakdown
    transportation_details: Optional[TransportationDetails] = None
    production_details: Optional[ProductionDetails] = None
    handling_details: Optional[HandlingDetails] = None
    inventory_details: Optional[InventoryDetails] = None


@dataclass
class SimulationRun:
    scenario_results: List[ScenarioResult] = field(default_factory=list)
    order_logs: List[OrderLogEntry] = field(default_factory=list)
    inventory_data: List[InventorySnapshot] = field(default_factory=list)
    production_logs: List[ProductionLogEntry] = field(default_factory=list)
    product_flow_logs: List[ProductFlowEntry] = field(default_factory=list)
    trip_logs: List[TripLogEntry] = field(default_factory=list)
    diagnostics: List[Diagnostic] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Reduction
# ---------------------------------------------------------------------------
def calculate_stats(values: Sequence[float]) -> SummaryStats:
    """Min, max, mean and population standard deviation (divide by N)."""

    if len(values) == 0:
        return SummaryStats(0.0, 0.0, 0.0, 0.0)
    data = np.asarray(values, dtype=float)
    return SummaryStats(
        min=float(data.min()),
        max=float(data.max()),
        mean=float(data.mean()),
        sd=float(data.std(ddof=0)),
    )


def average_breakdown(breakdowns: Sequence[CostBreakdown]) -> CostBreakdown:
    if not breakdowns:
        return CostBreakdown()
    n = len(breakdowns)
    return CostBreakdown(
        transportation=sum(b.transportation for b in breakdowns) / n,
        production=sum(b.production for b in breakdowns) / n,
        handling=sum(b.handling for b in breakdowns) / n,
        inventory=sum(b.inventory for b in breakdowns) / n,
        replenishment=sum(b.replenishment for b in breakdowns) / n,
    )


def summarize_scenario(sr_no: int, scenario: Scenario, results: Sequence[ReplicationResult]) -> ScenarioResult:
    """Fold replication results into a :class:`ScenarioResult`.

    Cost statistics are rounded half-up to whole currency units and service
    levels to two decimals. Detail objects come from the first replication.
    """

    cost = calculate_stats([r.cost for r in results])
    fill = calculate_stats([r.fill_rate for r in results])
    elt = calculate_stats([r.elt_service_level for r in results])
    first = results[0] if results else None

    def money(value: float) -> float:
        return round_half_up(value)

    def pct(value: float) -> float:
        return round_half_up(value, 2)

    return ScenarioResult(
        sr_no=sr_no,
        scenario_description=scenario.description,
        cost_min=money(cost.min),
        cost_max=money(cost.max),
        cost_mean=money(cost.mean),
        cost_sd=money(cost.sd),
        service_level_min=pct(fill.min),
        service_level_max=pct(fill.max),
        service_level_mean=pct(fill.mean),
        service_level_sd=pct(fill.sd),
        elt_service_level_min=pct(elt.min),
        elt_service_level_max=pct(elt.max),
        elt_service_level_mean=pct(elt.mean),
        elt_service_level_sd=pct(elt.sd),
        cost_breakdown=average_breakdown([r.cost_breakdown for r in results]),
        transportation_details=first.transportation_details if first else None,
        production_details=first.production_details if first else None,
        handling_details=first.handling_details if first else None,
        inventory_details=first.inventory_details if first else None,
    )


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------
def _draw_seeds(rng: np.random.Generator, n_runs: int) -> np.ndarray:
    if n_runs <= 0:
        raise ValueError("n_runs must be positive")
    return rng.integers(low=0, high=2**32 - 1, size=n_runs, dtype=np.uint32)


def _check_cancel(cancel_event: Optional[CancelToken]) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise SimulationCancelled("simulation cancelled")


def _notify(progress_cb: Optional[ProgressCallback], done: int, total: int) -> None:
    if not progress_cb:
        return
    try:
        progress_cb(done, total)
    except Exception:
        logger.exception("Progress callback failed at %d/%d", done, total)


def _replication_task(
    network: NetworkInput,
    scenario: Scenario,
    seed: int,
    replication: int,
    horizon_days: int,
    collect_logs: bool,
    collect_inventory: bool,
) -> ReplicationResult:
    return run_replication(
        network,
        scenario,
        np.random.default_rng(seed),
        replication=replication,
        horizon_days=horizon_days,
        collect_logs=collect_logs,
        collect_inventory=collect_inventory,
    )


def _replication_tasks(
    network: NetworkInput,
    scenario: Scenario,
    seeds: Iterable[int],
    *,
    horizon_days: int,
    collect_logs: bool,
    collect_inventory: bool,
) -> List[tuple]:
    return [
        (
            network,
            scenario,
            int(seed),
            rep,
            horizon_days,
            collect_logs,
            collect_inventory and rep <= INVENTORY_SNAPSHOT_REPLICATIONS,
        )
        for rep, seed in enumerate(seeds, start=1)
    ]


def _run_serial(tasks: Sequence[tuple], cancel_event: Optional[CancelToken]) -> List[ReplicationResult]:
    results = []
    for task in tasks:
        _check_cancel(cancel_event)
        results.append(_replication_task(*task))
    return results


def run_all(
    network: NetworkInput,
    replications: int,
    *,
    horizon_days: int = DEFAULT_HORIZON_DAYS,
    base_seed: Optional[int] = None,
    collect_logs: bool = False,
    collect_inventory: bool = False,
    progress_cb: Optional[ProgressCallback] = None,
    max_workers: Optional[int] = 1,
    cancel_event: Optional[CancelToken] = None,
) -> SimulationRun:
    """Run every scenario of ``network`` for ``replications`` replications.

    Parameters
    ----------
    network : NetworkInput
        Network tables, including the input factors that define the sweep.
    replications : int
        Independent replications per scenario.
    horizon_days : int, optional
        Simulated days per replication (default 365).
    base_seed : int | None, optional
        Seed for drawing one seed per replication. ``None`` leaves the run
        non-deterministic.
    collect_logs : bool
        Gather order logs from every replication and production, product-flow
        and trip logs from the first replication of each scenario.
    collect_inventory : bool
        Gather daily inventory snapshots from the first three replications of
        each scenario.
    progress_cb : callable, optional
        ``progress_cb(done, total)`` after each completed scenario, always in
        scenario order.
    max_workers : int | None
        Values above 1 submit every scenario x replication task to a process
        pool up front; results are folded back scenario by scenario.
    cancel_event : object with ``is_set()``, optional
        Checked between scenarios and, when running serially, between
        replications. Raises :class:`SimulationCancelled` once set; queued
        pool tasks are cancelled.
    """

    if replications <= 0:
        raise ValueError("replications must be positive")
    if horizon_days <= 0:
        raise ValueError("horizon_days must be positive")

    run = SimulationRun(diagnostics=list(network.diagnostics))
    scenarios = generate_scenarios(network, run.diagnostics)
    total = len(scenarios)
    logger.info("Simulating %d scenario(s) x %d replication(s), %d days each", total, replications, horizon_days)

    # seeds are drawn scenario by scenario so serial and pooled runs agree
    rng = np.random.default_rng(base_seed)
    batches = [
        _replication_tasks(
            network,
            scenario,
            _draw_seeds(rng, replications),
            horizon_days=horizon_days,
            collect_logs=collect_logs,
            collect_inventory=collect_inventory,
        )
        for scenario in scenarios
    ]

    pool = ProcessPoolExecutor(max_workers=max_workers) if max_workers and max_workers > 1 and batches else None
    try:
        pending: Optional[List[List[Future]]] = None
        if pool is not None:
            pending = [[pool.submit(_replication_task, *task) for task in tasks] for tasks in batches]

        for index, (scenario, tasks) in enumerate(zip(scenarios, batches), start=1):
            _check_cancel(cancel_event)
            if pending is None:
                results = _run_serial(tasks, cancel_event)
            else:
                results = [f.result() for f in pending[index - 1]]
            summary = summarize_scenario(index, scenario, results)
            run.scenario_results.append(summary)

            if collect_logs:
                for result in results:
                    run.order_logs.extend(result.order_log)
                run.production_logs.extend(results[0].production_log)
                run.product_flow_logs.extend(results[0].product_flow_log)
                run.trip_logs.extend(results[0].trip_log)
            if collect_inventory:
                for result in results[:INVENTORY_SNAPSHOT_REPLICATIONS]:
                    run.inventory_data.extend(result.inventory_snapshots)

            logger.info(
                "Scenario %d/%d [%s]: cost mean=%s fill=%s%% elt=%s%%",
                index,
                total,
                scenario.description,
                summary.cost_mean,
                summary.service_level_mean,
                summary.elt_service_level_mean,
            )
            _notify(progress_cb, index, total)
    finally:
        if pool is not None:
            pool.shutdown(wait=True, cancel_futures=True)
    return run


def count_scenarios(network: NetworkInput) -> int:
    """Scenario count for ``network`` without simulating anything."""
    return _count_scenarios(network)


def run_simulation(
    network: NetworkInput,
    replications: int,
    progress_cb: Optional[ProgressCallback] = None,
    **kwargs,
) -> List[ScenarioResult]:
    """Statistics only."""
    run = run_all(network, replications, progress_cb=progress_cb, collect_logs=False, collect_inventory=False, **kwargs)
    return run.scenario_results


def run_simulation_with_logs(
    network: NetworkInput,
    replications: int,
    progress_cb: Optional[ProgressCallback] = None,
    **kwargs,
) -> SimulationRun:
    """Statistics plus order, inventory, production, product-flow and trip logs."""
    return run_all(network, replications, progress_cb=progress_cb, collect_logs=True, collect_inventory=True, **kwargs)


# ---------------------------------------------------------------------------
# Tabular views & ranking
# ---------------------------------------------------------------------------
RESULT_COLUMNS = [
    "SrNo",
    "Scenario",
    "CostMin",
    "CostMax",
    "CostMean",
    "CostSD",
    "FillRateMin",
    "FillRateMax",
    "FillRateMean",
    "FillRateSD",
    "ELTMin",
    "ELTMax",
    "ELTMean",
    "ELTSD",
    "TransportationCost",
    "ProductionCost",
    "HandlingCost",
    "InventoryCost",
    "ReplenishmentCost",
]


def results_to_frame(results: Iterable[ScenarioResult]) -> pd.DataFrame:
    rows: List[Dict[str, object]] = []
    for r in results:
        rows.append({
            "SrNo": r.sr_no,
            "Scenario": r.scenario_description,
            "CostMin": r.cost_min,
            "CostMax": r.cost_max,
            "CostMean": r.cost_mean,
            "CostSD": r.cost_sd,
            "FillRateMin": r.service_level_min,
            "FillRateMax": r.service_level_max,
            "FillRateMean": r.service_level_mean,
            "FillRateSD": r.service_level_sd,
            "ELTMin": r.elt_service_level_min,
            "ELTMax": r.elt_service_level_max,
            "ELTMean": r.elt_service_level_mean,
            "ELTSD": r.elt_service_level_sd,
            "TransportationCost": r.cost_breakdown.transportation,
            "ProductionCost": r.cost_breakdown.production,
            "HandlingCost": r.cost_breakdown.handling,
            "InventoryCost": r.cost_breakdown.inventory,
            "ReplenishmentCost": r.cost_breakdown.replenishment,
        })
    return pd.DataFrame(rows, columns=RESULT_COLUMNS)


def logs_to_frames(run: SimulationRun) -> Dict[str, pd.DataFrame]:
    """One DataFrame per log kind plus ``diagnostics``, keyed by short name."""

    def frame(rows: Sequence[object]) -> pd.DataFrame:
        return pd.DataFrame([asdict(row) for row in rows])

    return {
        "orders": frame(run.order_logs),
        "inventory": frame(run.inventory_data),
        "production": frame(run.production_logs),
        "product_flow": frame(run.product_flow_logs),
        "trips": frame(run.trip_logs),
        "diagnostics": frame(run.diagnostics),
    }


def _objective_value(row: Dict[str, float], objective: str, service_target: Optional[float]) -> float:
    obj = objective.lower()
    cost = float(row.get("CostMean", 0.0))
    fill = float(row.get("FillRateMean", 0.0))
    elt = float(row.get("ELTMean", 0.0))

    penalty = 0.0
    if service_target is not None and fill < service_target:
        penalty += (service_target - fill) * 1e6
    if service_target is not None and elt < service_target:
        penalty += (service_target - elt) * 5e5

    if obj in {"fill_rate", "fr"}:
        return -fill + penalty
    if obj in {"elt", "service"}:
        return -elt + penalty
    if obj in {"risk", "cost_sd"}:
        return float(row.get("CostSD", 0.0)) + penalty
    # default: mean total cost
    return cost + penalty


def rank_scenarios(
    results: pd.DataFrame | Iterable[ScenarioResult],
    *,
    objective: str = "cost",
    service_target: Optional[float] = None,
) -> pd.DataFrame:
    """Order scenarios by objective, best first.

    Parameters
    ----------
    objective : str
        ``cost`` (default, mean total cost), ``fill_rate``, ``elt`` or ``risk``
        (cost standard deviation).
    service_target : float, optional
        Minimum mean fill rate and ELT in percent; misses receive a heavy
        penalty.
    """

    df = results if isinstance(results, pd.DataFrame) else results_to_frame(results)
    if df.empty:
        return df.copy()
    df = df.copy()
    records = df.to_dict("records")
    df["objective_value"] = [_objective_value(r, objective, service_target) for r in records]
    df["ServiceTargetMet"] = [
        service_target is None
        or (r.get("FillRateMean", 0.0) >= service_target and r.get("ELTMean", 0.0) >= service_target)
        for r in records
    ]
    df.sort_values(by="objective_value", inplace=True, kind="mergesort")
    df.reset_index(drop=True, inplace=True)
    return df


__all__ = [
    "DEFAULT_CONFIG",
    "INVENTORY_SNAPSHOT_REPLICATIONS",
    "RESULT_COLUMNS",
    "ScenarioResult",
    "SimulationCancelled",
    "SimulationRun",
    "SummaryStats",
    "average_breakdown",
    "calculate_stats",
    "count_scenarios",
    "deep_merge",
    "logs_to_frames",
    "network_from_config",
    "rank_scenarios",
    "results_to_frame",
    "run_all",
    "run_config",
    "run_simulation",
    "run_simulation_with_logs",
    "summarize_scenario",
    "validate_config",
]
