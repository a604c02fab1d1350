"""Design-of-experiments sweep over (s, S) parameters.

Each input factor names a (facility, product) and ranges for ``s`` and ``S``.
Ranges expand into stepped grids, pairs with ``s >= S`` are discarded, and the
per-factor pair lists are multiplied out into concrete scenarios.
"""

from __future__ import annotations

import itertools
import json
import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from network import (
    LEGACY_ORDER_UP_TO,
    LEGACY_REORDER_POINT,
    Diagnostic,
    InputFactor,
    NetworkInput,
    or_default,
    report,
)
from sampler import round_half_up

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ParameterRange:
    name: str
    min: float
    max: float
    step: float


@dataclass(frozen=True)
class PolicyAssignment:
    facility_name: str
    product_name: str
    s: float
    S: float

    @property
    def key(self) -> Tuple[str, str]:
        return self.facility_name, self.product_name

    def describe(self) -> str:
        return f"{self.facility_name}({self.product_name}): s={format_number(self.s)}, S={format_number(self.S)}"


@dataclass(frozen=True)
class Scenario:
    assignments: Tuple[PolicyAssignment, ...]
    description: str

    @property
    def primary(self) -> PolicyAssignment:
        """The first assignment; its facility serves customer demand."""
        return self.assignments[0]

    @property
    def tag(self) -> str:
        return f"{self.primary.facility_name}-{self.primary.product_name}"


def format_number(value: float) -> str:
    value = float(value)
    if value.is_integer():
        return str(int(value))
    return repr(value)


def expand_parameter(min_value: float, max_value: float, step: float) -> List[float]:
    """Inclusive stepped grid, values rounded to 2 decimals."""
    if step <= 0:
        raise ValueError("step must be positive")
    steps = int(round_half_up((max_value - min_value) / step)) + 1
    values: List[float] = []
    for i in range(max(0, steps)):
        value = min_value + i * step
        if value <= max_value:
            values.append(round_half_up(value, 2))
    return values


def parse_parameter_setup(setup: Any) -> Dict[str, ParameterRange]:
    """Decode a factor's parameter setup (JSON text or a list of dicts)."""

    entries = json.loads(setup) if isinstance(setup, str) else setup
    if not isinstance(entries, (list, tuple)):
        raise ValueError("parameter setup must be a list")
    ranges: Dict[str, ParameterRange] = {}
    for entry in entries:
        if not isinstance(entry, dict) or "name" not in entry:
            continue
        name = str(entry["name"])
        if name in ranges:
            continue
        ranges[name] = ParameterRange(
            name=name,
            min=float(entry["min"]),
            max=float(entry["max"]),
            step=float(entry["step"]),
        )
    return ranges


def factor_assignments(factor: InputFactor) -> List[PolicyAssignment]:
    """All valid (s, S) pairs for one factor. Raises ``ValueError`` if malformed."""

    if not factor.facility or not factor.product or factor.parameter_setup is None:
        raise ValueError("factor needs a facility, a product and a parameter setup")
    ranges = parse_parameter_setup(factor.parameter_setup)
    if "s" not in ranges or "S" not in ranges:
        raise ValueError("parameter setup must define both 's' and 'S'")
    s_range, S_range = ranges["s"], ranges["S"]
    s_values = expand_parameter(s_range.min, s_range.max, s_range.step)
    S_values = expand_parameter(S_range.min, S_range.max, S_range.step)
    return [
        PolicyAssignment(factor.facility, factor.product, s, S)
        for s in s_values
        for S in S_values
        if s < S
    ]


def _factor_grid(network: NetworkInput, diagnostics: Optional[List[Diagnostic]]) -> Dict[Tuple[str, str], List[PolicyAssignment]]:
    grid: Dict[Tuple[str, str], List[PolicyAssignment]] = {}
    for factor in network.input_factors:
        try:
            pairs = factor_assignments(factor)
        except (ValueError, TypeError, KeyError, OverflowError) as exc:
            report(
                diagnostics,
                "factor-dropped",
                f"Input factor {factor.facility}/{factor.product} dropped: {exc}",
                facility=factor.facility,
                product=factor.product,
            )
            continue
        grid[(factor.facility, factor.product)] = pairs
    return grid


def _legacy_scenario(network: NetworkInput, diagnostics: Optional[List[Diagnostic]]) -> Optional[Scenario]:
    def is_dc(facility: str) -> bool:
        kind = network.facility_type(facility)
        if kind is not None:
            return kind.strip().upper() == "DC"
        return facility.startswith("DC")

    policy = next((p for p in network.inventory_policy if is_dc(p.facility)), None)
    if policy is None:
        return None
    s = or_default(policy.reorder_point, LEGACY_REORDER_POINT)
    S = or_default(policy.order_up_to, LEGACY_ORDER_UP_TO)
    if not s < S:
        report(
            diagnostics,
            "legacy-scenario-dropped",
            f"Legacy policy for {policy.facility}/{policy.product} has s={s} >= S={S}",
            facility=policy.facility,
            product=policy.product,
        )
        return None
    assignment = PolicyAssignment(policy.facility, policy.product, s, S)
    description = f"{policy.facility} | {policy.product} | s={format_number(s)} | S={format_number(S)}"
    return Scenario(assignments=(assignment,), description=description)


def iter_scenarios(network: NetworkInput, diagnostics: Optional[List[Diagnostic]] = None) -> Iterator[Scenario]:
    """Yield scenarios lazily in Cartesian order (first factor varies slowest)."""

    if not network.input_factors:
        legacy = _legacy_scenario(network, diagnostics)
        if legacy is not None:
            yield legacy
        return

    grid = _factor_grid(network, diagnostics)
    if not grid:
        return
    for combo in itertools.product(*grid.values()):
        yield Scenario(
            assignments=tuple(combo),
            description=" | ".join(a.describe() for a in combo),
        )


def generate_scenarios(network: NetworkInput, diagnostics: Optional[List[Diagnostic]] = None) -> List[Scenario]:
    scenarios = list(iter_scenarios(network, diagnostics))
    logger.debug("Generated %d scenario(s) from %d input factor(s)", len(scenarios), len(network.input_factors))
    return scenarios


def count_scenarios(network: NetworkInput) -> int:
    """Number of scenarios :func:`generate_scenarios` would produce."""

    if not network.input_factors:
        return 1 if _legacy_scenario(network, None) is not None else 0
    grid = _factor_grid(network, None)
    if not grid:
        return 0
    return math.prod(len(pairs) for pairs in grid.values())


def scenario_from_policies(assignments: Sequence[Tuple[str, str, float, float]]) -> Scenario:
    """Build a single scenario from explicit ``(facility, product, s, S)`` tuples."""

    items = tuple(PolicyAssignment(f, p, float(s), float(S)) for f, p, s, S in assignments)
    if not items:
        raise ValueError("at least one assignment is required")
    for item in items:
        if not item.s < item.S:
            raise ValueError(f"Policy invalid for {item.facility_name}/{item.product_name}: s must be < S")
    return Scenario(assignments=items, description=" | ".join(a.describe() for a in items))


__all__ = [
    "ParameterRange",
    "PolicyAssignment",
    "Scenario",
    "count_scenarios",
    "expand_parameter",
    "factor_assignments",
    "format_number",
    "generate_scenarios",
    "iter_scenarios",
    "parse_parameter_setup",
    "scenario_from_policies",
]
