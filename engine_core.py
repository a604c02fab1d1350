from __future__ import annotations
import logging
import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np

from network import (
    CONTINUOUS_PRODUCTION,
    DEFAULT_ORDER_UP_TO,
    DEFAULT_PRODUCTION_UNIT_COST,
    DEFAULT_REORDER_POINT,
    DEFAULT_TRANSPORT_FIXED_COST,
    DEFAULT_TRANSPORT_TIME,
    DEFAULT_TRANSPORT_UNIT_COST,
    Key,
    NetworkInput,
    ProductionPolicy,
    initial_inventory,
    or_default,
)
from sampler import RandomSource, convert_to_days, describe_distribution, draw_sample, round_half_up
from scenarios import Scenario

logger = logging.getLogger(__name__)

DEFAULT_HORIZON_DAYS = 365


# ---------------------------------------------------------------------------
# State
# ---------------------------------------------------------------------------
@dataclass
class FacilityInventoryState:
    facility_name: str
    product_name: str
    inventory: float
    s: float
    S: float

    @property
    def key(self) -> Key:
        return self.facility_name, self.product_name


@dataclass
class PendingOrder:
    id: int
    qty: float
    age: int
    placed: int


@dataclass
class PendingReplenishment:
    id: int
    qty: float
    arrival_day: int
    order_day: int
    destination: Key
    source: Key


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class CostBreakdown:
    transportation: float = 0.0
    production: float = 0.0
    handling: float = 0.0
    inventory: float = 0.0
    replenishment: float = 0.0

    @property
    def total(self) -> float:
        return self.transportation + self.production + self.handling + self.inventory + self.replenishment


@dataclass(frozen=True)
class TransportationDetails:
    fixed_cost_per_order: float
    transport_unit_cost: float
    replenishment_unit_cost: float
    total_orders: int
    total_units: float
    distribution_type: str
    distribution_params: str


@dataclass(frozen=True)
class ProductionDetails:
    unit_cost: float
    total_units: float


@dataclass(frozen=True)
class HandlingDetails:
    inbound_cost: float
    outbound_cost: float
    inbound_units: float
    outbound_units: float


@dataclass(frozen=True)
class FacilityInventoryDetails:
    facility_name: str
    product_name: str
    holding_cost_per_unit: float
    avg_inventory: float
    total_holding_cost: float


@dataclass(frozen=True)
class InventoryDetails:
    holding_cost_per_unit: float
    avg_inventory: float
    days: int
    by_facility: Tuple[FacilityInventoryDetails, ...] = ()


@dataclass
class OrderLogEntry:
    order_id: int
    customer_name: str
    product_name: str
    quantity: float
    order_day: int
    delivery_day: Optional[int] = None
    wait_time: int = 0
    on_time: bool = False
    scenario: str = ""
    scenario_description: str = ""
    replication: int = 0


@dataclass(frozen=True)
class InventorySnapshot:
    day: int
    inventory: float
    facility: str
    product: str
    scenario: str
    scenario_description: str
    replication: int


@dataclass(frozen=True)
class ProductionLogEntry:
    day: int
    facility: str
    product: str
    quantity_produced: float
    status: str  # "active" | "idle"
    current_inventory: float
    raw_materials_used: Optional[str]
    raw_material_inventories: Optional[str]
    scenario: str
    scenario_description: str
    replication: int


@dataclass(frozen=True)
class ProductFlowEntry:
    source: str
    destination: str
    product: str
    quantity: float
    day: int
    scenario: str
    scenario_description: str
    replication: int


@dataclass(frozen=True)
class TripLogEntry:
    origin: str
    destination: str
    vehicle_type: str
    trips: int
    total_quantity: float
    scenario: str
    scenario_description: str
    replication: int


@dataclass
class ReplicationResult:
    replication: int
    cost: float
    fill_rate: float
    elt_service_level: float
    cost_breakdown: CostBreakdown
    transportation_details: TransportationDetails
    production_details: ProductionDetails
    handling_details: HandlingDetails
    inventory_details: InventoryDetails
    total_demand: float = 0.0
    total_fulfilled: float = 0.0
    total_orders: int = 0
    on_time_orders: int = 0
    order_log: List[OrderLogEntry] = field(default_factory=list)
    inventory_snapshots: List[InventorySnapshot] = field(default_factory=list)
    production_log: List[ProductionLogEntry] = field(default_factory=list)
    product_flow_log: List[ProductFlowEntry] = field(default_factory=list)
    trip_log: List[TripLogEntry] = field(default_factory=list)


def build_inventory_state(network: NetworkInput, scenario: Scenario) -> Dict[Key, FacilityInventoryState]:
    """Swept keys first (scenario order), then every other inventory policy row."""

    states: Dict[Key, FacilityInventoryState] = {}
    for item in scenario.assignments:
        policy = network.inventory_policy_for(item.facility_name, item.product_name)
        states[item.key] = FacilityInventoryState(
            facility_name=item.facility_name,
            product_name=item.product_name,
            inventory=initial_inventory(policy, item.S),
            s=item.s,
            S=item.S,
        )
    for policy in network.inventory_policy:
        key = (policy.facility, policy.product)
        if key in states:
            continue
        S = or_default(policy.order_up_to, DEFAULT_ORDER_UP_TO)
        states[key] = FacilityInventoryState(
            facility_name=policy.facility,
            product_name=policy.product,
            inventory=initial_inventory(policy, S),
            s=or_default(policy.reorder_point, DEFAULT_REORDER_POINT),
            S=S,
        )
    return states


def _format_materials(used: List[Tuple[str, float, float]]) -> Tuple[Optional[str], Optional[str]]:
    if not used:
        return None, None
    consumed = ", ".join(f"{name}({qty:.2f})" for name, qty, _ in used)
    remaining = ", ".join(f"{name}:{after:.2f}" for name, _, after in used)
    return consumed, remaining


# ---------------------------------------------------------------------------
# Core simulation
# ---------------------------------------------------------------------------
class _Replication:
    def __init__(
        self,
        network: NetworkInput,
        scenario: Scenario,
        rng: RandomSource,
        *,
        replication: int,
        horizon_days: int,
        collect_logs: bool,
        collect_inventory: bool,
    ) -> None:
        self.network = network
        self.scenario = scenario
        self.rng = rng
        self.replication = replication
        self.days = horizon_days
        self.collect_logs = collect_logs
        self.collect_inventory = collect_inventory

        self.states = build_inventory_state(network, scenario)
        self.demand_key: Key = scenario.primary.key
        self.stocking = {k: network.stocking_cost(*k) for k in self.states}
        self.inbound = {k: network.inbound_handling(*k) for k in self.states}
        self.production_policies = {
            k: p for k, p in ((k, network.production_for(*k)) for k in self.states) if p is not None
        }

        profile = network.order_profile()
        self.quantity_spec = profile.effective_quantity
        self.interval_spec = profile.effective_interval
        self.service_window = profile.service_window_days
        self.customer_name = profile.customer_name
        self.order_product = profile.product or scenario.primary.product_name
        self.outbound_rate = network.outbound_handling(*self.demand_key)
        self.customer_mode = network.vehicle_mode(self.demand_key[0], self.customer_name)

        self.pending_orders: List[PendingOrder] = []
        self.pending_replenishments: List[PendingReplenishment] = []
        self.order_rows: Dict[int, OrderLogEntry] = {}
        self.trips: Dict[Tuple[str, str, str], float] = {}
        self.daily_sums: Dict[Key, float] = {k: 0.0 for k in self.states}

        self.next_order_day = 0
        self.order_counter = 1
        self.replenishment_counter = 1

        self.costs = {name: 0.0 for name in ("transportation", "production", "handling", "inventory", "replenishment")}
        self.total_demand = 0.0
        self.total_fulfilled = 0.0
        self.total_orders = 0
        self.on_time_orders = 0
        self.replenishment_orders = 0
        self.replenishment_units = 0.0
        self.production_units = 0.0
        self.inbound_units = 0.0
        self.outbound_units = 0.0

        self.order_log: List[OrderLogEntry] = []
        self.snapshots: List[InventorySnapshot] = []
        self.production_log: List[ProductionLogEntry] = []
        self.flow_log: List[ProductFlowEntry] = []

    # -- helpers -----------------------------------------------------------
    def _labels(self, tag: Optional[str] = None) -> Dict[str, object]:
        return {
            "scenario": tag or self.scenario.tag,
            "scenario_description": self.scenario.description,
            "replication": self.replication,
        }

    def _in_transit_to(self, key: Key) -> float:
        return sum(r.qty for r in self.pending_replenishments if r.destination == key)

    def _in_transit_from(self, key: Key) -> float:
        return sum(r.qty for r in self.pending_replenishments if r.source == key)

    def _add_trip(self, origin: str, destination: str, mode: str, qty: float) -> None:
        route = (origin, destination, mode)
        self.trips[route] = self.trips.get(route, 0.0) + qty

    def _flow(self, source: str, destination: str, product: str, qty: float, day: int, tag: Optional[str] = None) -> None:
        if self.collect_logs:
            self.flow_log.append(
                ProductFlowEntry(source=source, destination=destination, product=product, quantity=qty, day=day, **self._labels(tag))
            )

    # -- daily steps -------------------------------------------------------
    def arrive_demand(self, day: int) -> None:
        if day < self.next_order_day:
            return
        qty = max(0.0, round_half_up(draw_sample(self.quantity_spec, self.rng)))
        order_id = self.order_counter
        self.order_counter += 1
        self.pending_orders.append(PendingOrder(id=order_id, qty=qty, age=0, placed=day))
        self.total_orders += 1
        self.total_demand += qty
        if self.collect_logs:
            row = OrderLogEntry(
                order_id=order_id,
                customer_name=self.customer_name,
                product_name=self.order_product,
                quantity=qty,
                order_day=day,
                **self._labels(),
            )
            self.order_rows[order_id] = row
            self.order_log.append(row)
        interval = max(1, int(round_half_up(draw_sample(self.interval_spec, self.rng))))
        self.next_order_day = day + interval

    def age_orders(self) -> None:
        for order in self.pending_orders:
            order.age += 1

    def fulfil_orders(self, day: int) -> None:
        state = self.states[self.demand_key]
        for order in self.pending_orders:
            if state.inventory <= 0:
                break
            shipped = min(order.qty, state.inventory)
            order.qty -= shipped
            state.inventory -= shipped
            self.total_fulfilled += shipped
            self.outbound_units += shipped
            self.costs["handling"] += shipped * self.outbound_rate
            if shipped > 0:
                self._flow(state.facility_name, self.customer_name, self.order_product, shipped, day)
                self._add_trip(state.facility_name, self.customer_name, self.customer_mode, shipped)
            if order.qty <= 0:
                # age already counts the placement day
                wait = order.age
                on_time = wait <= self.service_window
                if on_time:
                    self.on_time_orders += 1
                row = self.order_rows.get(order.id)
                if row is not None:
                    row.delivery_day = day
                    row.wait_time = wait
                    row.on_time = on_time
        self.pending_orders = [o for o in self.pending_orders if o.qty > 0]

    def accrue_holding(self) -> None:
        for key, state in self.states.items():
            if state.inventory > 0:
                self.costs["inventory"] += self.stocking[key] * state.inventory
            self.daily_sums[key] += state.inventory

    def receive_replenishments(self, day: int) -> None:
        remaining: List[PendingReplenishment] = []
        for rep in self.pending_replenishments:
            if rep.arrival_day > day:
                remaining.append(rep)
                continue
            self.states[rep.destination].inventory += rep.qty
            self.inbound_units += rep.qty
            self.costs["handling"] += rep.qty * self.inbound[rep.destination]
        self.pending_replenishments = remaining

    def produce(self, day: int, key: Key, state: FacilityInventoryState, policy: ProductionPolicy) -> None:
        kind = policy.kind
        if kind is None:
            return
        rate = policy.daily_rate
        target: Optional[float] = None
        if kind == CONTINUOUS_PRODUCTION:
            if state.inventory < state.S and rate > 0:
                target = min(rate, state.S - state.inventory)
        else:
            position = state.inventory + self._in_transit_from(key)
            if position <= state.s and rate > 0:
                target = min(rate, state.S - position)

        used: List[Tuple[str, float, float]] = []
        produced = 0.0
        if target is not None:
            produced = target
            if policy.bom:
                materials = [(line, self.states.get((state.facility_name, line.material))) for line in policy.bom]
                for line, mat in materials:
                    if line.qty_per_unit > 0:
                        available = mat.inventory if mat is not None else 0.0
                        produced = min(produced, math.floor(available / line.qty_per_unit))
                if produced > 0:
                    for line, mat in materials:
                        if mat is None:
                            continue
                        consumed = produced * line.qty_per_unit
                        mat.inventory -= consumed
                        used.append((line.material, consumed, mat.inventory))
                    state.inventory += produced
                else:
                    produced = 0.0
                    for line, mat in materials:
                        used.append((line.material, 0.0, mat.inventory if mat is not None else 0.0))
            else:
                state.inventory += produced
            self.costs["production"] += produced * policy.effective_unit_cost
            self.production_units += produced

        if self.collect_logs:
            consumed_text, remaining_text = _format_materials(used)
            self.production_log.append(
                ProductionLogEntry(
                    day=day,
                    facility=state.facility_name,
                    product=state.product_name,
                    quantity_produced=produced,
                    status="active" if produced > 0 else "idle",
                    current_inventory=state.inventory,
                    raw_materials_used=consumed_text,
                    raw_material_inventories=remaining_text,
                    **self._labels(f"{state.facility_name}-{state.product_name}"),
                )
            )

    def replenish(self, day: int, key: Key, state: FacilityInventoryState) -> None:
        position = state.inventory + self._in_transit_to(key)
        if position > state.s:
            return
        requested = state.S - position
        if requested <= 0:
            return
        route = self.network.route_to(*key)
        if route is None:
            return
        source_key = (route.origin, state.product_name)
        source = self.states.get(source_key)
        if source is None or source.inventory <= 0:
            return

        qty = min(requested, source.inventory)
        source.inventory -= qty
        self.costs["transportation"] += qty * route.effective_unit_cost + route.effective_fixed_cost
        self.costs["replenishment"] += qty * self.network.replenishment_unit_cost(*key)
        self.replenishment_orders += 1
        self.replenishment_units += qty

        lead_time = convert_to_days(draw_sample(route.effective_time_distribution, self.rng), route.effective_time_uom)
        self.pending_replenishments.append(
            PendingReplenishment(
                id=self.replenishment_counter,
                qty=qty,
                arrival_day=int(round_half_up(day + lead_time)),
                order_day=day,
                destination=key,
                source=source_key,
            )
        )
        self.replenishment_counter += 1
        self._flow(route.origin, state.facility_name, state.product_name, qty, day, f"{state.facility_name}-{state.product_name}")
        self._add_trip(route.origin, state.facility_name, route.effective_mode, qty)

    def snapshot(self, day: int) -> None:
        for state in self.states.values():
            self.snapshots.append(
                InventorySnapshot(
                    day=day,
                    inventory=state.inventory,
                    facility=state.facility_name,
                    product=state.product_name,
                    **self._labels(f"{state.facility_name}-{state.product_name}"),
                )
            )

    def step(self, day: int) -> None:
        self.arrive_demand(day)
        self.age_orders()
        self.fulfil_orders(day)
        self.accrue_holding()
        self.receive_replenishments(day)
        for key, state in self.states.items():
            policy = self.production_policies.get(key)
            if policy is not None:
                self.produce(day, key, state, policy)
            self.replenish(day, key, state)
        if self.collect_inventory:
            self.snapshot(day)

    # -- end of horizon ----------------------------------------------------
    def finish(self) -> ReplicationResult:
        network, days = self.network, self.days
        primary = self.scenario.primary

        route = network.route_to(primary.facility_name, primary.product_name)
        dist_type, dist_params = describe_distribution(
            route.effective_time_distribution if route else DEFAULT_TRANSPORT_TIME
        )
        transportation = TransportationDetails(
            fixed_cost_per_order=route.effective_fixed_cost if route else DEFAULT_TRANSPORT_FIXED_COST,
            transport_unit_cost=route.effective_unit_cost if route else DEFAULT_TRANSPORT_UNIT_COST,
            replenishment_unit_cost=network.replenishment_unit_cost(*primary.key),
            total_orders=self.replenishment_orders,
            total_units=self.replenishment_units,
            distribution_type=dist_type,
            distribution_params=dist_params,
        )

        production = network.production_for_product(primary.product_name)
        production_details = ProductionDetails(
            unit_cost=production.effective_unit_cost if production else DEFAULT_PRODUCTION_UNIT_COST,
            total_units=self.production_units,
        )
        handling = HandlingDetails(
            inbound_cost=network.inbound_handling(*primary.key),
            outbound_cost=self.outbound_rate,
            inbound_units=self.inbound_units,
            outbound_units=self.outbound_units,
        )

        by_facility = []
        for key, state in self.states.items():
            avg = self.daily_sums[key] / days
            by_facility.append(
                FacilityInventoryDetails(
                    facility_name=state.facility_name,
                    product_name=state.product_name,
                    holding_cost_per_unit=self.stocking[key],
                    avg_inventory=avg,
                    total_holding_cost=avg * self.stocking[key] * days,
                )
            )
        inventory = InventoryDetails(
            holding_cost_per_unit=self.stocking[primary.key],
            avg_inventory=self.daily_sums[primary.key] / days,
            days=days,
            by_facility=tuple(by_facility),
        )

        trip_log: List[TripLogEntry] = []
        if self.collect_logs:
            for (origin, destination, mode), qty in self.trips.items():
                trip_log.append(
                    TripLogEntry(
                        origin=origin,
                        destination=destination,
                        vehicle_type=mode,
                        trips=int(math.ceil(qty / network.vehicle_capacity(mode))),
                        total_quantity=qty,
                        **self._labels(),
                    )
                )

        breakdown = CostBreakdown(**self.costs)
        return ReplicationResult(
            replication=self.replication,
            cost=breakdown.total,
            fill_rate=self.total_fulfilled / self.total_demand * 100 if self.total_demand > 0 else 0.0,
            elt_service_level=self.on_time_orders / self.total_orders * 100 if self.total_orders > 0 else 0.0,
            cost_breakdown=breakdown,
            transportation_details=transportation,
            production_details=production_details,
            handling_details=handling,
            inventory_details=inventory,
            total_demand=self.total_demand,
            total_fulfilled=self.total_fulfilled,
            total_orders=self.total_orders,
            on_time_orders=self.on_time_orders,
            order_log=self.order_log,
            inventory_snapshots=self.snapshots,
            production_log=self.production_log,
            product_flow_log=self.flow_log,
            trip_log=trip_log,
        )


def run_replication(
    network: NetworkInput,
    scenario: Scenario,
    rng: Optional[RandomSource] = None,
    *,
    replication: int = 1,
    horizon_days: int = DEFAULT_HORIZON_DAYS,
    collect_logs: bool = False,
    collect_inventory: bool = False,
) -> ReplicationResult:
    """Simulate one scenario for ``horizon_days`` days.

    Parameters
    ----------
    network : NetworkInput
        Facilities, products and policy tables.
    scenario : Scenario
        (s, S) assignments; the first assignment's facility serves customers.
    rng : RandomSource, optional
        Random source for every draw (``numpy.random.Generator`` or anything
        with ``random()``). ``None`` uses a fresh unseeded generator.
    replication : int
        Label stamped on log rows. It does not seed anything.
    collect_logs, collect_inventory : bool
        Keep order/production/flow/trip logs and daily inventory snapshots.
    """

    if horizon_days <= 0:
        raise ValueError("horizon_days must be positive")
    if not scenario.assignments:
        raise ValueError("scenario has no policy assignments")

    sim = _Replication(
        network,
        scenario,
        rng if rng is not None else np.random.default_rng(),
        replication=replication,
        horizon_days=int(horizon_days),
        collect_logs=collect_logs,
        collect_inventory=collect_inventory,
    )
    for day in range(sim.days):
        sim.step(day)
    result = sim.finish()
    logger.debug(
        "Replication %d of %r: cost=%.2f fill=%.2f elt=%.2f",
        replication,
        scenario.description,
        result.cost,
        result.fill_rate,
        result.elt_service_level,
    )
    return result


__all__ = [
    "CostBreakdown",
    "DEFAULT_HORIZON_DAYS",
    "FacilityInventoryDetails",
    "FacilityInventoryState",
    "HandlingDetails",
    "InventoryDetails",
    "InventorySnapshot",
    "OrderLogEntry",
    "PendingOrder",
    "PendingReplenishment",
    "ProductFlowEntry",
    "ProductionDetails",
    "ProductionLogEntry",
    "ReplicationResult",
    "TransportationDetails",
    "TripLogEntry",
    "build_inventory_state",
    "run_replication",
]
