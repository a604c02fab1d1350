"""Typed network input records.

Rows arrive as mappings keyed by the planning tables' column names
(``"Facility Name"``, ``"Stocking Unit Cost"`` ...) or as pandas DataFrames.
Cells are coerced to numbers leniently and left as ``None`` when missing; the
documented defaults below are applied by the accessors on
:class:`NetworkInput`, never at parse time.

Customer fulfillment and order fulfillment rows, and the source column of
replenishment rows, are loaded for callers but never read by the simulator.
Replenishment ships along the transportation lane into the facility and
customers are served from the first swept facility.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from sampler import is_valid_distribution

logger = logging.getLogger(__name__)

Key = Tuple[str, str]  # (facility, product)

# ---------------------------------------------------------------------------
# Defaults used when a policy row or a cell is missing
# ---------------------------------------------------------------------------
DEFAULT_STOCKING_COST = 0.3
DEFAULT_INBOUND_HANDLING = 1.0
DEFAULT_OUTBOUND_HANDLING = 1.5
DEFAULT_PRODUCTION_POLICY = "Make By Demand"
DEFAULT_PRODUCTION_RATE = 1.0
DEFAULT_PRODUCTION_RATE_UOM = "DAY"
DEFAULT_PRODUCTION_UNIT_COST = 10.0
DEFAULT_TRANSPORT_UNIT_COST = 0.5
DEFAULT_TRANSPORT_FIXED_COST = 200.0
DEFAULT_TRANSPORT_TIME = "Constant(2)"
DEFAULT_TIME_UOM = "DAY"
DEFAULT_REPLENISHMENT_UNIT_COST = 0.0
DEFAULT_VEHICLE_TYPE = "Truck"
DEFAULT_VEHICLE_CAPACITY = 1000.0
DEFAULT_ORDER_QUANTITY = "Uniform(100,200)"
DEFAULT_ORDER_INTERVAL = "Constant(7)"
DEFAULT_SERVICE_WINDOW_DAYS = 14
DEFAULT_CUSTOMER_NAME = "Customer"
DEFAULT_REORDER_POINT = 0.0
DEFAULT_ORDER_UP_TO = 10.0
LEGACY_REORDER_POINT = 150.0
LEGACY_ORDER_UP_TO = 600.0

CONTINUOUS_PRODUCTION = "continuous"
MAKE_BY_DEMAND = "make_by_demand"
_PRODUCTION_KINDS = {
    "continuous production": CONTINUOUS_PRODUCTION,
    "make by demand": MAKE_BY_DEMAND,
}

_RATE_MULTIPLIERS = {"HR": 24.0, "MIN": 24.0 * 60.0, "DAY": 1.0}

_LEADING_NUMBER_RE = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")
_BOM_PART_RE = re.compile(r"^(.+)\(([0-9.]+)\)$")

TABLE_NAMES = (
    "facilities",
    "products",
    "customers",
    "customer_fulfillment",
    "replenishment",
    "production",
    "inventory_policy",
    "warehousing",
    "order_fulfillment",
    "transportation",
    "transportation_modes",
    "bom",
    "customer_orders",
    "input_factors",
)

# Table keys used by the planning app's export payload.
TABLE_ALIASES = {
    "facilityData": "facilities",
    "productData": "products",
    "customerData": "customers",
    "customerFulfillmentData": "customer_fulfillment",
    "replenishmentData": "replenishment",
    "productionData": "production",
    "inventoryPolicyData": "inventory_policy",
    "warehousingData": "warehousing",
    "orderFulfillmentData": "order_fulfillment",
    "transportationData": "transportation",
    "transportationModeData": "transportation_modes",
    "bomData": "bom",
    "customerOrderData": "customer_orders",
    "inputFactorsData": "input_factors",
}


# ---------------------------------------------------------------------------
# Diagnostics
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class Diagnostic:
    """A non-fatal data problem that was resolved by falling back to a default."""

    code: str
    message: str
    context: Dict[str, Any] = field(default_factory=dict)


def report(diagnostics: Optional[List[Diagnostic]], code: str, message: str, **context: Any) -> Diagnostic:
    diag = Diagnostic(code=code, message=message, context=context)
    logger.warning("%s: %s", code, message)
    if diagnostics is not None:
        diagnostics.append(diag)
    return diag


# ---------------------------------------------------------------------------
# Cell coercion
# ---------------------------------------------------------------------------
def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if isinstance(value, str) and not value.strip():
        return True
    return False


def cell_text(row: Mapping[str, Any], *columns: str) -> Optional[str]:
    for column in columns:
        value = row.get(column)
        if not _is_missing(value):
            return str(value).strip()
    return None


def cell_number(row: Mapping[str, Any], *columns: str) -> Optional[float]:
    """Leading-number parse of the first non-empty column (``"12 EA"`` -> 12)."""
    for column in columns:
        value = row.get(column)
        if _is_missing(value) or isinstance(value, bool):
            continue
        if isinstance(value, (int, float)):
            return float(value)
        match = _LEADING_NUMBER_RE.match(str(value))
        if match:
            return float(match.group(1))
        return None
    return None


def or_default(value: Optional[float], default: float) -> float:
    return default if value is None else value


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class Facility:
    name: str
    type: Optional[str] = None


@dataclass(frozen=True)
class Product:
    name: str
    type: Optional[str] = None


@dataclass(frozen=True)
class Customer:
    name: str


@dataclass(frozen=True)
class CustomerFulfillmentPolicy:
    """Pass-through record; demand is served from the first swept facility."""

    customer: str
    product: str
    source: Optional[str] = None


@dataclass(frozen=True)
class ReplenishmentPolicy:
    facility: str
    product: str
    source: Optional[str] = None  # informational; the lane comes from transportation
    unit_cost: Optional[float] = None


@dataclass(frozen=True)
class BomLine:
    material: str
    qty_per_unit: float


@dataclass(frozen=True)
class BillOfMaterials:
    bom_id: Optional[str]
    end_product: Optional[str]
    lines: Tuple[BomLine, ...] = ()


@dataclass(frozen=True)
class ProductionPolicy:
    facility: str
    product: str
    policy: Optional[str] = None
    rate: Optional[float] = None
    rate_uom: Optional[str] = None
    unit_cost: Optional[float] = None
    bom_id: Optional[str] = None
    bom: Tuple[BomLine, ...] = ()

    @property
    def kind(self) -> Optional[str]:
        name = (self.policy or DEFAULT_PRODUCTION_POLICY).strip().lower()
        return _PRODUCTION_KINDS.get(name)

    @property
    def daily_rate(self) -> float:
        rate = or_default(self.rate, DEFAULT_PRODUCTION_RATE)
        uom = (self.rate_uom or DEFAULT_PRODUCTION_RATE_UOM).strip().upper()
        return rate * _RATE_MULTIPLIERS.get(uom, 1.0)

    @property
    def effective_unit_cost(self) -> float:
        return or_default(self.unit_cost, DEFAULT_PRODUCTION_UNIT_COST)


@dataclass(frozen=True)
class InventoryPolicy:
    facility: str
    product: str
    policy: Optional[str] = None
    reorder_point: Optional[float] = None  # value 1 (s)
    order_up_to: Optional[float] = None  # value 2 (S)
    unit: Optional[str] = None
    initial_inventory: Optional[float] = None


@dataclass(frozen=True)
class WarehousingPolicy:
    facility: str
    product: str
    inbound_cost: Optional[float] = None
    outbound_cost: Optional[float] = None
    stocking_cost: Optional[float] = None


@dataclass(frozen=True)
class OrderFulfillmentPolicy:
    """Pass-through record; orders are reviewed daily and always partially filled."""

    facility: str
    review_period: Optional[float] = None
    review_period_uom: Optional[str] = None
    allow_partial_fill_orders: Optional[bool] = None
    allow_partial_fill_line_items: Optional[bool] = None


@dataclass(frozen=True)
class TransportationPolicy:
    origin: str
    destination: str
    product: str
    mode: Optional[str] = None
    unit_cost: Optional[float] = None
    fixed_cost: Optional[float] = None
    distance: Optional[float] = None
    time_distribution: Optional[str] = None
    time_uom: Optional[str] = None
    vehicle_capacity: Optional[float] = None

    @property
    def effective_mode(self) -> str:
        return self.mode or DEFAULT_VEHICLE_TYPE

    @property
    def effective_unit_cost(self) -> float:
        return or_default(self.unit_cost, DEFAULT_TRANSPORT_UNIT_COST)

    @property
    def effective_fixed_cost(self) -> float:
        return or_default(self.fixed_cost, DEFAULT_TRANSPORT_FIXED_COST)

    @property
    def effective_time_distribution(self) -> str:
        return self.time_distribution or DEFAULT_TRANSPORT_TIME

    @property
    def effective_time_uom(self) -> str:
        return self.time_uom or DEFAULT_TIME_UOM


@dataclass(frozen=True)
class TransportationMode:
    name: str
    vehicle_capacity: Optional[float] = None


@dataclass(frozen=True)
class CustomerOrderProfile:
    customer: Optional[str] = None
    product: Optional[str] = None
    quantity: Optional[str] = None
    time_between_orders: Optional[str] = None
    service_window: Optional[float] = None

    @property
    def effective_quantity(self) -> str:
        return self.quantity or DEFAULT_ORDER_QUANTITY

    @property
    def effective_interval(self) -> str:
        return self.time_between_orders or DEFAULT_ORDER_INTERVAL

    @property
    def service_window_days(self) -> int:
        if self.service_window is None:
            return DEFAULT_SERVICE_WINDOW_DAYS
        return int(self.service_window)

    @property
    def customer_name(self) -> str:
        return self.customer or DEFAULT_CUSTOMER_NAME


@dataclass(frozen=True)
class InputFactor:
    facility: Optional[str]
    product: Optional[str]
    parameter_setup: Any = None
    policy: Optional[str] = None


def _flag(value: Optional[str]) -> Optional[bool]:
    if value is None:
        return None
    return value.strip().lower() in {"true", "yes", "1", "y"}


def parse_bom(text: Optional[str], diagnostics: Optional[List[Diagnostic]] = None) -> Tuple[BomLine, ...]:
    """``"Raw_Material_1(2), Raw_Material_2(1)"`` -> two :class:`BomLine`."""
    if not text:
        return ()
    lines: List[BomLine] = []
    for part in (p.strip() for p in str(text).split(",")):
        match = _BOM_PART_RE.match(part)
        if not match:
            report(diagnostics, "bom-part-skipped", f"Cannot parse BOM entry {part!r}", entry=part)
            continue
        try:
            qty = float(match.group(2))
        except ValueError:
            report(diagnostics, "bom-part-skipped", f"Cannot parse BOM quantity in {part!r}", entry=part)
            continue
        lines.append(BomLine(material=match.group(1).strip(), qty_per_unit=qty))
    return tuple(lines)


# ---------------------------------------------------------------------------
# Row converters
# ---------------------------------------------------------------------------
def _rows(table: Any) -> List[Mapping[str, Any]]:
    if table is None:
        return []
    if hasattr(table, "to_dict"):
        return list(table.to_dict("records"))
    return [row for row in table if isinstance(row, Mapping)]


def _facility(row: Mapping[str, Any]) -> Optional[Facility]:
    name = cell_text(row, "Facility Name")
    return Facility(name=name, type=cell_text(row, "Type")) if name else None


def _product(row: Mapping[str, Any]) -> Optional[Product]:
    name = cell_text(row, "Product Name")
    return Product(name=name, type=cell_text(row, "Product Type")) if name else None


def _customer(row: Mapping[str, Any]) -> Optional[Customer]:
    name = cell_text(row, "Customer Name")
    return Customer(name=name) if name else None


def _customer_fulfillment(row: Mapping[str, Any]) -> Optional[CustomerFulfillmentPolicy]:
    customer, product = cell_text(row, "Customer Name"), cell_text(row, "Product Name")
    if not customer or not product:
        return None
    return CustomerFulfillmentPolicy(customer=customer, product=product, source=cell_text(row, "Source Name"))


def _replenishment(row: Mapping[str, Any]) -> Optional[ReplenishmentPolicy]:
    facility, product = cell_text(row, "Facility Name"), cell_text(row, "Product Name")
    if not facility or not product:
        return None
    return ReplenishmentPolicy(
        facility=facility,
        product=product,
        source=cell_text(row, "Source Name"),
        unit_cost=cell_number(row, "Unit Cost"),
    )


def _production(row: Mapping[str, Any]) -> Optional[ProductionPolicy]:
    facility, product = cell_text(row, "Facility Name"), cell_text(row, "Product Name")
    if not facility or not product:
        return None
    return ProductionPolicy(
        facility=facility,
        product=product,
        policy=cell_text(row, "Production Policy"),
        rate=cell_number(row, "Production Rate"),
        rate_uom=cell_text(row, "Rate Time UOM"),
        unit_cost=cell_number(row, "Unit Cost"),
        bom_id=cell_text(row, "BOM"),
    )


def _inventory_policy(row: Mapping[str, Any]) -> Optional[InventoryPolicy]:
    facility, product = cell_text(row, "Facility Name"), cell_text(row, "Product Name")
    if not facility or not product:
        return None
    return InventoryPolicy(
        facility=facility,
        product=product,
        policy=cell_text(row, "Simulation Policy"),
        reorder_point=cell_number(row, "Simulation Policy Value 1"),
        order_up_to=cell_number(row, "Simulation Policy Value 2"),
        unit=cell_text(row, "Simulation Policy Value 1 UOM"),
        initial_inventory=cell_number(row, "Initial Inventory"),
    )


def _warehousing(row: Mapping[str, Any]) -> Optional[WarehousingPolicy]:
    facility, product = cell_text(row, "Facility Name"), cell_text(row, "Product Name")
    if not facility or not product:
        return None
    return WarehousingPolicy(
        facility=facility,
        product=product,
        inbound_cost=cell_number(row, "Inbound Handling Cost"),
        outbound_cost=cell_number(row, "Outbound Handling Cost"),
        stocking_cost=cell_number(row, "Stocking Unit Cost"),
    )


def _order_fulfillment(row: Mapping[str, Any]) -> Optional[OrderFulfillmentPolicy]:
    facility = cell_text(row, "Facility Name")
    if not facility:
        return None
    return OrderFulfillmentPolicy(
        facility=facility,
        review_period=cell_number(row, "Review Period"),
        review_period_uom=cell_text(row, "Review Period UOM"),
        allow_partial_fill_orders=_flag(cell_text(row, "Allow Partial Fill Orders")),
        allow_partial_fill_line_items=_flag(cell_text(row, "Allow Partial Fill Line Items")),
    )


def _transportation(row: Mapping[str, Any]) -> Optional[TransportationPolicy]:
    origin, destination = cell_text(row, "Origin Name"), cell_text(row, "Destination Name")
    product = cell_text(row, "Product Name")
    if not origin or not destination or not product:
        return None
    return TransportationPolicy(
        origin=origin,
        destination=destination,
        product=product,
        mode=cell_text(row, "Mode Name", "Transportation Mode Name"),
        unit_cost=cell_number(row, "Unit Cost"),
        fixed_cost=cell_number(row, "Fixed Cost"),
        distance=cell_number(row, "Transport Distance"),
        time_distribution=cell_text(row, "Transport Time Distribution"),
        time_uom=cell_text(row, "Transport Time Distribution UOM"),
        vehicle_capacity=cell_number(row, "Vehicle Capacity"),
    )


def _transportation_mode(row: Mapping[str, Any]) -> Optional[TransportationMode]:
    name = cell_text(row, "Mode Name", "Transportation Mode Name")
    if not name:
        return None
    return TransportationMode(name=name, vehicle_capacity=cell_number(row, "Vehicle Capacity"))


def _customer_order(row: Mapping[str, Any]) -> CustomerOrderProfile:
    return CustomerOrderProfile(
        customer=cell_text(row, "Customer Name"),
        product=cell_text(row, "Product Name"),
        quantity=cell_text(row, "Quantity"),
        time_between_orders=cell_text(row, "Time Between Orders"),
        service_window=cell_number(row, "Service Level"),
    )


def _input_factor(row: Mapping[str, Any]) -> InputFactor:
    setup = row.get("Parameter Setup")
    return InputFactor(
        facility=cell_text(row, "Facility Name"),
        product=cell_text(row, "Product", "Product Name"),
        parameter_setup=None if _is_missing(setup) else setup,
        policy=cell_text(row, "Simulation Policy"),
    )


def _first_by_key(records: Iterable[Any], key_fn) -> Dict[Any, Any]:
    index: Dict[Any, Any] = {}
    for record in records:
        index.setdefault(key_fn(record), record)
    return index


# ---------------------------------------------------------------------------
# Network input
# ---------------------------------------------------------------------------
@dataclass
class NetworkInput:
    facilities: List[Facility] = field(default_factory=list)
    products: List[Product] = field(default_factory=list)
    customers: List[Customer] = field(default_factory=list)
    customer_fulfillment: List[CustomerFulfillmentPolicy] = field(default_factory=list)
    replenishment: List[ReplenishmentPolicy] = field(default_factory=list)
    production: List[ProductionPolicy] = field(default_factory=list)
    inventory_policy: List[InventoryPolicy] = field(default_factory=list)
    warehousing: List[WarehousingPolicy] = field(default_factory=list)
    order_fulfillment: List[OrderFulfillmentPolicy] = field(default_factory=list)
    transportation: List[TransportationPolicy] = field(default_factory=list)
    transportation_modes: List[TransportationMode] = field(default_factory=list)
    bom: List[BillOfMaterials] = field(default_factory=list)
    customer_orders: List[CustomerOrderProfile] = field(default_factory=list)
    input_factors: List[InputFactor] = field(default_factory=list)
    diagnostics: List[Diagnostic] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.production = [self._attach_bom(p) for p in self.production]
        self._facility_types = {f.name: f.type for f in self.facilities}
        self._inventory = _first_by_key(self.inventory_policy, lambda r: (r.facility, r.product))
        self._warehousing = _first_by_key(self.warehousing, lambda r: (r.facility, r.product))
        self._production = _first_by_key(self.production, lambda r: (r.facility, r.product))
        self._production_by_product = _first_by_key(self.production, lambda r: r.product)
        self._replenishment = _first_by_key(self.replenishment, lambda r: (r.facility, r.product))
        self._routes = _first_by_key(self.transportation, lambda r: (r.destination, r.product))
        self._route_modes = _first_by_key(self.transportation, lambda r: (r.origin, r.destination))
        self._modes = _first_by_key(self.transportation_modes, lambda r: r.name)
        self._check_distributions()

    # -- construction ------------------------------------------------------
    @classmethod
    def from_tables(cls, tables: Mapping[str, Any]) -> "NetworkInput":
        """Build a network from table name -> rows (or DataFrame)."""

        diagnostics: List[Diagnostic] = []
        normalized: Dict[str, List[Mapping[str, Any]]] = {name: [] for name in TABLE_NAMES}
        for name, table in tables.items():
            target = TABLE_ALIASES.get(name, name)
            if target not in normalized:
                report(diagnostics, "unknown-table", f"Ignoring unknown table {name!r}", table=name)
                continue
            normalized[target] = _rows(table)

        def convert(name: str, fn) -> List[Any]:
            return [rec for rec in (fn(row) for row in normalized[name]) if rec is not None]

        boms = [
            BillOfMaterials(
                bom_id=cell_text(row, "BOM ID"),
                end_product=cell_text(row, "End Product"),
                lines=parse_bom(cell_text(row, "Raw Materials"), diagnostics),
            )
            for row in normalized["bom"]
        ]
        return cls(
            facilities=convert("facilities", _facility),
            products=convert("products", _product),
            customers=convert("customers", _customer),
            customer_fulfillment=convert("customer_fulfillment", _customer_fulfillment),
            replenishment=convert("replenishment", _replenishment),
            production=convert("production", _production),
            inventory_policy=convert("inventory_policy", _inventory_policy),
            warehousing=convert("warehousing", _warehousing),
            order_fulfillment=convert("order_fulfillment", _order_fulfillment),
            transportation=convert("transportation", _transportation),
            transportation_modes=convert("transportation_modes", _transportation_mode),
            bom=boms,
            customer_orders=convert("customer_orders", _customer_order),
            input_factors=convert("input_factors", _input_factor),
            diagnostics=diagnostics,
        )

    def _attach_bom(self, policy: ProductionPolicy) -> ProductionPolicy:
        if policy.bom:
            return policy
        if policy.bom_id:
            entry = next((b for b in self.bom if b.bom_id == policy.bom_id), None)
            if entry is None:
                report(
                    self.diagnostics,
                    "bom-not-found",
                    f"BOM {policy.bom_id!r} for {policy.facility}/{policy.product} not found",
                    facility=policy.facility,
                    product=policy.product,
                    bom_id=policy.bom_id,
                )
        else:
            entry = next((b for b in self.bom if b.end_product == policy.product), None)
        if entry is None or not entry.lines:
            logger.debug("No BOM for %s/%s, production consumes no materials", policy.facility, policy.product)
            return policy
        return ProductionPolicy(
            facility=policy.facility,
            product=policy.product,
            policy=policy.policy,
            rate=policy.rate,
            rate_uom=policy.rate_uom,
            unit_cost=policy.unit_cost,
            bom_id=policy.bom_id,
            bom=entry.lines,
        )

    def _check_distributions(self) -> None:
        for profile in self.customer_orders[:1]:
            for label, spec in (("Quantity", profile.effective_quantity), ("Time Between Orders", profile.effective_interval)):
                if not is_valid_distribution(spec):
                    report(
                        self.diagnostics,
                        "distribution-fallback",
                        f"Customer order {label} {spec!r} is not a known distribution; sampling 100",
                        spec=spec,
                    )
        for route in self.transportation:
            spec = route.effective_time_distribution
            if not is_valid_distribution(spec):
                report(
                    self.diagnostics,
                    "distribution-fallback",
                    f"Transport time {spec!r} on {route.origin}->{route.destination} is not a known distribution; sampling 100",
                    spec=spec,
                    origin=route.origin,
                    destination=route.destination,
                )
        for policy in self.production:
            if policy.kind is None:
                report(
                    self.diagnostics,
                    "unknown-production-policy",
                    f"Production policy {policy.policy!r} at {policy.facility}/{policy.product} is not simulated",
                    facility=policy.facility,
                    product=policy.product,
                )

    # -- lookups -----------------------------------------------------------
    def facility_type(self, facility: str) -> Optional[str]:
        return self._facility_types.get(facility)

    def inventory_policy_for(self, facility: str, product: str) -> Optional[InventoryPolicy]:
        return self._inventory.get((facility, product))

    def production_for(self, facility: str, product: str) -> Optional[ProductionPolicy]:
        return self._production.get((facility, product))

    def production_for_product(self, product: str) -> Optional[ProductionPolicy]:
        return self._production_by_product.get(product)

    def route_to(self, facility: str, product: str) -> Optional[TransportationPolicy]:
        return self._routes.get((facility, product))

    def order_profile(self) -> CustomerOrderProfile:
        return self.customer_orders[0] if self.customer_orders else CustomerOrderProfile()

    def stocking_cost(self, facility: str, product: str) -> float:
        row = self._warehousing.get((facility, product))
        return or_default(row.stocking_cost if row else None, DEFAULT_STOCKING_COST)

    def inbound_handling(self, facility: str, product: str) -> float:
        row = self._warehousing.get((facility, product))
        return or_default(row.inbound_cost if row else None, DEFAULT_INBOUND_HANDLING)

    def outbound_handling(self, facility: str, product: str) -> float:
        row = self._warehousing.get((facility, product))
        return or_default(row.outbound_cost if row else None, DEFAULT_OUTBOUND_HANDLING)

    def replenishment_unit_cost(self, facility: str, product: str) -> float:
        row = self._replenishment.get((facility, product))
        return or_default(row.unit_cost if row else None, DEFAULT_REPLENISHMENT_UNIT_COST)

    def vehicle_mode(self, origin: str, destination: str, fallback: str = DEFAULT_VEHICLE_TYPE) -> str:
        route = self._route_modes.get((origin, destination))
        return route.mode if route is not None and route.mode else fallback

    def vehicle_capacity(self, mode: str) -> float:
        entry = self._modes.get(mode)
        capacity = entry.vehicle_capacity if entry else None
        if capacity is None:
            capacity = next(
                (r.vehicle_capacity for r in self.transportation if r.mode == mode and r.vehicle_capacity),
                None,
            )
        if not capacity or capacity <= 0:
            return DEFAULT_VEHICLE_CAPACITY
        return capacity


def initial_inventory(policy: Optional[InventoryPolicy], order_up_to: float) -> float:
    if policy is None or policy.initial_inventory is None:
        return order_up_to
    return policy.initial_inventory


__all__ = [
    "BillOfMaterials",
    "BomLine",
    "CONTINUOUS_PRODUCTION",
    "Customer",
    "CustomerFulfillmentPolicy",
    "CustomerOrderProfile",
    "Diagnostic",
    "Facility",
    "InputFactor",
    "InventoryPolicy",
    "Key",
    "MAKE_BY_DEMAND",
    "NetworkInput",
    "OrderFulfillmentPolicy",
    "Product",
    "ProductionPolicy",
    "ReplenishmentPolicy",
    "TABLE_NAMES",
    "TransportationMode",
    "TransportationPolicy",
    "WarehousingPolicy",
    "cell_number",
    "cell_text",
    "initial_inventory",
    "or_default",
    "parse_bom",
    "report",
]
