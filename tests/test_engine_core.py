import numpy as np
import pytest

from engine_core import build_inventory_state, run_replication
from network import NetworkInput
from scenarios import generate_scenarios, scenario_from_policies


def _inv(facility, product, s=None, S=None, initial=None):
    row = {"Facility Name": facility, "Product Name": product}
    if s is not None:
        row["Simulation Policy Value 1"] = s
    if S is not None:
        row["Simulation Policy Value 2"] = S
    if initial is not None:
        row["Initial Inventory"] = initial
    return row


def _orders(quantity="Constant(0)", interval="Constant(7)", window=14):
    return [{"Customer Name": "C1", "Product Name": "Product_1", "Quantity": quantity, "Time Between Orders": interval, "Service Level": window}]


def _factory_network(rm1=1000, policy="Make By Demand", rate=100, with_bom=True):
    return NetworkInput.from_tables({
        "facilities": [{"Facility Name": "S1", "Type": "Factory"}],
        "production": [
            {"Facility Name": "S1", "Product Name": "Product_1", "Production Policy": policy, "Production Rate": rate, "Rate Time UOM": "DAY", "Unit Cost": 10, "BOM": "BOM_1" if with_bom else None},
        ],
        "bom": [{"BOM ID": "BOM_1", "End Product": "Product_1", "Raw Materials": "Raw_Material_1(2), Raw_Material_2(1)"}] if with_bom else [],
        "inventory_policy": [
            _inv("S1", "Product_1", 50, 200, 0),
            _inv("S1", "Raw_Material_1", 0, 1000, rm1),
            _inv("S1", "Raw_Material_2", 0, 1000, 1000),
        ],
        "customer_orders": _orders(),
    })


def _dc_network(**order_kwargs):
    return NetworkInput.from_tables({
        "facilities": [{"Facility Name": "DC1", "Type": "DC"}, {"Facility Name": "S1", "Type": "Factory"}],
        "inventory_policy": [
            _inv("DC1", "Product_1", 100, 500, 0),
            _inv("S1", "Product_1", 0, 2000, 1000),
        ],
        "transportation": [
            {"Origin Name": "S1", "Destination Name": "DC1", "Product Name": "Product_1", "Mode Name": "Truck", "Unit Cost": 0.5, "Fixed Cost": 200, "Transport Time Distribution": "Constant(2)", "Transport Time Distribution UOM": "DAY"},
        ],
        "customer_orders": _orders(**order_kwargs),
    })


def _sample_network():
    return NetworkInput.from_tables({
        "facilities": [{"Facility Name": "DC1", "Type": "DC"}, {"Facility Name": "S1", "Type": "Factory"}, {"Facility Name": "Supplier_1", "Type": "Supplier"}],
        "production": [
            {"Facility Name": "S1", "Product Name": "Product_1", "Production Policy": "Make By Demand", "Production Rate": 100, "Rate Time UOM": "DAY", "Unit Cost": 10, "BOM": "BOM_1"},
        ],
        "bom": [{"BOM ID": "BOM_1", "End Product": "Product_1", "Raw Materials": "Raw_Material_1(2), Raw_Material_2(1)"}],
        "inventory_policy": [
            _inv("S1", "Product_1", 50, 200, 100),
            _inv("S1", "Raw_Material_1", 100, 500, 300),
            _inv("S1", "Raw_Material_2", 80, 400, 250),
            _inv("DC1", "Product_1", 150, 600, 400),
            _inv("Supplier_1", "Raw_Material_1", 0, 999999, 999999),
            _inv("Supplier_1", "Raw_Material_2", 0, 999999, 999999),
        ],
        "transportation": [
            {"Origin Name": "S1", "Destination Name": "DC1", "Product Name": "Product_1", "Mode Name": "Truck", "Transport Time Distribution": "Uniform(1, 4)"},
            {"Origin Name": "Supplier_1", "Destination Name": "S1", "Product Name": "Raw_Material_1", "Transport Time Distribution": "Constant(1)"},
            {"Origin Name": "Supplier_1", "Destination Name": "S1", "Product Name": "Raw_Material_2", "Transport Time Distribution": "Constant(1)"},
        ],
        "customer_orders": _orders(quantity="Uniform(100, 200)", interval="Normal(3, 1)", window=5),
        "input_factors": [
            {"Facility Name": "DC1", "Product": "Product_1", "Parameter Setup": '[{"name": "s", "min": 100, "max": 200, "step": 50}, {"name": "S", "min": 500, "max": 800, "step": 100}]'},
        ],
    })


def test_bom_production_consumes_materials_per_unit():
    net = _factory_network()
    scenario = scenario_from_policies([("S1", "Product_1", 50, 200)])
    result = run_replication(net, scenario, np.random.default_rng(0), horizon_days=1, collect_logs=True)

    (entry,) = result.production_log
    assert entry.quantity_produced == 100
    assert entry.status == "active"
    assert entry.raw_materials_used == "Raw_Material_1(200.00), Raw_Material_2(100.00)"
    assert entry.raw_material_inventories == "Raw_Material_1:800.00, Raw_Material_2:900.00"
    assert result.cost_breakdown.production == pytest.approx(1000)


def test_bom_production_capped_by_scarce_material():
    net = _factory_network(rm1=150)
    scenario = scenario_from_policies([("S1", "Product_1", 50, 200)])
    result = run_replication(net, scenario, np.random.default_rng(0), horizon_days=1, collect_logs=True)

    (entry,) = result.production_log
    assert entry.quantity_produced == 75
    assert entry.raw_materials_used == "Raw_Material_1(150.00), Raw_Material_2(75.00)"
    assert entry.raw_material_inventories == "Raw_Material_1:0.00, Raw_Material_2:925.00"


def test_production_without_bom_consumes_nothing():
    net = _factory_network(with_bom=False)
    scenario = scenario_from_policies([("S1", "Product_1", 50, 200)])
    result = run_replication(net, scenario, np.random.default_rng(0), horizon_days=1, collect_logs=True)
    (entry,) = result.production_log
    assert entry.quantity_produced == 100
    assert entry.raw_materials_used is None


def test_continuous_production_fills_up_to_S():
    net = _factory_network(policy="Continuous Production", rate=30, with_bom=False)
    scenario = scenario_from_policies([("S1", "Product_1", 10, 50)])
    result = run_replication(net, scenario, np.random.default_rng(0), horizon_days=3, collect_logs=True)
    assert [e.quantity_produced for e in result.production_log] == [30, 20, 0]
    assert [e.status for e in result.production_log] == ["active", "active", "idle"]


def test_constant_two_day_lead_time_arrives_on_day_two():
    net = _dc_network()
    scenario = scenario_from_policies([("DC1", "Product_1", 100, 500)])
    result = run_replication(net, scenario, np.random.default_rng(0), horizon_days=4, collect_logs=True, collect_inventory=True)

    dc = {s.day: s.inventory for s in result.inventory_snapshots if s.facility == "DC1"}
    assert dc == {0: 0, 1: 0, 2: 500, 3: 500}
    assert result.cost_breakdown.transportation == pytest.approx(500 * 0.5 + 200)
    (flow,) = [f for f in result.product_flow_log if f.destination == "DC1"]
    assert (flow.source, flow.quantity, flow.day) == ("S1", 500, 0)
    assert result.transportation_details.distribution_type == "Constant"
    assert result.transportation_details.total_orders == 1


def test_fifo_partial_fulfillment_costs_and_service():
    net = NetworkInput.from_tables({
        "inventory_policy": [_inv("DC1", "Product_1", 10, 20, 150)],
        "customer_orders": _orders(quantity="Constant(100)", interval="Constant(1)", window=14),
    })
    scenario = scenario_from_policies([("DC1", "Product_1", 10, 20)])
    result = run_replication(net, scenario, np.random.default_rng(0), horizon_days=3, collect_logs=True)

    assert result.total_demand == 300
    assert result.total_fulfilled == 150
    assert result.fill_rate == pytest.approx(50.0)
    assert result.elt_service_level == pytest.approx(100 / 3)
    assert result.cost_breakdown.handling == pytest.approx(150 * 1.5)
    assert result.cost_breakdown.inventory == pytest.approx(50 * 0.3)
    assert result.cost == pytest.approx(150 * 1.5 + 50 * 0.3)

    first, second, third = result.order_log
    assert (first.delivery_day, first.wait_time, first.on_time) == (0, 1, True)
    assert second.delivery_day is None and third.delivery_day is None
    (trip,) = result.trip_log
    assert (trip.origin, trip.destination, trip.trips, trip.total_quantity) == ("DC1", "C1", 1, 150)


def test_same_day_delivery_counts_placement_day():
    net = NetworkInput.from_tables({
        "inventory_policy": [_inv("DC1", "Product_1", 10, 20, 100)],
        "customer_orders": _orders(quantity="Constant(10)", interval="Constant(7)", window=0),
    })
    scenario = scenario_from_policies([("DC1", "Product_1", 10, 20)])
    result = run_replication(net, scenario, np.random.default_rng(0), horizon_days=1, collect_logs=True)

    (order,) = result.order_log
    assert (order.delivery_day, order.wait_time, order.on_time) == (0, 1, False)
    assert result.fill_rate == pytest.approx(100.0)
    assert result.elt_service_level == 0.0


def test_make_by_demand_position_counts_outbound_in_transit():
    net = NetworkInput.from_tables({
        "facilities": [{"Facility Name": "DC1", "Type": "DC"}, {"Facility Name": "S1", "Type": "Factory"}],
        "production": [
            {"Facility Name": "S1", "Product Name": "Product_1", "Production Policy": "Make By Demand", "Production Rate": 100, "Rate Time UOM": "DAY", "Unit Cost": 10},
        ],
        "inventory_policy": [
            _inv("DC1", "Product_1", 100, 500, 0),
            _inv("S1", "Product_1", 300, 600, 500),
        ],
        "transportation": [
            {"Origin Name": "S1", "Destination Name": "DC1", "Product Name": "Product_1", "Transport Time Distribution": "Constant(3)", "Transport Time Distribution UOM": "DAY"},
        ],
        "customer_orders": _orders(),
    })
    scenario = scenario_from_policies([("DC1", "Product_1", 100, 500)])
    result = run_replication(net, scenario, np.random.default_rng(0), horizon_days=4, collect_logs=True)

    # S1 ships its 500 on day 0 and stays above s until the shipment lands on day 3
    assert [e.quantity_produced for e in result.production_log] == [0, 0, 0, 100]
    assert [e.status for e in result.production_log] == ["idle", "idle", "idle", "active"]


def test_zero_demand_gives_zero_fill_rate():
    net = _dc_network(quantity="Constant(0)")
    scenario = scenario_from_policies([("DC1", "Product_1", 100, 500)])
    result = run_replication(net, scenario, np.random.default_rng(0), horizon_days=10)
    assert result.total_demand == 0
    assert result.fill_rate == 0.0


def test_sample_network_invariants_hold():
    net = _sample_network()
    for scenario in generate_scenarios(net)[:3]:
        result = run_replication(net, scenario, np.random.default_rng(5), horizon_days=120, collect_logs=True, collect_inventory=True)
        assert 0 <= result.fill_rate <= 100
        assert 0 <= result.elt_service_level <= 100
        assert result.total_fulfilled <= result.total_demand
        assert all(s.inventory >= 0 for s in result.inventory_snapshots)
        for order in result.order_log:
            if order.delivery_day is not None:
                assert order.wait_time == order.delivery_day - order.order_day + 1
                assert order.on_time == (order.wait_time <= 5)
        assert result.cost == pytest.approx(result.cost_breakdown.total)
        assert result.cost > 0


def test_same_seed_same_replication():
    net = _sample_network()
    scenario = generate_scenarios(net)[0]
    a = run_replication(net, scenario, np.random.default_rng(9), horizon_days=60, collect_logs=True)
    b = run_replication(net, scenario, np.random.default_rng(9), horizon_days=60, collect_logs=True)
    assert a.cost == b.cost
    assert a.fill_rate == b.fill_rate
    assert a.order_log == b.order_log


def test_average_inventory_per_key():
    net = NetworkInput.from_tables({
        "inventory_policy": [_inv("DC1", "Product_1", 0, 20, 40)],
        "customer_orders": _orders(quantity="Constant(0)"),
    })
    scenario = scenario_from_policies([("DC1", "Product_1", 0, 20)])
    result = run_replication(net, scenario, np.random.default_rng(0), horizon_days=5)
    assert result.inventory_details.avg_inventory == pytest.approx(40)
    assert result.inventory_details.days == 5
    assert result.cost_breakdown.inventory == pytest.approx(40 * 0.3 * 5)


def test_state_includes_non_swept_policy_rows():
    net = _sample_network()
    scenario = generate_scenarios(net)[0]
    states = build_inventory_state(net, scenario)
    assert list(states)[0] == ("DC1", "Product_1")
    assert states[("DC1", "Product_1")].S == 500
    assert states[("DC1", "Product_1")].inventory == 400
    assert states[("S1", "Raw_Material_1")].inventory == 300


def test_invalid_arguments():
    net = _dc_network()
    scenario = scenario_from_policies([("DC1", "Product_1", 100, 500)])
    with pytest.raises(ValueError):
        run_replication(net, scenario, horizon_days=0)
