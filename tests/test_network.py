import math

import pandas as pd
import pytest

from network import (
    DEFAULT_CUSTOMER_NAME,
    DEFAULT_ORDER_INTERVAL,
    DEFAULT_ORDER_QUANTITY,
    DEFAULT_SERVICE_WINDOW_DAYS,
    BomLine,
    NetworkInput,
    cell_number,
    initial_inventory,
    parse_bom,
)


def _codes(network):
    return [d.code for d in network.diagnostics]


def test_empty_network_uses_documented_defaults():
    net = NetworkInput.from_tables({})
    assert net.stocking_cost("DC1", "P") == 0.3
    assert net.inbound_handling("DC1", "P") == 1.0
    assert net.outbound_handling("DC1", "P") == 1.5
    assert net.replenishment_unit_cost("DC1", "P") == 0.0
    assert net.vehicle_capacity("Truck") == 1000
    assert net.vehicle_mode("DC1", "C1") == "Truck"

    profile = net.order_profile()
    assert profile.effective_quantity == DEFAULT_ORDER_QUANTITY
    assert profile.effective_interval == DEFAULT_ORDER_INTERVAL
    assert profile.service_window_days == DEFAULT_SERVICE_WINDOW_DAYS
    assert profile.customer_name == DEFAULT_CUSTOMER_NAME


def test_zero_cost_cells_are_respected():
    net = NetworkInput.from_tables({
        "warehousing": [
            {"Facility Name": "DC1", "Product Name": "P", "Stocking Unit Cost": 0, "Inbound Handling Cost": 0},
        ],
    })
    assert net.stocking_cost("DC1", "P") == 0.0
    assert net.inbound_handling("DC1", "P") == 0.0
    assert net.outbound_handling("DC1", "P") == 1.5


def test_parse_bom_lines_and_bad_parts():
    diags = []
    lines = parse_bom("Raw_Material_1(2), Raw_Material_2(1), junk", diags)
    assert lines == (BomLine("Raw_Material_1", 2.0), BomLine("Raw_Material_2", 1.0))
    assert [d.code for d in diags] == ["bom-part-skipped"]
    assert parse_bom(None) == ()


def test_bom_attached_by_id_or_end_product():
    bom = [{"BOM ID": "BOM_1", "End Product": "P1", "Raw Materials": "RM(3)"}]
    by_id = NetworkInput.from_tables({
        "production": [{"Facility Name": "F", "Product Name": "Other", "BOM": "BOM_1"}],
        "bom": bom,
    })
    assert by_id.production_for("F", "Other").bom == (BomLine("RM", 3.0),)

    by_product = NetworkInput.from_tables({
        "production": [{"Facility Name": "F", "Product Name": "P1"}],
        "bom": bom,
    })
    assert by_product.production_for("F", "P1").bom == (BomLine("RM", 3.0),)


def test_missing_bom_id_is_reported_and_production_has_no_materials():
    net = NetworkInput.from_tables({
        "production": [{"Facility Name": "F", "Product Name": "P1", "BOM": "BOM_X"}],
    })
    assert net.production_for("F", "P1").bom == ()
    assert "bom-not-found" in _codes(net)


def test_dataframe_tables_and_nan_cells():
    df = pd.DataFrame([
        {"Facility Name": "DC1", "Product Name": "P", "Stocking Unit Cost": float("nan"), "Outbound Handling Cost": 2.0},
    ])
    net = NetworkInput.from_tables({"warehousing": df})
    assert net.stocking_cost("DC1", "P") == 0.3
    assert net.outbound_handling("DC1", "P") == 2.0


def test_table_aliases_and_unknown_tables():
    net = NetworkInput.from_tables({
        "facilityData": [{"Facility Name": "DC1", "Type": "DC"}],
        "groups": [{"Group Name": "x"}],
    })
    assert net.facility_type("DC1") == "DC"
    assert "unknown-table" in _codes(net)


def test_production_rate_units_and_unknown_policy():
    net = NetworkInput.from_tables({
        "production": [
            {"Facility Name": "F", "Product Name": "A", "Production Policy": "Continuous Production", "Production Rate": 2, "Rate Time UOM": "HR"},
            {"Facility Name": "F", "Product Name": "B", "Production Policy": "Make To Stock"},
        ],
    })
    assert net.production_for("F", "A").daily_rate == 48
    assert net.production_for("F", "A").kind == "continuous"
    assert net.production_for("F", "B").kind is None
    assert "unknown-production-policy" in _codes(net)


def test_routes_keyed_by_destination_and_capacity_lookup():
    net = NetworkInput.from_tables({
        "transportation": [
            {"Origin Name": "S1", "Destination Name": "DC1", "Product Name": "P", "Mode Name": "LTL Truck", "Transport Time Distribution": "Constant(2)"},
            {"Origin Name": "S1", "Destination Name": "DC2", "Product Name": "P", "Transport Time Distribution": "Sometimes"},
        ],
        "transportation_modes": [{"Mode Name": "LTL Truck", "Vehicle Capacity": 500}],
    })
    route = net.route_to("DC1", "P")
    assert route.origin == "S1"
    assert route.effective_mode == "LTL Truck"
    assert net.route_to("S1", "P") is None
    assert net.vehicle_mode("S1", "DC1") == "LTL Truck"
    assert net.vehicle_capacity("LTL Truck") == 500

    # unit cost / fixed cost defaults
    assert route.effective_unit_cost == 0.5
    assert route.effective_fixed_cost == 200
    assert "distribution-fallback" in _codes(net)


def test_first_matching_row_wins():
    net = NetworkInput.from_tables({
        "inventory_policy": [
            {"Facility Name": "DC1", "Product Name": "P", "Simulation Policy Value 1": 1, "Simulation Policy Value 2": 9},
            {"Facility Name": "DC1", "Product Name": "P", "Simulation Policy Value 1": 5, "Simulation Policy Value 2": 50},
        ],
    })
    assert net.inventory_policy_for("DC1", "P").order_up_to == 9


def test_cell_number_and_initial_inventory():
    assert cell_number({"x": "12 EA"}, "x") == 12
    assert cell_number({"x": ""}, "x") is None
    assert math.isclose(cell_number({"x": None, "y": 0.5}, "x", "y"), 0.5)
    assert initial_inventory(None, 600) == 600


def test_bad_parameter_setup_cells_are_kept_for_the_generator():
    net = NetworkInput.from_tables({
        "input_factors": [{"Facility Name": "DC1", "Product": "P", "Parameter Setup": "not json"}],
    })
    assert net.input_factors[0].parameter_setup == "not json"


@pytest.mark.parametrize("flag,expected", [("true", True), ("FALSE", False)])
def test_order_fulfillment_flags(flag, expected):
    net = NetworkInput.from_tables({
        "order_fulfillment": [{"Facility Name": "DC1", "Allow Partial Fill Orders": flag}],
    })
    assert net.order_fulfillment[0].allow_partial_fill_orders is expected


def test_pass_through_tables_load_but_do_not_route():
    net = NetworkInput.from_tables({
        "customer_fulfillment": [{"Customer Name": "C1", "Product Name": "P", "Source Name": "DC2"}],
        "replenishment": [{"Facility Name": "DC1", "Product Name": "P", "Source Name": "Supplier_9", "Unit Cost": 4}],
        "order_fulfillment": [{"Facility Name": "DC1", "Review Period": 7, "Allow Partial Fill Orders": "False"}],
        "transportation": [{"Origin Name": "S1", "Destination Name": "DC1", "Product Name": "P"}],
    })
    assert net.customer_fulfillment[0].source == "DC2"
    assert net.replenishment[0].source == "Supplier_9"
    assert net.order_fulfillment[0].allow_partial_fill_orders is False
    assert net.replenishment_unit_cost("DC1", "P") == 4
    assert net.route_to("DC1", "P").origin == "S1"
