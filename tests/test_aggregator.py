"""
Line-item aggregator tests: grouping, conservation, detail sorting.
"""

import pytest

from quote_engine.aggregator import aggregate_environments, group_items, next_sort, sort_detail
from quote_engine.bom_parser import BomParser
from quote_engine.schemas import AggregatedItem, RawLineItem


def _raw(description, total, quantity=1.0, category="", environment="Kitchen"):
    return RawLineItem(
        description=description,
        category=category,
        quantity=quantity,
        unit_price=total / quantity,
        total_price=total,
        environment_name=environment,
    )


def _detail():
    return [
        AggregatedItem(description="hinge", category="Hardware", quantity=20, unit_price=5.0, total_price=100.0),
        AggregatedItem(description="Cabinet", category="Cabinets", quantity=2, unit_price=400.0, total_price=800.0),
        AggregatedItem(description="drawer", category="Cabinets", quantity=4, unit_price=50.0, total_price=200.0),
    ]


# ============================================================
# Grouping
# ============================================================

def test_kitchen_panels_split_by_category(cad_export):
    """Same description and unit price, different categories: two groups."""
    raw = BomParser().parse_document(cad_export("kitchen_panels.xml"))
    lines = aggregate_environments(raw, id_seed=1)
    assert len(lines) == 1
    kitchen = lines[0]
    assert kitchen.environment_name == "Kitchen"
    assert len(kitchen.detail) == 2
    assert {item.category for item in kitchen.detail} == {"MDF 18mm", "MDP 15mm"}
    assert kitchen.cost_total == pytest.approx(1500.0)


def test_identical_items_merge_quantities_and_totals():
    groups = group_items([
        _raw("Shelf", 200.0, quantity=2, category="MDF"),
        _raw("Shelf", 300.0, quantity=3, category="MDF"),
    ])
    assert len(groups) == 1
    assert groups[0].quantity == 5
    assert groups[0].total_price == pytest.approx(500.0)
    assert groups[0].unit_price == pytest.approx(100.0)


def test_unit_price_rounding_merges_near_equal_prices():
    groups = group_items([
        _raw("Shelf", 10.00001),
        _raw("Shelf", 10.0),
    ])
    assert len(groups) == 1


def test_different_unit_price_keeps_groups_apart():
    groups = group_items([
        _raw("Shelf", 10.0),
        _raw("Shelf", 12.0),
    ])
    assert len(groups) == 2


def test_grouping_keeps_first_seen_order():
    groups = group_items([
        _raw("Door", 100.0),
        _raw("Shelf", 50.0),
        _raw("Door", 100.0),
    ])
    assert [group.description for group in groups] == ["Door", "Shelf"]


def test_aggregation_conserves_value(cad_export):
    raw = BomParser().parse_document(cad_export("apartment.xml"))
    lines = aggregate_environments(raw, id_seed=1)
    for line in lines:
        raw_total = sum(item.total_price for item in raw if item.environment_name == line.environment_name)
        assert sum(item.total_price for item in line.detail) == pytest.approx(raw_total)
        assert line.cost_total == pytest.approx(raw_total)


def test_environment_lines_start_at_cost_and_selected():
    lines = aggregate_environments([
        _raw("Bed", 1000.0, environment="Bedroom"),
        _raw("Sink", 400.0, environment="Kitchen"),
        _raw("Lamp", 50.0, environment="Bedroom"),
    ], id_seed=100)
    assert [line.environment_name for line in lines] == ["Bedroom", "Kitchen"]
    assert [line.id for line in lines] == [100, 101]
    bedroom = lines[0]
    assert bedroom.sale_value == bedroom.cost_total == pytest.approx(1050.0)
    assert bedroom.selected is True
    assert bedroom.description == "2 items (grouped)"


# ============================================================
# Detail sorting
# ============================================================

def test_sort_by_description_ignores_case():
    ordered = sort_detail(_detail(), "description", "asc")
    assert [item.description for item in ordered] == ["Cabinet", "drawer", "hinge"]


def test_sort_by_total_descending():
    ordered = sort_detail(_detail(), "total_price", "desc")
    assert [item.total_price for item in ordered] == [800.0, 200.0, 100.0]


def test_sort_does_not_touch_the_input():
    detail = _detail()
    sort_detail(detail, "quantity", "asc")
    assert [item.description for item in detail] == ["hinge", "Cabinet", "drawer"]


def test_sort_rejects_unknown_key():
    with pytest.raises(ValueError):
        sort_detail(_detail(), "category")


def test_next_sort_toggles_direction_on_same_key():
    assert next_sort(("description", "asc"), "description") == ("description", "desc")
    assert next_sort(("description", "desc"), "description") == ("description", "asc")
    assert next_sort(("description", "desc"), "quantity") == ("quantity", "asc")
