# test_ordering.py
from decimal import Decimal

import pytest

from triad.errors import (
    InsufficientQuota, InsufficientStock, ItemUnavailable, StoreClosed, TableOccupied, ValidationError,
)
from triad.models.core import (
    DiningTable, Ingredient, MenuItem, Order, OrderItem, OrderStatus, StockMove, StockMoveType, TableStatus,
)
from triad.services.ordering import OrderLine, ingredient_usage, place_order
from triad.services.store_session import DailyQuota, close_shop, open_shop
from triad.util.clock import as_utc


def _snapshot(db):
    db.expire_all()
    return (
        sorted((i.name, i.quantity) for i in db.query(Ingredient).all()),
        sorted((m.name, m.daily_stock, m.is_available) for m in db.query(MenuItem).all()),
        sorted((t.number, t.status, t.current_order_id) for t in db.query(DiningTable).all()),
        db.query(Order).count(),
        db.query(StockMove).count(),
    )


def test_duck_dish_scenario(db, seed, check_invariants):
    order = place_order(db, table_id=seed.table1.id, customer_name="Ann",
                        items=[OrderLine(seed.duck_dish.id, 2)])

    db.expire_all()
    assert order.status == OrderStatus.PENDING
    assert seed.duck.quantity == 0
    assert seed.duck_dish.daily_stock == 3
    assert seed.table1.status == TableStatus.OCCUPIED
    assert seed.table1.current_order_id == order.id
    check_invariants()


def test_total_snapshots_price_and_box_fee(db, seed):
    order = place_order(db, table_id=seed.table1.id, customer_name="Ann", box_count=2, bag_count=1,
                        items=[OrderLine(seed.duck_dish.id, 1), OrderLine(seed.tea.id, 3, note="no sugar")])
    assert order.total_amount == Decimal("250") + Decimal("90") + Decimal("200")
    assert order.has_bag is True

    seed.tea.price = 999
    db.commit()
    lines = db.query(OrderItem).filter(OrderItem.order_id == order.id).order_by(OrderItem.position).all()
    assert [(l.name, Decimal(l.price), l.quantity, l.note) for l in lines] == [
        ("Duck Dish", Decimal("250"), 1, None),
        ("Tea", Decimal("30"), 3, "no sugar"),
    ]


def test_staff_meal_is_free_but_still_consumes_stock(db, seed):
    order = place_order(db, table_id=seed.table1.id, customer_name="Chef", is_staff_meal=True,
                        items=[OrderLine(seed.fried_rice.id, 2)])
    assert order.total_amount == 0
    db.expire_all()
    assert seed.rice.quantity == 8
    assert seed.scallion.quantity == 3


def test_quota_summed_across_lines(db, seed):
    seed.duck.quantity = 50
    db.commit()
    with pytest.raises(InsufficientQuota) as exc:
        place_order(db, table_id=seed.table1.id, customer_name="Ann",
                    items=[OrderLine(seed.duck_dish.id, 3), OrderLine(seed.duck_dish.id, 3)])
    assert exc.value.item_name == "Duck Dish"
    assert exc.value.available == 5
    assert exc.value.requested == 6


def test_quota_checked_before_ingredients(db, seed):
    # both short: quota 1 vs 2 wanted, Duck 0 vs 2 wanted
    seed.duck_dish.daily_stock = 1
    seed.duck.quantity = 0
    db.commit()
    with pytest.raises(InsufficientQuota):
        place_order(db, table_id=seed.table1.id, customer_name="Ann", items=[OrderLine(seed.duck_dish.id, 2)])


def test_ingredients_aggregated_across_items(db, seed):
    # Fried Rice and Scallion Pancake both draw Scallion: 3 + 3 > 5
    pancake = MenuItem(name="Scallion Pancake", price=80, ingredients=["Scallion"])
    db.add(pancake)
    db.commit()
    with pytest.raises(InsufficientStock) as exc:
        place_order(db, table_id=seed.table1.id, customer_name="Ann",
                    items=[OrderLine(seed.fried_rice.id, 3), OrderLine(pancake.id, 3)])
    assert exc.value.ingredient == "Scallion"
    assert exc.value.shortfall == 1


def test_missing_ingredient_blocks_order(db, seed):
    mystery = MenuItem(name="Mystery", price=10, ingredients=["Unobtainium"])
    db.add(mystery)
    db.commit()
    with pytest.raises(InsufficientStock) as exc:
        place_order(db, table_id=seed.table1.id, customer_name="Ann", items=[OrderLine(mystery.id, 1)])
    assert exc.value.ingredient == "Unobtainium"


def test_ingredient_usage_is_one_unit_per_ingredient_per_portion():
    lines = [OrderLine("a", 2), OrderLine("b", 1), OrderLine("a", 1)]
    recipes = {"a": ["Duck", "Rice"], "b": ["Rice", "Rice"]}
    assert ingredient_usage(lines, recipes) == {"Duck": 3, "Rice": 5}


@pytest.mark.parametrize("case", ["empty", "zero_qty", "bad_table", "bad_item", "unavailable",
                                  "quota", "stock", "occupied"])
def test_rejection_leaves_no_trace(db, seed, case, check_invariants):
    place_order(db, table_id=seed.table2.id, customer_name="Zed", items=[OrderLine(seed.tea.id, 1)])
    seed.fried_rice.is_available = case != "unavailable"
    db.commit()

    table_id = seed.table1.id
    items = [OrderLine(seed.duck_dish.id, 1), OrderLine(seed.fried_rice.id, 1)]
    expected = {
        "empty": ValidationError, "zero_qty": ValidationError, "bad_table": ValidationError,
        "bad_item": ValidationError, "unavailable": ItemUnavailable, "quota": InsufficientQuota,
        "stock": InsufficientStock, "occupied": TableOccupied,
    }[case]
    if case == "empty":
        items = []
    elif case == "zero_qty":
        items = [OrderLine(seed.duck_dish.id, 1), OrderLine(seed.tea.id, 0)]
    elif case == "bad_table":
        table_id = "nope"
    elif case == "bad_item":
        items.append(OrderLine("nope", 1))
    elif case == "quota":
        items = [OrderLine(seed.duck_dish.id, 6)]
    elif case == "stock":
        items = [OrderLine(seed.fried_rice.id, 1), OrderLine(seed.duck_dish.id, 3)]
    elif case == "occupied":
        table_id = seed.table2.id

    before = _snapshot(db)
    with pytest.raises(expected):
        place_order(db, table_id=table_id, customer_name="Ann", items=items)
    assert _snapshot(db) == before
    check_invariants()


def test_one_open_order_per_table(db, seed):
    first = place_order(db, table_id=seed.table1.id, customer_name="Ann", items=[OrderLine(seed.tea.id, 1)])
    with pytest.raises(TableOccupied) as exc:
        place_order(db, table_id=seed.table1.id, customer_name="Bob", items=[OrderLine(seed.tea.id, 1)])
    assert exc.value.fields["order_id"] == first.id


def test_timestamps_and_numbers_increase(db, seed):
    a = place_order(db, table_id=seed.table1.id, customer_name="A", items=[OrderLine(seed.tea.id, 1)])
    b = place_order(db, table_id=seed.table2.id, customer_name="B", items=[OrderLine(seed.tea.id, 1)])
    c = place_order(db, table_id=seed.table3.id, customer_name="C", items=[OrderLine(seed.tea.id, 1)])
    assert a.order_no < b.order_no < c.order_no
    db.expire_all()
    assert as_utc(a.timestamp) < as_utc(b.timestamp) < as_utc(c.timestamp)


def test_sale_moves_reference_order(db, seed):
    order = place_order(db, table_id=seed.table1.id, customer_name="Ann", items=[OrderLine(seed.fried_rice.id, 2)])
    moves = db.query(StockMove).filter(StockMove.ref_order_id == order.id).all()
    assert sorted((m.ingredient_name, m.type, m.qty_change) for m in moves) == [
        ("Rice", StockMoveType.SALE, -2),
        ("Scallion", StockMoveType.SALE, -2),
    ]


def test_closed_store_takes_no_orders(db, catalog, check_invariants):
    before = _snapshot(db)
    with pytest.raises(StoreClosed):
        place_order(db, table_id=catalog.table1.id, customer_name="Ann", items=[OrderLine(catalog.duck_dish.id, 1)])
    assert _snapshot(db) == before

    open_shop(db, [DailyQuota(catalog.duck_dish.id, True), DailyQuota(catalog.tea.id, True)], opened_by="Owner")
    place_order(db, table_id=catalog.table1.id, customer_name="Ann", items=[OrderLine(catalog.tea.id, 1)])
    close_shop(db, closed_by="Owner")

    # leftover quota from the closed day cannot be sold
    with pytest.raises(StoreClosed):
        place_order(db, table_id=catalog.table2.id, customer_name="Bob", items=[OrderLine(catalog.duck_dish.id, 1)])
    check_invariants()
