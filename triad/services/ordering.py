"""
Order Transaction Engine.

place_order validates the whole order against one consistent view of
tables, menu quotas and the ledger, then writes the order, occupies the
table and debits quota and ingredients together. Any failed check raises
before the first write, so a rejection leaves nothing behind.
"""
import logging
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal

from sqlalchemy import func
from sqlalchemy.orm import Session

from triad.config import settings
from triad.errors import (
    InsufficientQuota, InsufficientStock, ItemUnavailable, StoreClosed, TableOccupied, ValidationError,
)
from triad.models.core import (
    CustomerClass, DiningTable, MenuItem, Order, OrderItem, OrderStatus, StockMoveType, TableStatus,
)
from triad.services import events, ledger, store_session
from triad.services.projector import UNLIMITED
from triad.services.txn import transactional
from triad.util.clock import as_utc, utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrderLine:
    menu_item_id: str
    quantity: int
    note: str | None = None


def order_lines(db: Session, order_id: str) -> list[OrderItem]:
    return (
        db.query(OrderItem)
        .filter(OrderItem.order_id == order_id)
        .order_by(OrderItem.position.asc())
        .all()
    )


def ingredient_usage(lines, recipes: dict[str, list[str]]) -> dict[str, int]:
    """Units needed per ingredient name: each listed ingredient costs one unit per ordered portion."""
    usage: dict[str, int] = {}
    for line in lines:
        for name in recipes.get(line.menu_item_id, []):
            usage[name] = usage.get(name, 0) + line.quantity
    return usage


def _next_timestamp(db: Session):
    now = utcnow()
    last = as_utc(db.query(func.max(Order.timestamp)).scalar())
    if last is not None and now <= last:
        now = last + timedelta(microseconds=1)
    return now


def _next_order_no(db: Session) -> int:
    return int(db.query(func.coalesce(func.max(Order.order_no), 0)).scalar() or 0) + 1


@transactional
def place_order(
    db: Session,
    *,
    table_id: str,
    customer_name: str,
    items: list[OrderLine],
    customer_class: CustomerClass = CustomerClass.MIDDLE,
    box_count: int = 0,
    bag_count: int = 0,
    note: str | None = None,
    is_staff_meal: bool = False,
) -> Order:
    if not items:
        raise ValidationError("order has no items")
    for line in items:
        if line.quantity < 1:
            raise ValidationError("quantity must be at least 1", menu_item_id=line.menu_item_id)
    if box_count < 0 or bag_count < 0:
        raise ValidationError("box and bag counts cannot be negative")

    # 1. table
    table = (
        db.query(DiningTable)
        .filter(DiningTable.id == table_id, DiningTable.deleted_at.is_(None))
        .with_for_update()
        .first()
    )
    if table is None:
        raise ValidationError(f"table {table_id} not found", table_id=table_id)
    if store_session.current_session(db) is None:
        raise StoreClosed()

    # 2. menu quota, summed per distinct item
    requested: dict[str, int] = {}
    for line in items:
        requested[line.menu_item_id] = requested.get(line.menu_item_id, 0) + line.quantity

    menu: dict[str, MenuItem] = {}
    for menu_item_id in requested:
        m = (
            db.query(MenuItem)
            .filter(MenuItem.id == menu_item_id, MenuItem.deleted_at.is_(None))
            .with_for_update()
            .first()
        )
        if m is None:
            raise ValidationError(f"menu item {menu_item_id} not found", menu_item_id=menu_item_id)
        if not m.is_available:
            raise ItemUnavailable(m.name)
        menu[menu_item_id] = m

    for menu_item_id, qty in requested.items():
        m = menu[menu_item_id]
        if m.daily_stock != UNLIMITED and qty > m.daily_stock:
            raise InsufficientQuota(m.name, available=m.daily_stock, requested=qty)

    # 3. ingredients, aggregated across all lines
    usage = ingredient_usage(items, {mid: list(m.ingredients or []) for mid, m in menu.items()})
    for name, needed in usage.items():
        have = ledger.available(db, name)
        if needed > have:
            raise InsufficientStock(name, shortfall=needed - have, available=have)

    # 4. one open order per table
    if table.current_order_id:
        current = db.get(Order, table.current_order_id)
        if current is not None and not current.is_terminal:
            raise TableOccupied(table.number, current.id)

    # all checks passed: write everything
    if is_staff_meal:
        total = Decimal("0")
    else:
        total = sum(
            (Decimal(str(menu[line.menu_item_id].price or 0)) * line.quantity for line in items),
            Decimal("0"),
        )
        total += Decimal(settings.BOX_FEE) * box_count

    order = Order(
        order_no=_next_order_no(db),
        table_id=table.id,
        customer_name=customer_name,
        customer_class=customer_class,
        status=OrderStatus.PENDING,
        total_amount=total,
        timestamp=_next_timestamp(db),
        box_count=box_count,
        bag_count=bag_count,
        note=note or None,
        is_staff_meal=is_staff_meal,
    )
    db.add(order)
    db.flush()

    for position, line in enumerate(items):
        m = menu[line.menu_item_id]
        db.add(OrderItem(
            order_id=order.id,
            position=position,
            menu_item_id=m.id,
            name=m.name,
            price=m.price,
            quantity=line.quantity,
            note=line.note,
        ))

    table.status = TableStatus.OCCUPIED
    table.current_order_id = order.id

    for menu_item_id, qty in requested.items():
        m = menu[menu_item_id]
        if m.daily_stock != UNLIMITED:
            m.daily_stock -= qty
            events.menu_changed(db, m)

    for name, needed in usage.items():
        ledger.debit(db, name, needed, move_type=StockMoveType.SALE,
                     reason=f"Order #{order.order_no}", ref_order_id=order.id)

    events.order_changed(db, order)
    events.table_changed(db, table)
    logger.info("order #%d placed at table %s: %d lines, total %s",
                order.order_no, table.number, len(items), total)
    return order
