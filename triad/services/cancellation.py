"""
Cancellation and restock: reverses what place_order reserved.

Restoration reads the catalog as it is now, not as it was when the order
was taken. Menu items or ingredients deleted since then are skipped and
reported back as a PartialRestockFailure; the cancel itself still goes
through and the table is released.
"""
import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from triad.errors import InvalidTransition, NotFound, PartialRestockFailure
from triad.models.core import DiningTable, MenuItem, Order, OrderStatus, StockMoveType, TableStatus
from triad.services import events, ledger
from triad.services.ordering import ingredient_usage, order_lines
from triad.services.projector import UNLIMITED
from triad.services.txn import transactional
from triad.util.audit import log_audit
from triad.util.clock import utcnow

logger = logging.getLogger(__name__)


@dataclass
class OrderOutcome:
    order: Order
    warning: PartialRestockFailure | None = None


def release_table(db: Session, order: Order) -> DiningTable | None:
    """Free the order's own table if it is still attached to this order."""
    table = db.query(DiningTable).filter(DiningTable.id == order.table_id).with_for_update().first()
    if table is None or table.current_order_id != order.id:
        return table
    table.status = TableStatus.AVAILABLE
    table.current_order_id = None
    events.table_changed(db, table)
    return table


def restock_order(db: Session, order: Order) -> PartialRestockFailure | None:
    """Credit quota and ingredients back for every line of ``order``."""
    warning = PartialRestockFailure(order_id=order.id)
    lines = order_lines(db, order.id)

    recipes: dict[str, list[str]] = {}
    restorable = []
    for line in lines:
        m = (
            db.query(MenuItem)
            .filter(MenuItem.id == line.menu_item_id, MenuItem.deleted_at.is_(None))
            .with_for_update()
            .first()
        )
        if m is None:
            if line.name not in warning.missing_menu_items:
                warning.missing_menu_items.append(line.name)
            continue
        if m.daily_stock != UNLIMITED:
            m.daily_stock += line.quantity
            events.menu_changed(db, m)
        recipes[m.id] = list(m.ingredients or [])
        restorable.append(line)

    for name, qty in ingredient_usage(restorable, recipes).items():
        if ledger.find(db, name) is None:
            warning.missing_ingredients.append(name)
            continue
        ledger.credit(db, name, qty, move_type=StockMoveType.CANCEL,
                      reason=f"Cancel order #{order.order_no}", ref_order_id=order.id)

    if warning.missing_menu_items or warning.missing_ingredients:
        logger.warning("order #%s: %s", order.order_no, warning.message)
        return warning
    return None


def cancel_locked(db: Session, order: Order, *, reason: str | None = None,
                  actor: str | None = None) -> OrderOutcome:
    if order.is_terminal:
        raise InvalidTransition(
            f"order #{order.order_no} is already {order.status.value}",
            order_id=order.id, status=order.status.value,
        )
    before = order.status.value
    warning = restock_order(db, order)

    order.status = OrderStatus.CANCELLED
    order.cancel_reason = reason
    order.closed_at = utcnow()
    release_table(db, order)

    log_audit(db, actor, "order", order.id, "CANCEL", before={"status": before},
              after={"status": order.status.value, "partial_restock": warning is not None}, reason=reason)
    events.order_changed(db, order)
    logger.info("order #%s cancelled (was %s)", order.order_no, before)
    return OrderOutcome(order=order, warning=warning)


@transactional
def cancel_order(db: Session, order_id: str, *, reason: str | None = None,
                 actor: str | None = None) -> OrderOutcome:
    order = db.query(Order).filter(Order.id == order_id).with_for_update().first()
    if order is None:
        raise NotFound(f"order {order_id} not found", order_id=order_id)
    return cancel_locked(db, order, reason=reason, actor=actor)
