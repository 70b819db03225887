"""
Order state machine.

    PENDING -> COOKING -> SERVING -> SERVED -> WAITING_PAYMENT -> COMPLETED
    (any non-terminal) -> CANCELLED

Moves only go forward. Skipping ahead is fine (check-bill jumps straight to
WAITING_PAYMENT), going back or leaving a terminal state is not.
"""
import logging

from sqlalchemy.orm import Session

from triad.errors import InvalidTransition, NotFound, ValidationError
from triad.models.core import DiningTable, Order, OrderItem, OrderStatus, PayMode, StockMove
from triad.services import events
from triad.services.cancellation import OrderOutcome, cancel_locked, release_table
from triad.services.ordering import order_lines
from triad.services.txn import transactional
from triad.util.audit import log_audit
from triad.util.clock import utcnow

logger = logging.getLogger(__name__)

FLOW = [
    OrderStatus.PENDING,
    OrderStatus.COOKING,
    OrderStatus.SERVING,
    OrderStatus.SERVED,
    OrderStatus.WAITING_PAYMENT,
    OrderStatus.COMPLETED,
]


def _locked_order(db: Session, order_id: str) -> Order:
    order = db.query(Order).filter(Order.id == order_id).with_for_update().first()
    if order is None:
        raise NotFound(f"order {order_id} not found", order_id=order_id)
    return order


def check_transition(order: Order, status: OrderStatus) -> None:
    if order.is_terminal:
        raise InvalidTransition(
            f"order #{order.order_no} is {order.status.value}; no further moves",
            order_id=order.id, status=order.status.value, target=status.value,
        )
    if status == OrderStatus.CANCELLED:
        return
    if FLOW.index(status) <= FLOW.index(order.status):
        raise InvalidTransition(
            f"cannot move order #{order.order_no} from {order.status.value} to {status.value}",
            order_id=order.id, status=order.status.value, target=status.value,
        )


def advance_locked(db: Session, order: Order, status: OrderStatus, *, actor: str | None = None,
                   payment_method: PayMode | None = None, reason: str | None = None) -> OrderOutcome:
    check_transition(order, status)
    if status == OrderStatus.CANCELLED:
        return cancel_locked(db, order, reason=reason, actor=actor)
    if status == OrderStatus.COMPLETED and payment_method is None:
        raise ValidationError("payment method is required to complete an order", order_id=order.id)

    before = order.status
    order.status = status
    if status == OrderStatus.COOKING and actor:
        order.chef_name = actor
    elif status == OrderStatus.SERVING and actor:
        order.server_name = actor
    elif status == OrderStatus.COMPLETED:
        order.payment_method = payment_method
        order.closed_at = utcnow()
        release_table(db, order)
        log_audit(db, actor, "order", order.id, "COMPLETE",
                  before={"status": before.value},
                  after={"status": status.value, "payment_method": payment_method.value})

    events.order_changed(db, order)
    logger.info("order #%s %s -> %s", order.order_no, before.value, status.value)
    return OrderOutcome(order=order)


@transactional
def advance_order(db: Session, order_id: str, status: OrderStatus, *, actor: str | None = None,
                  payment_method: PayMode | None = None, reason: str | None = None) -> OrderOutcome:
    order = _locked_order(db, order_id)
    return advance_locked(db, order, status, actor=actor, payment_method=payment_method, reason=reason)


@transactional
def toggle_item_cooked(db: Session, order_id: str, index: int) -> OrderItem:
    order = _locked_order(db, order_id)
    lines = order_lines(db, order.id)
    if index < 0 or index >= len(lines):
        raise ValidationError(f"order #{order.order_no} has no line {index}",
                              order_id=order.id, index=index)
    line = lines[index]
    line.is_cooked = not line.is_cooked
    return line


def _active_order(db: Session, table_id: str) -> Order:
    table = (
        db.query(DiningTable)
        .filter(DiningTable.id == table_id, DiningTable.deleted_at.is_(None))
        .with_for_update()
        .first()
    )
    if table is None:
        raise NotFound(f"table {table_id} not found", table_id=table_id)
    if not table.current_order_id:
        raise ValidationError(f"table {table.number} has no open order", table_id=table.id)
    return _locked_order(db, table.current_order_id)


@transactional
def request_check_bill(db: Session, table_id: str, *, actor: str | None = None) -> OrderOutcome:
    order = _active_order(db, table_id)
    return advance_locked(db, order, OrderStatus.WAITING_PAYMENT, actor=actor)


@transactional
def settle_table_bill(db: Session, table_id: str, payment_method: PayMode, *,
                      actor: str | None = None) -> OrderOutcome:
    order = _active_order(db, table_id)
    return advance_locked(db, order, OrderStatus.COMPLETED, actor=actor, payment_method=payment_method)


@transactional
def purge_order(db: Session, order_id: str, *, actor: str | None = None, reason: str | None = None) -> None:
    """Hard-delete an order. Stock and money already moved stay moved."""
    order = _locked_order(db, order_id)
    snapshot = {
        "order_no": order.order_no,
        "status": order.status.value,
        "table_id": order.table_id,
        "total_amount": str(order.total_amount),
    }
    release_table(db, order)
    # journal rows keep their history but lose the dangling reference
    db.query(StockMove).filter(StockMove.ref_order_id == order.id).update(
        {StockMove.ref_order_id: None}, synchronize_session=False
    )
    db.query(OrderItem).filter(OrderItem.order_id == order.id).delete(synchronize_session=False)
    db.delete(order)
    log_audit(db, actor, "order", order_id, "PURGE", before=snapshot, reason=reason)
    events.publish(db, "order", order_id, op="DELETE")
    logger.warning("order #%s purged by %s", snapshot["order_no"], actor or "unknown")
