from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from datetime import datetime
from decimal import Decimal

from triad.db import get_db
from triad.deps import current_user, require_role
from triad.errors import NotFound
from triad.schemas.orders import OrderIn, AdvanceIn, CancelIn
from triad.models.core import CustomerClass, Order, OrderStatus, OrderItem, PayMode, Role, User
from triad.services import lifecycle
from triad.services.cancellation import OrderOutcome, cancel_order
from triad.services.ordering import OrderLine, order_lines, place_order
from triad.services.store_session import orders_in_window

router = APIRouter(prefix="/orders", tags=["orders"])


def _money(x: Decimal | float | None) -> float:
    return float(x or 0)


def _row_from_item(i: OrderItem) -> dict:
    return {
        "menu_item_id": i.menu_item_id,
        "name": i.name,
        "price": _money(i.price),
        "quantity": i.quantity,
        "note": i.note,
        "is_cooked": bool(i.is_cooked),
    }


def _row_from_order(db: Session, o: Order, with_items: bool = True) -> dict:
    row = {
        "id": o.id,
        "order_no": o.order_no,
        "table_id": o.table_id,
        "customer_name": o.customer_name,
        "customer_class": o.customer_class.value,
        "status": o.status.value,
        "total_amount": _money(o.total_amount),
        "timestamp": o.timestamp,
        "chef_name": o.chef_name,
        "server_name": o.server_name,
        "payment_method": o.payment_method.value if o.payment_method else None,
        "box_count": o.box_count,
        "bag_count": o.bag_count,
        "has_bag": o.has_bag,
        "note": o.note,
        "is_staff_meal": bool(o.is_staff_meal),
        "closed_at": o.closed_at,
        "cancel_reason": o.cancel_reason,
    }
    if with_items:
        row["items"] = [_row_from_item(i) for i in order_lines(db, o.id)]
    return row


def _row_from_outcome(db: Session, out: OrderOutcome) -> dict:
    row = _row_from_order(db, out.order)
    row["restock_warning"] = out.warning.to_dict() if out.warning else None
    return row


def _status(value: str | None) -> OrderStatus | None:
    if value is None:
        return None
    try:
        return OrderStatus(value)
    except ValueError:
        raise HTTPException(status_code=400, detail="invalid status")


@router.get("/")
def list_orders(
    since: datetime | None = None,
    until: datetime | None = None,
    status: str | None = None,
    db: Session = Depends(get_db),
    u: User = Depends(current_user),
):
    """
    Order history, oldest first.

    Query params:
      - since/until: timestamp window, until is exclusive (both optional)
      - status:      PENDING, COOKING, ..., COMPLETED, CANCELLED (optional)
    """
    wanted = _status(status)
    if since is not None:
        rows = orders_in_window(db, since, until, wanted)
    else:
        q = db.query(Order)
        if until is not None:
            q = q.filter(Order.timestamp < until)
        if wanted is not None:
            q = q.filter(Order.status == wanted)
        rows = q.order_by(Order.timestamp.asc()).all()
    return [_row_from_order(db, o, with_items=False) for o in rows]


@router.get("/kitchen")
def kitchen_queue(db: Session = Depends(get_db), u: User = Depends(current_user)):
    """PENDING and COOKING tickets, first in first out."""
    rows = (
        db.query(Order)
        .filter(Order.status.in_([OrderStatus.PENDING, OrderStatus.COOKING]))
        .order_by(Order.timestamp.asc())
        .all()
    )
    return [_row_from_order(db, o) for o in rows]


@router.post("/")
def create_order(body: OrderIn, db: Session = Depends(get_db), u: User = Depends(current_user)):
    o = place_order(
        db,
        table_id=body.table_id,
        customer_name=body.customer_name,
        customer_class=CustomerClass(body.customer_class),
        items=[OrderLine(menu_item_id=i.menu_item_id, quantity=i.quantity, note=i.note) for i in body.items],
        box_count=body.box_count,
        bag_count=body.bag_count,
        note=body.note,
        is_staff_meal=body.is_staff_meal,
    )
    return _row_from_order(db, o)


@router.get("/{order_id}")
def get_order(order_id: str, db: Session = Depends(get_db), u: User = Depends(current_user)):
    o = db.get(Order, order_id)
    if not o:
        raise NotFound(f"order {order_id} not found", order_id=order_id)
    return _row_from_order(db, o)


@router.post("/{order_id}/advance")
def advance(order_id: str, body: AdvanceIn, db: Session = Depends(get_db), u: User = Depends(current_user)):
    out = lifecycle.advance_order(
        db, order_id, OrderStatus(body.status),
        actor=u.name,
        payment_method=PayMode(body.payment_method) if body.payment_method else None,
        reason=body.reason,
    )
    return _row_from_outcome(db, out)


@router.post("/{order_id}/items/{index}/toggle_cooked")
def toggle_cooked(order_id: str, index: int, db: Session = Depends(get_db), u: User = Depends(current_user)):
    line = lifecycle.toggle_item_cooked(db, order_id, index)
    return {"order_id": order_id, "index": index, "is_cooked": bool(line.is_cooked)}


@router.post("/{order_id}/cancel")
def cancel(order_id: str, body: CancelIn | None = None, db: Session = Depends(get_db),
           u: User = Depends(current_user)):
    out = cancel_order(db, order_id, reason=body.reason if body else None, actor=u.name)
    return _row_from_outcome(db, out)


@router.delete("/{order_id}")
def purge(order_id: str, reason: str | None = None, db: Session = Depends(get_db),
          u: User = Depends(require_role(Role.OWNER))):
    """Administrative hard delete. Does not restore stock or refund anything."""
    lifecycle.purge_order(db, order_id, actor=u.name, reason=reason)
    return {"ok": True, "id": order_id}
