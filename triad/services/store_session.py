"""
Shop open/close bookkeeping.

Opening the shop assigns every menu item its quota for the day from the
ledger as it stands at that moment. Closing it is a plain aggregation over
the orders placed since opening.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy.orm import Session

from triad.errors import NotFound, StoreClosed, ValidationError
from triad.models.core import Order, OrderStatus, SessionRecord
from triad.services import projector
from triad.services.txn import transactional
from triad.util.audit import log_audit
from triad.util.clock import as_utc, utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DailyQuota:
    """Operator intent for one item at shop-open.

    ``daily_stock`` of -1 makes the item unlimited. ``None`` leaves an unlimited
    item unlimited and gives a finite one as many as the ledger allows.
    """
    menu_item_id: str
    is_available: bool
    daily_stock: int | None = None


def current_session(db: Session) -> SessionRecord | None:
    """The open session, if any. The store is open iff the newest record has no closed_at."""
    newest = (
        db.query(SessionRecord)
        .filter(SessionRecord.deleted_at.is_(None))
        .order_by(SessionRecord.opened_at.desc())
        .first()
    )
    if newest is None or newest.closed_at is not None:
        return None
    return newest


def orders_in_window(db: Session, start: datetime, end: datetime | None = None,
                     status: OrderStatus | None = None) -> list[Order]:
    q = db.query(Order).filter(Order.timestamp >= start)
    if end is not None:
        q = q.filter(Order.timestamp < end)
    if status is not None:
        q = q.filter(Order.status == status)
    return q.order_by(Order.timestamp.asc()).all()


def session_summary(orders: list[Order]) -> tuple[int, Decimal]:
    """(order_count, total_sales); only COMPLETED orders count towards sales."""
    sales = sum(
        (Decimal(o.total_amount or 0) for o in orders if o.status == OrderStatus.COMPLETED),
        Decimal("0"),
    )
    return len(orders), sales


@transactional
def open_shop(db: Session, quotas: list[DailyQuota], *, opened_by: str) -> SessionRecord:
    if current_session(db) is not None:
        raise ValidationError("the store is already open")
    if not any(q.is_available for q in quotas):
        raise ValidationError("select at least one menu item to offer")

    intents = {q.menu_item_id: q for q in quotas}
    menu = projector.live_menu(db)
    unknown = sorted(set(intents) - {m.id for m in menu})
    if unknown:
        raise ValidationError("quota given for an unknown menu item", menu_item_ids=unknown)

    offered = 0
    for m in menu:
        intent = intents.get(m.id)
        if intent is None:
            projector.project_open(db, m, offered=False, requested=None)
            continue
        if intent.daily_stock is not None and intent.daily_stock < projector.UNLIMITED:
            raise ValidationError(f"invalid quota for '{m.name}'", menu_item_id=m.id,
                                  daily_stock=intent.daily_stock)
        projector.project_open(db, m, offered=intent.is_available, requested=intent.daily_stock)
        offered += int(m.is_available)

    rec = SessionRecord(opened_at=utcnow(), opened_by=opened_by)
    db.add(rec)
    db.flush()
    log_audit(db, opened_by, "store_session", rec.id, "OPEN", after={"items_offered": offered})
    logger.info("store opened by %s with %d items on offer", opened_by, offered)
    return rec


@transactional
def close_shop(db: Session, *, closed_by: str) -> SessionRecord:
    rec = current_session(db)
    if rec is None:
        raise StoreClosed()
    closed_at = utcnow()
    count, sales = session_summary(orders_in_window(db, as_utc(rec.opened_at), closed_at))
    rec.closed_at = closed_at
    rec.closed_by = closed_by
    rec.order_count = count
    rec.total_sales = sales
    log_audit(db, closed_by, "store_session", rec.id, "CLOSE",
              after={"order_count": count, "total_sales": str(sales)})
    logger.info("store closed by %s: %d orders, sales %s", closed_by, count, sales)
    return rec


@transactional
def delete_session(db: Session, session_id: str, *, actor: str | None = None) -> None:
    """Soft-delete a record. Removing the open one closes the store."""
    rec = db.get(SessionRecord, session_id)
    if rec is None or rec.deleted_at is not None:
        raise NotFound(f"session {session_id} not found", session_id=session_id)
    was_open = rec.closed_at is None
    rec.deleted_at = utcnow()
    log_audit(db, actor, "store_session", session_id, "DELETE", before={"open": was_open})
    if was_open:
        logger.warning("open session %s deleted by %s; store is now closed", session_id, actor)
