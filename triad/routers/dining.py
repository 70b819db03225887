# triad/routers/dining.py
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import List, Optional

from triad.db import get_db
from triad.deps import current_user, require_role
from triad.models.core import DiningTable, Floor, PayMode, Role, TableStatus, User
from triad.schemas.dining import TableIn, TableStatusIn
from triad.schemas.orders import SettleIn
from triad.services import events, lifecycle
from triad.services.txn import run_in_transaction
from triad.util.audit import log_audit
from triad.util.clock import utcnow

router = APIRouter(prefix="/dining", tags=["dining"])


def _row_from_table(t: DiningTable) -> dict:
    return {
        "id": t.id,
        "number": t.number,
        "floor": t.floor.value,
        "status": t.status.value,
        "capacity": t.capacity,
        "current_order_id": t.current_order_id,
    }


def _live_table(db: Session, table_id: str) -> DiningTable:
    t = db.get(DiningTable, table_id)
    if not t or t.deleted_at is not None:
        raise HTTPException(status_code=404, detail="table not found")
    return t


# ------------------------------------------------------------------
# POST /dining/tables  -> create new table
# ------------------------------------------------------------------
@router.post("/tables")
def create_table(body: TableIn, db: Session = Depends(get_db), u: User = Depends(require_role(Role.OWNER))):
    exists = (
        db.query(DiningTable)
        .filter(DiningTable.number == body.number, DiningTable.deleted_at.is_(None))
        .first()
    )
    if exists:
        raise HTTPException(409, detail="table with this number already exists")

    def work():
        t = DiningTable(number=body.number, floor=Floor(body.floor), capacity=body.capacity)
        db.add(t)
        db.flush()
        events.table_changed(db, t)
        return t

    return _row_from_table(run_in_transaction(db, work, name="create_table"))


# ------------------------------------------------------------------
# GET /dining/tables  -> list tables
# ------------------------------------------------------------------
@router.get("/tables")
def list_tables(floor: Optional[str] = None, db: Session = Depends(get_db), u: User = Depends(current_user)):
    """
    Live (not soft-deleted) tables ordered by floor and number.

    Query params:
      ?floor=GROUND   (optional)
    """
    q = db.query(DiningTable).filter(DiningTable.deleted_at.is_(None))
    if floor:
        try:
            q = q.filter(DiningTable.floor == Floor(floor))
        except ValueError:
            raise HTTPException(400, detail="invalid floor")
    rows: List[DiningTable] = q.order_by(DiningTable.floor.asc(), DiningTable.number.asc()).all()
    return [_row_from_table(t) for t in rows]


# ------------------------------------------------------------------
# POST /dining/tables/{table_id}/status  -> manual status change
# ------------------------------------------------------------------
@router.post("/tables/{table_id}/status")
def set_table_status(table_id: str, body: TableStatusIn, db: Session = Depends(get_db),
                     u: User = Depends(current_user)):
    """
    Reserve, mark dirty or free a table by hand.
    OCCUPIED is set only by placing an order, and a table with an order
    attached is released only by completing or cancelling that order.
    """
    def work():
        t = _live_table(db, table_id)
        if t.current_order_id:
            raise HTTPException(409, detail="table has an open order")
        before = t.status.value
        t.status = TableStatus(body.status)
        log_audit(db, u.name, "table", t.id, "STATUS", before={"status": before}, after={"status": t.status.value})
        events.table_changed(db, t)
        return t

    return _row_from_table(run_in_transaction(db, work, name="set_table_status"))


@router.post("/tables/{table_id}/check_bill")
def check_bill(table_id: str, db: Session = Depends(get_db), u: User = Depends(current_user)):
    out = lifecycle.request_check_bill(db, table_id, actor=u.name)
    return {"order_id": out.order.id, "status": out.order.status.value}


@router.post("/tables/{table_id}/settle")
def settle(table_id: str, body: SettleIn, db: Session = Depends(get_db), u: User = Depends(current_user)):
    out = lifecycle.settle_table_bill(db, table_id, PayMode(body.payment_method), actor=u.name)
    return {
        "order_id": out.order.id,
        "status": out.order.status.value,
        "payment_method": out.order.payment_method.value,
        "total_amount": float(out.order.total_amount or 0),
    }


# ------------------------------------------------------------------
# DELETE /dining/tables/{table_id}  -> soft delete table
# ------------------------------------------------------------------
@router.delete("/tables/{table_id}")
def delete_table(table_id: str, db: Session = Depends(get_db), u: User = Depends(require_role(Role.OWNER))):
    def work():
        t = _live_table(db, table_id)
        if t.current_order_id:
            raise HTTPException(409, detail="table has an open order")
        t.deleted_at = utcnow()
        events.publish(db, "table", t.id, op="DELETE")

    run_in_transaction(db, work, name="delete_table")
    return {"ok": True, "id": table_id}
