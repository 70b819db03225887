from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from triad.db import get_db
from triad.deps import current_user, require_role, require_store_operator
from triad.errors import NotFound
from triad.models.core import Role, SessionRecord, User
from triad.schemas.store import OpenShopIn
from triad.services import store_session
from triad.services.store_session import DailyQuota

router = APIRouter(prefix="/store", tags=["store"])


def _row_from_session(s: SessionRecord) -> dict:
    return {
        "id": s.id,
        "opened_at": s.opened_at,
        "closed_at": s.closed_at,
        "opened_by": s.opened_by,
        "closed_by": s.closed_by,
        "total_sales": float(s.total_sales or 0),
        "order_count": s.order_count,
    }


@router.post("/open")
def open_store(body: OpenShopIn, db: Session = Depends(get_db), u: User = Depends(require_store_operator)):
    quotas = [DailyQuota(q.menu_item_id, q.is_available, q.daily_stock) for q in body.quotas]
    s = store_session.open_shop(db, quotas, opened_by=u.name)
    return _row_from_session(s)


@router.post("/close")
def close_store(db: Session = Depends(get_db), u: User = Depends(require_store_operator)):
    s = store_session.close_shop(db, closed_by=u.name)
    return _row_from_session(s)


@router.get("/session")
def current(db: Session = Depends(get_db), u: User = Depends(current_user)):
    """The open session with running totals, or {"open": false}."""
    s = store_session.current_session(db)
    if s is None:
        return {"open": False}
    count, sales = store_session.session_summary(store_session.orders_in_window(db, s.opened_at))
    row = _row_from_session(s)
    row.update({"open": True, "order_count": count, "total_sales": float(sales)})
    return row


@router.get("/sessions")
def list_sessions(limit: int = 50, db: Session = Depends(get_db), u: User = Depends(current_user)):
    rows = (
        db.query(SessionRecord)
        .filter(SessionRecord.deleted_at.is_(None))
        .order_by(SessionRecord.opened_at.desc())
        .limit(limit)
        .all()
    )
    return [_row_from_session(s) for s in rows]


@router.get("/sessions/{session_id}")
def get_session(session_id: str, db: Session = Depends(get_db), u: User = Depends(current_user)):
    s = db.get(SessionRecord, session_id)
    if not s or s.deleted_at is not None:
        raise NotFound(f"session {session_id} not found", session_id=session_id)
    return _row_from_session(s)


@router.delete("/sessions/{session_id}")
def delete_session(session_id: str, db: Session = Depends(get_db), u: User = Depends(require_role(Role.OWNER))):
    store_session.delete_session(db, session_id, actor=u.name)
    return {"ok": True, "id": session_id}
