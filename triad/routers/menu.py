from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import datetime
from decimal import Decimal

from triad.db import get_db
from triad.schemas.menu import MenuItemIn, MenuItemUpdate
from triad.models.core import MenuItem, Role, User
from triad.deps import current_user, require_role
from triad.services import events
from triad.services.projector import UNLIMITED, max_possible
from triad.services.txn import run_in_transaction
from triad.util.clock import utcnow

router = APIRouter(prefix="/menu", tags=["menu"])


# ---------- helpers ----------

def _as_float(val: Decimal | float | int | None) -> float | None:
    if val is None:
        return None
    return float(val)

def _ts(dt: datetime | None) -> str | None:
    if dt is None:
        return None
    return dt.isoformat()

def _row_from_item(m: MenuItem) -> dict:
    return {
        "id": m.id,
        "name": m.name,
        "description": m.description,
        "price": _as_float(m.price) or 0.0,
        "cost": _as_float(m.cost) or 0.0,
        "category": m.category,
        "image_url": m.image_url,
        "ingredients": list(m.ingredients or []),
        "is_available": bool(m.is_available),
        "daily_stock": m.daily_stock,
        "source": m.source,
        "created_at": _ts(getattr(m, "created_at", None)),
        "updated_at": _ts(getattr(m, "updated_at", None)),
    }

def _live_item(db: Session, item_id: str) -> MenuItem:
    it = db.get(MenuItem, item_id)
    if not it or it.deleted_at is not None:
        raise HTTPException(status_code=404, detail="item not found")
    return it


# ---------- ITEMS ----------

@router.get("/items")
def list_items(
    category: Optional[str] = None,
    available_only: bool = False,
    db: Session = Depends(get_db),
    u: User = Depends(current_user),
):
    """
    Live menu items.

    ``can_make`` is advisory: whether the ledger covers at least one more
    portion right now. Ordering re-checks this inside its own transaction.
    """
    q = db.query(MenuItem).filter(MenuItem.deleted_at.is_(None))
    if category:
        q = q.filter(MenuItem.category == category)
    if available_only:
        q = q.filter(MenuItem.is_available.is_(True))
    rows: List[MenuItem] = q.order_by(MenuItem.category.asc(), MenuItem.name.asc()).all()

    out = []
    for m in rows:
        row = _row_from_item(m)
        row["can_make"] = max_possible(db, list(m.ingredients or []), lock=False) > 0
        out.append(row)
    return out


@router.post("/items")
def create_item(body: MenuItemIn, db: Session = Depends(get_db), u: User = Depends(require_role(Role.OWNER))):
    def work():
        it = MenuItem(**body.model_dump())
        db.add(it)
        db.flush()
        events.menu_changed(db, it)
        return it

    return _row_from_item(run_in_transaction(db, work, name="create_item"))


@router.patch("/items/{item_id}")
def update_item(item_id: str, body: MenuItemUpdate, db: Session = Depends(get_db),
                u: User = Depends(require_role(Role.OWNER))):
    changes = body.model_dump(exclude_unset=True)

    def work():
        it = _live_item(db, item_id)
        for k, v in changes.items():
            setattr(it, k, v)
        events.menu_changed(db, it)
        return it

    return _row_from_item(run_in_transaction(db, work, name="update_item"))


@router.delete("/items/{item_id}")
def delete_item(item_id: str, db: Session = Depends(get_db), u: User = Depends(require_role(Role.OWNER))):
    """
    Soft-delete an item by setting deleted_at.
    Past orders keep their name/price snapshot; cancelling them later skips this item's restock.
    """
    def work():
        it = _live_item(db, item_id)
        it.deleted_at = utcnow()
        events.publish(db, "menu_item", it.id, op="DELETE")

    run_in_transaction(db, work, name="delete_item")
    return {"ok": True, "id": item_id}


@router.post("/items/{item_id}/availability")
def set_availability(
    item_id: str,
    value: bool,
    db: Session = Depends(get_db),
    u: User = Depends(current_user),
):
    def work():
        it = _live_item(db, item_id)
        if value and it.daily_stock == 0:
            raise HTTPException(409, detail="quota for today is used up")
        it.is_available = bool(value)
        events.menu_changed(db, it)
        return it

    it = run_in_transaction(db, work, name="set_availability")
    return {"id": it.id, "is_available": it.is_available, "daily_stock": it.daily_stock,
            "unlimited": it.daily_stock == UNLIMITED}
