# triad/routers/inventory.py
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from triad.db import get_db
from triad.deps import current_user, require_role
from triad.models.core import Ingredient, IngredientCategory, Role, StockMove, User
from triad.schemas.inventory import IngredientIn, IngredientUpdate, StockChangeIn
from triad.services import events, ledger
from triad.services.inventory import credit_ingredient, debit_ingredient
from triad.services.txn import run_in_transaction
from triad.util.audit import log_audit
from triad.util.clock import utcnow

router = APIRouter(prefix="/inventory", tags=["inventory"])


def _row_from_ingredient(i: Ingredient) -> dict:
    return {
        "id": i.id,
        "name": i.name,
        "quantity": i.quantity,
        "unit": i.unit,
        "category": i.category.value,
        "threshold": i.threshold,
        "low": i.quantity <= (i.threshold or 0),
    }


def _name_taken(db: Session, name: str, except_id: str | None = None) -> bool:
    q = db.query(Ingredient).filter(Ingredient.name == name, Ingredient.deleted_at.is_(None))
    if except_id:
        q = q.filter(Ingredient.id != except_id)
    return q.first() is not None


@router.post("/ingredients")
def add_ingredient(body: IngredientIn, db: Session = Depends(get_db), u: User = Depends(require_role(Role.OWNER))):
    def work():
        if _name_taken(db, body.name):
            raise HTTPException(409, detail="ingredient with this name already exists")
        i = Ingredient(**{**body.model_dump(), "category": IngredientCategory(body.category)})
        db.add(i)
        db.flush()
        events.ingredient_changed(db, i)
        return i

    return _row_from_ingredient(run_in_transaction(db, work, name="add_ingredient"))


@router.get("/ingredients")
def list_ingredients(category: str | None = None, db: Session = Depends(get_db), u: User = Depends(current_user)):
    q = db.query(Ingredient).filter(Ingredient.deleted_at.is_(None))
    if category:
        try:
            q = q.filter(Ingredient.category == IngredientCategory(category))
        except ValueError:
            raise HTTPException(400, detail="invalid category")
    return [_row_from_ingredient(i) for i in q.order_by(Ingredient.name.asc()).all()]


@router.patch("/ingredients/{name}")
def update_ingredient(name: str, body: IngredientUpdate, db: Session = Depends(get_db),
                      u: User = Depends(require_role(Role.OWNER))):
    """
    Renaming is allowed but recipes keep pointing at the old name, so items
    that listed it will read it as out of stock until their recipe is edited.
    """
    changes = body.model_dump(exclude_unset=True)

    def work():
        i = ledger.find(db, name)
        if i is None:
            raise HTTPException(404, detail="ingredient not found")
        if changes.get("name") and changes["name"] != i.name and _name_taken(db, changes["name"], i.id):
            raise HTTPException(409, detail="ingredient with this name already exists")
        before = _row_from_ingredient(i)
        for k, v in changes.items():
            setattr(i, k, IngredientCategory(v) if k == "category" else v)
        log_audit(db, u.name, "ingredient", i.id, "UPDATE", before=before, after=changes)
        events.ingredient_changed(db, i)
        return i

    return _row_from_ingredient(run_in_transaction(db, work, name="update_ingredient"))


@router.delete("/ingredients/{name}")
def delete_ingredient(name: str, db: Session = Depends(get_db), u: User = Depends(require_role(Role.OWNER))):
    def work():
        i = ledger.find(db, name)
        if i is None:
            raise HTTPException(404, detail="ingredient not found")
        i.deleted_at = utcnow()
        events.publish(db, "ingredient", i.id, op="DELETE")
        return i.id

    return {"ok": True, "id": run_in_transaction(db, work, name="delete_ingredient")}


@router.post("/ingredients/{name}/credit")
def credit(name: str, body: StockChangeIn, db: Session = Depends(get_db), u: User = Depends(current_user)):
    ing, raised = credit_ingredient(db, name, body.amount, reason=body.reason or f"Restock by {u.name}")
    return {
        "ingredient": _row_from_ingredient(ing),
        "menu_items_raised": [{"id": m.id, "name": m.name, "daily_stock": m.daily_stock} for m in raised],
    }


@router.post("/ingredients/{name}/debit")
def debit(name: str, body: StockChangeIn, db: Session = Depends(get_db), u: User = Depends(current_user)):
    ing = debit_ingredient(db, name, body.amount, reason=body.reason or f"Adjusted by {u.name}")
    return _row_from_ingredient(ing)


@router.get("/low_stock")
def low_stock(db: Session = Depends(get_db), u: User = Depends(current_user)):
    rows = (
        db.query(Ingredient)
        .filter(Ingredient.deleted_at.is_(None), Ingredient.quantity <= Ingredient.threshold)
        .order_by(Ingredient.name.asc())
        .all()
    )
    return [_row_from_ingredient(i) for i in rows]


@router.get("/moves")
def stock_moves(ingredient: str | None = None, order_id: str | None = None, limit: int = 200,
                db: Session = Depends(get_db), u: User = Depends(current_user)):
    q = db.query(StockMove)
    if ingredient:
        q = q.filter(StockMove.ingredient_name == ingredient)
    if order_id:
        q = q.filter(StockMove.ref_order_id == order_id)
    rows = q.order_by(StockMove.created_at.desc()).limit(limit).all()
    return [
        {
            "id": m.id,
            "ingredient": m.ingredient_name,
            "type": m.type.value,
            "qty_change": m.qty_change,
            "reason": m.reason,
            "ref_order_id": m.ref_order_id,
            "created_at": m.created_at,
        }
        for m in rows
    ]
