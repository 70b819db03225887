"""
Stock ledger: ingredient quantities keyed by ingredient name.

Menu recipes reference ingredients by name, so the ledger resolves names,
not ids. Only live (not soft-deleted) rows count. Every movement is
journalled as a StockMove so the stock report can be rebuilt.

These functions never commit: callers run them inside a transactional
service so the debit/credit lands together with whatever caused it.
"""
import logging
from sqlalchemy.orm import Session

from triad.errors import InsufficientStock, NotFound, ValidationError
from triad.models.core import Ingredient, StockMove, StockMoveType
from triad.services import events

logger = logging.getLogger(__name__)


def find(db: Session, name: str, *, lock: bool = True) -> Ingredient | None:
    q = db.query(Ingredient).filter(Ingredient.name == name, Ingredient.deleted_at.is_(None))
    if lock:
        q = q.with_for_update()
    return q.first()


def quantity(db: Session, name: str) -> int:
    ing = find(db, name, lock=False)
    if ing is None:
        raise NotFound(f"ingredient '{name}' not found", ingredient=name)
    return ing.quantity


def available(db: Session, name: str, *, lock: bool = True) -> int:
    """Like quantity(), but a missing ingredient counts as zero."""
    ing = find(db, name, lock=lock)
    return ing.quantity if ing is not None else 0


def _check_amount(amount: int) -> None:
    if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
        raise ValidationError("amount must be a positive integer", amount=amount)


def debit(db: Session, name: str, amount: int, *, move_type: StockMoveType = StockMoveType.ADJUST,
          reason: str | None = None, ref_order_id: str | None = None) -> Ingredient:
    _check_amount(amount)
    ing = find(db, name)
    have = ing.quantity if ing is not None else 0
    if amount > have:
        raise InsufficientStock(name, shortfall=amount - have, available=have)
    ing.quantity = have - amount
    db.add(StockMove(ingredient_id=ing.id, ingredient_name=ing.name, type=move_type,
                     qty_change=-amount, reason=reason, ref_order_id=ref_order_id))
    events.ingredient_changed(db, ing)
    return ing


def credit(db: Session, name: str, amount: int, *, move_type: StockMoveType = StockMoveType.RESTOCK,
           reason: str | None = None, ref_order_id: str | None = None) -> Ingredient:
    _check_amount(amount)
    ing = find(db, name)
    if ing is None:
        raise NotFound(f"ingredient '{name}' not found", ingredient=name)
    ing.quantity = ing.quantity + amount
    db.add(StockMove(ingredient_id=ing.id, ingredient_name=ing.name, type=move_type,
                     qty_change=amount, reason=reason, ref_order_id=ref_order_id))
    events.ingredient_changed(db, ing)
    return ing
