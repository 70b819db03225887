"""Caller-facing ledger operations (creditIngredient / debitIngredient)."""
import logging
from sqlalchemy.orm import Session

from triad.models.core import Ingredient, MenuItem, StockMoveType
from triad.services import ledger, projector
from triad.services.txn import transactional

logger = logging.getLogger(__name__)


@transactional
def credit_ingredient(db: Session, name: str, amount: int, *, reason: str | None = None
                      ) -> tuple[Ingredient, list[MenuItem]]:
    """Restock ``name`` and lift the quotas it was holding down, in one unit."""
    ing = ledger.credit(db, name, amount, move_type=StockMoveType.RESTOCK, reason=reason)
    raised = projector.on_restock(db, ing.name)
    logger.info("restocked %s +%d (now %d), %d menu items lifted", ing.name, amount, ing.quantity, len(raised))
    return ing, raised


@transactional
def debit_ingredient(db: Session, name: str, amount: int, *, reason: str | None = None) -> Ingredient:
    ing = ledger.debit(db, name, amount, move_type=StockMoveType.ADJUST, reason=reason)
    logger.info("adjusted %s -%d (now %d)", ing.name, amount, ing.quantity)
    return ing
