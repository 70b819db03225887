"""
Menu availability projector: derives sellable quotas from the ledger.

Items with daily_stock == -1 are unlimited and never recomputed here.
"""
import logging
from sqlalchemy.orm import Session

from triad.config import settings
from triad.models.core import MenuItem
from triad.services import events, ledger

logger = logging.getLogger(__name__)

UNLIMITED = -1


def max_possible(db: Session, ingredient_names: list[str], *, lock: bool = True) -> int:
    """How many portions the ledger can cover right now (1 unit per ingredient per portion).

    Pass ``lock=False`` from read-only paths that must not hold row locks.
    """
    if not ingredient_names:
        return settings.NO_RECIPE_QUOTA
    return min(ledger.available(db, name, lock=lock) for name in ingredient_names)


def live_menu(db: Session) -> list[MenuItem]:
    return (
        db.query(MenuItem)
        .filter(MenuItem.deleted_at.is_(None))
        .order_by(MenuItem.name.asc(), MenuItem.id.asc())
        .with_for_update()
        .all()
    )


def on_restock(db: Session, ingredient_name: str) -> list[MenuItem]:
    """Raise the quota of every finite item that uses ``ingredient_name``.

    Never lowers a quota; only order placement does that.
    """
    raised: list[MenuItem] = []
    for m in live_menu(db):
        if m.daily_stock == UNLIMITED or ingredient_name not in (m.ingredients or []):
            continue
        best = max_possible(db, m.ingredients)
        if best > m.daily_stock:
            logger.info("restock of %s lifts '%s' quota %d -> %d", ingredient_name, m.name, m.daily_stock, best)
            m.daily_stock = best
            m.is_available = best > 0
            events.menu_changed(db, m)
            raised.append(m)
    return raised


def project_open(db: Session, m: MenuItem, offered: bool, requested: int | None) -> None:
    """Assign the day's quota for one item at shop-open.

    ``requested`` of -1 makes the item unlimited; ``None`` keeps an unlimited
    item unlimited and gives a finite one whatever the ledger allows.
    """
    keep_unlimited = requested == UNLIMITED or (requested is None and m.daily_stock == UNLIMITED)
    if keep_unlimited:
        m.daily_stock = UNLIMITED
        m.is_available = offered
    elif not offered:
        m.is_available = False
        m.daily_stock = 0
    else:
        best = max_possible(db, m.ingredients or [])
        if best <= 0:
            logger.info("'%s' cannot be offered: ingredients exhausted", m.name)
            m.is_available = False
            m.daily_stock = 0
        else:
            m.daily_stock = best if requested is None else max(0, min(requested, best))
            m.is_available = m.daily_stock > 0
    events.menu_changed(db, m)
