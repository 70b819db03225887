"""
Staff position catalogue.

An ordered list of job titles. The position a person is hired into decides
their default role and whether they may open and close the store.
"""
import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from triad.errors import NotFound, ValidationError
from triad.models.core import Position, Role
from triad.services.txn import transactional
from triad.util.audit import log_audit
from triad.util.clock import utcnow

logger = logging.getLogger(__name__)

# name, grants_owner, can_operate_store
DEFAULT_POSITIONS = [
    ("Admin", True, True),
    ("Co-CEO", True, True),
    ("CEO", True, True),
    ("Manager", True, True),
    ("Fulltime", False, True),
    ("Parttime", False, False),
]


def catalogue(db: Session, *, lock: bool = False) -> list[Position]:
    q = db.query(Position).filter(Position.deleted_at.is_(None))
    if lock:
        q = q.with_for_update()
    return q.order_by(Position.sort_order.asc(), Position.name.asc()).all()


def find(db: Session, name: str | None) -> Position | None:
    if not name:
        return None
    return db.query(Position).filter(Position.name == name, Position.deleted_at.is_(None)).first()


def role_for(db: Session, name: str | None) -> Role:
    p = find(db, name)
    return Role.OWNER if p is not None and p.grants_owner else Role.STAFF


def can_operate_store(db: Session, name: str | None) -> bool:
    p = find(db, name)
    return p is not None and p.can_operate_store


def seed_defaults(db: Session) -> int:
    """Fill an empty catalogue with the stock titles. Does not commit."""
    if catalogue(db):
        return 0
    for i, (name, grants_owner, can_operate) in enumerate(DEFAULT_POSITIONS):
        db.add(Position(name=name, sort_order=i, grants_owner=grants_owner, can_operate_store=can_operate))
    db.flush()
    return len(DEFAULT_POSITIONS)


@transactional
def add_position(db: Session, name: str, *, grants_owner: bool = False, can_operate_store: bool = False,
                 actor: str | None = None) -> Position:
    name = (name or "").strip()
    if not name:
        raise ValidationError("position name is required")
    if find(db, name) is not None:
        raise ValidationError(f"position '{name}' already exists", position=name)
    last = db.query(func.max(Position.sort_order)).filter(Position.deleted_at.is_(None)).scalar()
    p = Position(name=name, sort_order=(last if last is not None else -1) + 1,
                 grants_owner=grants_owner, can_operate_store=can_operate_store)
    db.add(p)
    db.flush()
    log_audit(db, actor, "position", p.id, "CREATE", after={"name": name})
    return p


@transactional
def remove_position(db: Session, name: str, *, actor: str | None = None) -> None:
    """Staff already holding the title keep it; it just can't be given out any more."""
    p = find(db, name)
    if p is None:
        raise NotFound(f"position '{name}' not found", position=name)
    p.deleted_at = utcnow()
    log_audit(db, actor, "position", p.id, "DELETE", before={"name": name})
    logger.info("position %s removed by %s", name, actor)


@transactional
def move_position(db: Session, name: str, direction: str, *, actor: str | None = None) -> list[Position]:
    """Swap ``name`` with its neighbour. Moving past either end is a no-op."""
    if direction not in ("up", "down"):
        raise ValidationError("direction must be 'up' or 'down'", direction=direction)
    rows = catalogue(db, lock=True)
    idx = next((i for i, p in enumerate(rows) if p.name == name), None)
    if idx is None:
        raise NotFound(f"position '{name}' not found", position=name)
    other = idx - 1 if direction == "up" else idx + 1
    if 0 <= other < len(rows):
        rows[idx], rows[other] = rows[other], rows[idx]
        # renumber so duplicate or sparse sort orders settle too
        for i, p in enumerate(rows):
            p.sort_order = i
        log_audit(db, actor, "position", rows[other].id, "MOVE", after={"direction": direction})
    return rows
