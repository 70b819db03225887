# triad/routers/staff.py
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from datetime import date
from typing import Literal

from triad.db import get_db
from triad.deps import current_user, require_role
from triad.models.core import Position, Role, User
from triad.schemas.staff import PositionIn, StaffIn, StaffUpdate
from triad.services import positions
from triad.util.audit import log_audit
from triad.util.clock import utcnow
from triad.util.security import hash_pw

router = APIRouter(prefix="/staff", tags=["staff"])

owner_only = require_role(Role.OWNER)


def _row_from_user(u: User) -> dict:
    return {
        "id": u.id,
        "username": u.username,
        "name": u.name,
        "role": u.role.value,
        "position": u.position,
        "staff_class": u.staff_class,
        "start_date": u.start_date,
        "end_date": u.end_date,
        "active": bool(u.active),
    }


def _row_from_position(p: Position) -> dict:
    return {
        "name": p.name,
        "sort_order": p.sort_order,
        "grants_owner": bool(p.grants_owner),
        "can_operate_store": bool(p.can_operate_store),
    }


def _get_user(db: Session, user_id: str) -> User:
    u = db.get(User, user_id)
    if not u or u.deleted_at is not None:
        raise HTTPException(404, detail="user not found")
    return u


def _check_position(db: Session, name: str | None) -> None:
    if name is not None and positions.find(db, name) is None:
        raise HTTPException(400, detail=f"unknown position '{name}'")


# ---------- positions ----------

@router.get("/positions", summary="List positions in display order")
def list_positions(db: Session = Depends(get_db), me: User = Depends(current_user)):
    return [_row_from_position(p) for p in positions.catalogue(db)]


@router.post("/positions", summary="Add a position at the end of the list")
def add_position(body: PositionIn, db: Session = Depends(get_db), me: User = Depends(owner_only)):
    p = positions.add_position(db, body.name, grants_owner=body.grants_owner,
                               can_operate_store=body.can_operate_store, actor=me.name)
    return _row_from_position(p)


@router.delete("/positions/{name}", summary="Remove a position")
def remove_position(name: str, db: Session = Depends(get_db), me: User = Depends(owner_only)):
    positions.remove_position(db, name, actor=me.name)
    return {"ok": True, "name": name}


@router.post("/positions/{name}/move", summary="Move a position up or down")
def move_position(name: str, direction: Literal["up", "down"], db: Session = Depends(get_db),
                  me: User = Depends(owner_only)):
    rows = positions.move_position(db, name, direction, actor=me.name)
    return [_row_from_position(p) for p in rows]


# ---------- staff ----------

@router.post("/")
def create_staff(body: StaffIn, db: Session = Depends(get_db), me: User = Depends(owner_only)):
    if db.query(User).filter(User.username == body.username).first():
        raise HTTPException(409, detail="username already exists")
    _check_position(db, body.position)
    u = User(
        username=body.username,
        name=body.name,
        pass_hash=hash_pw(body.password),
        role=Role(body.role) if body.role else positions.role_for(db, body.position),
        position=body.position,
        staff_class=body.staff_class,
        start_date=body.start_date or date.today(),
        active=True,
    )
    db.add(u)
    db.flush()
    log_audit(db, me.name, "user", u.id, "CREATE", after={"username": u.username, "role": u.role.value})
    db.commit()
    db.refresh(u)
    return _row_from_user(u)


@router.get("/", summary="List staff")
def list_staff(include_inactive: bool = True, db: Session = Depends(get_db), me: User = Depends(owner_only)):
    q = db.query(User).filter(User.deleted_at.is_(None))
    if not include_inactive:
        q = q.filter(User.active.is_(True))
    return [_row_from_user(u) for u in q.order_by(User.name.asc()).all()]


@router.patch("/{user_id}", summary="Update a staff member")
def update_staff(user_id: str, body: StaffUpdate, db: Session = Depends(get_db), me: User = Depends(owner_only)):
    u = _get_user(db, user_id)
    changes = body.model_dump(exclude_unset=True)
    if "password" in changes:
        u.pass_hash = hash_pw(changes.pop("password"))
    if changes.get("position") is not None:
        _check_position(db, changes["position"])
    if "role" in changes:
        changes["role"] = Role(changes["role"])
    for k, v in changes.items():
        setattr(u, k, v)
    log_audit(db, me.name, "user", u.id, "UPDATE", after={k: v for k, v in changes.items()})
    db.commit()
    db.refresh(u)
    return _row_from_user(u)


@router.post("/{user_id}/terminate", summary="Deactivate a staff member")
def terminate_staff(user_id: str, db: Session = Depends(get_db), me: User = Depends(owner_only)):
    u = _get_user(db, user_id)
    if u.id == me.id:
        raise HTTPException(400, detail="cannot terminate yourself")
    u.active = False
    u.end_date = date.today()
    log_audit(db, me.name, "user", u.id, "TERMINATE")
    db.commit()
    return _row_from_user(u)


@router.delete("/{user_id}", summary="Delete a staff member")
def delete_staff(user_id: str, db: Session = Depends(get_db), me: User = Depends(owner_only)):
    u = _get_user(db, user_id)
    if u.id == me.id:
        raise HTTPException(400, detail="cannot delete yourself")
    u.deleted_at = utcnow()
    u.active = False
    log_audit(db, me.name, "user", u.id, "DELETE")
    db.commit()
    return {"ok": True, "id": user_id}
