from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from triad.db import get_db
from triad.config import settings
from triad.util.security import hash_pw
from triad.models.core import DiningTable, Floor, Role, User
from triad.services import positions

router = APIRouter(prefix="/admin", tags=["admin"])

# T1-T8 downstairs for four, T9-T18 upstairs for six
FLOOR_PLAN = [(f"T{n}", Floor.GROUND, 4) for n in range(1, 9)] + \
             [(f"T{n}", Floor.UPPER, 6) for n in range(9, 19)]

@router.post("/dev-bootstrap")
def dev_bootstrap(db: Session = Depends(get_db)):
    if settings.APP_ENV != "dev":
        raise HTTPException(403, detail="Not allowed")

    # Owner account
    u = db.query(User).filter(User.username == "owner").first()
    if not u:
        u = User(
            username="owner",
            name="Owner",
            pass_hash=hash_pw("admin"),
            role=Role.OWNER,
            position="CEO",
            active=True,
        )
        db.add(u); db.flush()

    # Position catalogue
    positions_created = positions.seed_defaults(db)

    # Floor plan
    existing = {t.number for t in db.query(DiningTable).filter(DiningTable.deleted_at.is_(None)).all()}
    created = 0
    for number, floor, capacity in FLOOR_PLAN:
        if number not in existing:
            db.add(DiningTable(number=number, floor=floor, capacity=capacity))
            created += 1

    db.commit()
    return {
        "owner_id": u.id,
        "owner_username": u.username,
        "owner_password": "admin",
        "tables_created": created,
        "positions_created": positions_created,
    }
