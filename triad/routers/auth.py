from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from triad.schemas.common import LoginIn, Token
from triad.util.security import create_token, verify_pw
from triad.models.core import User
from triad.db import get_db

router = APIRouter(prefix="/auth", tags=["auth"])

@router.post("/login", response_model=Token)
def login(body: LoginIn, db: Session = Depends(get_db)):
    user = (
        db.query(User)
        .filter(User.username == body.username, User.deleted_at.is_(None))
        .first()
    )
    if not user or not verify_pw(user.pass_hash, body.password):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    if not user.active:
        raise HTTPException(status_code=403, detail="Account is inactive")
    return Token(access_token=create_token(user.id, user.role.value), user_id=user.id, role=user.role.value)
