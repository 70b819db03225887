from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
import jwt
from sqlalchemy.orm import Session
from triad.db import get_db
from triad.models.core import User, Role
from triad.services import positions
from triad.util.security import decode_token

auth_scheme = HTTPBearer(auto_error=False)

def require_auth(creds: HTTPAuthorizationCredentials | None = Depends(auth_scheme)) -> str:
    if not creds:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    try:
        data = decode_token(creds.credentials)
        return data["sub"]
    except (jwt.InvalidTokenError, KeyError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

def current_user(sub: str = Depends(require_auth), db: Session = Depends(get_db)) -> User:
    u = db.get(User, sub)
    if not u or u.deleted_at is not None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unknown user")
    if not u.active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is inactive")
    return u

def require_role(*roles: Role):
    def _dep(u: User = Depends(current_user)) -> User:
        if u.role not in roles:
            raise HTTPException(status_code=403, detail=f"Requires role: {', '.join(r.value for r in roles)}")
        return u
    return _dep

def require_store_operator(u: User = Depends(current_user), db: Session = Depends(get_db)) -> User:
    # owners always; other staff by job title
    if u.role == Role.OWNER or positions.can_operate_store(db, u.position):
        return u
    raise HTTPException(status_code=403, detail="Not allowed to open or close the store")
