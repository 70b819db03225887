from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from triad.db import get_db
from triad.deps import require_auth
from triad.models.core import SyncEvent
import json

router = APIRouter(prefix="/sync", tags=["sync"])

@router.get("/pull")
def pull(since: int = 0, limit: int = 1000, db: Session = Depends(get_db), sub: str = Depends(require_auth)):
    # only committed changes are ever visible here
    q = db.query(SyncEvent).filter(SyncEvent.seq > since).order_by(SyncEvent.seq.asc()).limit(limit)
    events = [{"seq": e.seq, "entity": e.entity, "entity_id": e.entity_id, "op": e.op, "payload": json.loads(e.payload) if e.payload else None, "updated_at": e.updated_at.isoformat()} for e in q]
    next_since = events[-1]["seq"] if events else since
    return {"events": events, "next_since": next_since}
