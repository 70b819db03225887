"""Change feed for UI observers.

Events are added to the caller's session, so they become visible only when
the surrounding transaction commits; a rolled-back order leaves no trace.
"""
import json
from sqlalchemy.orm import Session

from triad.models.core import SyncEvent, Order, DiningTable, MenuItem, Ingredient


def publish(db: Session, entity: str, entity_id: str, payload: dict | None = None, op: str = "UPSERT") -> None:
    db.add(SyncEvent(
        entity=entity,
        entity_id=entity_id,
        op=op,
        payload=json.dumps(payload, default=str) if payload is not None else None,
    ))


def order_changed(db: Session, o: Order) -> None:
    publish(db, "order", o.id, {"status": o.status.value, "table_id": o.table_id, "order_no": o.order_no})


def table_changed(db: Session, t: DiningTable) -> None:
    publish(db, "table", t.id, {"status": t.status.value, "current_order_id": t.current_order_id})


def menu_changed(db: Session, m: MenuItem) -> None:
    publish(db, "menu_item", m.id, {"daily_stock": m.daily_stock, "is_available": m.is_available})


def ingredient_changed(db: Session, i: Ingredient) -> None:
    publish(db, "ingredient", i.id, {"name": i.name, "quantity": i.quantity})
