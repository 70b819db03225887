# conftest.py
import os

os.environ.setdefault("APP_SECRET", "test-secret")
os.environ.setdefault("APP_ENV", "dev")
os.environ.setdefault("DB_URL", "sqlite://")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("TXN_BASE_DELAY_MS", "1")
os.environ.setdefault("TXN_JITTER_MS", "1")

from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from triad.db import Base, get_db, make_engine
from triad.main import app
from triad.models.core import (
    DiningTable, Floor, Ingredient, IngredientCategory, MenuItem, Order, SessionRecord, TERMINAL_STATUSES,
)
from triad.util.clock import utcnow


@pytest.fixture()
def engine(tmp_path):
    # a file, not :memory:, so worker threads get their own connections
    eng = make_engine(f"sqlite:///{tmp_path / 'triad-test.db'}")
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture()
def db(session_factory):
    s = session_factory()
    yield s
    s.close()


@pytest.fixture()
def client(session_factory):
    def _get_db():
        s = session_factory()
        try:
            yield s
        finally:
            s.close()

    app.dependency_overrides[get_db] = _get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def auth_headers(client):
    r = client.post("/admin/dev-bootstrap")
    assert r.status_code == 200, f"/admin/dev-bootstrap failed: {r.text}"

    r = client.post("/auth/login", json={"username": "owner", "password": "admin"})
    assert r.status_code == 200, f"/auth/login failed: {r.text}"
    tok = r.json()["access_token"]
    return {"Authorization": f"Bearer {tok}"}


@pytest.fixture()
def catalog(db):
    """Duck 2, Rice 10, Scallion 5; a finite Duck Dish, an unlimited Fried Rice and Tea; three tables."""
    duck = Ingredient(name="Duck", quantity=2, unit="pcs", category=IngredientCategory.MEAT, threshold=1)
    rice = Ingredient(name="Rice", quantity=10, unit="kg", category=IngredientCategory.DRY_GOODS, threshold=2)
    scallion = Ingredient(name="Scallion", quantity=5, unit="bunch", category=IngredientCategory.VEGETABLE)
    duck_dish = MenuItem(name="Duck Dish", price=250, category="Main", ingredients=["Duck"], daily_stock=5)
    fried_rice = MenuItem(name="Fried Rice", price=120, category="Main", ingredients=["Rice", "Scallion"])
    tea = MenuItem(name="Tea", price=30, category="Drinks", ingredients=[])
    tables = [DiningTable(number=f"T{n}", floor=Floor.GROUND, capacity=4) for n in (1, 2, 3)]
    db.add_all([duck, rice, scallion, duck_dish, fried_rice, tea, *tables])
    db.commit()
    return SimpleNamespace(
        duck=duck, rice=rice, scallion=scallion,
        duck_dish=duck_dish, fried_rice=fried_rice, tea=tea,
        table1=tables[0], table2=tables[1], table3=tables[2],
    )


@pytest.fixture()
def seed(db, catalog):
    """The catalog with the store already open; quotas are left as seeded."""
    rec = SessionRecord(opened_at=utcnow(), opened_by="Owner")
    db.add(rec)
    db.commit()
    catalog.session = rec
    return catalog


def assert_invariants(db):
    db.expire_all()
    for i in db.query(Ingredient).all():
        assert i.quantity >= 0, f"{i.name} went negative: {i.quantity}"
    for m in db.query(MenuItem).all():
        assert m.daily_stock == -1 or m.daily_stock >= 0, f"{m.name} quota is {m.daily_stock}"
    for t in db.query(DiningTable).filter(DiningTable.deleted_at.is_(None)).all():
        open_orders = [
            o for o in db.query(Order).filter(Order.table_id == t.id).all()
            if o.status not in TERMINAL_STATUSES
        ]
        if t.current_order_id:
            assert [o.id for o in open_orders] == [t.current_order_id], f"table {t.number} out of sync"
        else:
            assert open_orders == [], f"table {t.number} has an unattached open order"


@pytest.fixture()
def check_invariants(db):
    return lambda: assert_invariants(db)
