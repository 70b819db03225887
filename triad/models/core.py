from sqlalchemy import (
    String, ForeignKey, Boolean, Numeric, Enum, Text, DateTime, Date, Integer, JSON
)
from sqlalchemy.orm import Mapped, mapped_column
from enum import Enum as PyEnum
from datetime import datetime, date
from decimal import Decimal
from triad.db import Base
from triad.models.common import IdMixin, TSMMixin, VersionedMixin

# ── Enums ───────────────────────────────────────────────────────────────────
class Role(PyEnum):
    OWNER = "OWNER"
    CHEF = "CHEF"
    STAFF = "STAFF"

class TableStatus(PyEnum):
    AVAILABLE = "AVAILABLE"
    OCCUPIED = "OCCUPIED"
    RESERVED = "RESERVED"
    DIRTY = "DIRTY"

class Floor(PyEnum):
    GROUND = "GROUND"
    UPPER = "UPPER"
    DELIVERY = "DELIVERY"

class OrderStatus(PyEnum):
    PENDING = "PENDING"
    COOKING = "COOKING"
    SERVING = "SERVING"
    SERVED = "SERVED"
    WAITING_PAYMENT = "WAITING_PAYMENT"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"

TERMINAL_STATUSES = frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED})

class CustomerClass(PyEnum):
    UNDER = "UNDER"
    MIDDLE = "MIDDLE"
    HIGH = "HIGH"
    ELITE = "ELITE"

class PayMode(PyEnum):
    CASH = "CASH"
    CARD = "CARD"

class IngredientCategory(PyEnum):
    MEAT = "MEAT"
    VEGETABLE = "VEGETABLE"
    DRY_GOODS = "DRY_GOODS"
    WINE = "WINE"

class StockMoveType(PyEnum):
    SALE = "SALE"          # order placement
    CANCEL = "CANCEL"      # order cancellation restore
    RESTOCK = "RESTOCK"    # delivery / manual credit
    ADJUST = "ADJUST"      # manual debit (waste, count correction)

# ── Staff ───────────────────────────────────────────────────────────────────
class User(Base, IdMixin, TSMMixin):
    __tablename__ = "user"
    username: Mapped[str] = mapped_column(String(80), unique=True)
    name: Mapped[str] = mapped_column(String(160))
    pass_hash: Mapped[str] = mapped_column(String(200))
    role: Mapped[Role] = mapped_column(Enum(Role), default=Role.STAFF)
    position: Mapped[str | None] = mapped_column(String(60))     # job title, e.g. "Head Chef"
    staff_class: Mapped[str | None] = mapped_column(String(20))  # "A", "B", "Trainee"...
    start_date: Mapped[date | None] = mapped_column(Date)
    end_date: Mapped[date | None] = mapped_column(Date)
    active: Mapped[bool] = mapped_column(Boolean, default=True)

class Position(Base, IdMixin, TSMMixin):
    __tablename__ = "position"
    name: Mapped[str] = mapped_column(String(60), index=True)
    sort_order: Mapped[int] = mapped_column(Integer, default=0)
    grants_owner: Mapped[bool] = mapped_column(Boolean, default=False)       # new hires get Role.OWNER
    can_operate_store: Mapped[bool] = mapped_column(Boolean, default=False)  # may open/close the store

# ── Floor ───────────────────────────────────────────────────────────────────
class DiningTable(Base, IdMixin, TSMMixin, VersionedMixin):
    __tablename__ = "dining_table"
    number: Mapped[str] = mapped_column(String(30))
    floor: Mapped[Floor] = mapped_column(Enum(Floor), default=Floor.GROUND)
    status: Mapped[TableStatus] = mapped_column(Enum(TableStatus), default=TableStatus.AVAILABLE)
    capacity: Mapped[int] = mapped_column(Integer, default=4)
    # set iff exactly one non-terminal order references this table
    current_order_id: Mapped[str | None] = mapped_column(String(36))

# ── Catalog ─────────────────────────────────────────────────────────────────
class Ingredient(Base, IdMixin, TSMMixin, VersionedMixin):
    __tablename__ = "ingredient"
    name: Mapped[str] = mapped_column(String(160), index=True)  # join key from MenuItem.ingredients
    quantity: Mapped[int] = mapped_column(Integer, default=0)
    unit: Mapped[str] = mapped_column(String(20), default="pcs")
    category: Mapped[IngredientCategory] = mapped_column(Enum(IngredientCategory), default=IngredientCategory.DRY_GOODS)
    threshold: Mapped[int] = mapped_column(Integer, default=0)   # low stock level

class MenuItem(Base, IdMixin, TSMMixin, VersionedMixin):
    __tablename__ = "menu_item"
    name: Mapped[str] = mapped_column(String(160))
    description: Mapped[str | None] = mapped_column(Text)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0)
    cost: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0)
    category: Mapped[str] = mapped_column(String(60), default="Other")
    image_url: Mapped[str | None] = mapped_column(String(400))
    ingredients: Mapped[list[str]] = mapped_column(JSON, default=list)  # ingredient names
    is_available: Mapped[bool] = mapped_column(Boolean, default=True)
    daily_stock: Mapped[int] = mapped_column(Integer, default=-1)       # -1 = unlimited
    source: Mapped[str | None] = mapped_column(String(20))

# ── Orders ──────────────────────────────────────────────────────────────────
class Order(Base, IdMixin, TSMMixin, VersionedMixin):
    __tablename__ = "order"
    order_no: Mapped[int] = mapped_column(Integer, index=True)
    table_id: Mapped[str] = mapped_column(String(36), ForeignKey("dining_table.id"))
    customer_name: Mapped[str] = mapped_column(String(160))
    customer_class: Mapped[CustomerClass] = mapped_column(Enum(CustomerClass), default=CustomerClass.MIDDLE)
    status: Mapped[OrderStatus] = mapped_column(Enum(OrderStatus), default=OrderStatus.PENDING, index=True)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    chef_name: Mapped[str | None] = mapped_column(String(160))
    server_name: Mapped[str | None] = mapped_column(String(160))
    payment_method: Mapped[PayMode | None] = mapped_column(Enum(PayMode))
    box_count: Mapped[int] = mapped_column(Integer, default=0)
    bag_count: Mapped[int] = mapped_column(Integer, default=0)
    note: Mapped[str | None] = mapped_column(Text)
    is_staff_meal: Mapped[bool] = mapped_column(Boolean, default=False)
    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancel_reason: Mapped[str | None] = mapped_column(Text)

    @property
    def has_bag(self) -> bool:
        return (self.bag_count or 0) > 0

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

class OrderItem(Base, IdMixin, TSMMixin):
    __tablename__ = "order_item"
    order_id: Mapped[str] = mapped_column(String(36), ForeignKey("order.id"), index=True)
    position: Mapped[int] = mapped_column(Integer)
    # no FK: lines must survive catalog deletes
    menu_item_id: Mapped[str] = mapped_column(String(36))
    name: Mapped[str] = mapped_column(String(160))
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    quantity: Mapped[int] = mapped_column(Integer)
    note: Mapped[str | None] = mapped_column(Text)
    is_cooked: Mapped[bool] = mapped_column(Boolean, default=False)

# ── Ledger journal ──────────────────────────────────────────────────────────
class StockMove(Base, IdMixin, TSMMixin):
    __tablename__ = "stock_move"
    ingredient_id: Mapped[str] = mapped_column(String(36), ForeignKey("ingredient.id"))
    ingredient_name: Mapped[str] = mapped_column(String(160))
    type: Mapped[StockMoveType] = mapped_column(Enum(StockMoveType))
    qty_change: Mapped[int] = mapped_column(Integer)
    reason: Mapped[str | None] = mapped_column(Text)
    ref_order_id: Mapped[str | None] = mapped_column(String(36))

# ── Store sessions & audit ──────────────────────────────────────────────────
class SessionRecord(Base, IdMixin, TSMMixin):
    __tablename__ = "store_session"
    opened_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    opened_by: Mapped[str] = mapped_column(String(160))
    closed_by: Mapped[str | None] = mapped_column(String(160))
    total_sales: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    order_count: Mapped[int] = mapped_column(Integer, default=0)

class AuditLog(Base, IdMixin, TSMMixin):
    __tablename__ = "audit_log"
    actor: Mapped[str | None] = mapped_column(String(160))
    entity: Mapped[str] = mapped_column(String(60))
    entity_id: Mapped[str] = mapped_column(String(36))
    action: Mapped[str] = mapped_column(String(60))
    reason: Mapped[str | None] = mapped_column(Text)  # reason for cancel/purge
    before: Mapped[str | None] = mapped_column(Text)
    after: Mapped[str | None] = mapped_column(Text)

# ── Change feed ─────────────────────────────────────────────────────────────
class SyncEvent(Base, TSMMixin):
    __tablename__ = "sync_event"
    seq: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    entity: Mapped[str] = mapped_column(String(60))
    entity_id: Mapped[str] = mapped_column(String(36))
    op: Mapped[str] = mapped_column(String(10))  # UPSERT/DELETE
    payload: Mapped[str | None] = mapped_column(Text)
