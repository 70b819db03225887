# Importing the module registers tables with Base for create_all()
from .core import (  # noqa: F401
    # Enums
    Role, TableStatus, Floor, OrderStatus, TERMINAL_STATUSES, CustomerClass, PayMode,
    IngredientCategory, StockMoveType,

    # Staff
    User,

    # Floor
    DiningTable,

    # Catalog
    Ingredient, MenuItem,

    # Orders
    Order, OrderItem,

    # Ledger, sessions, audit, change feed
    StockMove, SessionRecord, AuditLog, SyncEvent,
)

__all__ = [
    "Role", "TableStatus", "Floor", "OrderStatus", "TERMINAL_STATUSES", "CustomerClass", "PayMode",
    "IngredientCategory", "StockMoveType",
    "User",
    "DiningTable",
    "Ingredient", "MenuItem",
    "Order", "OrderItem",
    "StockMove", "SessionRecord", "AuditLog", "SyncEvent",
]
