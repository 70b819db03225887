"""Errors raised by the order/inventory core.

Routers never catch these; main.py maps each family to an HTTP status.
Every exception carries a machine-readable ``code`` and a ``fields`` dict so
callers can render an actionable message without parsing text.
"""
from dataclasses import dataclass, field


class TriadError(Exception):
    code = "error"
    status_code = 400

    def __init__(self, message: str, **fields):
        super().__init__(message)
        self.message = message
        self.fields = fields

    def to_dict(self) -> dict:
        return {"detail": self.message, "code": self.code, **self.fields}


class ValidationError(TriadError):
    code = "validation_error"


class TableOccupied(ValidationError):
    code = "table_occupied"

    def __init__(self, table_number: str, order_id: str):
        super().__init__(f"table {table_number} already has an open order",
                         table=table_number, order_id=order_id)


class ItemUnavailable(ValidationError):
    code = "item_unavailable"

    def __init__(self, item_name: str):
        super().__init__(f"menu item '{item_name}' is not available", item=item_name)


class StoreClosed(ValidationError):
    code = "store_closed"

    def __init__(self):
        super().__init__("the store is not open")


class NotFound(TriadError):
    code = "not_found"
    status_code = 404


class OrderRejected(TriadError):
    status_code = 409


class InsufficientQuota(OrderRejected):
    code = "insufficient_quota"

    def __init__(self, item_name: str, available: int, requested: int):
        super().__init__(
            f"insufficient menu quota for '{item_name}' (available {available}, requested {requested})",
            item=item_name, available=available, requested=requested,
        )
        self.item_name = item_name
        self.available = available
        self.requested = requested


class InsufficientStock(OrderRejected):
    code = "insufficient_stock"

    def __init__(self, ingredient: str, shortfall: int, available: int = 0):
        super().__init__(
            f"insufficient ingredient '{ingredient}' (short by {shortfall})",
            ingredient=ingredient, shortfall=shortfall, available=available,
        )
        self.ingredient = ingredient
        self.shortfall = shortfall
        self.available = available


class InvalidTransition(TriadError):
    code = "invalid_transition"
    status_code = 409


class TransactionConflict(TriadError):
    code = "transaction_conflict"
    status_code = 409


@dataclass
class PartialRestockFailure:
    """Non-fatal: a cancellation went through but some stock was not restored
    because the menu item or ingredient no longer exists."""
    order_id: str
    missing_menu_items: list[str] = field(default_factory=list)
    missing_ingredients: list[str] = field(default_factory=list)

    @property
    def message(self) -> str:
        parts = []
        if self.missing_menu_items:
            parts.append("menu items gone: " + ", ".join(self.missing_menu_items))
        if self.missing_ingredients:
            parts.append("ingredients gone: " + ", ".join(self.missing_ingredients))
        return "restock incomplete; " + "; ".join(parts)

    def to_dict(self) -> dict:
        return {
            "code": "partial_restock",
            "detail": self.message,
            "missing_menu_items": self.missing_menu_items,
            "missing_ingredients": self.missing_ingredients,
        }
