from pydantic import BaseModel, Field
from typing import Optional, Literal, List

CustomerClassLiteral = Literal["UNDER", "MIDDLE", "HIGH", "ELITE"]
PayModeLiteral = Literal["CASH", "CARD"]
OrderStatusLiteral = Literal[
    "PENDING", "COOKING", "SERVING", "SERVED", "WAITING_PAYMENT", "COMPLETED", "CANCELLED"
]

class OrderLineIn(BaseModel):
    menu_item_id: str
    quantity: int
    note: Optional[str] = None

class OrderIn(BaseModel):
    table_id: str
    customer_name: str
    customer_class: CustomerClassLiteral = "MIDDLE"
    items: List[OrderLineIn]
    box_count: int = Field(default=0, ge=0)
    bag_count: int = Field(default=0, ge=0)
    note: Optional[str] = None
    is_staff_meal: bool = False

class AdvanceIn(BaseModel):
    status: OrderStatusLiteral
    payment_method: Optional[PayModeLiteral] = None
    reason: Optional[str] = None

class CancelIn(BaseModel):
    reason: Optional[str] = None

class SettleIn(BaseModel):
    payment_method: PayModeLiteral
