from pydantic import BaseModel, Field
from typing import Optional, List

class MenuItemIn(BaseModel):
    name: str
    description: Optional[str] = None
    price: float = Field(ge=0)
    cost: float = Field(default=0, ge=0)
    category: str = "Other"
    image_url: Optional[str] = None
    ingredients: List[str] = []
    is_available: bool = True
    daily_stock: int = Field(default=-1, ge=-1)
    source: Optional[str] = None

class MenuItemUpdate(BaseModel):
    # daily_stock is owned by shop-open and the projector
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = Field(default=None, ge=0)
    cost: Optional[float] = Field(default=None, ge=0)
    category: Optional[str] = None
    image_url: Optional[str] = None
    ingredients: Optional[List[str]] = None
    source: Optional[str] = None
