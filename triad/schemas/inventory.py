from pydantic import BaseModel, Field
from typing import Optional, Literal

IngredientCategoryLiteral = Literal["MEAT", "VEGETABLE", "DRY_GOODS", "WINE"]

class IngredientIn(BaseModel):
    name: str = Field(min_length=1)
    quantity: int = Field(default=0, ge=0)
    unit: str = "pcs"
    category: IngredientCategoryLiteral = "DRY_GOODS"
    threshold: int = Field(default=0, ge=0)

class IngredientUpdate(BaseModel):
    # quantity only moves through credit/debit
    name: Optional[str] = Field(default=None, min_length=1)
    unit: Optional[str] = None
    category: Optional[IngredientCategoryLiteral] = None
    threshold: Optional[int] = Field(default=None, ge=0)

class StockChangeIn(BaseModel):
    amount: int = Field(gt=0)
    reason: Optional[str] = None
