from pydantic import BaseModel, Field
from typing import Optional, List

class DailyQuotaIn(BaseModel):
    menu_item_id: str
    is_available: bool = True
    daily_stock: Optional[int] = Field(default=None, ge=-1)

class OpenShopIn(BaseModel):
    quotas: List[DailyQuotaIn]
