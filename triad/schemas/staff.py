from pydantic import BaseModel, Field
from typing import Optional, Literal
from datetime import date

RoleLiteral = Literal["OWNER", "CHEF", "STAFF"]

class StaffIn(BaseModel):
    username: str = Field(min_length=1)
    name: str
    password: str = Field(min_length=4)
    role: Optional[RoleLiteral] = None   # derived from position when omitted
    position: Optional[str] = None
    staff_class: Optional[str] = None
    start_date: Optional[date] = None

class StaffUpdate(BaseModel):
    name: Optional[str] = None
    password: Optional[str] = Field(default=None, min_length=4)
    role: Optional[RoleLiteral] = None
    position: Optional[str] = None
    staff_class: Optional[str] = None
    start_date: Optional[date] = None
    active: Optional[bool] = None

class PositionIn(BaseModel):
    name: str = Field(min_length=1, max_length=60)
    grants_owner: bool = False
    can_operate_store: bool = False
