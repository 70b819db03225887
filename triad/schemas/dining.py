from pydantic import BaseModel, Field
from typing import Literal

FloorLiteral = Literal["GROUND", "UPPER", "DELIVERY"]
ManualTableStatusLiteral = Literal["AVAILABLE", "RESERVED", "DIRTY"]

class TableIn(BaseModel):
    number: str = Field(min_length=1)
    floor: FloorLiteral = "GROUND"
    capacity: int = Field(default=4, ge=1)

class TableStatusIn(BaseModel):
    status: ManualTableStatusLiteral
