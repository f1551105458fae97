from pydantic import BaseModel, Field, field_validator
from typing import Optional, List

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"

# Users
class User(BaseModel):
    phone: str = Field(..., description="Unique phone number")
    pin_hash: str = Field(..., description="Derived hash of the PIN")
    pin_salt: str = Field(..., description="Salt for PBKDF2")
    today: Optional["DailyTally"] = Field(None, description="Current day's tally")
    tally_rev: int = Field(0, description="Bumped on every write of the current tally")

# Daily tally
class TallyEntry(BaseModel):
    id: int
    name: str
    price: float = Field(..., ge=0, description="Unit price snapshotted from the catalog")
    count: int = Field(0, ge=0)

class DailyTally(BaseModel):
    date: str = Field(..., pattern=DATE_PATTERN, description="Local day, YYYY-MM-DD")
    categories: List[TallyEntry] = Field(default_factory=list)

# Reports
class ReportLineItem(BaseModel):
    id: int
    name: str
    price: float
    count: int
    amount: float

class Report(BaseModel):
    user_id: str
    date: str = Field(..., pattern=DATE_PATTERN)
    items: List[ReportLineItem] = Field(default_factory=list)
    total_qty: int = 0
    total_amount: float = 0.0

# Request payloads
class LoginPayload(BaseModel):
    phone: str = Field(..., min_length=1)
    pin: str = Field(..., min_length=1)

    @field_validator("phone", "pin", mode="before")
    @classmethod
    def _numbers_as_text(cls, v):
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

class IncomingEntry(BaseModel):
    id: int = Field(..., strict=True)
    name: Optional[str] = None
    price: Optional[float] = None
    count: int = Field(..., ge=0, strict=True)

class TodayPayload(BaseModel):
    date: Optional[str] = Field(None, pattern=DATE_PATTERN)
    categories: List[IncomingEntry]

class UpdateTodayRequest(BaseModel):
    today: TodayPayload


User.model_rebuild()
