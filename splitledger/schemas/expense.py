from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, Field, field_validator
from typing import List, Literal, Optional

class SplitInput(BaseModel):
    user_id: int
    # meaning depends on split_type: ignored, percent, weight, exact amount or surcharge
    value: Optional[Decimal] = None

class ExpenseCreate(BaseModel):
    name: str = Field(..., min_length=1)
    category: str = "general"
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    currency: str = Field(..., min_length=3, max_length=3)
    split_type: Literal["EQUAL", "PERCENTAGE", "SHARE", "EXACT", "ADJUSTMENT"] = "EQUAL"
    paid_by: int
    group_id: Optional[int] = None
    expense_date: Optional[datetime] = None
    splits: List[SplitInput]

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, v):
        return v.upper()

class ParticipantOut(BaseModel):
    user_id: int
    amount: Decimal
    name: Optional[str] = None

class AuditOut(BaseModel):
    action: str
    actor_id: int
    amount: Decimal
    currency: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class ExpenseOut(BaseModel):
    id: int
    name: str
    category: str
    amount: Decimal
    currency: str
    split_type: str
    paid_by: int
    added_by: int
    group_id: Optional[int] = None
    status: str
    expense_date: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_by: Optional[int] = None
    deleted_by: Optional[int] = None
    deleted_at: Optional[datetime] = None
    participants: List[ParticipantOut] = []

    class Config:
        from_attributes = True

class ExpenseDetailOut(ExpenseOut):
    audit: List[AuditOut] = []

class SettleUpCreate(BaseModel):
    friend_id: int
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    currency: str = Field(..., min_length=3, max_length=3)
    group_id: Optional[int] = None

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, v):
        return v.upper()
