from pydantic import BaseModel, EmailStr, Field, field_validator
from datetime import datetime
from typing import Optional

class UserOut(BaseModel):
    id: int
    # imported accounts may carry addresses EmailStr would reject
    email: str
    name: Optional[str] = None
    currency: str
    preferred_language: str
    created_at: Optional[datetime] = None
    is_active: bool

    class Config:
        from_attributes = True

class UserUpdate(BaseModel):
    name: Optional[str] = None
    currency: Optional[str] = Field(None, min_length=3, max_length=3)

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, v):
        return v.upper() if v else v

class LanguageUpdate(BaseModel):
    language: str = Field(..., min_length=2, max_length=10)

class InviteFriend(BaseModel):
    email: EmailStr
