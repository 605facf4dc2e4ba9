from pydantic import BaseModel, Field
from typing import List, Optional

class GroupCreate(BaseModel):
    name: str = Field(..., min_length=1)
    default_currency: Optional[str] = Field(None, min_length=3, max_length=3)

class GroupOut(BaseModel):
    id: int
    name: str
    created_by: Optional[int] = None
    default_currency: str

    class Config:
        from_attributes = True
        
class GroupMemberOut(BaseModel):
    user_id: int
    group_id: int

    class Config:
        from_attributes = True

class MemberOut(BaseModel):
    id: int
    name: Optional[str] = None
    email: str

class GroupDetailOut(GroupOut):
    members: List[MemberOut]
