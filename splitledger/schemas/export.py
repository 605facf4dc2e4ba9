from pydantic import BaseModel
from typing import List, Optional
from splitledger.schemas.balances import CurrencyAmount, GroupBalanceOut
from splitledger.schemas.expense import ExpenseOut
from splitledger.schemas.group import MemberOut

class FriendExport(BaseModel):
    id: int
    name: Optional[str] = None
    email: str
    currency: str
    balances: List[CurrencyAmount]

class GroupExport(BaseModel):
    id: int
    name: str
    default_currency: str
    members: List[MemberOut]
    balances: List[GroupBalanceOut]
    expenses: List[ExpenseOut]

class DataExport(BaseModel):
    friends: List[FriendExport]
    groups: List[GroupExport]
