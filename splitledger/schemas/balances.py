from decimal import Decimal
from pydantic import BaseModel
from typing import List, Optional

class BalanceOut(BaseModel):
    user_id: int
    friend_id: int
    currency: str
    amount: Decimal

    class Config:
        from_attributes = True

class GroupBalanceOut(BalanceOut):
    group_id: int

class CurrencyAmount(BaseModel):
    currency: str
    amount: Decimal

class BalanceSummary(BaseModel):
    # amounts owed to the user (positive) and owed by the user (negative)
    you_lent: List[BalanceOut]
    you_owe: List[BalanceOut]

class FriendBalances(BaseModel):
    friend_id: int
    friend_name: Optional[str]
    balances: List[CurrencyAmount]

class BalancesOverview(BaseModel):
    friends: List[FriendBalances]
    owed_to_you: List[CurrencyAmount]
    you_owe: List[CurrencyAmount]

class Settlement(BaseModel):
    from_id: int
    from_name: str | None
    to_id: int
    to_name: str | None
    currency: str
    amount: Decimal
