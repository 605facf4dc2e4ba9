from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional


class SplitwiseBalance(BaseModel):
    model_config = ConfigDict(extra="ignore")

    currency_code: str
    # positive: the friend owes the exporting user
    amount: str


class SplitwiseUser(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: str
    registration_status: Optional[str] = None
    balance: List[SplitwiseBalance] = Field(default_factory=list)

    @property
    def display_name(self) -> str:
        name = " ".join(p for p in (self.first_name, self.last_name) if p)
        return name or self.email.split("@")[0]


class SplitwiseGroup(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    name: str
    members: List[SplitwiseUser] = Field(default_factory=list)


class SplitwiseExport(BaseModel):
    model_config = ConfigDict(extra="ignore")

    friends: List[SplitwiseUser] = Field(default_factory=list)
    groups: List[SplitwiseGroup] = Field(default_factory=list)


class SplitwiseImport(BaseModel):
    users_with_balance: List[SplitwiseUser]
    groups: List[SplitwiseGroup]


class ImportSummary(BaseModel):
    users_created: int = 0
    users_reused: int = 0
    balances_written: int = 0
    groups_created: int = 0
    groups_updated: int = 0
    memberships_added: int = 0
