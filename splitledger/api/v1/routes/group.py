from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from splitledger.core.dependencies import get_current_user, get_db
from splitledger.schemas.balances import GroupBalanceOut, Settlement
from splitledger.schemas.expense import ExpenseOut
from splitledger.schemas.group import GroupCreate, GroupDetailOut, GroupMemberOut, GroupOut
from splitledger.services.balance_queries import get_group_balances, suggest_group_settlements
from splitledger.services.expense_services import get_expenses_by_group
from splitledger.services.group_services import (
    add_member,
    create_group,
    get_group_details,
    leave_group,
    list_group_for_user,
)

router = APIRouter()

@router.post("/", response_model=GroupOut)
async def create_new_group(
    data:GroupCreate,
    db: AsyncSession = Depends(get_db),
    user = Depends(get_current_user)
):
    return await create_group(db, data.name, user.id, data.default_currency)

@router.get("/my-groups", response_model=list[GroupOut])
async def my_groups(db: AsyncSession = Depends(get_db), user = Depends(get_current_user)):
    return await list_group_for_user(db, user.id)

@router.get("/{group_id}", response_model=GroupDetailOut)
async def group_details(group_id: int, db: AsyncSession = Depends(get_db), user = Depends(get_current_user)):
    return await get_group_details(db, group_id, user.id)

@router.post("/{group_id}/add/{user_id}", response_model=GroupMemberOut)
async def add_user_to_group(group_id: int, user_id: int, db: AsyncSession = Depends(get_db), user=Depends(get_current_user)):
    return await add_member(db, group_id, user_id, user.id)

@router.delete("/{group_id}/leave")
async def leave(group_id: int, db: AsyncSession = Depends(get_db), user = Depends(get_current_user)):
    return await leave_group(db, group_id, user.id)

@router.get("/{group_id}/balances", response_model=list[GroupBalanceOut])
async def group_balances(group_id: int, db: AsyncSession = Depends(get_db), user = Depends(get_current_user)):
    return await get_group_balances(db, group_id, user.id)

@router.get("/{group_id}/settlements", response_model=list[Settlement])
async def group_settlements(group_id: int, db: AsyncSession = Depends(get_db), user = Depends(get_current_user)):
    return await suggest_group_settlements(db, group_id, user.id)

@router.get("/{group_id}/expenses", response_model=list[ExpenseOut])
async def group_expenses(group_id: int, db: AsyncSession = Depends(get_db), user = Depends(get_current_user)):
    return await get_expenses_by_group(db, group_id, user.id)
