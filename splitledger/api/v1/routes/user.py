from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from splitledger.core.dependencies import get_current_user, get_db
from splitledger.schemas.balances import BalanceSummary, BalancesOverview
from splitledger.schemas.expense import ExpenseOut
from splitledger.schemas.export import DataExport
from splitledger.schemas.user import InviteFriend, LanguageUpdate, UserOut, UserUpdate
from splitledger.services.balance_queries import (
    get_balances_overview,
    get_balances_with_friend,
    split_by_direction,
)
from splitledger.services.expense_services import get_expenses_with_friend
from splitledger.services.user_service import (
    delete_friend,
    download_data,
    edit_user,
    get_friend,
    get_friends,
    get_user_data,
    invite_friend,
    update_preferred_language,
)


router = APIRouter()


@router.get("/me", response_model=UserOut)
async def get_user(
    db: AsyncSession = Depends(get_db),
    user = Depends(get_current_user),
):
    return await get_user_data(db, user.id)


@router.patch("/me", response_model=UserOut)
async def update_user(
    data: UserUpdate,
    db: AsyncSession = Depends(get_db),
    user = Depends(get_current_user),
):
    return await edit_user(db, data, user.id)


@router.put("/me/language")
async def set_language(
    data: LanguageUpdate,
    db: AsyncSession = Depends(get_db),
    user = Depends(get_current_user),
):
    return await update_preferred_language(db, user.id, data.language)


@router.post("/me/download", response_model=DataExport)
async def download(
    db: AsyncSession = Depends(get_db),
    user = Depends(get_current_user),
):
    return await download_data(db, user.id)


@router.get("/balances", response_model=BalancesOverview)
async def balances(
    db: AsyncSession = Depends(get_db),
    user = Depends(get_current_user),
):
    return await get_balances_overview(db, user.id)


@router.get("/friends", response_model=list[UserOut])
async def friends(
    db: AsyncSession = Depends(get_db),
    user = Depends(get_current_user),
):
    return await get_friends(db, user.id)


@router.post("/friends/invite", response_model=UserOut)
async def invite(
    data: InviteFriend,
    db: AsyncSession = Depends(get_db),
    user = Depends(get_current_user),
):
    return await invite_friend(db, data.email)


@router.get("/friends/{friend_id}", response_model=UserOut)
async def friend(
    friend_id: int,
    db: AsyncSession = Depends(get_db),
    user = Depends(get_current_user),
):
    return await get_friend(db, user.id, friend_id)


@router.get("/friends/{friend_id}/balances", response_model=BalanceSummary)
async def balances_with_friend(
    friend_id: int,
    db: AsyncSession = Depends(get_db),
    user = Depends(get_current_user),
):
    return split_by_direction(await get_balances_with_friend(db, user.id, friend_id))


@router.get("/friends/{friend_id}/expenses", response_model=list[ExpenseOut])
async def expenses_with_friend(
    friend_id: int,
    db: AsyncSession = Depends(get_db),
    user = Depends(get_current_user),
):
    return await get_expenses_with_friend(db, user.id, friend_id)


@router.delete("/friends/{friend_id}")
async def remove_friend(
    friend_id: int,
    db: AsyncSession = Depends(get_db),
    user = Depends(get_current_user),
):
    return await delete_friend(db, user.id, friend_id)


@router.get("/{user_id}", response_model=UserOut)
async def user_details(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    user = Depends(get_current_user),
):
    return await get_user_data(db, user_id)
