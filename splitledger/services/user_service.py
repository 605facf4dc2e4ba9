import logging
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy import and_, delete, func, or_
from splitledger.core.exceptions import NotFound, OutstandingBalance
from splitledger.models.balance import Balance
from splitledger.models.expense import Expense, ExpenseStatus
from splitledger.models.user import User
from splitledger.schemas.user import UserUpdate
from splitledger.services.balance_queries import (
    get_all_balances,
    get_balances_with_friend,
    get_group_balance_rows,
)
from splitledger.services.expense_services import expense_to_dict
from splitledger.services.group_services import get_members, list_group_for_user
from splitledger.services.user_queries import get_or_create_user, get_user_by_id, get_users_by_ids

logger = logging.getLogger(__name__)

async def get_user_data(db: AsyncSession, user_id: int):
    user = await get_user_by_id(db, user_id)

    if not user:
        raise NotFound("User does not exist")

    return user

async def get_friends(db: AsyncSession, user_id: int):
    q = (
        select(Balance.friend_id)
        .where(Balance.user_id == user_id)
        .distinct()
    )
    res = await db.execute(q)
    friend_ids = [row[0] for row in res.all()]

    friends = await get_users_by_ids(db, friend_ids)
    return [friends[fid] for fid in sorted(friends)]

async def get_friend(db: AsyncSession, user_id: int, friend_id: int):
    q = (
        select(User)
        .join(Balance, Balance.user_id == User.id)
        .where(User.id == friend_id, Balance.friend_id == user_id)
        .limit(1)
    )
    friend = (await db.execute(q)).scalars().first()

    if not friend:
        raise NotFound("Friend not found")

    return friend

async def invite_friend(db: AsyncSession, email: str):
    user, created = await get_or_create_user(db, email)
    await db.commit()

    if created:
        logger.info("Invited new user %s", user.id)

    return user

async def edit_user(db: AsyncSession, data: UserUpdate, user_id: int):
    user = await get_user_data(db, user_id)

    if data.name:
        user.name = data.name

    if data.currency:
        user.currency = data.currency

    await db.commit()
    await db.refresh(user)

    return user

async def update_preferred_language(db: AsyncSession, user_id: int, language: str):
    user = await get_user_data(db, user_id)
    user.preferred_language = language
    await db.commit()

    return {"success": True}

async def delete_friend(db: AsyncSession, user_id: int, friend_id: int):
    if not await get_user_by_id(db, friend_id):
        raise NotFound("Friend not found")

    outstanding = await get_balances_with_friend(db, user_id, friend_id)

    if outstanding:
        logger.warning(
            "User %s tried to remove friend %s with %d open balances",
            user_id, friend_id, len(outstanding),
        )
        raise OutstandingBalance()

    pair = or_(
        and_(Balance.user_id == user_id, Balance.friend_id == friend_id),
        and_(Balance.user_id == friend_id, Balance.friend_id == user_id),
    )

    # only settled rows go; a row that moved since the check stays behind
    await db.execute(
        delete(Balance)
        .where(pair, Balance.amount == 0)
        .execution_options(synchronize_session=False)
    )
    remaining = await db.scalar(select(func.count(Balance.id)).where(pair))

    if remaining:
        await db.rollback()
        logger.warning("Balance with friend %s moved while user %s was removing them", friend_id, user_id)
        raise OutstandingBalance()

    await db.commit()
    logger.info("User %s removed friend %s", user_id, friend_id)

    return {"status": "deleted", "friend_id": friend_id}

async def get_complete_friends_details(db: AsyncSession, user_id: int):
    rows = await get_all_balances(db, user_id, include_zero=True)

    balances_by_friend = {}
    for r in rows:
        balances_by_friend.setdefault(r["friend_id"], []).append(
            {"currency": r["currency"], "amount": r["amount"]}
        )

    friends = await get_users_by_ids(db, balances_by_friend.keys())
    return [
        {
            "id": friend.id,
            "name": friend.name,
            "email": friend.email,
            "currency": friend.currency,
            "balances": balances_by_friend[friend.id],
        }
        for friend in sorted(friends.values(), key=lambda f: f.id)
    ]

async def get_complete_group_details(db: AsyncSession, user_id: int):
    groups = []

    for group in await list_group_for_user(db, user_id):
        q = (
            select(Expense)
            .where(Expense.group_id == group.id, Expense.status == ExpenseStatus.ACTIVE)
            .order_by(Expense.created_at.desc(), Expense.id.desc())
        )
        expenses = (await db.execute(q)).scalars().all()

        groups.append({
            "id": group.id,
            "name": group.name,
            "default_currency": group.default_currency,
            "members": await get_members(db, group.id),
            "balances": await get_group_balance_rows(db, group.id),
            "expenses": [expense_to_dict(e) for e in expenses],
        })

    return groups

async def download_data(db: AsyncSession, user_id: int):
    friends = await get_complete_friends_details(db, user_id)
    groups = await get_complete_group_details(db, user_id)

    return {"friends": friends, "groups": groups}
