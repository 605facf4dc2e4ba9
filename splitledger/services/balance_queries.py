"""
Read-only balance aggregation. Nothing here writes or commits.
"""
from collections import defaultdict
from decimal import Decimal
from typing import Dict, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from splitledger.core.dependencies import check_group_membership
from splitledger.core.utils import ZERO, qround, simplify_debts
from splitledger.models.balance import Balance, GroupBalance
from splitledger.services.user_queries import get_users_by_ids


def _row(b) -> dict:
    row = {
        "user_id": b.user_id,
        "friend_id": b.friend_id,
        "currency": b.currency,
        "amount": qround(Decimal(b.amount)),
    }
    if isinstance(b, GroupBalance):
        row["group_id"] = b.group_id
    return row


def split_by_direction(rows: List[dict]) -> dict:
    """
    Positive rows are money owed to the user, negative rows money the user owes.
    """
    return {
        "you_lent": [r for r in rows if r["amount"] > ZERO],
        "you_owe": [r for r in rows if r["amount"] < ZERO],
    }


async def get_balances_with_friend(db: AsyncSession, user_id: int, friend_id: int) -> List[dict]:
    q = (
        select(Balance)
        .where(
            Balance.user_id == user_id,
            Balance.friend_id == friend_id,
            Balance.amount != 0,
        )
        .order_by(Balance.currency)
        .execution_options(populate_existing=True)
    )
    res = await db.execute(q)
    return [_row(b) for b in res.scalars().all()]


async def get_all_balances(db: AsyncSession, user_id: int, include_zero: bool = False) -> List[dict]:
    q = select(Balance).where(Balance.user_id == user_id)
    if not include_zero:
        q = q.where(Balance.amount != 0)
    q = q.order_by(Balance.friend_id, Balance.currency).execution_options(populate_existing=True)

    res = await db.execute(q)
    return [_row(b) for b in res.scalars().all()]


async def get_balances_overview(db: AsyncSession, user_id: int) -> dict:
    rows = await get_all_balances(db, user_id)

    per_friend: Dict[int, list] = defaultdict(list)
    owed_to_you: Dict[str, Decimal] = defaultdict(lambda: ZERO)
    you_owe: Dict[str, Decimal] = defaultdict(lambda: ZERO)

    for r in rows:
        per_friend[r["friend_id"]].append({"currency": r["currency"], "amount": r["amount"]})
        if r["amount"] > ZERO:
            owed_to_you[r["currency"]] += r["amount"]
        else:
            you_owe[r["currency"]] += r["amount"]

    users = await get_users_by_ids(db, per_friend.keys())

    return {
        "friends": [
            {
                "friend_id": fid,
                "friend_name": getattr(users.get(fid), "name", None),
                "balances": balances,
            }
            for fid, balances in sorted(per_friend.items())
        ],
        "owed_to_you": [{"currency": c, "amount": a} for c, a in sorted(owed_to_you.items())],
        "you_owe": [{"currency": c, "amount": a} for c, a in sorted(you_owe.items())],
    }


async def get_group_balance_rows(db: AsyncSession, group_id: int, user_id: int | None = None) -> List[dict]:
    q = select(GroupBalance).where(GroupBalance.group_id == group_id, GroupBalance.amount != 0)
    if user_id is not None:
        q = q.where(GroupBalance.user_id == user_id)
    q = q.order_by(
        GroupBalance.currency, GroupBalance.user_id, GroupBalance.friend_id
    ).execution_options(populate_existing=True)

    res = await db.execute(q)
    return [_row(b) for b in res.scalars().all()]


async def get_group_balances(db: AsyncSession, group_id: int, user_id: int) -> List[dict]:
    await check_group_membership(db, group_id, user_id)
    return await get_group_balance_rows(db, group_id, user_id)


async def get_group_net_balances(db: AsyncSession, group_id: int) -> Dict[str, Dict[int, Decimal]]:
    """
    Returns:
        {
            currency: { member_id: net_balance (Decimal) }
        }

    net_balance = what the rest of the group owes the member
    """
    net: Dict[str, Dict[int, Decimal]] = defaultdict(lambda: defaultdict(lambda: ZERO))

    for r in await get_group_balance_rows(db, group_id):
        net[r["currency"]][r["user_id"]] += r["amount"]

    return {c: dict(m) for c, m in net.items()}


async def is_group_settled(db: AsyncSession, group_id: int, user_id: int | None = None) -> bool:
    return not await get_group_balance_rows(db, group_id, user_id)


async def suggest_group_settlements(db: AsyncSession, group_id: int, user_id: int) -> List[dict]:
    await check_group_membership(db, group_id, user_id)

    net = await get_group_net_balances(db, group_id)
    member_ids = {uid for per_currency in net.values() for uid in per_currency}
    users = await get_users_by_ids(db, member_ids)

    settlements = []
    for currency in sorted(net):
        for debtor, creditor, amount in simplify_debts(net[currency]):
            settlements.append({
                "from_id": debtor,
                "from_name": getattr(users.get(debtor), "name", None),
                "to_id": creditor,
                "to_name": getattr(users.get(creditor), "name", None),
                "currency": currency,
                "amount": amount,
            })
    return settlements
