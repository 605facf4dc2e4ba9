import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Iterable, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from splitledger.core.dependencies import check_group_membership
from splitledger.core.exceptions import BadRequest, Conflict, NotFound, Unauthorized
from splitledger.core.utils import SplitType, compute_shares, participant_amounts, qround
from splitledger.models.expense import (
    AuditAction,
    Expense,
    ExpenseAudit,
    ExpenseParticipant,
    ExpenseStatus,
)
from splitledger.models.group_member import GroupMember
from splitledger.schemas.expense import ExpenseCreate, SettleUpCreate
from splitledger.services.ledger_service import apply_expense_delta, revert_expense_delta
from splitledger.services.user_queries import get_users_by_ids

logger = logging.getLogger(__name__)

CLAIM_ATTEMPTS = 3


def expense_to_dict(expense: Expense, users: Optional[Dict[int, object]] = None) -> dict:
    users = users or {}
    return {
        "id": expense.id,
        "name": expense.name,
        "category": expense.category,
        "amount": qround(Decimal(expense.amount)),
        "currency": expense.currency,
        "split_type": expense.split_type,
        "paid_by": expense.paid_by,
        "added_by": expense.added_by,
        "group_id": expense.group_id,
        "status": expense.status,
        "expense_date": expense.expense_date,
        "created_at": expense.created_at,
        "updated_by": expense.updated_by,
        "deleted_by": expense.deleted_by,
        "deleted_at": expense.deleted_at,
        "participants": [
            {
                "user_id": p.user_id,
                "amount": qround(Decimal(p.amount)),
                "name": getattr(users.get(p.user_id), "name", None),
            }
            for p in sorted(expense.participants, key=lambda p: p.user_id)
        ],
    }


async def get_expense(db: AsyncSession, expense_id: int) -> Expense:
    q = (
        select(Expense)
        .where(Expense.id == expense_id)
        .execution_options(populate_existing=True)
    )
    res = await db.execute(q)
    expense = res.scalar_one_or_none()

    if not expense:
        raise NotFound("Expense not found")

    return expense


async def _claim(db: AsyncSession, expense: Expense, **values) -> bool:
    """
    Writes ``values`` and bumps the version, but only if the expense is still
    active at the version it was loaded with. Returns False when another
    writer got there first; the row is then left alone.
    """
    res = await db.execute(
        update(Expense)
        .where(
            Expense.id == expense.id,
            Expense.status == ExpenseStatus.ACTIVE,
            Expense.version == expense.version,
        )
        .values(version=Expense.version + 1, **values)
        .execution_options(synchronize_session=False)
    )
    return res.rowcount == 1


async def _ensure_users_exist(db: AsyncSession, user_ids: Iterable[int]):
    ids = set(user_ids)
    found = await get_users_by_ids(db, ids)
    missing = ids - set(found.keys())
    if missing:
        raise NotFound(f"Users not found: {sorted(missing)}")
    return found


async def _ensure_group_members(db: AsyncSession, group_id: int, user_ids: Iterable[int]):
    ids = set(user_ids)
    q = select(GroupMember.user_id).where(
        GroupMember.group_id == group_id,
        GroupMember.user_id.in_(ids)
    )
    res = await db.execute(q)
    valid = {row[0] for row in res.all()}

    if ids != valid:
        raise BadRequest("One or more users in splits are not members of the group")


async def _validate(db: AsyncSession, acting_user_id: int, paid_by: int, group_id, net: Dict[int, Decimal]):
    involved = set(net.keys())

    if acting_user_id not in involved:
        raise Unauthorized("You must be the payer or a participant of the expense")

    await _ensure_users_exist(db, involved)

    if group_id is not None:
        await check_group_membership(db, group_id, acting_user_id)
        await _ensure_group_members(db, group_id, involved)


def _audit(db: AsyncSession, expense: Expense, action: str, actor_id: int):
    db.add(ExpenseAudit(
        expense_id=expense.id,
        action=action,
        actor_id=actor_id,
        amount=expense.amount,
        currency=expense.currency,
    ))


def _net_from_input(data: ExpenseCreate) -> Dict[int, Decimal]:
    shares = compute_shares(
        data.amount,
        data.split_type,
        [(s.user_id, s.value) for s in data.splits],
    )
    return participant_amounts(data.paid_by, data.amount, shares)


async def _record(
    db: AsyncSession,
    acting_user_id: int,
    *,
    name: str,
    category: str,
    amount: Decimal,
    currency: str,
    split_type: str,
    paid_by: int,
    group_id: Optional[int],
    expense_date: Optional[datetime],
    net: Dict[int, Decimal],
) -> Expense:
    await _validate(db, acting_user_id, paid_by, group_id, net)

    expense = Expense(
        name=name,
        category=category,
        amount=qround(amount),
        currency=currency,
        split_type=split_type,
        paid_by=paid_by,
        added_by=acting_user_id,
        group_id=group_id,
        status=ExpenseStatus.ACTIVE,
        participants=[
            ExpenseParticipant(user_id=uid, amount=amt) for uid, amt in net.items()
        ],
    )
    if expense_date:
        expense.expense_date = expense_date

    db.add(expense)
    await db.flush()  # generates expense.id

    await apply_expense_delta(db, expense, expense.participants, expense.paid_by)
    _audit(db, expense, AuditAction.CREATED, acting_user_id)

    await db.commit()
    logger.info(
        "Expense %s created by %s: %s %s (%s)",
        expense.id, acting_user_id, expense.amount, expense.currency, split_type,
    )
    return await get_expense(db, expense.id)


async def create_expense(db: AsyncSession, data: ExpenseCreate, user_id: int):
    expense = await _record(
        db,
        user_id,
        name=data.name,
        category=data.category,
        amount=data.amount,
        currency=data.currency,
        split_type=data.split_type,
        paid_by=data.paid_by,
        group_id=data.group_id,
        expense_date=data.expense_date,
        net=_net_from_input(data),
    )
    users = await get_users_by_ids(db, [p.user_id for p in expense.participants])
    return expense_to_dict(expense, users)


async def settle_up(db: AsyncSession, user_id: int, data: SettleUpCreate):
    """
    Records a payment from the acting user to a friend as a SETTLEMENT expense,
    which moves their balance toward zero.
    """
    if data.friend_id == user_id:
        raise BadRequest("You cannot settle up with yourself")

    amount = qround(data.amount)
    expense = await _record(
        db,
        user_id,
        name="Settle up",
        category="settlement",
        amount=amount,
        currency=data.currency,
        split_type=SplitType.SETTLEMENT,
        paid_by=user_id,
        group_id=data.group_id,
        expense_date=None,
        net={user_id: amount, data.friend_id: -amount},
    )
    users = await get_users_by_ids(db, [user_id, data.friend_id])
    return expense_to_dict(expense, users)


async def edit_expense(db: AsyncSession, data: ExpenseCreate, expense_id: int, user_id: int):
    expense = await get_expense(db, expense_id)

    if not any(p.user_id == user_id for p in expense.participants):
        raise Unauthorized("You can't edit this expense")

    if expense.is_deleted:
        raise BadRequest("Deleted expenses cannot be edited")

    if expense.split_type == SplitType.SETTLEMENT:
        raise BadRequest("Settlements cannot be edited, delete and record a new one")

    net = _net_from_input(data)
    await _validate(db, user_id, data.paid_by, data.group_id, net)

    if not await _claim(db, expense, updated_by=user_id):
        await db.rollback()
        if (await get_expense(db, expense_id)).is_deleted:
            raise BadRequest("Deleted expenses cannot be edited")
        logger.warning("Expense %s changed while user %s was editing it", expense_id, user_id)
        raise Conflict()

    # take the old contribution out before anything about the expense changes
    await revert_expense_delta(db, expense)

    expense.participants.clear()
    await db.flush()

    expense.name = data.name
    expense.category = data.category
    expense.amount = qround(data.amount)
    expense.currency = data.currency
    expense.split_type = data.split_type
    expense.paid_by = data.paid_by
    expense.group_id = data.group_id
    if data.expense_date:
        expense.expense_date = data.expense_date

    for uid, amt in net.items():
        expense.participants.append(ExpenseParticipant(user_id=uid, amount=amt))
    await db.flush()

    await apply_expense_delta(db, expense, expense.participants, expense.paid_by)
    _audit(db, expense, AuditAction.UPDATED, user_id)

    await db.commit()
    logger.info("Expense %s edited by %s", expense_id, user_id)

    expense = await get_expense(db, expense_id)
    users = await get_users_by_ids(db, [p.user_id for p in expense.participants])
    return expense_to_dict(expense, users)


async def delete_expense(db: AsyncSession, user_id: int, expense_id: int):
    for _ in range(CLAIM_ATTEMPTS):
        expense = await get_expense(db, expense_id)

        if not any(p.user_id == user_id for p in expense.participants):
            logger.warning("User %s tried to delete expense %s without participating", user_id, expense_id)
            raise Unauthorized("You are not the participant of the expense")

        if expense.is_deleted:
            return {"status": "deleted", "expense_id": expense_id}

        claimed = await _claim(
            db,
            expense,
            status=ExpenseStatus.DELETED,
            deleted_by=user_id,
            deleted_at=datetime.now(timezone.utc),
        )
        if claimed:
            break

        # edited or deleted by someone else in the meantime, look again
        await db.rollback()
    else:
        raise Conflict()

    await revert_expense_delta(db, expense)
    _audit(db, expense, AuditAction.DELETED, user_id)

    await db.commit()
    logger.info("Expense %s deleted by %s", expense_id, user_id)

    return {"status": "deleted", "expense_id": expense_id}


async def get_expense_details(db: AsyncSession, expense_id: int, user_id: int):
    expense = await get_expense(db, expense_id)

    participant_ids = {p.user_id for p in expense.participants}
    member_ids = set()

    if expense.group_id is not None:
        res = await db.execute(
            select(GroupMember.user_id).where(GroupMember.group_id == expense.group_id)
        )
        member_ids = {row[0] for row in res.all()}

    if user_id not in participant_ids and user_id not in member_ids:
        raise Unauthorized("Unauthorized access")

    users = await get_users_by_ids(db, participant_ids | member_ids)
    out = expense_to_dict(expense, users)

    # group members left out of the split still show up, owing nothing
    for uid in sorted(member_ids - participant_ids):
        out["participants"].append({
            "user_id": uid,
            "amount": Decimal("0.00"),
            "name": getattr(users.get(uid), "name", None),
        })

    audit_q = (
        select(ExpenseAudit)
        .where(ExpenseAudit.expense_id == expense_id)
        .order_by(ExpenseAudit.id)
    )
    out["audit"] = [
        {
            "action": a.action,
            "actor_id": a.actor_id,
            "amount": qround(Decimal(a.amount)),
            "currency": a.currency,
            "created_at": a.created_at,
        }
        for a in (await db.execute(audit_q)).scalars().all()
    ]
    return out


async def get_all_expenses(db: AsyncSession, user_id: int):
    q = (
        select(Expense)
        .join(ExpenseParticipant, Expense.id == ExpenseParticipant.expense_id)
        .where(ExpenseParticipant.user_id == user_id)
        .order_by(Expense.created_at.desc(), Expense.id.desc())
        .execution_options(populate_existing=True)
    )

    res = await db.execute(q)
    return [expense_to_dict(e) for e in res.scalars().unique().all()]


async def get_expenses_with_friend(db: AsyncSession, user_id: int, friend_id: int):
    """Active expenses in which both users take part, newest first."""
    mine = select(ExpenseParticipant.expense_id).where(ExpenseParticipant.user_id == user_id)
    theirs = select(ExpenseParticipant.expense_id).where(ExpenseParticipant.user_id == friend_id)

    q = (
        select(Expense)
        .where(
            Expense.id.in_(mine),
            Expense.id.in_(theirs),
            Expense.status == ExpenseStatus.ACTIVE,
        )
        .order_by(Expense.created_at.desc(), Expense.id.desc())
        .execution_options(populate_existing=True)
    )

    res = await db.execute(q)
    return [expense_to_dict(e) for e in res.scalars().all()]


async def get_expenses_by_group(
    db: AsyncSession,
    group_id: int,
    user_id: int,
):
    await check_group_membership(db, group_id, user_id)

    q = (
        select(Expense)
        .where(
            Expense.group_id == group_id,
            Expense.status == ExpenseStatus.ACTIVE,
        )
        .order_by(
            Expense.created_at.desc(),
            Expense.id.desc(),
        )
        .execution_options(populate_existing=True)
    )

    res = await db.execute(q)
    expenses = res.scalars().all()

    out = []
    for expense in expenses:
        row = expense_to_dict(expense)
        row["my_share"] = next(
            (p["amount"] for p in row["participants"] if p["user_id"] == user_id),
            Decimal("0.00"),
        )
        out.append(row)
    return out
