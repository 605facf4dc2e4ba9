"""
Balance ledger.

Every write goes to both rows of a mirrored pair: (user, friend, currency)
and (friend, user, currency) always hold exact negations. Writes are
atomic upserts (``amount = amount + delta``) so concurrent requests on the
same pair never lose an update. Nothing here commits; the calling service
owns the transaction.
"""
import logging
from decimal import Decimal
from typing import Iterable, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from splitledger.core.utils import ZERO, qround
from splitledger.db.session import dialect_insert
from splitledger.models.balance import Balance, GroupBalance
from splitledger.models.expense import Expense, ExpenseParticipant

logger = logging.getLogger(__name__)


async def _increment(db: AsyncSession, model, keys: dict, delta: Decimal):
    insert = dialect_insert(db)
    table = model.__table__

    stmt = insert(table).values(**keys, amount=delta)
    stmt = stmt.on_conflict_do_update(
        index_elements=list(keys.keys()),
        set_={"amount": table.c.amount + stmt.excluded.amount},
    )
    await db.execute(stmt)


async def adjust_pair(
    db: AsyncSession,
    user_id: int,
    friend_id: int,
    currency: str,
    delta: Decimal,
    group_id: Optional[int] = None,
):
    """
    Moves the (user, friend) balance by ``delta`` and the mirror by ``-delta``.
    A positive delta means friend owes user ``delta`` more than before.
    """
    delta = qround(Decimal(delta))
    if delta == ZERO or user_id == friend_id:
        return

    logger.debug(
        "ledger: (%s, %s, %s) %+f group=%s", user_id, friend_id, currency, delta, group_id
    )

    await _increment(
        db, Balance, {"user_id": user_id, "friend_id": friend_id, "currency": currency}, delta
    )
    await _increment(
        db, Balance, {"user_id": friend_id, "friend_id": user_id, "currency": currency}, -delta
    )

    if group_id is not None:
        await _increment(
            db,
            GroupBalance,
            {"group_id": group_id, "user_id": user_id, "friend_id": friend_id, "currency": currency},
            delta,
        )
        await _increment(
            db,
            GroupBalance,
            {"group_id": group_id, "user_id": friend_id, "friend_id": user_id, "currency": currency},
            -delta,
        )


async def apply_expense_delta(
    db: AsyncSession,
    expense: Expense,
    participants: Iterable[ExpenseParticipant],
    paid_by: int,
    sign: int = 1,
):
    """
    Pushes an expense's contribution into the ledger (sign=1) or takes it
    back out (sign=-1).

    Each non-payer participant row holds ``-owed``, so the payer's balance
    with that participant grows by what the participant owes.
    """
    for p in participants:
        if p.user_id == paid_by:
            continue

        amount = Decimal(p.amount)
        if amount == ZERO:
            continue

        await adjust_pair(
            db,
            user_id=paid_by,
            friend_id=p.user_id,
            currency=expense.currency,
            delta=-amount * sign,
            group_id=expense.group_id,
        )


async def revert_expense_delta(db: AsyncSession, expense: Expense):
    await apply_expense_delta(db, expense, expense.participants, expense.paid_by, sign=-1)


async def set_imported_pair(
    db: AsyncSession,
    user_id: int,
    friend_id: int,
    currency: str,
    imported: Decimal,
):
    """
    Writes an externally sourced balance for a pair.

    The row remembers what the last import wrote; the running total moves
    only by the difference, so importing the same figure twice changes
    nothing and expenses recorded locally in between are kept.
    """
    imported = qround(Decimal(imported))
    insert = dialect_insert(db)
    table = Balance.__table__

    for uid, fid, value in ((user_id, friend_id, imported), (friend_id, user_id, -imported)):
        stmt = insert(table).values(
            user_id=uid, friend_id=fid, currency=currency, amount=value, imported_amount=value
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id", "friend_id", "currency"],
            set_={
                "amount": table.c.amount + stmt.excluded.imported_amount - table.c.imported_amount,
                "imported_amount": stmt.excluded.imported_amount,
            },
        )
        await db.execute(stmt)
