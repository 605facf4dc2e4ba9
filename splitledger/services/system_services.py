import logging
from decimal import Decimal
from splitledger.db.session import engine
from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased
from splitledger.models.balance import Balance, GroupBalance
from splitledger.models.user import User
from splitledger.models.group import Group
from splitledger.models.expense import Expense, ExpenseParticipant, ExpenseStatus

logger = logging.getLogger(__name__)

# sqlite keeps NUMERIC as REAL, so sums are compared against half a cent
TOLERANCE = Decimal("0.005")

async def check_db_service():
    try:
        async with engine.connect() as conn:
            await conn.exec_driver_sql("SELECT 1")
        return {"db": True, "message": "Database is connected"}
    except Exception as e:
        logger.error("Database check failed: %s", e)
        return {"db": False, "error": str(e)}

async def system_health():
    return {
        "status": "ok"
    }

async def _unmirrored(db: AsyncSession, model, *keys: str) -> int:
    mirror = aliased(model)
    on = [
        mirror.user_id == model.friend_id,
        mirror.friend_id == model.user_id,
        mirror.currency == model.currency,
    ]
    on += [getattr(mirror, k) == getattr(model, k) for k in keys]

    q = (
        select(func.count(model.id))
        .outerjoin(mirror, and_(*on))
        .where(or_(
            mirror.id.is_(None),
            func.abs(model.amount + mirror.amount) > TOLERANCE,
        ))
    )
    return await db.scalar(q)

async def ledger_consistency(db: AsyncSession):
    """
    Counts balance rows whose mirror is missing or does not hold the negated
    amount, and active expenses whose participant rows do not sum to zero.
    """
    unbalanced = (
        select(ExpenseParticipant.expense_id)
        .join(Expense, Expense.id == ExpenseParticipant.expense_id)
        .where(Expense.status == ExpenseStatus.ACTIVE)
        .group_by(ExpenseParticipant.expense_id)
        .having(func.abs(func.sum(ExpenseParticipant.amount)) > TOLERANCE)
    )

    report = {
        "unmirrored_balances": await _unmirrored(db, Balance),
        "unmirrored_group_balances": await _unmirrored(db, GroupBalance, "group_id"),
        "unbalanced_expenses": await db.scalar(
            select(func.count()).select_from(unbalanced.subquery())
        ),
    }
    report["consistent"] = not any(report.values())

    if not report["consistent"]:
        logger.warning("Ledger inconsistency found: %s", report)
    return report

async def system_metrics(db: AsyncSession):
    users_q = select(func.count(User.id))
    groups_q = select(func.count(Group.id)).where(Group.is_deleted == False)
    expenses_q = select(func.count(Expense.id)).where(
        Expense.status == ExpenseStatus.ACTIVE
    )
    open_pairs_q = select(func.count(Balance.id)).where(Balance.amount != 0)

    return {
        "users": await db.scalar(users_q),
        "groups": await db.scalar(groups_q),
        "expenses": await db.scalar(expenses_q),
        # each open pair is stored twice
        "open_balances": (await db.scalar(open_pairs_q)) // 2,
    }
