from typing import Iterable, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from splitledger.db.session import dialect_insert
from splitledger.models.user import User

async def get_user_by_id(db: AsyncSession, user_id: int):
    res = await db.execute(select(User).where(User.id == user_id))
    return res.scalar_one_or_none()

async def get_user_by_email(db: AsyncSession, email: str):
    res = await db.execute(select(User).where(User.email == email.strip().lower()))
    return res.scalar_one_or_none()

async def get_users_by_ids(db: AsyncSession, user_ids: Iterable[int]):
    ids = list(set(user_ids))
    if not ids:
        return {}
    res = await db.execute(select(User).where(User.id.in_(ids)))
    return {u.id: u for u in res.scalars().all()}

async def get_or_create_user(db: AsyncSession, email: str, name: Optional[str] = None):
    """
    Returns (user, created). Does not commit.

    A user inserted concurrently under the same email is picked up rather
    than reported as a unique violation.
    """
    email = email.strip().lower()
    user = await get_user_by_email(db, email)
    if user:
        return user, False

    insert = dialect_insert(db)
    stmt = insert(User.__table__).values(
        email=email,
        name=name or email.split("@")[0],
    ).on_conflict_do_nothing(index_elements=["email"])
    res = await db.execute(stmt)

    return await get_user_by_email(db, email), res.rowcount == 1
