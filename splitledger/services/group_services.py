import logging
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from splitledger.core.config import settings
from splitledger.core.dependencies import check_group_membership
from splitledger.core.exceptions import NotFound, OutstandingBalance
from splitledger.db.session import dialect_insert
from splitledger.models.group import Group
from splitledger.models.group_member import GroupMember
from splitledger.services.balance_queries import is_group_settled
from splitledger.services.user_queries import get_user_by_id

logger = logging.getLogger(__name__)

async def create_group(db: AsyncSession, name: str, creator_id: int, default_currency: str | None = None):
    group = Group(
        name=name,
        created_by=creator_id,
        default_currency=(default_currency or settings.DEFAULT_CURRENCY).upper(),
    )
    db.add(group)
    await db.flush()

    member = GroupMember(group_id=group.id, user_id=creator_id)
    db.add(member)

    await db.commit()
    await db.refresh(group)
    logger.info("Group %s created by %s", group.id, creator_id)
    return group

async def ensure_member(db: AsyncSession, group_id: int, user_id: int) -> bool:
    """Adds the membership if missing. Returns True when a row was added. Does not commit."""
    insert = dialect_insert(db)
    stmt = insert(GroupMember.__table__).values(
        group_id=group_id,
        user_id=user_id,
    ).on_conflict_do_nothing(index_elements=["group_id", "user_id"])

    res = await db.execute(stmt)
    return res.rowcount == 1

async def add_member(db: AsyncSession, group_id: int, user_id: int, acting_user_id: int):
    await check_group_membership(db, group_id, acting_user_id)

    if not await get_user_by_id(db, user_id):
        raise NotFound("User does not exist")

    await ensure_member(db, group_id, user_id)
    await db.commit()

    return {"group_id": group_id, "user_id": user_id}

async def list_group_for_user(db: AsyncSession, user_id: int):
    q = (
        select(Group)
        .join(GroupMember)
        .where(GroupMember.user_id == user_id, Group.is_deleted == False)
        .order_by(Group.id)
    )
    result = await db.execute(q)
    return result.scalars().all()

async def get_members(db: AsyncSession, group_id: int):
    q = (
        select(GroupMember)
        .where(GroupMember.group_id == group_id)
        .order_by(GroupMember.user_id)
        .execution_options(populate_existing=True)
    )
    res = await db.execute(q)
    return [
        {"id": m.user.id, "name": m.user.name, "email": m.user.email}
        for m in res.scalars().all()
    ]

async def get_group_details(db: AsyncSession, group_id: int, user_id: int):
    await check_group_membership(db, group_id, user_id)

    group = await db.get(Group, group_id)
    return {
        "id": group.id,
        "name": group.name,
        "created_by": group.created_by,
        "default_currency": group.default_currency,
        "members": await get_members(db, group_id),
    }

async def leave_group(db: AsyncSession, group_id: int, user_id: int):
    member = await check_group_membership(db, group_id, user_id)

    if not await is_group_settled(db, group_id, user_id):
        logger.warning("User %s tried to leave group %s with open balances", user_id, group_id)
        raise OutstandingBalance("You have outstanding balances in this group")

    await db.delete(member)
    await db.commit()

    return {"status": "left", "group_id": group_id}

