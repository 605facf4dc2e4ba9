from fastapi import Depends, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from splitledger.db.session import async_session
from splitledger.core.exceptions import NotAuthenticated, NotFound, Unauthorized
from splitledger.core.security import decode_token, get_bearer_token
from splitledger.services.user_queries import get_user_by_id
from splitledger.models.group import Group
from splitledger.models.group_member import GroupMember

async def get_db():
    async with async_session() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise

async def get_current_user(request: Request, db: AsyncSession = Depends(get_db)):
    token = get_bearer_token(request)
    payload = decode_token(token)
    user_id = payload.get("sub")

    if user_id is None:
        raise NotAuthenticated("Invalid authentication credentials")

    try:
        user = await get_user_by_id(db, int(user_id))
    except ValueError:
        raise NotAuthenticated("Invalid authentication credentials")

    if user is None or not user.is_active:
        raise NotAuthenticated("User not found")

    return user

async def check_group_membership(db: AsyncSession, group_id: int, user_id: int):
    q_group = select(Group).where(Group.id == group_id, Group.is_deleted == False)
    res_group = await db.execute(q_group)
    group = res_group.scalar_one_or_none()

    if not group:
        raise NotFound("Group does not exist")

    q_member = select(GroupMember).where(
        GroupMember.group_id == group_id,
        GroupMember.user_id == user_id
    )

    res_member = await db.execute(q_member)
    member = res_member.scalar_one_or_none()

    if not member:
        raise Unauthorized("You are not a member of this group")

    return member
