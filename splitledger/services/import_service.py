"""
Splitwise import.

Friends and groups from a Splitwise export are merged into the local ledger.
Users are matched by email, groups through ``import_links``; balances carry
the amount last imported, so running the same import again writes nothing
new. Transactions are not imported.

The friend phase and the group phase commit separately. If the group phase
fails the friends stay imported; the whole import is safe to retry.
"""
import json
import logging
from decimal import Decimal, InvalidOperation
from typing import List, Tuple
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import func, select
from splitledger.core.config import settings
from splitledger.core.exceptions import ImportFailed
from splitledger.db.session import dialect_insert
from splitledger.models.group import Group
from splitledger.models.import_link import ImportLink
from splitledger.schemas.splitwise import SplitwiseExport, SplitwiseGroup, SplitwiseUser
from splitledger.services.group_services import ensure_member
from splitledger.services.ledger_service import set_imported_pair
from splitledger.services.user_queries import get_or_create_user

logger = logging.getLogger(__name__)

PROVIDER = "splitwise"
CONFIRMED = "confirmed"
# balances are stored as NUMERIC(18, 2)
MAX_AMOUNT = Decimal("1e16")


def parse_splitwise_export(raw) -> SplitwiseExport:
    """
    Parses an export document. Any structural problem is reported as a
    single ImportFailed before anything touches the database.
    """
    try:
        if isinstance(raw, (bytes, bytearray)):
            raw = raw.decode("utf-8")
        return SplitwiseExport.model_validate(json.loads(raw))
    except (UnicodeDecodeError, json.JSONDecodeError, ValidationError, TypeError) as e:
        logger.warning("Rejected Splitwise export: %s", e)
        raise ImportFailed()


def is_importable_friend(friend: SplitwiseUser) -> bool:
    return friend.registration_status == CONFIRMED and len(friend.balance) > 0


def is_importable_group(group: SplitwiseGroup) -> bool:
    return len(group.members) > 0 and group.id != settings.SPLITWISE_NO_GROUP_ID


def select_importable(
    friends: List[SplitwiseUser],
    groups: List[SplitwiseGroup],
) -> Tuple[List[SplitwiseUser], List[SplitwiseGroup]]:
    return (
        [f for f in friends if is_importable_friend(f)],
        [g for g in groups if is_importable_group(g)],
    )


def _parse_amount(value: str) -> Decimal:
    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ImportFailed(f"Invalid balance amount: {value!r}")

    if not amount.is_finite() or abs(amount) >= MAX_AMOUNT:
        raise ImportFailed(f"Invalid balance amount: {value!r}")

    return amount


async def _get_link(db: AsyncSession, entity: str, external_id) -> ImportLink | None:
    q = select(ImportLink).where(
        ImportLink.provider == PROVIDER,
        ImportLink.entity == entity,
        ImportLink.external_id == str(external_id),
    ).execution_options(populate_existing=True)
    return (await db.execute(q)).scalar_one_or_none()


async def _link(
    db: AsyncSession,
    entity: str,
    external_id,
    local_id: int,
    imported_by: int,
    replace: bool = True,
) -> bool:
    """
    Points an external id at a local row. With ``replace=False`` an existing
    link wins. Returns True when this call wrote the link.
    """
    insert = dialect_insert(db)
    keys = ["provider", "entity", "external_id"]

    stmt = insert(ImportLink.__table__).values(
        provider=PROVIDER,
        entity=entity,
        external_id=str(external_id),
        local_id=local_id,
        imported_by=imported_by,
    )
    if replace:
        stmt = stmt.on_conflict_do_update(
            index_elements=keys,
            set_={
                "local_id": stmt.excluded.local_id,
                "imported_by": stmt.excluded.imported_by,
                "updated_at": func.now(),
            },
        )
    else:
        stmt = stmt.on_conflict_do_nothing(index_elements=keys)

    res = await db.execute(stmt)
    return res.rowcount == 1


async def _resolve_user(db: AsyncSession, external: SplitwiseUser, imported_by: int, summary: dict):
    user, created = await get_or_create_user(db, external.email, external.display_name)
    summary["users_created" if created else "users_reused"] += 1
    await _link(db, "user", external.id, user.id, imported_by)
    return user


async def _resolve_group(db: AsyncSession, external: SplitwiseGroup, imported_by: int, summary: dict) -> Group:
    link = await _get_link(db, "group", external.id)
    group = await db.get(Group, link.local_id) if link else None

    if group is None:
        group = Group(name=external.name, created_by=imported_by)
        db.add(group)
        await db.flush()

        # a dangling link is repointed; a fresh one only if no other import took it
        if await _link(db, "group", external.id, group.id, imported_by, replace=link is not None):
            summary["groups_created"] += 1
            return group

        await db.delete(group)
        await db.flush()
        link = await _get_link(db, "group", external.id)
        group = await db.get(Group, link.local_id)

    group.name = external.name
    summary["groups_updated"] += 1
    return group


async def import_user_balances(db: AsyncSession, user_id: int, friends: List[SplitwiseUser], summary: dict):
    for friend in friends:
        if friend.email.strip().lower() == "":
            continue

        local = await _resolve_user(db, friend, user_id, summary)
        if local.id == user_id:
            continue

        for b in friend.balance:
            await set_imported_pair(
                db,
                user_id=user_id,
                friend_id=local.id,
                currency=b.currency_code.upper(),
                imported=_parse_amount(b.amount),
            )
            summary["balances_written"] += 1

    await db.commit()


async def import_groups(db: AsyncSession, user_id: int, groups: List[SplitwiseGroup], summary: dict):
    for external in groups:
        group = await _resolve_group(db, external, user_id, summary)

        member_ids = {user_id}
        for m in external.members:
            member_ids.add((await _resolve_user(db, m, user_id, summary)).id)

        for uid in sorted(member_ids):
            if await ensure_member(db, group.id, uid):
                summary["memberships_added"] += 1

    await db.commit()


async def import_users_from_splitwise(
    db: AsyncSession,
    user_id: int,
    users_with_balance: List[SplitwiseUser],
    groups: List[SplitwiseGroup],
) -> dict:
    friends, groups = select_importable(users_with_balance, groups)
    summary = {
        "users_created": 0,
        "users_reused": 0,
        "balances_written": 0,
        "groups_created": 0,
        "groups_updated": 0,
        "memberships_added": 0,
    }

    # reject bad amounts up front so a malformed record never leaves a half import
    for f in friends:
        for b in f.balance:
            _parse_amount(b.amount)

    logger.info(
        "Splitwise import for user %s: %d friends, %d groups", user_id, len(friends), len(groups)
    )

    try:
        await import_user_balances(db, user_id, friends, summary)
    except Exception:
        await db.rollback()
        logger.exception("Splitwise friend import failed for user %s", user_id)
        raise

    try:
        await import_groups(db, user_id, groups, summary)
    except Exception:
        await db.rollback()
        logger.exception(
            "Splitwise group import failed for user %s after friends were committed", user_id
        )
        raise

    logger.info("Splitwise import for user %s done: %s", user_id, summary)
    return summary


async def import_splitwise_export(db: AsyncSession, user_id: int, raw) -> dict:
    export = parse_splitwise_export(raw)
    return await import_users_from_splitwise(db, user_id, export.friends, export.groups)
