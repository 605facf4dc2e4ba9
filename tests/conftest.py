import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET", "test-secret")

from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import splitledger.models  # noqa: F401
from splitledger.core.dependencies import get_db
from splitledger.core.security import create_access_token
from splitledger.db.session import Base
from splitledger.models.balance import Balance, GroupBalance
from splitledger.models.user import User


@pytest_asyncio.fixture
async def engine():
    """In-memory SQLite database with the full schema."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def file_engine(tmp_path):
    """File-backed SQLite, so separate sessions run side by side on real connections."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}",
        connect_args={"timeout": 30},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def file_sessions(file_engine):
    return sessionmaker(bind=file_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def users(db):
    """Alice, Bob and Charlie."""
    people = [
        User(email="alice@example.com", name="Alice", currency="USD", preferred_language="en"),
        User(email="bob@example.com", name="Bob", currency="USD", preferred_language="en"),
        User(email="charlie@example.com", name="Charlie", currency="EUR", preferred_language="en"),
    ]
    db.add_all(people)
    await db.commit()
    return people


@pytest_asyncio.fixture
async def client(session_factory):
    from splitledger.main import app

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


def auth_headers(user) -> dict:
    return {"Authorization": f"Bearer {create_access_token({'sub': str(user.id)})}"}


async def balance_of(db, user_id, friend_id, currency="USD"):
    """Stored amount for (user, friend, currency), or None when no row exists."""
    res = await db.execute(
        select(Balance.amount).where(
            Balance.user_id == user_id,
            Balance.friend_id == friend_id,
            Balance.currency == currency,
        )
    )
    amount = res.scalar_one_or_none()
    return None if amount is None else Decimal(str(amount)).quantize(Decimal("0.01"))


async def group_balance_of(db, group_id, user_id, friend_id, currency="USD"):
    res = await db.execute(
        select(GroupBalance.amount).where(
            GroupBalance.group_id == group_id,
            GroupBalance.user_id == user_id,
            GroupBalance.friend_id == friend_id,
            GroupBalance.currency == currency,
        )
    )
    amount = res.scalar_one_or_none()
    return None if amount is None else Decimal(str(amount)).quantize(Decimal("0.01"))


async def assert_mirrored(db):
    """Every balance row has a mirror holding the exact negation."""
    for model in (Balance, GroupBalance):
        q = select(model).execution_options(populate_existing=True)
        rows = (await db.execute(q)).scalars().all()
        index = {}
        for r in rows:
            key = (getattr(r, "group_id", None), r.user_id, r.friend_id, r.currency)
            index[key] = Decimal(str(r.amount)).quantize(Decimal("0.01"))
        for (gid, uid, fid, cur), amount in index.items():
            assert index.get((gid, fid, uid, cur)) == -amount, (model.__name__, gid, uid, fid, cur)
