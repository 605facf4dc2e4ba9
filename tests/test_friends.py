from decimal import Decimal

import pytest

from conftest import balance_of
from splitledger.core.exceptions import NotFound, OutstandingBalance
from splitledger.schemas.expense import ExpenseCreate, SettleUpCreate
from splitledger.schemas.user import UserUpdate
from splitledger.services.balance_queries import (
    get_balances_overview,
    get_balances_with_friend,
    split_by_direction,
)
from splitledger.services.expense_services import create_expense, get_expenses_with_friend, settle_up
from splitledger.services.ledger_service import adjust_pair
from splitledger.services.user_service import (
    delete_friend,
    download_data,
    edit_user,
    get_friend,
    get_friends,
    invite_friend,
    update_preferred_language,
)


@pytest.mark.asyncio
async def test_delete_friend_with_outstanding_balance(db, users):
    alice, bob, _ = users
    await adjust_pair(db, alice.id, bob.id, "USD", Decimal("0"))
    await adjust_pair(db, alice.id, bob.id, "EUR", Decimal("3.50"))
    await db.commit()

    with pytest.raises(OutstandingBalance):
        await delete_friend(db, alice.id, bob.id)

    assert await balance_of(db, alice.id, bob.id, "EUR") == Decimal("3.50")
    assert await balance_of(db, bob.id, alice.id, "EUR") == Decimal("-3.50")


@pytest.mark.asyncio
async def test_delete_friend_after_settling(db, users):
    alice, bob, _ = users
    await adjust_pair(db, alice.id, bob.id, "USD", Decimal("12"))
    await adjust_pair(db, alice.id, bob.id, "EUR", Decimal("-4"))
    await db.commit()

    await settle_up(db, bob.id, SettleUpCreate(friend_id=alice.id, amount=Decimal("12"), currency="USD"))
    await settle_up(db, alice.id, SettleUpCreate(friend_id=bob.id, amount=Decimal("4"), currency="EUR"))

    result = await delete_friend(db, alice.id, bob.id)

    assert result["status"] == "deleted"
    for cur in ("USD", "EUR"):
        assert await balance_of(db, alice.id, bob.id, cur) is None
        assert await balance_of(db, bob.id, alice.id, cur) is None
    assert await get_friends(db, alice.id) == []


@pytest.mark.asyncio
async def test_delete_unknown_friend(db, users):
    with pytest.raises(NotFound):
        await delete_friend(db, users[0].id, 999)


@pytest.mark.asyncio
async def test_balances_with_friend_skip_zero_and_sort(db, users):
    alice, bob, _ = users
    await adjust_pair(db, alice.id, bob.id, "USD", Decimal("-7"))
    await adjust_pair(db, alice.id, bob.id, "GBP", Decimal("0"))
    await adjust_pair(db, alice.id, bob.id, "EUR", Decimal("9.99"))
    await adjust_pair(db, alice.id, bob.id, "INR", Decimal("150"))
    await db.commit()

    rows = await get_balances_with_friend(db, alice.id, bob.id)

    assert [r["currency"] for r in rows] == ["EUR", "INR", "USD"]

    summary = split_by_direction(rows)
    assert [(r["currency"], r["amount"]) for r in summary["you_lent"]] == [
        ("EUR", Decimal("9.99")),
        ("INR", Decimal("150.00")),
    ]
    assert [(r["currency"], r["amount"]) for r in summary["you_owe"]] == [("USD", Decimal("-7.00"))]


@pytest.mark.asyncio
async def test_balances_overview_totals(db, users):
    alice, bob, charlie = users
    await adjust_pair(db, alice.id, bob.id, "USD", Decimal("10"))
    await adjust_pair(db, alice.id, charlie.id, "USD", Decimal("5"))
    await adjust_pair(db, alice.id, charlie.id, "EUR", Decimal("-2"))
    await db.commit()

    overview = await get_balances_overview(db, alice.id)

    assert [f["friend_id"] for f in overview["friends"]] == [bob.id, charlie.id]
    assert overview["owed_to_you"] == [{"currency": "USD", "amount": Decimal("15.00")}]
    assert overview["you_owe"] == [{"currency": "EUR", "amount": Decimal("-2.00")}]


@pytest.mark.asyncio
async def test_get_friend_requires_relationship(db, users):
    alice, bob, charlie = users
    await adjust_pair(db, alice.id, bob.id, "USD", Decimal("1"))
    await db.commit()

    friend = await get_friend(db, alice.id, bob.id)
    assert friend.id == bob.id

    with pytest.raises(NotFound):
        await get_friend(db, alice.id, charlie.id)


@pytest.mark.asyncio
async def test_invite_friend_reuses_existing_user(db, users):
    bob = users[1]

    same = await invite_friend(db, "BOB@example.com")
    new = await invite_friend(db, "dora@example.com")

    assert same.id == bob.id
    assert new.name == "dora"
    assert new.id not in {u.id for u in users}


@pytest.mark.asyncio
async def test_update_user_details(db, users):
    alice = users[0]

    user = await edit_user(db, UserUpdate(name="Alice B", currency="eur"), alice.id)
    assert user.name == "Alice B"
    assert user.currency == "EUR"

    assert await update_preferred_language(db, alice.id, "de") == {"success": True}


@pytest.mark.asyncio
async def test_expenses_with_friend(db, users):
    alice, bob, charlie = users

    shared = await create_expense(
        db,
        ExpenseCreate(name="Movie", amount=Decimal("20"), currency="USD", paid_by=alice.id,
                      splits=[{"user_id": alice.id}, {"user_id": bob.id}]),
        alice.id,
    )
    await create_expense(
        db,
        ExpenseCreate(name="Coffee", amount=Decimal("4"), currency="USD", paid_by=alice.id,
                      splits=[{"user_id": alice.id}, {"user_id": charlie.id}]),
        alice.id,
    )

    expenses = await get_expenses_with_friend(db, alice.id, bob.id)
    assert [e["id"] for e in expenses] == [shared["id"]]


@pytest.mark.asyncio
async def test_download_data_snapshot(db, users):
    alice, bob, _ = users
    await create_expense(
        db,
        ExpenseCreate(name="Movie", amount=Decimal("20"), currency="USD", paid_by=alice.id,
                      splits=[{"user_id": alice.id}, {"user_id": bob.id}]),
        alice.id,
    )

    before = await get_balances_with_friend(db, alice.id, bob.id)
    data = await download_data(db, alice.id)
    after = await get_balances_with_friend(db, alice.id, bob.id)

    assert before == after
    assert data["groups"] == []
    assert data["friends"] == [
        {
            "id": bob.id,
            "name": "Bob",
            "email": "bob@example.com",
            "currency": "USD",
            "balances": [{"currency": "USD", "amount": Decimal("10.00")}],
        }
    ]
