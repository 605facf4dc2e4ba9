from decimal import Decimal

import pytest

from splitledger.core.exceptions import BadRequest
from splitledger.core.utils import SplitType, compute_shares, participant_amounts, simplify_debts


def D(v):
    return Decimal(v)


def test_equal_split_spreads_leftover_cents():
    shares = compute_shares(D("10.00"), SplitType.EQUAL, [(1, None), (2, None), (3, None)])

    assert sum(shares.values()) == D("10.00")
    assert sorted(shares.values()) == [D("3.33"), D("3.33"), D("3.34")]


def test_equal_split_even_amount():
    shares = compute_shares(D("10"), SplitType.EQUAL, [(1, None), (2, None)])
    assert shares == {1: D("5.00"), 2: D("5.00")}


def test_percentage_split():
    shares = compute_shares(D("200"), SplitType.PERCENTAGE, [(1, D("25")), (2, D("75"))])
    assert shares == {1: D("50.00"), 2: D("150.00")}


def test_percentage_split_must_total_100():
    with pytest.raises(BadRequest):
        compute_shares(D("200"), SplitType.PERCENTAGE, [(1, D("25")), (2, D("70"))])


def test_share_split_rounding_residue_is_distributed():
    shares = compute_shares(D("100"), SplitType.SHARE, [(1, D("1")), (2, D("1")), (3, D("1"))])

    assert sum(shares.values()) == D("100.00")
    assert all(D("33.33") <= s <= D("33.34") for s in shares.values())


def test_exact_split_must_match_amount():
    assert compute_shares(D("30"), SplitType.EXACT, [(1, D("10")), (2, D("20"))]) == {
        1: D("10.00"),
        2: D("20.00"),
    }

    with pytest.raises(BadRequest):
        compute_shares(D("30"), SplitType.EXACT, [(1, D("10")), (2, D("19.99"))])


def test_adjustment_split():
    # 4 of the 24 are on user 1, the remaining 20 split evenly
    shares = compute_shares(D("24"), SplitType.ADJUSTMENT, [(1, D("4")), (2, D("0"))])
    assert shares == {1: D("14.00"), 2: D("10.00")}


def test_adjustment_cannot_exceed_amount():
    with pytest.raises(BadRequest):
        compute_shares(D("10"), SplitType.ADJUSTMENT, [(1, D("8")), (2, D("5"))])


@pytest.mark.parametrize(
    "amount, splits",
    [
        (D("0"), [(1, None)]),
        (D("-5"), [(1, None)]),
        (D("10"), []),
        (D("10"), [(1, None), (1, None)]),
    ],
)
def test_invalid_split_input(amount, splits):
    with pytest.raises(BadRequest):
        compute_shares(amount, SplitType.EQUAL, splits)


def test_unknown_split_type():
    with pytest.raises(BadRequest):
        compute_shares(D("10"), "BOGUS", [(1, None)])


def test_participant_amounts_sum_to_zero():
    net = participant_amounts(1, D("10"), {1: D("5"), 2: D("5")})

    assert net == {1: D("5.00"), 2: D("-5")}
    assert sum(net.values()) == 0


def test_payer_outside_split_gets_full_credit():
    net = participant_amounts(3, D("10"), {1: D("5"), 2: D("5")})
    assert net[3] == D("10.00")
    assert sum(net.values()) == 0


def test_simplify_debts_minimises_transfers():
    transfers = simplify_debts({1: D("30"), 2: D("-10"), 3: D("-20")})

    assert sorted(transfers) == [(2, 1, D("10.00")), (3, 1, D("20.00"))]


def test_simplify_debts_settled_group():
    assert simplify_debts({1: D("0"), 2: D("0")}) == []
