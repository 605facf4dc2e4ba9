import random
from collections import deque
from decimal import Decimal, ROUND_DOWN, ROUND_HALF_UP, getcontext
from typing import Dict, Iterable, List, Tuple
from splitledger.core.exceptions import BadRequest

getcontext().prec = 28
CENTS = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")


def qround(d: Decimal) -> Decimal:
    return d.quantize(CENTS, rounding=ROUND_HALF_UP)


def to_decimal(value) -> Decimal:
    return qround(Decimal(str(value)))


class SplitType:
    EQUAL = "EQUAL"
    PERCENTAGE = "PERCENTAGE"
    SHARE = "SHARE"
    EXACT = "EXACT"
    ADJUSTMENT = "ADJUSTMENT"
    SETTLEMENT = "SETTLEMENT"

    USER_CHOICES = (EQUAL, PERCENTAGE, SHARE, EXACT, ADJUSTMENT)


def _spread_cents(shares: Dict[int, Decimal], total: Decimal) -> Dict[int, Decimal]:
    """
    Pushes the rounding residue into the shares one cent at a time.
    Recipients are picked in random order so nobody always eats the extra penny.
    """
    residue = qround(total - sum(shares.values(), ZERO))
    if residue == ZERO:
        return shares

    step = CENTS if residue > 0 else -CENTS
    order = list(shares.keys())
    random.shuffle(order)

    i = 0
    while residue != ZERO:
        uid = order[i % len(order)]
        shares[uid] += step
        residue -= step
        i += 1

    return shares


def _floor_cents(d: Decimal) -> Decimal:
    return d.quantize(CENTS, rounding=ROUND_DOWN)


def compute_shares(
    amount: Decimal,
    split_type: str,
    splits: Iterable[Tuple[int, Decimal]],
) -> Dict[int, Decimal]:
    """
    Turns the user supplied split values into the amount each user owes.

    Returns:
        {
            user_id: owed amount (Decimal, 2 places)
        }

    sum(owed amounts) == amount always holds on return.
    """
    amount = qround(Decimal(amount))
    splits = [(uid, Decimal(str(value or 0))) for uid, value in splits]

    if amount <= ZERO:
        raise BadRequest("Expense amount must be positive")

    if not splits:
        raise BadRequest("Expense needs at least one participant")

    user_ids = [uid for uid, _ in splits]
    if len(user_ids) != len(set(user_ids)):
        raise BadRequest("Duplicate users found in splits")

    if split_type == SplitType.EQUAL:
        base = _floor_cents(amount / len(splits))
        shares = {uid: base for uid in user_ids}

    elif split_type == SplitType.PERCENTAGE:
        if any(v < ZERO for _, v in splits):
            raise BadRequest("Percentages must not be negative")
        total_pct = sum((v for _, v in splits), ZERO)
        if total_pct != HUNDRED:
            raise BadRequest(f"Percentages must add up to 100, got {total_pct}")
        shares = {uid: _floor_cents(amount * v / HUNDRED) for uid, v in splits}

    elif split_type == SplitType.SHARE:
        if any(v < ZERO for _, v in splits):
            raise BadRequest("Shares must not be negative")
        total_weight = sum((v for _, v in splits), ZERO)
        if total_weight <= ZERO:
            raise BadRequest("Total shares must be positive")
        shares = {uid: _floor_cents(amount * v / total_weight) for uid, v in splits}

    elif split_type == SplitType.EXACT:
        if any(v < ZERO for _, v in splits):
            raise BadRequest("Split amounts must not be negative")
        shares = {uid: qround(v) for uid, v in splits}
        total_split = sum(shares.values(), ZERO)
        if total_split != amount:
            raise BadRequest(
                f"Split total ({total_split}) must equal expense amount ({amount})"
            )
        return shares

    elif split_type == SplitType.ADJUSTMENT:
        adjustments = {uid: qround(v) for uid, v in splits}
        remaining = amount - sum(adjustments.values(), ZERO)
        if remaining < ZERO:
            raise BadRequest("Adjustments exceed the expense amount")
        base = _floor_cents(remaining / len(splits))
        shares = {uid: base + adj for uid, adj in adjustments.items()}
        if any(s < ZERO for s in shares.values()):
            raise BadRequest("Adjusted share cannot be negative")

    else:
        raise BadRequest(f"Unsupported split type: {split_type}")

    return _spread_cents(shares, amount)


def participant_amounts(
    paid_by: int,
    amount: Decimal,
    shares: Dict[int, Decimal],
) -> Dict[int, Decimal]:
    """
    Signed net per user on one expense: what they paid minus what they owe.
    The payer always gets an entry, and the entries sum to zero.
    """
    net = {uid: -share for uid, share in shares.items()}
    net[paid_by] = net.get(paid_by, ZERO) + qround(Decimal(amount))
    return net


# working fine
def simplify_debts(net_map: Dict[int, Decimal]):
    """
    Standard Greedy algorithm to minimize number of transactions.
    """
    creditors = []
    debtors = []

    for uid, bal in net_map.items():
        if bal > ZERO:
            creditors.append([uid, bal])
        elif bal < ZERO:
            debtors.append([uid, -bal])

    creditors.sort(key=lambda x: x[1], reverse=True)
    debtors.sort(key=lambda x: x[1], reverse=True)

    creditors = deque(creditors)
    debtors = deque(debtors)

    transfers: List[Tuple[int, int, Decimal]] = []

    while creditors and debtors:
        cred_id, cred_amt = creditors[0]
        debt_id, debt_amt = debtors[0]

        pay_amt = qround(min(cred_amt, debt_amt))

        if pay_amt > 0:
            transfers.append((debt_id, cred_id, pay_amt))

        new_cred = qround(cred_amt - pay_amt)
        new_debt = qround(debt_amt - pay_amt)

        creditors.popleft()
        debtors.popleft()

        if new_cred > ZERO:
            creditors.appendleft([cred_id, new_cred])
        if new_debt > ZERO:
            debtors.appendleft([debt_id, new_debt])

    return transfers
