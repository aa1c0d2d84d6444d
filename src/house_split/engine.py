"""Core balance logic: netting shared expenses and simplifying settlements."""

import hashlib
import logging
from collections import defaultdict
from collections.abc import Iterable, Sequence
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from .exceptions import (
    IntegrityError,
    InvalidPaymentError,
    NegativeSplitError,
    SplitTotalMismatchError,
    UnknownMemberError,
)
from .models import Balance, Expense, ExpenseSplit, Member, Settlement, SplitAdjustment

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
ZERO = Decimal("0")

# Nets smaller than half a cent round to 0.00 and count as settled
EPSILON = Decimal("0.005")

# Largest allowed gap between an expense amount and the sum of its splits
SPLIT_TOLERANCE = Decimal("0.01")


def to_cents(amount: Decimal) -> Decimal:
    """
    Round a money amount to cents.
    Uses ROUND_HALF_UP for consistency.

    Args:
        amount: Amount as Decimal

    Returns:
        Amount quantized to 2 decimal places
    """
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def validate_household(
    members: Iterable[Member],
    expenses: Iterable[Expense],
    settlements: Iterable[Settlement] = (),
) -> dict[str, Member]:
    """
    Check that expenses, splits and settlements are consistent with the members.

    The whole batch is rejected on the first problem; nothing is repaired.

    Args:
        members: Household members (ids must be unique)
        expenses: Expenses with their splits
        settlements: Recorded settlements to be applied against balances

    Returns:
        Mapping of member id to member

    Raises:
        IntegrityError: If any record is inconsistent
    """
    member_map: dict[str, Member] = {}
    for member in members:
        if member.id in member_map:
            raise IntegrityError(f"Duplicate member id {member.id!r}")
        member_map[member.id] = member

    for expense in expenses:
        if expense.paid_by not in member_map:
            raise UnknownMemberError(expense.paid_by, f"payer of expense {expense.id}")

        split_total = ZERO
        for split in expense.splits:
            if split.expense_id != expense.id:
                raise IntegrityError(
                    f"Split for expense {split.expense_id} attached to expense {expense.id}"
                )
            if split.user_id not in member_map:
                raise UnknownMemberError(split.user_id, f"split on expense {expense.id}")
            if split.amount_owed < 0:
                raise NegativeSplitError(
                    f"Split for {split.user_id} on expense {expense.id} "
                    f"has negative amount {split.amount_owed}"
                )
            split_total += split.amount_owed

        if abs(split_total - expense.amount) > SPLIT_TOLERANCE:
            raise SplitTotalMismatchError(
                f"Splits on expense {expense.id} don't match its amount:\n"
                f"  Expense amount: ${expense.amount}\n"
                f"  Sum of splits:  ${split_total}\n"
                f"  Residual:       ${abs(split_total - expense.amount)}"
            )

    for settlement in settlements:
        for member_id in (settlement.from_user_id, settlement.to_user_id):
            if member_id not in member_map:
                raise UnknownMemberError(member_id, f"settlement {settlement.id}")
        if settlement.from_user_id == settlement.to_user_id:
            raise IntegrityError(
                f"Settlement {settlement.id} pays {settlement.from_user_id} to themselves"
            )
        if settlement.amount <= 0:
            raise IntegrityError(
                f"Settlement {settlement.id} has non-positive amount {settlement.amount}"
            )

    return member_map


def _accrue(
    pair_nets: dict[tuple[str, str], Decimal],
    debtor: str,
    creditor: str,
    amount: Decimal,
) -> tuple[str, str]:
    """Add a directional debt to the signed net of its unordered pair.

    Keys hold the lower id first; a positive net means the first member owes
    the second.
    """
    if debtor < creditor:
        key = (debtor, creditor)
        pair_nets[key] += amount
    else:
        key = (creditor, debtor)
        pair_nets[key] -= amount
    return key


def compute_balances(
    members: Sequence[Member],
    expenses: Sequence[Expense],
    settlements: Sequence[Settlement] = (),
) -> list[Balance]:
    """
    Compute pairwise net balances from pending expenses.

    Steps:
    1. Validate the whole batch
    2. Accrue each unsettled non-payer split as a debt to the payer
    3. Offset completed settlements against the pair they were paid between
    4. Net each unordered pair and emit one Balance per non-zero pair

    Accumulation is exact Decimal addition, so the result does not depend on
    the order of the input lists.

    Args:
        members: Household members
        expenses: Expenses with splits; only ``pending`` ones are counted
        settlements: Optional recorded payments; only ``completed`` ones count

    Returns:
        Balances sorted by (debtor id, creditor id)

    Raises:
        IntegrityError: If the input references unknown members or has bad splits
    """
    if not members:
        return []

    member_map = validate_household(members, expenses, settlements)

    pair_nets: dict[tuple[str, str], Decimal] = defaultdict(Decimal)
    pair_splits: dict[tuple[str, str], list[ExpenseSplit]] = defaultdict(list)

    for expense in expenses:
        if expense.status != "pending":
            continue
        for split in expense.splits:
            if (
                split.user_id == expense.paid_by
                or split.is_settled
                or split.amount_owed == 0
            ):
                continue
            key = _accrue(pair_nets, split.user_id, expense.paid_by, split.amount_owed)
            pair_splits[key].append(split)

    for settlement in settlements:
        if settlement.status != "completed":
            continue
        # Paying X -> Y cancels that much of X's debt to Y
        _accrue(
            pair_nets, settlement.to_user_id, settlement.from_user_id, settlement.amount
        )

    balances = []
    for (first, second), net in pair_nets.items():
        amount = to_cents(abs(net))
        if amount == ZERO:
            continue

        debtor, creditor = (first, second) if net > 0 else (second, first)
        balances.append(
            Balance(
                from_user_id=debtor,
                from_user_name=member_map[debtor].display_name,
                to_user_id=creditor,
                to_user_name=member_map[creditor].display_name,
                amount=amount,
                related_splits=sorted(
                    pair_splits[(first, second)],
                    key=lambda s: (s.expense_id, s.user_id),
                ),
            )
        )

    balances.sort(key=lambda b: (b.from_user_id, b.to_user_id))

    logger.debug(
        f"Netted {len(pair_nets)} member pairs into {len(balances)} balances"
    )

    return balances


def net_positions(balances: Iterable[Balance]) -> dict[str, Decimal]:
    """
    Compute each member's net position from a set of balances.

    Args:
        balances: Pairwise balances

    Returns:
        Member id -> (total owed to them) - (total they owe)
    """
    positions: dict[str, Decimal] = defaultdict(Decimal)
    for balance in balances:
        positions[balance.to_user_id] += balance.amount
        positions[balance.from_user_id] -= balance.amount
    return dict(positions)


def _pick_largest(amounts: dict[str, Decimal]) -> str:
    """Member with the largest amount; ties go to the lowest member id."""
    return min(amounts, key=lambda member_id: (-amounts[member_id], member_id))


def simplify_settlements(
    balances: Sequence[Balance], settlement_date: date | None = None
) -> list[Settlement]:
    """
    Reduce pairwise balances to a short list of suggested payments.

    Greedy max-debtor/max-creditor matching: repeatedly pair the member who
    owes the most with the member who is owed the most and settle the smaller
    of the two. Every step zeroes at least one member, so the result has at
    most (members with non-zero net - 1) payments. This is a heuristic; the
    true minimum is NP-hard in general.

    Args:
        balances: Pairwise balances, usually from compute_balances
        settlement_date: Date to stamp on the suggestions (defaults to today)

    Returns:
        Pending settlements that zero every member's net position when paid
    """
    names: dict[str, str] = {}
    for balance in balances:
        names[balance.from_user_id] = balance.from_user_name
        names[balance.to_user_id] = balance.to_user_name

    positions = net_positions(balances)
    debtors = {m: -net for m, net in positions.items() if net <= -EPSILON}
    creditors = {m: net for m, net in positions.items() if net >= EPSILON}

    on_date = settlement_date or date.today()
    settlements: list[Settlement] = []

    while debtors and creditors:
        debtor = _pick_largest(debtors)
        creditor = _pick_largest(creditors)
        amount = min(debtors[debtor], creditors[creditor])

        settlements.append(
            Settlement(
                id=compute_settlement_id(debtor, creditor, amount, on_date),
                from_user_id=debtor,
                from_user_name=names[debtor],
                to_user_id=creditor,
                to_user_name=names[creditor],
                amount=to_cents(amount),
                description=f"{names[debtor]} pays {names[creditor]}",
                status="pending",
                date=on_date,
            )
        )

        debtors[debtor] -= amount
        creditors[creditor] -= amount
        if debtors[debtor] < EPSILON:
            del debtors[debtor]
        if creditors[creditor] < EPSILON:
            del creditors[creditor]

    logger.info(
        f"Simplified {len(balances)} balances into {len(settlements)} settlements"
    )

    return settlements


def compute_settlement_id(
    from_user_id: str, to_user_id: str, amount: Decimal, on_date: date
) -> str:
    """
    Compute a deterministic identifier for a settlement.

    Args:
        from_user_id: Paying member
        to_user_id: Receiving member
        amount: Payment amount (rounded to cents before hashing)
        on_date: Settlement date

    Returns:
        SHA256 hash as hex string
    """
    combined = f"{on_date.isoformat()}|{from_user_id}|{to_user_id}|{to_cents(amount)}"
    return hashlib.sha256(combined.encode()).hexdigest()


def allocate_payment(balance: Balance, amount: Decimal) -> list[SplitAdjustment]:
    """
    Work out which splits a payment against a balance clears.

    The debtor's outstanding splits are paid largest first. A split the
    remaining payment covers is settled outright; the first one it doesn't
    cover is reduced and allocation stops.

    Args:
        balance: The balance being paid down
        amount: Payment amount

    Returns:
        Adjustments to apply to the debtor's splits

    Raises:
        InvalidPaymentError: If amount is not positive or exceeds the balance
    """
    if amount <= 0 or amount > balance.amount:
        raise InvalidPaymentError(
            f"Invalid payment amount ${amount} for a balance of ${balance.amount}"
        )

    owed_splits = sorted(
        (
            split
            for split in balance.related_splits
            if split.user_id == balance.from_user_id
            and not split.is_settled
            and split.amount_owed > 0
        ),
        key=lambda s: (-s.amount_owed, s.expense_id),
    )

    remaining = amount
    adjustments = []
    for split in owed_splits:
        if remaining <= 0:
            break

        if remaining >= split.amount_owed:
            adjustments.append(
                SplitAdjustment(
                    expense_id=split.expense_id,
                    user_id=split.user_id,
                    new_amount=ZERO,
                    settled_amount=split.amount_owed,
                    settle=True,
                )
            )
            remaining -= split.amount_owed
        else:
            adjustments.append(
                SplitAdjustment(
                    expense_id=split.expense_id,
                    user_id=split.user_id,
                    new_amount=to_cents(split.amount_owed - remaining),
                    settled_amount=remaining,
                    settle=False,
                )
            )
            remaining = ZERO

    return adjustments


def equal_splits(
    expense_id: str,
    amount: Decimal,
    member_ids: Sequence[str],
    paid_by: str | None = None,
) -> list[ExpenseSplit]:
    """
    Split an expense evenly, cent-exact.

    Leftover cents go one each to members in id order, so the splits always
    sum to the rounded amount. The payer's own share is marked settled.

    Args:
        expense_id: Expense the splits belong to
        amount: Expense amount
        member_ids: Members sharing the expense
        paid_by: Optional payer id

    Returns:
        One split per member, ordered by member id

    Raises:
        IntegrityError: If there are no members, duplicates, or amount <= 0
    """
    if not member_ids:
        raise IntegrityError(f"Cannot split expense {expense_id} between zero members")
    if len(set(member_ids)) != len(member_ids):
        raise IntegrityError(f"Duplicate members in split for expense {expense_id}")
    if amount <= 0:
        raise IntegrityError(f"Expense {expense_id} amount must be positive")

    ordered = sorted(member_ids)
    total_cents = int(to_cents(amount) / CENT)
    share, remainder = divmod(total_cents, len(ordered))

    return [
        ExpenseSplit(
            expense_id=expense_id,
            user_id=member_id,
            amount_owed=(Decimal(share + (1 if idx < remainder else 0)) * CENT),
            is_settled=member_id == paid_by,
        )
        for idx, member_id in enumerate(ordered)
    ]
