"""Tests for balance computation and settlement simplification."""

import random
from collections import defaultdict
from datetime import date, datetime
from decimal import Decimal

import pytest

from house_split.engine import (
    allocate_payment,
    compute_balances,
    equal_splits,
    net_positions,
    simplify_settlements,
)
from house_split.exceptions import (
    IntegrityError,
    InvalidPaymentError,
    NegativeSplitError,
    SplitTotalMismatchError,
    UnknownMemberError,
)
from house_split.models import Balance, Expense, ExpenseSplit, Member, Settlement

SETTLE_DATE = date(2026, 10, 18)


# Helper functions for tests
def make_expense(
    id: str,
    paid_by: str,
    shares: dict[str, str],
    status: str = "pending",
    amount: str | None = None,
) -> Expense:
    """Create an Expense whose splits are given as member -> amount strings."""
    splits = [
        ExpenseSplit(expense_id=id, user_id=user_id, amount_owed=Decimal(owed))
        for user_id, owed in shares.items()
    ]
    return Expense(
        id=id,
        description=f"Test expense {id}",
        amount=Decimal(amount) if amount else sum(s.amount_owed for s in splits),
        paid_by=paid_by,
        category="groceries",
        date=datetime(2026, 10, 1),
        status=status,
        splits=splits,
    )


def make_balance(debtor: str, creditor: str, amount: str) -> Balance:
    return Balance(
        from_user_id=debtor,
        from_user_name=debtor.upper(),
        to_user_id=creditor,
        to_user_name=creditor.upper(),
        amount=Decimal(amount),
    )


def raw_net_positions(expenses: list[Expense]) -> dict[str, Decimal]:
    """Net position of every member straight from pending splits."""
    positions: dict[str, Decimal] = defaultdict(Decimal)
    for expense in expenses:
        if expense.status != "pending":
            continue
        for split in expense.splits:
            if split.user_id == expense.paid_by or split.is_settled:
                continue
            positions[expense.paid_by] += split.amount_owed
            positions[split.user_id] -= split.amount_owed
    return positions


def apply_settlements(
    positions: dict[str, Decimal], settlements: list[Settlement]
) -> dict[str, Decimal]:
    after = dict(positions)
    for settlement in settlements:
        after[settlement.from_user_id] += settlement.amount
        after[settlement.to_user_id] -= settlement.amount
    return after


@pytest.fixture
def members():
    return [
        Member(id="a", full_name="Alice"),
        Member(id="b", full_name="Bob"),
        Member(id="c", full_name="Carol"),
    ]


@pytest.fixture
def three_way_expenses():
    """A pays $30 and B pays $60, each split evenly between A, B and C."""
    return [
        make_expense("e1", "a", {"a": "10.00", "b": "10.00", "c": "10.00"}),
        make_expense("e2", "b", {"a": "20.00", "b": "20.00", "c": "20.00"}),
    ]


@pytest.fixture
def household():
    """A larger deterministic household with uneven, mixed-status expenses."""
    rng = random.Random(42)
    member_ids = [f"m{i}" for i in range(6)]
    members = [Member(id=m, full_name=f"Member {m}") for m in member_ids]

    expenses = []
    for i in range(40):
        sharing = rng.sample(member_ids, rng.randint(2, len(member_ids)))
        amount = Decimal(rng.randint(100, 20000)) / 100
        expense_id = f"x{i:02d}"
        expenses.append(
            Expense(
                id=expense_id,
                amount=amount,
                paid_by=rng.choice(sharing),
                date=datetime(2026, 9, 1 + i % 28),
                status="settled" if i % 7 == 0 else "pending",
                splits=equal_splits(expense_id, amount, sharing),
            )
        )
    return members, expenses


class TestThreeWayScenario:
    """The A/B/C household from the balance contract."""

    def test_pairwise_balances(self, members, three_way_expenses):
        """A owes B $10 after netting, C owes A $10 and B $20."""
        balances = compute_balances(members, three_way_expenses)

        summary = [(b.from_user_id, b.to_user_id, b.amount) for b in balances]
        assert summary == [
            ("a", "b", Decimal("10.00")),
            ("c", "a", Decimal("10.00")),
            ("c", "b", Decimal("20.00")),
        ]

    def test_balances_carry_member_names(self, members, three_way_expenses):
        balances = compute_balances(members, three_way_expenses)

        assert balances[0].from_user_name == "Alice"
        assert balances[0].to_user_name == "Bob"

    def test_related_splits_cover_both_directions(self, members, three_way_expenses):
        """The A-B balance is audited by A's split on e2 and B's split on e1."""
        balances = compute_balances(members, three_way_expenses)

        a_to_b = balances[0]
        assert [(s.expense_id, s.user_id) for s in a_to_b.related_splits] == [
            ("e1", "b"),
            ("e2", "a"),
        ]

    def test_simplified_to_single_payment(self, members, three_way_expenses):
        """A's position nets to zero, so C pays B the full $30."""
        balances = compute_balances(members, three_way_expenses)

        settlements = simplify_settlements(balances, settlement_date=SETTLE_DATE)

        assert len(settlements) == 1
        settlement = settlements[0]
        assert settlement.from_user_id == "c"
        assert settlement.to_user_id == "b"
        assert settlement.amount == Decimal("30.00")
        assert settlement.status == "pending"
        assert settlement.date == SETTLE_DATE
        assert settlement.description == "Carol pays Bob"

    def test_net_positions(self, members, three_way_expenses):
        positions = net_positions(compute_balances(members, three_way_expenses))

        assert positions == {
            "a": Decimal("0"),
            "b": Decimal("30.00"),
            "c": Decimal("-30.00"),
        }


class TestBalanceInvariants:
    """Properties that hold for any household."""

    def test_conservation(self, household):
        """Balances owed to minus owed by equals the net from raw splits."""
        members, expenses = household

        positions = net_positions(compute_balances(members, expenses))
        raw = raw_net_positions(expenses)

        for member in members:
            assert positions.get(member.id, Decimal("0")) == raw.get(
                member.id, Decimal("0")
            )

    def test_no_pair_appears_twice(self, household):
        members, expenses = household

        balances = compute_balances(members, expenses)

        pairs = [frozenset((b.from_user_id, b.to_user_id)) for b in balances]
        assert len(pairs) == len(set(pairs))
        assert all(b.amount > 0 for b in balances)
        assert all(b.from_user_id != b.to_user_id for b in balances)

    def test_order_independent(self, household):
        """Shuffling expenses and their splits doesn't change the result."""
        members, expenses = household
        rng = random.Random(7)

        shuffled = []
        for expense in expenses:
            splits = list(expense.splits)
            rng.shuffle(splits)
            shuffled.append(expense.model_copy(update={"splits": splits}))
        rng.shuffle(shuffled)
        shuffled_members = list(reversed(members))

        assert compute_balances(members, expenses) == compute_balances(
            shuffled_members, shuffled
        )

    def test_idempotent(self, household):
        members, expenses = household

        assert compute_balances(members, expenses) == compute_balances(
            members, expenses
        )

    def test_settlements_zero_every_member(self, household):
        members, expenses = household
        balances = compute_balances(members, expenses)

        settlements = simplify_settlements(balances, settlement_date=SETTLE_DATE)
        after = apply_settlements(net_positions(balances), settlements)

        assert all(abs(net) <= Decimal("0.01") for net in after.values())

    def test_settlement_count_bound(self, household):
        members, expenses = household
        balances = compute_balances(members, expenses)
        nonzero = [n for n in net_positions(balances).values() if n != 0]

        settlements = simplify_settlements(balances, settlement_date=SETTLE_DATE)

        assert len(settlements) <= len(nonzero) - 1


class TestComputeBalancesFiltering:
    """Which expenses and splits contribute to balances."""

    def test_settled_expense_excluded(self, members):
        expenses = [
            make_expense("e1", "a", {"a": "5.00", "b": "5.00"}, status="settled"),
        ]

        assert compute_balances(members, expenses) == []

    def test_settled_split_excluded(self, members):
        expense = make_expense("e1", "a", {"a": "5.00", "b": "5.00", "c": "5.00"})
        expense.splits[1].is_settled = True

        balances = compute_balances(members, [expense])

        assert [(b.from_user_id, b.amount) for b in balances] == [
            ("c", Decimal("5.00"))
        ]

    def test_self_and_zero_splits_ignored(self, members):
        expenses = [make_expense("e1", "a", {"a": "12.00", "b": "0.00", "c": "3.00"})]

        balances = compute_balances(members, expenses)

        assert len(balances) == 1
        assert balances[0].from_user_id == "c"
        assert [s.user_id for s in balances[0].related_splits] == ["c"]

    def test_opposing_debts_cancel(self, members):
        expenses = [
            make_expense("e1", "a", {"a": "10.00", "b": "10.00"}),
            make_expense("e2", "b", {"a": "10.00", "b": "10.00"}),
        ]

        assert compute_balances(members, expenses) == []

    def test_empty_members(self):
        assert compute_balances([], []) == []
        assert simplify_settlements([]) == []

    def test_empty_members_ignores_expenses(self):
        expenses = [make_expense("e1", "a", {"b": "10.00"})]

        assert compute_balances([], expenses) == []

    def test_no_expenses(self, members):
        assert compute_balances(members, []) == []

    def test_half_cent_rounds_up(self, members):
        expenses = [make_expense("e1", "a", {"b": "10.005"})]

        balances = compute_balances(members, expenses)

        assert balances[0].amount == Decimal("10.01")

    def test_sub_half_cent_net_emits_nothing(self, members):
        expenses = [make_expense("e1", "a", {"b": "0.004"})]

        assert compute_balances(members, expenses) == []


class TestRecordedSettlements:
    """Completed settlements offset what is owed."""

    def _payment(self, amount: str, status: str = "completed") -> Settlement:
        return Settlement(
            id=f"s-{amount}-{status}",
            from_user_id="b",
            from_user_name="Bob",
            to_user_id="a",
            to_user_name="Alice",
            amount=Decimal(amount),
            description="Bob pays Alice",
            status=status,
            date=SETTLE_DATE,
        )

    @pytest.fixture
    def expenses(self):
        return [make_expense("e1", "a", {"a": "30.00", "b": "30.00"})]

    def test_partial_payment_reduces_balance(self, members, expenses):
        balances = compute_balances(members, expenses, [self._payment("10.00")])

        assert [(b.from_user_id, b.to_user_id, b.amount) for b in balances] == [
            ("b", "a", Decimal("20.00"))
        ]

    def test_full_payment_clears_balance(self, members, expenses):
        assert compute_balances(members, expenses, [self._payment("30.00")]) == []

    def test_overpayment_flips_direction(self, members, expenses):
        balances = compute_balances(members, expenses, [self._payment("40.00")])

        assert [(b.from_user_id, b.to_user_id, b.amount) for b in balances] == [
            ("a", "b", Decimal("10.00"))
        ]

    def test_pending_settlement_ignored(self, members, expenses):
        balances = compute_balances(
            members, expenses, [self._payment("10.00", status="pending")]
        )

        assert balances[0].amount == Decimal("30.00")


class TestIntegrityErrors:
    """Bad data aborts the whole batch."""

    def test_unknown_payer(self, members):
        expenses = [make_expense("e1", "zed", {"a": "5.00"})]

        with pytest.raises(UnknownMemberError, match="zed"):
            compute_balances(members, expenses)

    def test_unknown_split_member(self, members):
        expenses = [
            make_expense("e1", "a", {"a": "5.00", "b": "5.00"}),
            make_expense("e2", "a", {"a": "5.00", "zed": "5.00"}),
        ]

        with pytest.raises(UnknownMemberError) as exc_info:
            compute_balances(members, expenses)

        assert exc_info.value.member_id == "zed"

    def test_negative_split(self, members):
        expenses = [
            make_expense("e1", "a", {"a": "15.00", "b": "-5.00"}, amount="10.00")
        ]

        with pytest.raises(NegativeSplitError):
            compute_balances(members, expenses)

    def test_splits_must_sum_to_amount(self, members):
        expenses = [make_expense("e1", "a", {"a": "5.00", "b": "4.00"}, amount="10.00")]

        with pytest.raises(SplitTotalMismatchError, match="don't match"):
            compute_balances(members, expenses)

    def test_one_cent_residual_allowed(self, members):
        expenses = [
            make_expense(
                "e1", "a", {"a": "3.33", "b": "3.33", "c": "3.33"}, amount="10.00"
            )
        ]

        balances = compute_balances(members, expenses)

        assert len(balances) == 2

    def test_empty_splits_rejected(self, members):
        expenses = [make_expense("e1", "a", {}, amount="10.00")]

        with pytest.raises(SplitTotalMismatchError):
            compute_balances(members, expenses)

    def test_duplicate_member_ids(self, members):
        with pytest.raises(IntegrityError, match="Duplicate"):
            compute_balances(members + [Member(id="a", full_name="Other")], [])

    def test_split_attached_to_wrong_expense(self, members):
        expense = make_expense("e1", "a", {"b": "5.00"})
        expense.splits[0].expense_id = "e2"

        with pytest.raises(IntegrityError):
            compute_balances(members, [expense])

    def test_settlement_with_unknown_member(self, members):
        payment = Settlement(
            id="s1",
            from_user_id="zed",
            from_user_name="Zed",
            to_user_id="a",
            to_user_name="Alice",
            amount=Decimal("5.00"),
            description="Zed pays Alice",
            status="completed",
            date=SETTLE_DATE,
        )

        with pytest.raises(UnknownMemberError):
            compute_balances(members, [], [payment])


class TestSimplifySettlements:
    """Greedy debt simplification."""

    def test_chain_collapses(self):
        """A owes B and B owes C the same amount: A pays C directly."""
        balances = [make_balance("a", "b", "10.00"), make_balance("b", "c", "10.00")]

        settlements = simplify_settlements(balances, settlement_date=SETTLE_DATE)

        assert [(s.from_user_id, s.to_user_id, s.amount) for s in settlements] == [
            ("a", "c", Decimal("10.00"))
        ]

    def test_ties_broken_by_member_id(self):
        """Equal nets pair up lowest id first."""
        balances = [make_balance("a", "d", "10.00"), make_balance("b", "c", "10.00")]

        settlements = simplify_settlements(balances, settlement_date=SETTLE_DATE)

        assert [(s.from_user_id, s.to_user_id) for s in settlements] == [
            ("a", "c"),
            ("b", "d"),
        ]

    def test_largest_debtor_pays_first(self):
        balances = [
            make_balance("a", "c", "5.00"),
            make_balance("b", "c", "25.00"),
            make_balance("b", "d", "10.00"),
        ]

        settlements = simplify_settlements(balances, settlement_date=SETTLE_DATE)

        assert [(s.from_user_id, s.to_user_id, s.amount) for s in settlements] == [
            ("b", "c", Decimal("30.00")),
            ("a", "d", Decimal("5.00")),
            ("b", "d", Decimal("5.00")),
        ]

    def test_ids_are_unique_and_deterministic(self):
        balances = [
            make_balance("a", "c", "5.00"),
            make_balance("b", "c", "25.00"),
            make_balance("b", "d", "10.00"),
        ]

        first = simplify_settlements(balances, settlement_date=SETTLE_DATE)
        second = simplify_settlements(balances, settlement_date=SETTLE_DATE)

        assert [s.id for s in first] == [s.id for s in second]
        assert len({s.id for s in first}) == len(first)

    def test_defaults_to_today(self):
        settlements = simplify_settlements([make_balance("a", "b", "1.00")])

        assert settlements[0].date == date.today()


class TestAllocatePayment:
    """Applying a payment to the splits behind a balance."""

    @pytest.fixture
    def balance(self, members):
        expenses = [
            make_expense("e1", "a", {"a": "30.00", "b": "30.00"}),
            make_expense("e2", "a", {"a": "10.00", "b": "10.00"}),
            make_expense("e3", "b", {"a": "4.00", "b": "4.00"}),
        ]
        (balance,) = compute_balances(members, expenses)
        return balance

    def test_balance_fixture(self, balance):
        assert balance.from_user_id == "b"
        assert balance.amount == Decimal("36.00")

    def test_full_and_partial_settle(self, balance):
        adjustments = allocate_payment(balance, Decimal("35.00"))

        assert [(a.expense_id, a.settle, a.new_amount) for a in adjustments] == [
            ("e1", True, Decimal("0")),
            ("e2", False, Decimal("5.00")),
        ]
        assert sum(a.settled_amount for a in adjustments) == Decimal("35.00")

    def test_largest_split_first(self, balance):
        adjustments = allocate_payment(balance, Decimal("1.00"))

        assert len(adjustments) == 1
        assert adjustments[0].expense_id == "e1"
        assert adjustments[0].new_amount == Decimal("29.00")

    def test_creditor_splits_untouched(self, balance):
        adjustments = allocate_payment(balance, Decimal("36.00"))

        assert all(a.user_id == "b" for a in adjustments)

    @pytest.mark.parametrize("amount", ["0", "-5.00", "36.01"])
    def test_invalid_amount(self, balance, amount):
        with pytest.raises(InvalidPaymentError):
            allocate_payment(balance, Decimal(amount))
