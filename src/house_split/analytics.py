"""Household analytics: grouped sums over expenses and chores.

Unlike balance computation, analytics count settled expenses too; they
describe history rather than what is still owed.
"""

import logging
from collections import defaultdict
from collections.abc import Sequence
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from .engine import ZERO, to_cents
from .models import (
    AnalyticsComparison,
    AnalyticsTotals,
    CategoryTotal,
    Chore,
    ChoreCount,
    ContributionTotal,
    Expense,
    HouseholdAnalytics,
    Member,
    MonthlyChoreCount,
    MonthlyExpenseTotal,
)

logger = logging.getLogger(__name__)

UNCATEGORIZED = "Uncategorized"


def _month_start(today: date, months_ago: int) -> date:
    """First day of the month ``months_ago`` months before today's month."""
    month_index = today.year * 12 + today.month - 1 - months_ago
    return date(month_index // 12, month_index % 12 + 1, 1)


def _month_windows(today: date, months: int) -> list[tuple[date, date]]:
    """[start, end) windows for the last ``months`` months, oldest first."""
    return [
        (_month_start(today, offset), _month_start(today, offset - 1))
        for offset in range(months - 1, -1, -1)
    ]


def _percent_change(current: Decimal, previous: Decimal) -> int:
    """Whole-percent change from previous to current; 0 when previous is 0."""
    if previous <= 0:
        return 0
    change = (current - previous) / previous * 100
    return int(change.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _percent(part: int, whole: int) -> int:
    if whole <= 0:
        return 0
    ratio = Decimal(part) / Decimal(whole) * 100
    return int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def expense_totals_by_category(expenses: Sequence[Expense]) -> list[CategoryTotal]:
    """
    Sum expense amounts per category.

    Args:
        expenses: Expenses to aggregate (settled ones included)

    Returns:
        Category totals, largest first (ties by category name)
    """
    totals: dict[str, Decimal] = defaultdict(Decimal)
    for expense in expenses:
        totals[expense.category or UNCATEGORIZED] += expense.amount

    return [
        CategoryTotal(category=category, amount=to_cents(amount))
        for category, amount in sorted(totals.items(), key=lambda kv: (-kv[1], kv[0]))
    ]


def contribution_totals(
    members: Sequence[Member], expenses: Sequence[Expense]
) -> list[ContributionTotal]:
    """
    Sum what each member has paid for, in member order.

    Args:
        members: Household members
        expenses: Expenses to aggregate (settled ones included)

    Returns:
        One total per member
    """
    paid: dict[str, Decimal] = defaultdict(Decimal)
    for expense in expenses:
        paid[expense.paid_by] += expense.amount

    return [
        ContributionTotal(
            member_id=member.id,
            name=member.display_name,
            amount=to_cents(paid[member.id]),
        )
        for member in members
    ]


def chore_completion_counts(
    members: Sequence[Member], chores: Sequence[Chore]
) -> list[ChoreCount]:
    """Count completed chores per member, in member order."""
    completed: dict[str, int] = defaultdict(int)
    for chore in chores:
        if chore.status == "completed" and chore.assigned_to:
            completed[chore.assigned_to] += 1

    return [
        ChoreCount(
            member_id=member.id,
            name=member.display_name,
            completed=completed[member.id],
        )
        for member in members
    ]


def monthly_expense_trend(
    expenses: Sequence[Expense], today: date, months: int = 6
) -> list[MonthlyExpenseTotal]:
    """
    Total expenses per calendar month.

    Args:
        expenses: Expenses to aggregate
        today: Reference date; its month is the last one in the trend
        months: Number of months to include

    Returns:
        Monthly totals, oldest month first
    """
    trend = []
    for start, end in _month_windows(today, months):
        amount = sum(
            (e.amount for e in expenses if start <= e.date.date() < end), ZERO
        )
        trend.append(
            MonthlyExpenseTotal(
                month=start.strftime("%B %Y"),
                month_short=start.strftime("%b"),
                amount=to_cents(amount),
            )
        )
    return trend


def monthly_chore_trend(
    chores: Sequence[Chore], today: date, months: int = 6
) -> list[MonthlyChoreCount]:
    """
    Completed and pending chores per calendar month.

    Completed chores are placed by ``updated_at`` (when they were finished);
    unfinished chores by ``due_date``.
    """
    trend = []
    for start, end in _month_windows(today, months):
        completed = sum(
            1
            for c in chores
            if c.status == "completed"
            and c.updated_at is not None
            and start <= c.updated_at.date() < end
        )
        pending = sum(
            1
            for c in chores
            if c.status != "completed"
            and c.due_date is not None
            and start <= c.due_date.date() < end
        )
        trend.append(
            MonthlyChoreCount(
                month=start.strftime("%B %Y"),
                month_short=start.strftime("%b"),
                completed=completed,
                pending=pending,
            )
        )
    return trend


def summarize(
    members: Sequence[Member],
    expenses: Sequence[Expense],
    chores: Sequence[Chore],
    today: date,
    months: int = 6,
) -> HouseholdAnalytics:
    """
    Build the full analytics view for a household.

    Args:
        members: Household members
        expenses: All expenses, settled or not
        chores: All chores
        today: Reference date for trends and month-over-month comparison
        months: Number of months in the trend series

    Returns:
        Aggregated analytics
    """
    contributions = contribution_totals(members, expenses)
    completed_chores = [c for c in chores if c.status == "completed"]
    pending_count = len(chores) - len(completed_chores)

    # sorted() is stable, so ties keep member order
    ranked = sorted(contributions, key=lambda c: c.amount, reverse=True)
    top = ranked[0] if ranked else None

    this_month = _month_start(today, 0)
    last_month = _month_start(today, 1)

    this_month_expenses = sum(
        (e.amount for e in expenses if e.date.date() >= this_month), ZERO
    )
    last_month_expenses = sum(
        (e.amount for e in expenses if last_month <= e.date.date() < this_month),
        ZERO,
    )
    this_month_chores = sum(
        1
        for c in completed_chores
        if c.updated_at is not None and c.updated_at.date() >= this_month
    )
    last_month_chores = sum(
        1
        for c in completed_chores
        if c.updated_at is not None and last_month <= c.updated_at.date() < this_month
    )

    analytics = HouseholdAnalytics(
        expense_stats=expense_totals_by_category(expenses),
        contribution_stats=contributions,
        chore_stats=chore_completion_counts(members, chores),
        expense_trends=monthly_expense_trend(expenses, today, months),
        chore_trends=monthly_chore_trend(chores, today, months),
        totals=AnalyticsTotals(
            total_expenses=to_cents(sum((e.amount for e in expenses), ZERO)),
            total_chores_completed=len(completed_chores),
            total_chores_pending=pending_count,
            top_contributor=top.name if top else "N/A",
            top_contributor_amount=top.amount if top else to_cents(ZERO),
            chore_completion_rate=_percent(len(completed_chores), len(chores)),
        ),
        comparison=AnalyticsComparison(
            expense_change=_percent_change(this_month_expenses, last_month_expenses),
            chore_change=_percent_change(
                Decimal(this_month_chores), Decimal(last_month_chores)
            ),
        ),
    )

    logger.debug(
        f"Summarized {len(expenses)} expenses and {len(chores)} chores "
        f"for {len(members)} members"
    )

    return analytics
