"""Pydantic domain models for HouseSplit."""

from datetime import date, datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field

# ============================================================================
# Household Models
# ============================================================================


class Member(BaseModel):
    """A household member."""

    id: str
    full_name: str | None = None
    email: str | None = None

    @property
    def display_name(self) -> str:
        """Name shown in tables and settlement descriptions."""
        return self.full_name or self.email or self.id


class ExpenseSplit(BaseModel):
    """One member's owed share of an expense."""

    expense_id: str
    user_id: str  # member who owes this share
    amount_owed: Decimal
    is_settled: bool = False


class Expense(BaseModel):
    """A shared household expense."""

    id: str
    description: str = ""
    amount: Decimal = Field(gt=0)
    paid_by: str
    category: str | None = None
    date: datetime
    status: Literal["pending", "settled"] = "pending"
    splits: list[ExpenseSplit] = Field(default_factory=list)


class Chore(BaseModel):
    """A household chore, used for analytics only."""

    id: str
    name: str
    assigned_to: str | None = None
    status: Literal["pending", "completed", "overdue"] = "pending"
    due_date: datetime | None = None
    updated_at: datetime | None = None  # set when a chore is completed


class HouseholdSnapshot(BaseModel):
    """Everything needed to compute balances and analytics for one household."""

    household_id: str
    members: list[Member] = Field(default_factory=list)
    expenses: list[Expense] = Field(default_factory=list)
    chores: list[Chore] = Field(default_factory=list)


# ============================================================================
# Balance Models
# ============================================================================


class Balance(BaseModel):
    """Net amount one member owes another after netting all unsettled splits.

    Derived on every call and never stored. ``related_splits`` holds the splits
    from both directions of the pair so the netting can be audited.
    """

    from_user_id: str  # debtor
    from_user_name: str
    to_user_id: str  # creditor
    to_user_name: str
    amount: Decimal
    related_splits: list[ExpenseSplit] = Field(default_factory=list)


class Settlement(BaseModel):
    """A proposed or recorded payment between two members.

    Suggestions from the engine are ``pending``. Payments written to the
    ledger are ``completed`` and count against outstanding balances.
    """

    id: str
    from_user_id: str
    from_user_name: str
    to_user_id: str
    to_user_name: str
    amount: Decimal
    description: str
    status: Literal["pending", "completed"] = "pending"
    date: date
    note: str | None = None


class SplitAdjustment(BaseModel):
    """Change to a single split produced by applying a payment."""

    expense_id: str
    user_id: str
    new_amount: Decimal
    settled_amount: Decimal  # portion of the payment applied to this split
    settle: bool  # True = mark split settled, False = reduce amount_owed


class UnsettledSummary(BaseModel):
    """Household-wide view of everything still owed."""

    total_unsettled: Decimal
    unsettled_count: int  # outstanding non-payer splits
    balances: list[Balance]


# ============================================================================
# Analytics Models
# ============================================================================


class CategoryTotal(BaseModel):
    """Total spent in one expense category."""

    category: str
    amount: Decimal


class ContributionTotal(BaseModel):
    """Total paid by one member."""

    member_id: str
    name: str
    amount: Decimal


class ChoreCount(BaseModel):
    """Completed chores for one member."""

    member_id: str
    name: str
    completed: int


class MonthlyExpenseTotal(BaseModel):
    """Expense total for one calendar month."""

    month: str  # e.g. "October 2026"
    month_short: str  # e.g. "Oct"
    amount: Decimal


class MonthlyChoreCount(BaseModel):
    """Chore counts for one calendar month."""

    month: str
    month_short: str
    completed: int
    pending: int


class AnalyticsTotals(BaseModel):
    """Headline analytics numbers."""

    total_expenses: Decimal
    total_chores_completed: int
    total_chores_pending: int
    top_contributor: str
    top_contributor_amount: Decimal
    chore_completion_rate: int  # whole percent


class AnalyticsComparison(BaseModel):
    """Month-over-month change, in whole percent."""

    expense_change: int
    chore_change: int


class HouseholdAnalytics(BaseModel):
    """Aggregated analytics for a household."""

    expense_stats: list[CategoryTotal]
    contribution_stats: list[ContributionTotal]
    chore_stats: list[ChoreCount]
    expense_trends: list[MonthlyExpenseTotal]
    chore_trends: list[MonthlyChoreCount]
    totals: AnalyticsTotals
    comparison: AnalyticsComparison
