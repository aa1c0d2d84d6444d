"""HouseSplit - Work out who owes whom in a shared household."""

__version__ = "0.1.0"

from .config import Settings, load_settings
from .db import Database
from .engine import (
    allocate_payment,
    compute_balances,
    equal_splits,
    net_positions,
    simplify_settlements,
    to_cents,
)
from .models import (
    Balance,
    Expense,
    ExpenseSplit,
    HouseholdSnapshot,
    Member,
    Settlement,
)
from .service import HouseholdService

__all__ = [
    "Settings",
    "load_settings",
    "Database",
    "allocate_payment",
    "compute_balances",
    "equal_splits",
    "net_positions",
    "simplify_settlements",
    "to_cents",
    "Balance",
    "Expense",
    "ExpenseSplit",
    "HouseholdSnapshot",
    "Member",
    "Settlement",
    "HouseholdService",
]
