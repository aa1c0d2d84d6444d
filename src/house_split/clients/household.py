"""Household backend client (PostgREST-style REST tables)."""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any

import httpx

from ..exceptions import HouseholdAPIError
from ..models import Chore, Expense, ExpenseSplit, Member

logger = logging.getLogger(__name__)

CHORE_STATUSES = ("pending", "completed", "overdue")


def _parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO date or timestamp as returned by the backend."""
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def parse_member(row: dict[str, Any]) -> Member:
    """Build a Member from a ``profiles`` row."""
    return Member(id=row["id"], full_name=row.get("full_name"), email=row.get("email"))


def parse_expense(row: dict[str, Any]) -> Expense:
    """
    Build an Expense from an ``expenses`` row with embedded ``expense_splits``.

    The backend tracks settlement per split, so an expense counts as settled
    once every split owed by someone other than the payer is settled.
    """
    splits = [
        ExpenseSplit(
            expense_id=row["id"],
            user_id=split_row["user_id"],
            amount_owed=Decimal(str(split_row["amount_owed"])),
            is_settled=bool(split_row.get("is_settled")),
        )
        for split_row in row.get("expense_splits") or []
    ]

    outstanding = [
        s for s in splits if s.user_id != row["paid_by"] and not s.is_settled
    ]

    expense_date = _parse_timestamp(row.get("date")) or _parse_timestamp(
        row.get("created_at")
    )
    if expense_date is None:
        raise HouseholdAPIError(f"Expense {row['id']} has no date")

    return Expense(
        id=row["id"],
        description=row.get("description") or "",
        amount=Decimal(str(row["amount"])),
        paid_by=row["paid_by"],
        category=row.get("category"),
        date=expense_date,
        status="pending" if outstanding else "settled",
        splits=splits,
    )


def parse_chore(row: dict[str, Any]) -> Chore:
    """Build a Chore from a ``chores`` row; unknown statuses count as pending."""
    status = row.get("status")
    return Chore(
        id=row["id"],
        name=row.get("name") or "",
        assigned_to=row.get("assigned_to"),
        status=status if status in CHORE_STATUSES else "pending",
        due_date=_parse_timestamp(row.get("due_date")),
        updated_at=_parse_timestamp(row.get("updated_at")),
    )


class HouseholdClient:
    """Read-only client for the household backend's REST tables."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize the household client."""
        self.client = httpx.Client(
            base_url=f"{base_url.rstrip('/')}/rest/v1",
            headers={
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
                "Accept": "application/json",
            },
            timeout=30.0,
            transport=transport,
        )

    def close(self):
        """Close the HTTP client."""
        self.client.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()

    def _get_rows(self, table: str, params: dict[str, str]) -> list[dict[str, Any]]:
        """Fetch rows from a table, raising HouseholdAPIError on failure."""
        try:
            response = self.client.get(f"/{table}", params=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"Error fetching {table}: {e.response.text}")
            raise HouseholdAPIError(
                f"Failed to fetch {table}: HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise HouseholdAPIError(f"Failed to fetch {table}: {e}") from e

        rows = response.json()
        if not isinstance(rows, list):
            raise HouseholdAPIError(f"Unexpected response for {table}: {rows!r}")
        return rows

    def get_members(self, household_id: str) -> list[Member]:
        """
        Get all members of a household.

        Args:
            household_id: The household ID

        Returns:
            List of members
        """
        rows = self._get_rows(
            "profiles",
            {"select": "id,full_name,email", "household_id": f"eq.{household_id}"},
        )
        members = [parse_member(row) for row in rows]
        logger.info(f"Fetched {len(members)} members for household {household_id}")
        return members

    def get_expenses(self, household_id: str) -> list[Expense]:
        """
        Get all expenses of a household, each with its splits.

        Args:
            household_id: The household ID

        Returns:
            List of expenses, settled ones included
        """
        rows = self._get_rows(
            "expenses",
            {
                "select": (
                    "id,description,amount,paid_by,category,date,created_at,"
                    "expense_splits(user_id,amount_owed,is_settled)"
                ),
                "household_id": f"eq.{household_id}",
                "order": "date.asc",
            },
        )
        expenses = [parse_expense(row) for row in rows]
        logger.info(f"Fetched {len(expenses)} expenses for household {household_id}")
        return expenses

    def get_chores(self, household_id: str) -> list[Chore]:
        """
        Get all chores of a household.

        Args:
            household_id: The household ID

        Returns:
            List of chores
        """
        rows = self._get_rows(
            "chores",
            {
                "select": "id,name,assigned_to,status,due_date,updated_at",
                "household_id": f"eq.{household_id}",
            },
        )
        return [parse_chore(row) for row in rows]
