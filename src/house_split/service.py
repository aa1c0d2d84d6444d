"""Service layer that composes household data, balances and the settlement ledger.

This module provides a higher-level API over the pure engine and analytics
functions. The engine never sees the ledger or the network; the service
gathers inputs and hands them over.
"""

import logging
import uuid
from datetime import date
from decimal import Decimal
from pathlib import Path

from .analytics import summarize
from .clients.household import HouseholdClient
from .config import Settings
from .db import Database
from .engine import (
    ZERO,
    compute_balances,
    simplify_settlements,
    to_cents,
    validate_household,
)
from .exceptions import ConfigurationError, SettlementAlreadyRecordedError
from .models import (
    Balance,
    HouseholdAnalytics,
    HouseholdSnapshot,
    Settlement,
    UnsettledSummary,
)

logger = logging.getLogger(__name__)


class HouseholdService:
    """Service for computing and settling up household balances."""

    def __init__(self, settings: Settings, database: Database):
        """Initialize the household service."""
        self.settings = settings
        self.db = database

    def load_snapshot(self, path: Path) -> HouseholdSnapshot:
        """Load a household snapshot from a JSON file."""
        snapshot = HouseholdSnapshot.model_validate_json(path.read_text())
        logger.info(
            f"Loaded {len(snapshot.members)} members and "
            f"{len(snapshot.expenses)} expenses from {path}"
        )
        return snapshot

    def fetch_snapshot(self) -> HouseholdSnapshot:
        """
        Fetch members, expenses and chores from the household backend.

        Returns:
            Snapshot of the configured household

        Raises:
            ConfigurationError: If backend settings are missing
        """
        if not self.settings.has_backend:
            raise ConfigurationError(
                "SUPABASE_URL, SUPABASE_API_KEY and HOUSEHOLD_ID must be set "
                "to fetch from the backend (or pass --file)"
            )

        household_id = self.settings.household_id
        assert household_id is not None  # checked by has_backend

        with HouseholdClient(
            self.settings.supabase_url or "", self.settings.supabase_api_key or ""
        ) as client:
            snapshot = HouseholdSnapshot(
                household_id=household_id,
                members=client.get_members(household_id),
                expenses=client.get_expenses(household_id),
                chores=client.get_chores(household_id),
            )

        return snapshot

    def get_balances(self, snapshot: HouseholdSnapshot) -> list[Balance]:
        """
        Compute outstanding balances, net of settlements in the ledger.

        Args:
            snapshot: Household data

        Returns:
            Pairwise balances
        """
        recorded = self.db.list_settlements(snapshot.household_id)
        balances = compute_balances(snapshot.members, snapshot.expenses, recorded)

        logger.info(
            f"Computed {len(balances)} balances "
            f"({len(recorded)} recorded settlements applied)"
        )

        return balances

    def suggest_settlements(
        self, snapshot: HouseholdSnapshot, settlement_date: date | None = None
    ) -> list[Settlement]:
        """Suggest the payments that clear every outstanding balance."""
        return simplify_settlements(self.get_balances(snapshot), settlement_date)

    def get_unsettled_summary(self, snapshot: HouseholdSnapshot) -> UnsettledSummary:
        """
        Summarize what is still owed across the household.

        Returns:
            Total of all balances, count of outstanding splits, and the balances
        """
        balances = self.get_balances(snapshot)
        unsettled_count = sum(
            1
            for expense in snapshot.expenses
            if expense.status == "pending"
            for split in expense.splits
            if split.user_id != expense.paid_by
            and not split.is_settled
            and split.amount_owed > 0
        )

        return UnsettledSummary(
            total_unsettled=to_cents(sum((b.amount for b in balances), ZERO)),
            unsettled_count=unsettled_count,
            balances=balances,
        )

    def create_payment(
        self,
        snapshot: HouseholdSnapshot,
        from_user_id: str,
        to_user_id: str,
        amount: Decimal,
        note: str | None = None,
        settlement_date: date | None = None,
    ) -> Settlement:
        """
        Build a settlement for a payment made outside a suggestion.

        Each manual payment gets a fresh id, so two identical payments on the
        same day are both recorded.

        Raises:
            IntegrityError: If either member is unknown or the amount is invalid
        """
        members = {m.id: m for m in snapshot.members}
        on_date = settlement_date or date.today()
        amount = to_cents(amount)

        settlement = Settlement(
            id=uuid.uuid4().hex,
            from_user_id=from_user_id,
            from_user_name=(
                members[from_user_id].display_name
                if from_user_id in members
                else from_user_id
            ),
            to_user_id=to_user_id,
            to_user_name=(
                members[to_user_id].display_name if to_user_id in members else to_user_id
            ),
            amount=amount,
            description="Manual payment",
            status="pending",
            date=on_date,
            note=note,
        )
        validate_household(snapshot.members, [], [settlement])
        return settlement

    def record_settlement(
        self, snapshot: HouseholdSnapshot, settlement: Settlement
    ) -> Settlement:
        """
        Record a settlement as paid in the ledger.

        Args:
            snapshot: Household the settlement belongs to
            settlement: Suggested or manual settlement

        Returns:
            The completed settlement as stored

        Raises:
            SettlementAlreadyRecordedError: If the settlement id is already recorded
            IntegrityError: If the settlement references unknown members
        """
        validate_household(snapshot.members, [], [settlement])

        existing = self.db.get_settlement(snapshot.household_id, settlement.id)
        if existing:
            logger.warning(f"Settlement already recorded on {existing.date}")
            raise SettlementAlreadyRecordedError(settlement.id)

        completed = settlement.model_copy(update={"status": "completed"})
        self.db.save_settlement(snapshot.household_id, completed)

        logger.info(
            f"Recorded settlement {completed.id[:8]}...: "
            f"{completed.from_user_name} -> {completed.to_user_name} "
            f"${completed.amount}"
        )

        return completed

    def get_recorded_settlements(self, household_id: str) -> list[Settlement]:
        """Get the settlements recorded for a household, oldest first."""
        return self.db.list_settlements(household_id)

    def get_analytics(
        self, snapshot: HouseholdSnapshot, today: date | None = None
    ) -> HouseholdAnalytics:
        """Compute household analytics over all expenses and chores."""
        return summarize(
            snapshot.members,
            snapshot.expenses,
            snapshot.chores,
            today=today or date.today(),
            months=self.settings.analytics_months,
        )
