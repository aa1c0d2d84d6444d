"""Custom exceptions for HouseSplit."""


class HouseSplitError(Exception):
    """Base exception for all HouseSplit errors."""

    pass


class ConfigurationError(HouseSplitError):
    """Raised when configuration is invalid or missing."""

    pass


class IntegrityError(HouseSplitError):
    """Raised when household data is inconsistent and cannot be balanced."""

    pass


class UnknownMemberError(IntegrityError):
    """Raised when an expense, split or settlement references an unknown member."""

    def __init__(self, member_id: str, context: str):
        self.member_id = member_id
        super().__init__(f"Unknown member {member_id!r} referenced by {context}")


class NegativeSplitError(IntegrityError):
    """Raised when a split carries a negative owed amount."""

    pass


class SplitTotalMismatchError(IntegrityError):
    """Raised when an expense's splits don't add up to its amount."""

    pass


class InvalidPaymentError(HouseSplitError):
    """Raised when a payment amount can't be applied to a balance."""

    pass


class SettlementAlreadyRecordedError(HouseSplitError):
    """Raised when attempting to record a settlement that is already in the ledger."""

    def __init__(self, settlement_id: str, message: str | None = None):
        self.settlement_id = settlement_id
        super().__init__(
            message or f"Settlement {settlement_id[:12]} has already been recorded"
        )


class APIError(HouseSplitError):
    """Base class for API-related errors."""

    pass


class HouseholdAPIError(APIError):
    """Raised when a household backend request fails."""

    pass
