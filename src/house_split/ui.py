"""Interactive UI components for recording settlements."""

import logging
from typing import Any

from prompt_toolkit import PromptSession
from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.document import Document

from .models import Member, Settlement

logger = logging.getLogger(__name__)


class MemberCompleter(Completer):
    """Fuzzy search completer for household members."""

    def __init__(self, members: list[Member]):
        """Initialize the completer with household members."""
        self.members = members

        # Build searchable names and name-to-id mapping
        self.name_to_id = {}
        for member in members:
            self.name_to_id[member.display_name] = member.id

    def get_completions(self, document: Document, complete_event: Any):
        """Get fuzzy-matched completions."""
        query = document.text.lower()

        for name in self.name_to_id:
            if not query or fuzzy_match(query, name.lower()):
                yield Completion(
                    text=name,
                    start_position=-len(document.text),
                    display=name,
                )


def fuzzy_match(query: str, text: str) -> bool:
    """
    Fuzzy match: all characters in query must appear in order in text.

    Example:
        query="aln" matches "alan"
        query="jsm" matches "jane smith"
    """
    query_idx = 0
    for char in text:
        if query_idx < len(query) and char == query[query_idx]:
            query_idx += 1
    return query_idx == len(query)


def select_member_interactive(
    members: list[Member], label: str, exclude: str | None = None
) -> str | None:
    """
    Interactive member selection with fuzzy search.

    Args:
        members: Household members
        label: Prompt label, e.g. "Paid by"
        exclude: Optional member id to leave out (the other side of a payment)

    Returns:
        Selected member ID, or None to cancel
    """
    choices = [m for m in members if m.id != exclude]
    if not choices:
        print("\n⚠️  No members to choose from")
        return None

    completer = MemberCompleter(choices)
    session: PromptSession[str] = PromptSession(completer=completer)

    try:
        while True:
            result = session.prompt(f"{label}: ", complete_while_typing=True)

            if not result:
                return None

            member_id = completer.name_to_id.get(result)
            if member_id:
                logger.info(f"User selected member: {result}")
                return member_id

            print("❌ Unknown member. Press Tab to see the list.")

    except (KeyboardInterrupt, EOFError):
        print("\n⏭️  Cancelled")
        return None


def select_settlement_interactive(
    settlements: list[Settlement], symbol: str = "$"
) -> int | None:
    """
    Interactive selection of a suggested settlement to record.

    Args:
        settlements: Suggested settlements
        symbol: Currency symbol for amounts

    Returns:
        Index of selected settlement (0-based), or None to cancel
    """
    if not settlements:
        print("\n⚠️  Nothing to settle")
        return None

    print("\n💸 Suggested payments:")
    print("Pick the payment that was made\n")

    for idx, settlement in enumerate(settlements):
        print(f"  [{idx + 1}] {settlement.description}")
        print(f"      Amount: {symbol}{settlement.amount}")
        print()

    try:
        max_selection = len(settlements)
        response = (
            input(f"Select payment [1-{max_selection}, or q to quit]: ")
            .strip()
            .lower()
        )

        if response in ("q", "quit", ""):
            return None

        selection = int(response) - 1

        if 0 <= selection < len(settlements):
            return selection
        else:
            print("❌ Invalid selection")
            return None

    except (ValueError, KeyboardInterrupt, EOFError):
        print("\n⏭️  Cancelled")
        return None


def confirm_settlement(settlement: Settlement, symbol: str = "$") -> bool:
    """
    Simple yes/no confirmation before recording a settlement.

    Returns:
        True if confirmed, False otherwise
    """
    print(f"\n📝 {settlement.description}")
    print(f"   → {symbol}{settlement.amount} on {settlement.date}")

    response = input("   Record as paid? [Y/n] ").strip().lower()

    return response in ("", "y", "yes")
