"""CLI for HouseSplit using Typer."""

import logging
import sys
from decimal import Decimal, InvalidOperation
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from .config import load_settings
from .db import Database
from .engine import net_positions
from .exceptions import SettlementAlreadyRecordedError
from .models import Balance, HouseholdAnalytics, HouseholdSnapshot, Settlement
from .service import HouseholdService
from .ui import (
    confirm_settlement,
    select_member_interactive,
    select_settlement_interactive,
)

app = typer.Typer(
    name="house-split",
    help="Work out who owes whom in a shared household",
)

console = Console()

FILE_OPTION = typer.Option(
    None,
    "--file",
    "-f",
    help="Read household data from a snapshot JSON file instead of the backend",
    exists=True,
    dir_okay=False,
)
VERBOSE_OPTION = typer.Option(False, "--verbose", "-v", help="Verbose output")


def setup_logging(verbose: bool = False):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


def load_snapshot(service: HouseholdService, file: Path | None) -> HouseholdSnapshot:
    """Load household data from a file or the configured backend."""
    if file:
        return service.load_snapshot(file)

    console.print("\n[bold blue]Fetching household data...[/bold blue]")
    return service.fetch_snapshot()


def format_money(amount: Decimal, use_color: bool = True, symbol: str = "$") -> str:
    """
    Format money in accounting style with alignment.

    Negative amounts use parentheses: ($85.02)
    Positive amounts have spaces:      $85.02
    The spaces ensure decimal points align in tables.
    """
    abs_amount = abs(amount)
    if amount < 0:
        if use_color:
            formatted = f"({symbol}[red]{abs_amount:,.2f}[/red])"
        else:
            formatted = f"({symbol}{abs_amount:,.2f})"
    else:
        if use_color:
            formatted = f" [green]{symbol}{abs_amount:,.2f}[/green] "
        else:
            formatted = f" {symbol}{abs_amount:,.2f} "
    return formatted


def display_balances(
    snapshot: HouseholdSnapshot, balances: list[Balance], symbol: str = "$"
):
    """Display balances and each member's net position."""
    if not balances:
        console.print("\n[bold green]✓ Everyone is settled up![/bold green]\n")
        return

    table = Table(title="Balances", show_header=True, header_style="bold magenta")
    table.add_column("Owes", style="cyan")
    table.add_column("To", style="cyan")
    table.add_column("Amount", justify="right", width=12)
    table.add_column("Splits", justify="right", style="dim")

    for balance in balances:
        table.add_row(
            balance.from_user_name,
            balance.to_user_name,
            format_money(balance.amount, use_color=False, symbol=symbol),
            str(len(balance.related_splits)),
        )

    console.print()
    console.print(table)

    positions = net_positions(balances)
    net_table = Table(title="Net Positions", show_header=True, header_style="bold")
    net_table.add_column("Member", style="cyan")
    net_table.add_column("Net", justify="right", width=12)

    for member in snapshot.members:
        net = positions.get(member.id, Decimal("0"))
        net_table.add_row(member.display_name, format_money(net, symbol=symbol))

    console.print()
    console.print(net_table)


def display_settlements(
    settlements: list[Settlement], title: str, symbol: str = "$"
):
    """Display settlements in a table."""
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("#", style="dim", width=4)
    table.add_column("Date", width=10)
    table.add_column("From", style="cyan")
    table.add_column("To", style="cyan")
    table.add_column("Amount", justify="right", width=12)
    table.add_column("Note", style="dim", no_wrap=False)

    for idx, settlement in enumerate(settlements, start=1):
        table.add_row(
            str(idx),
            str(settlement.date),
            settlement.from_user_name,
            settlement.to_user_name,
            format_money(settlement.amount, use_color=False, symbol=symbol),
            settlement.note or "",
        )

    console.print()
    console.print(table)


def display_analytics(analytics: HouseholdAnalytics, symbol: str = "$"):
    """Display household analytics."""
    totals = analytics.totals
    console.print("\n[bold]Household Analytics:[/bold]")
    total = format_money(totals.total_expenses, symbol=symbol)
    top_amount = format_money(
        totals.top_contributor_amount, use_color=False, symbol=symbol
    ).strip()
    console.print(f"  Total expenses: {total}")
    console.print(f"  Top contributor: {totals.top_contributor} ({top_amount})")
    console.print(
        f"  Chores: {totals.total_chores_completed} completed, "
        f"{totals.total_chores_pending} pending "
        f"({totals.chore_completion_rate}% completion)"
    )
    console.print(
        f"  vs last month: expenses {analytics.comparison.expense_change:+d}%, "
        f"chores {analytics.comparison.chore_change:+d}%"
    )

    categories = Table(title="Expenses by Category", header_style="bold magenta")
    categories.add_column("Category", style="cyan")
    categories.add_column("Amount", justify="right", width=12)
    for item in analytics.expense_stats:
        categories.add_row(
            item.category, format_money(item.amount, use_color=False, symbol=symbol)
        )

    members = Table(title="Contributions", header_style="bold magenta")
    members.add_column("Member", style="cyan")
    members.add_column("Paid", justify="right", width=12)
    members.add_column("Chores Done", justify="right")
    chores_by_member = {c.member_id: c.completed for c in analytics.chore_stats}
    for item in analytics.contribution_stats:
        members.add_row(
            item.name,
            format_money(item.amount, use_color=False, symbol=symbol),
            str(chores_by_member.get(item.member_id, 0)),
        )

    trends = Table(title="Monthly Trend", header_style="bold magenta")
    trends.add_column("Month")
    trends.add_column("Expenses", justify="right", width=12)
    trends.add_column("Chores Done", justify="right")
    trends.add_column("Chores Pending", justify="right")
    for expense_month, chore_month in zip(
        analytics.expense_trends, analytics.chore_trends, strict=True
    ):
        trends.add_row(
            expense_month.month,
            format_money(expense_month.amount, use_color=False, symbol=symbol),
            str(chore_month.completed),
            str(chore_month.pending),
        )

    for table in (categories, members, trends):
        console.print()
        console.print(table)


@app.command()
def balances(
    file: Path | None = FILE_OPTION,
    verbose: bool = VERBOSE_OPTION,
):
    """
    Show who owes whom.

    Nets every unsettled split between each pair of members, after taking
    payments recorded in the local ledger into account.
    """
    setup_logging(verbose)

    try:
        settings = load_settings()
        db = Database(settings.database_path)
        service = HouseholdService(settings, db)
        symbol = settings.currency_symbol

        snapshot = load_snapshot(service, file)
        summary = service.get_unsettled_summary(snapshot)

        display_balances(snapshot, summary.balances, symbol=symbol)

        console.print()
        console.print("[bold]Summary:[/bold]")
        console.print(f"  Outstanding splits: {summary.unsettled_count}")
        unsettled = format_money(summary.total_unsettled, symbol=symbol)
        console.print(f"  Total unsettled: {unsettled}")

    except Exception as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        if verbose:
            raise
        sys.exit(1)
    finally:
        if "db" in locals():
            db.close()


@app.command("settle-up")
def settle_up(
    file: Path | None = FILE_OPTION,
    record: bool = typer.Option(
        False, "--record", "-r", help="Pick a suggested payment and record it as paid"
    ),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation prompt"),
    verbose: bool = VERBOSE_OPTION,
):
    """
    Suggest the fewest payments that settle everyone up.

    Use --record to mark one of the suggested payments as made.
    """
    setup_logging(verbose)

    try:
        settings = load_settings()
        db = Database(settings.database_path)
        service = HouseholdService(settings, db)
        symbol = settings.currency_symbol

        snapshot = load_snapshot(service, file)

        console.print("[bold blue]Computing settlements...[/bold blue]")
        suggestions = service.suggest_settlements(snapshot)

        if not suggestions:
            console.print("\n[bold green]✓ Everyone is settled up![/bold green]\n")
            return

        display_settlements(suggestions, title="Suggested Payments", symbol=symbol)

        if not record:
            console.print(
                "\n[bold]To record a payment, run:[/bold]\n"
                "  [cyan]house-split settle-up --record[/cyan]\n"
            )
            return

        selected_idx = select_settlement_interactive(suggestions, symbol=symbol)
        if selected_idx is None:
            console.print("[yellow]No payment selected.[/yellow]")
            return

        selected = suggestions[selected_idx]
        if not yes and not confirm_settlement(selected, symbol=symbol):
            console.print("[yellow]Cancelled.[/yellow]")
            return

        recorded = service.record_settlement(snapshot, selected)
        console.print(
            f"\n[bold green]✓ Recorded {recorded.description} "
            f"({symbol}{recorded.amount})[/bold green]\n"
        )

    except SettlementAlreadyRecordedError as e:
        console.print(f"\n[bold yellow]⚠️  {e}[/bold yellow]\n")
        sys.exit(1)
    except Exception as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        if verbose:
            raise
        sys.exit(1)
    finally:
        if "db" in locals():
            db.close()


@app.command("record")
def record_payment(
    amount: str = typer.Argument(..., help="Amount paid, e.g. 25.50"),
    from_member: str | None = typer.Option(
        None, "--from", help="Member ID who paid (prompted if omitted)"
    ),
    to_member: str | None = typer.Option(
        None, "--to", help="Member ID who received (prompted if omitted)"
    ),
    note: str | None = typer.Option(None, "--note", "-n", help="Optional note"),
    file: Path | None = FILE_OPTION,
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation prompt"),
    verbose: bool = VERBOSE_OPTION,
):
    """
    Record a payment between two members.

    The payment is subtracted from what the payer owes the receiver.
    """
    setup_logging(verbose)

    try:
        try:
            payment_amount = Decimal(amount)
        except InvalidOperation:
            console.print(f"\n[bold red]Error:[/bold red] Invalid amount {amount!r}")
            sys.exit(1)

        settings = load_settings()
        db = Database(settings.database_path)
        service = HouseholdService(settings, db)
        symbol = settings.currency_symbol

        snapshot = load_snapshot(service, file)

        from_id = from_member or select_member_interactive(snapshot.members, "Paid by")
        if not from_id:
            console.print("[yellow]Cancelled.[/yellow]")
            return

        to_id = to_member or select_member_interactive(
            snapshot.members, "Paid to", exclude=from_id
        )
        if not to_id:
            console.print("[yellow]Cancelled.[/yellow]")
            return

        settlement = service.create_payment(
            snapshot, from_id, to_id, payment_amount, note=note
        )

        if not yes and not confirm_settlement(settlement, symbol=symbol):
            console.print("[yellow]Cancelled.[/yellow]")
            return

        recorded = service.record_settlement(snapshot, settlement)
        console.print(
            f"\n[bold green]✓ Recorded payment {recorded.from_user_name} → "
            f"{recorded.to_user_name} "
            f"({symbol}{recorded.amount})[/bold green]\n"
        )

    except SettlementAlreadyRecordedError as e:
        console.print(f"\n[bold yellow]⚠️  {e}[/bold yellow]\n")
        sys.exit(1)
    except Exception as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        if verbose:
            raise
        sys.exit(1)
    finally:
        if "db" in locals():
            db.close()


@app.command()
def history(
    household_id: str | None = typer.Option(
        None, "--household", help="Household ID (defaults to HOUSEHOLD_ID)"
    ),
    verbose: bool = VERBOSE_OPTION,
):
    """Show payments recorded in the local ledger."""
    setup_logging(verbose)

    try:
        settings = load_settings()
        db = Database(settings.database_path)
        service = HouseholdService(settings, db)
        symbol = settings.currency_symbol

        target = household_id or settings.household_id
        if not target:
            console.print(
                "[yellow]Pass --household or set HOUSEHOLD_ID to show history.[/yellow]"
            )
            return

        recorded = service.get_recorded_settlements(target)
        if not recorded:
            console.print("[yellow]No payments recorded yet.[/yellow]")
            return

        display_settlements(recorded, title="Recorded Payments", symbol=symbol)

    except Exception as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        if verbose:
            raise
        sys.exit(1)
    finally:
        if "db" in locals():
            db.close()


@app.command()
def analytics(
    file: Path | None = FILE_OPTION,
    verbose: bool = VERBOSE_OPTION,
):
    """Show spending and chore analytics, settled expenses included."""
    setup_logging(verbose)

    try:
        settings = load_settings()
        db = Database(settings.database_path)
        service = HouseholdService(settings, db)
        symbol = settings.currency_symbol

        snapshot = load_snapshot(service, file)
        display_analytics(service.get_analytics(snapshot), symbol=symbol)

    except Exception as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        if verbose:
            raise
        sys.exit(1)
    finally:
        if "db" in locals():
            db.close()


if __name__ == "__main__":
    app()
