"""Command-line interface for schoollib.

Built with Typer for commands and Rich for output.
"""

import calendar
from datetime import date
from typing import Optional

import typer
from pydantic import ValidationError as PydanticValidationError
from rich.console import Console
from rich.table import Table

from .catalog.manager import ResourceCatalog
from .catalog.schemas import ResourceCreate
from .config import configure_logging, get_config
from .db import get_db
from .db.schemas import PersonCategory, ResourceCondition, ResourceType
from .errors import LibraryError, ValidationError
from .loans.manager import CirculationManager
from .loans.schemas import (
    LoanCreate,
    LoanResponse,
    MarkLostRequest,
    RenewLoanRequest,
    ReturnLoanRequest,
)
from .people.manager import PersonDirectory
from .people.schemas import PersonCreate
from .stats.analytics import LoanStatistics

# Create the main app
app = typer.Typer(
    name="schoollib",
    help="School library circulation: loans, returns, renewals and losses.",
    no_args_is_help=True,
)

# Rich console for pretty output
console = Console()


# ============================================================================
# Helper Functions
# ============================================================================


def print_error(message: str) -> None:
    """Print an error message."""
    console.print(f"[bold red]Error:[/bold red] {message}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[bold green]Success:[/bold green] {message}")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[bold yellow]Warning:[/bold yellow] {message}")


def fail(error: Exception) -> None:
    """Print a library or input error and exit with status 1."""
    if isinstance(error, ValidationError):
        for reason in error.errors:
            print_error(reason)
        for warning in error.warnings:
            print_warning(warning)
    elif isinstance(error, PydanticValidationError):
        for e in error.errors():
            field = ".".join(str(p) for p in e["loc"])
            print_error(f"{field}: {e['msg']}" if field else e["msg"])
    else:
        print_error(str(error))
    raise typer.Exit(1)


def parse_date(value: Optional[str], option: str) -> Optional[date]:
    """Parse an ISO date option, or None when it was not given."""
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValueError(f"{option} must be a date in YYYY-MM-DD format, got {value!r}") from None


def format_loan_table(loans: list[LoanResponse], title: str = "Loans") -> Table:
    """Create a rich table for displaying loans."""
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("ID", style="dim", max_width=8)
    table.add_column("Person", style="green", max_width=25)
    table.add_column("Resource", style="cyan", max_width=40)
    table.add_column("Qty", justify="right")
    table.add_column("Due", justify="center")
    table.add_column("Status", style="yellow")

    for loan in loans:
        status = loan.status.value
        if loan.is_overdue:
            status = f"[red]overdue ({loan.days_overdue}d)[/red]"
        table.add_row(
            str(loan.id)[:8],
            loan.person_name or str(loan.person_id)[:8],
            loan.resource_title or str(loan.resource_id)[:8],
            str(loan.quantity),
            loan.due_date.isoformat(),
            status,
        )

    return table


# ============================================================================
# Setup Commands
# ============================================================================


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging")) -> None:
    """School library circulation."""
    configure_logging("DEBUG" if verbose else None)


@app.command()
def init() -> None:
    """Create the database and check configuration."""
    config = get_config()
    for problem in config.validate():
        print_warning(problem)
    db = get_db(str(config.db_path))
    print_success(f"Database ready at {db.db_path}")


@app.command("add-person")
def add_person(
    first_name: str = typer.Argument(..., help="First name"),
    last_name: str = typer.Argument(..., help="Last name"),
    category: PersonCategory = typer.Option(
        PersonCategory.STUDENT, "--category", "-c", help="student or teacher"
    ),
    document: Optional[str] = typer.Option(None, "--document", "-d", help="Document number"),
    grade: Optional[str] = typer.Option(None, "--grade", "-g", help="Grade or class"),
) -> None:
    """Register a student or teacher."""
    try:
        person = PersonDirectory().add_person(
            PersonCreate(
                first_name=first_name,
                last_name=last_name,
                category=category,
                document_number=document,
                grade=grade,
            )
        )
    except (LibraryError, ValueError) as e:
        fail(e)
    print_success(f"Registered {person.full_name} ({person.category}): {person.id}")


@app.command("add-resource")
def add_resource(
    title: str = typer.Argument(..., help="Title"),
    quantity: int = typer.Option(1, "--quantity", "-q", min=0, help="Units owned"),
    author: Optional[str] = typer.Option(None, "--author", "-a", help="Author"),
    isbn: Optional[str] = typer.Option(None, "--isbn", "-i", help="ISBN"),
    resource_type: ResourceType = typer.Option(ResourceType.BOOK, "--type", "-t"),
) -> None:
    """Catalogue a resource."""
    try:
        resource = ResourceCatalog().add_resource(
            ResourceCreate(
                title=title,
                author=author,
                isbn=isbn,
                resource_type=resource_type,
                total_quantity=quantity,
            )
        )
    except (LibraryError, ValueError) as e:
        fail(e)
    print_success(f"Catalogued {resource.title} x{resource.total_quantity}: {resource.id}")


# ============================================================================
# Circulation Commands
# ============================================================================


@app.command()
def lend(
    person_id: str = typer.Argument(..., help="Person ID"),
    resource_id: str = typer.Argument(..., help="Resource ID"),
    quantity: int = typer.Option(1, "--quantity", "-q", min=1, help="Units to lend"),
    observations: Optional[str] = typer.Option(None, "--notes", "-n", help="Observations"),
) -> None:
    """Lend units of a resource to a person."""
    manager = CirculationManager()
    try:
        data = LoanCreate(
            person_id=person_id,
            resource_id=resource_id,
            quantity=quantity,
            observations=observations,
        )
        result = manager.validate_loan(data)
        for warning in result.warnings:
            print_warning(warning)
        loan = manager.create_loan(data)
    except (LibraryError, ValueError) as e:
        fail(e)
    print_success(f"Loan {loan.id} created, due {loan.due_date.isoformat()}")


@app.command("return")
def return_loan(
    loan_id: str = typer.Argument(..., help="Loan ID"),
    condition: Optional[ResourceCondition] = typer.Option(
        None, "--condition", "-c", help="Condition of the returned resource"
    ),
    return_date: Optional[str] = typer.Option(None, "--date", help="Return date (YYYY-MM-DD)"),
    observations: Optional[str] = typer.Option(None, "--notes", "-n", help="Observations"),
) -> None:
    """Process a return."""
    try:
        request = ReturnLoanRequest(
            loan_id=loan_id,
            return_date=parse_date(return_date, "--date"),
            resource_condition=condition,
            observations=observations,
        )
        outcome = CirculationManager().return_loan(request)
    except (LibraryError, ValueError) as e:
        fail(e)
    print_success(f"Loan {outcome.loan.id} returned")
    if outcome.was_overdue:
        print_warning(f"Returned {outcome.days_overdue} day(s) late")
    if outcome.resource_condition_changed:
        console.print(f"[dim]Resource condition set to {condition.value}[/dim]")


@app.command()
def renew(
    loan_id: str = typer.Argument(..., help="Loan ID"),
    due: Optional[str] = typer.Option(None, "--due", help="New due date (YYYY-MM-DD)"),
) -> None:
    """Renew an active loan."""
    try:
        request = RenewLoanRequest(new_due_date=parse_date(due, "--due"))
        loan = CirculationManager().renew_loan(loan_id, request)
    except (LibraryError, ValueError) as e:
        fail(e)
    print_success(f"Loan {loan.id} now due {loan.due_date.isoformat()}")


@app.command()
def lost(
    loan_id: str = typer.Argument(..., help="Loan ID"),
    observations: str = typer.Argument(..., help="What happened"),
) -> None:
    """Declare an active loan lost."""
    try:
        loan = CirculationManager().mark_lost(loan_id, MarkLostRequest(observations=observations))
    except (LibraryError, ValueError) as e:
        fail(e)
    print_success(f"Loan {loan.id} marked lost")


@app.command("can-borrow")
def can_borrow(person_id: str = typer.Argument(..., help="Person ID")) -> None:
    """Show whether a person may take another loan."""
    try:
        capacity = CirculationManager().can_person_borrow(person_id)
    except LibraryError as e:
        fail(e)
    label = "[green]yes[/green]" if capacity.allowed else f"[red]no[/red] ({capacity.reason})"
    console.print(f"Can borrow: {label}")
    console.print(f"Active loans: {capacity.active_loans}/{capacity.max_loans}")


# ============================================================================
# Reports
# ============================================================================


@app.command()
def overdue(
    page: int = typer.Option(1, "--page", "-p", min=1),
    limit: int = typer.Option(20, "--limit", "-l", min=1),
) -> None:
    """List overdue loans."""
    result = CirculationManager().get_overdue_loans(page=page, limit=limit)
    if not result.items:
        console.print("[dim]No overdue loans.[/dim]")
        return
    console.print(format_loan_table(result.items, title=f"Overdue loans ({result.total})"))


@app.command("due-soon")
def due_soon(
    days: int = typer.Option(3, "--days", "-d", min=0, help="Days to look ahead"),
    page: int = typer.Option(1, "--page", "-p", min=1),
    limit: int = typer.Option(20, "--limit", "-l", min=1),
) -> None:
    """List loans falling due soon."""
    result = CirculationManager().get_loans_due_soon(days=days, page=page, limit=limit)
    if not result.items:
        console.print(f"[dim]No loans due in the next {days} day(s).[/dim]")
        return
    console.print(format_loan_table(result.items, title=f"Due within {days} day(s)"))


@app.command()
def stats(
    year: Optional[int] = typer.Option(
        None, "--year", "-y", min=1, help="Also show loans started per month of this year"
    ),
) -> None:
    """Show circulation statistics."""
    analytics = LoanStatistics()
    s = analytics.get_stats()

    table = Table(title="Circulation", show_header=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Total loans", str(s.total_loans))
    table.add_row("Active", str(s.active_loans))
    table.add_row("Overdue", f"[red]{s.overdue_loans}[/red]" if s.overdue_loans else "0")
    table.add_row("Returned", str(s.returned_loans))
    table.add_row("Lost", str(s.lost_loans))
    table.add_row("Avg. loan (days)", f"{s.average_loan_duration:.1f}")
    table.add_row("New this week", str(s.this_week.new_loans))
    console.print(table)

    if s.top_borrowers:
        borrowers = Table(title="Top borrowers", header_style="bold magenta")
        borrowers.add_column("Name", style="green")
        borrowers.add_column("Loans", justify="right")
        borrowers.add_column("Active", justify="right")
        for b in s.top_borrowers:
            borrowers.add_row(b.full_name, str(b.borrow_count), str(b.active_loans))
        console.print(borrowers)

    if year is not None:
        monthly = Table(title=f"Loans per month, {year}", header_style="bold magenta")
        monthly.add_column("Month", style="cyan")
        monthly.add_column("Loans", justify="right")
        for month, count in analytics.loans_per_month(year).items():
            monthly.add_row(calendar.month_abbr[month], str(count))
        console.print(monthly)


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Bind address"),
    port: int = typer.Option(5000, "--port", help="Port"),
) -> None:
    """Run the HTTP API."""
    from .api import create_app

    create_app().run(host=host, port=port, threaded=True)


if __name__ == "__main__":
    app()
