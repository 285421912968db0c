"""Command-line interface for leafnote.

Built with Typer for commands and Rich for beautiful output.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from .analytics import EventName, EventTracker
from .auth import AuthError, SessionContext, SupabaseAuth
from .config import get_config
from .db import get_store
from .db.schemas import ItemStatus, ReadItem, ToReadItem
from .library import ItemNotFoundError, MetadataEnricher, ReadingTracker
from .sync import RemoteSyncAdapter, SupabaseClient, SupabaseConfigError

# Create the main app
app = typer.Typer(
    name="leafnote",
    help="Track the books you have read and the ones you want to read.",
    no_args_is_help=True,
)

# Create sub-apps for command groups
auth_app = typer.Typer(help="Sign in, sign up and manage your account.")
app.add_typer(auth_app, name="auth")

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


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[dim]{message}[/dim]")


def format_rating(rating: Optional[int]) -> str:
    if not rating:
        return "-"
    return "★" * rating + "☆" * (5 - rating)


def format_read_table(books: list[ReadItem], title: str = "Read") -> Table:
    """Create a rich table for read books."""
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Title", style="cyan", no_wrap=False, max_width=40)
    table.add_column("Author", style="green", max_width=25)
    table.add_column("Rating", justify="center")
    table.add_column("Read", justify="center")

    for book in books:
        table.add_row(
            book.id[:8],
            book.title,
            book.author or "-",
            format_rating(book.rating),
            book.date_read.date().isoformat(),
        )
    return table


def format_to_read_table(books: list[ToReadItem], title: str = "To read") -> Table:
    """Create a rich table for to-read books."""
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Title", style="cyan", no_wrap=False, max_width=40)
    table.add_column("Author", style="green", max_width=25)
    table.add_column("Added", justify="center")

    for book in books:
        table.add_row(
            book.id[:8],
            book.title,
            book.author or "-",
            book.date_added.date().isoformat(),
        )
    return table


@dataclass
class Runtime:
    """Components wired together for one command."""

    context: SessionContext
    tracker: ReadingTracker
    events: EventTracker
    supabase: Optional[SupabaseClient] = None
    auth: Optional[SupabaseAuth] = None


def get_supabase_client() -> Optional[SupabaseClient]:
    """Supabase client from config, or None when it is not configured."""
    config = get_config()
    if not config.has_supabase_config():
        return None
    try:
        return SupabaseClient(timeout=config.http_timeout)
    except SupabaseConfigError as e:
        print_warning(str(e))
        return None


def get_books_client():
    from .api import GoogleBooksClient

    config = get_config()
    return GoogleBooksClient(api_key=config.google_books_api_key, timeout=config.http_timeout)


def build_runtime(offline: bool = False) -> Runtime:
    """Restore the saved session and build the tracker around it.

    Args:
        offline: Skip the books API; new items get a generated description
    """
    context = SessionContext(store=get_store())
    client = get_supabase_client()

    auth = None
    remote = None
    if client is not None:
        auth = SupabaseAuth(client, context)
        auth.restore_session()
        remote = RemoteSyncAdapter(client)

    enricher = None if offline else MetadataEnricher(get_books_client())
    events = EventTracker(context, client)
    events.track(EventName.APP_OPEN)
    tracker = ReadingTracker(context, remote=remote, enricher=enricher, events=events)
    return Runtime(context=context, tracker=tracker, events=events, supabase=client, auth=auth)


def require_auth(runtime: Runtime) -> SupabaseAuth:
    if runtime.auth is None:
        print_error("Supabase not configured. Set SUPABASE_URL and SUPABASE_ANON_KEY.")
        raise typer.Exit(1)
    return runtime.auth


def resolve_item_id(tracker: ReadingTracker, prefix: str) -> str:
    """Expand an id prefix (as shown in `list`) to a full item id."""
    matches = [
        item.id
        for item in [*tracker.read_books, *tracker.to_read_books]
        if item.id.startswith(prefix)
    ]
    if not matches:
        print_error(f"No book with id {prefix}")
        raise typer.Exit(1)
    if len(matches) > 1:
        print_error(f"Id {prefix} is ambiguous; use more characters")
        raise typer.Exit(1)
    return matches[0]


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
) -> None:
    """Track the books you have read and the ones you want to read."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
        force=True,
    )


# ============================================================================
# Book Management Commands
# ============================================================================


@app.command("add-read")
def add_read(
    title: str = typer.Argument(..., help="Book title"),
    rating: int = typer.Option(..., "--rating", "-r", min=1, max=5, help="Rating 1-5"),
    author: Optional[str] = typer.Option(None, "--author", "-a", help="Author"),
    offline: bool = typer.Option(False, "--offline", help="Skip the metadata lookup"),
) -> None:
    """Add a book you have finished."""
    runtime = build_runtime(offline=offline)
    runtime.events.track(EventName.ADD_READ_CLICK)

    try:
        item = runtime.tracker.add_read(title, rating, author=author)
    except ValueError as e:
        print_error(str(e))
        raise typer.Exit(1)

    by = f" by {item.author}" if item.author else ""
    print_success(f"Added to read: {item.title}{by} {format_rating(item.rating)}")
    if item.short_description:
        print_info(item.short_description)


@app.command("add-to-read")
def add_to_read(
    title: str = typer.Argument(..., help="Book title"),
    author: Optional[str] = typer.Option(None, "--author", "-a", help="Author"),
    offline: bool = typer.Option(False, "--offline", help="Skip the metadata lookup"),
) -> None:
    """Add a book to your to-read list."""
    runtime = build_runtime(offline=offline)
    runtime.events.track(EventName.ADD_TOREAD_CLICK)

    try:
        item = runtime.tracker.add_to_read(title, author=author)
    except ValueError as e:
        print_error(str(e))
        raise typer.Exit(1)

    by = f" by {item.author}" if item.author else ""
    print_success(f"Added to to-read: {item.title}{by}")
    if item.short_description:
        print_info(item.short_description)


@app.command("list")
def list_books(
    status: Optional[ItemStatus] = typer.Option(None, "--status", "-s", help="Only this list"),
) -> None:
    """List your books."""
    runtime = build_runtime(offline=True)
    tracker = runtime.tracker

    if not tracker.read_books and not tracker.to_read_books:
        console.print("[dim]No books yet. Try 'leafnote add-read' or 'leafnote add-to-read'.[/dim]")
        return

    if status in (None, ItemStatus.READ):
        if tracker.read_books:
            console.print(format_read_table(tracker.read_books))
        else:
            console.print("[dim]No read books.[/dim]")
    if status in (None, ItemStatus.TO_READ):
        if tracker.to_read_books:
            console.print(format_to_read_table(tracker.to_read_books))
        else:
            console.print("[dim]Nothing on the to-read list.[/dim]")


@app.command()
def remove(
    item_id: str = typer.Argument(..., help="Book id (or prefix, as shown by 'list')"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Remove a book from either list."""
    runtime = build_runtime(offline=True)
    tracker = runtime.tracker
    full_id = resolve_item_id(tracker, item_id)

    item = tracker.find(full_id)
    if not yes and not typer.confirm(f"Remove '{item.title}'?", default=False):
        console.print("[dim]Cancelled.[/dim]")
        raise typer.Exit(0)

    tracker.remove(full_id)
    print_success(f"Removed: {item.title}")


@app.command()
def finish(
    item_id: str = typer.Argument(..., help="To-read book id (or prefix)"),
    rating: int = typer.Option(..., "--rating", "-r", min=1, max=5, help="Rating 1-5"),
) -> None:
    """Move a to-read book to your read list."""
    runtime = build_runtime(offline=True)
    tracker = runtime.tracker
    full_id = resolve_item_id(tracker, item_id)

    try:
        item = tracker.move_to_read(full_id, rating)
    except ItemNotFoundError:
        print_error("That book is not on your to-read list.")
        raise typer.Exit(1)

    print_success(f"Finished: {item.title} {format_rating(item.rating)}")


@app.command()
def requeue(
    item_id: str = typer.Argument(..., help="Read book id (or prefix)"),
) -> None:
    """Move a read book back to your to-read list."""
    runtime = build_runtime(offline=True)
    tracker = runtime.tracker
    full_id = resolve_item_id(tracker, item_id)

    try:
        item = tracker.move_to_to_read(full_id)
    except ItemNotFoundError:
        print_error("That book is not on your read list.")
        raise typer.Exit(1)

    print_success(f"Back on the to-read list: {item.title}")


# ============================================================================
# Recommendation Commands
# ============================================================================


@app.command()
def recommend(
    max_results: int = typer.Option(8, "--max", "-m", min=0, help="Maximum suggestions"),
    refresh: bool = typer.Option(False, "--refresh", help="Ignore cached external results"),
    offline: bool = typer.Option(False, "--offline", help="Local suggestions only"),
) -> None:
    """Suggest what to read next."""
    from .discovery import RecommendationService

    runtime = build_runtime(offline=True)
    config = get_config()
    service = RecommendationService(
        runtime.context.store,
        client=None if offline else get_books_client(),
        cache_ttl=config.cache_ttl,
    )

    if not offline:
        console.print("[dim]Looking for new books...[/dim]")
    view = service.refresh(runtime.tracker.lists, max_results=max_results, force=refresh)
    runtime.events.track(EventName.RECOMMENDATIONS_VIEW, metadata={"count": len(view.recommendations)})

    if not view.recommendations:
        console.print("[dim]No suggestions.[/dim]")
        return

    table = Table(title="Recommendations", show_header=True, header_style="bold magenta")
    table.add_column("Title", style="cyan", max_width=40)
    table.add_column("Author", style="green", max_width=25)
    table.add_column("Why", style="yellow", max_width=40)
    table.add_column("About", max_width=60)
    for rec in view.recommendations:
        table.add_row(rec.title, rec.author or "-", rec.reason, rec.short_description or "")
    console.print(table)

    if view.from_cache:
        print_info("External suggestions from cache; use --refresh to look again.")
    if view.errors:
        print_warning(f"{len(view.errors)} lookups failed; showing what was found.")


# ============================================================================
# Import / Export Commands
# ============================================================================


@app.command("export")
def export_cmd(
    format: str = typer.Option("json", "--format", "-f", help="Format: json or csv"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output file path"),
) -> None:
    """Export both lists to a file."""
    from .export import CSVExporter, ExportFormat, JSONExporter, default_export_filename

    try:
        export_format = ExportFormat(format.lower())
    except ValueError:
        print_error(f"Invalid format: {format}. Use: json, csv")
        raise typer.Exit(1)

    runtime = build_runtime(offline=True)
    lists = runtime.tracker.lists
    output = output or Path(default_export_filename(export_format))

    if export_format == ExportFormat.CSV:
        result = CSVExporter(lists).export(output)
    else:
        result = JSONExporter(lists).export(output)

    if result.success:
        runtime.events.track(EventName.EXPORT_SUCCESS, metadata={"format": export_format.value})
        print_success(f"Exported {result.records_exported} books to {result.file_path}")
    else:
        print_error(f"Export failed: {result.error}")
        raise typer.Exit(1)


@app.command("import")
def import_cmd(
    file: Path = typer.Argument(..., help="JSON or CSV export to import"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Replace both lists with the contents of an exported file."""
    from .imports import ImportFormatError, load_import

    try:
        result = load_import(file)
    except ImportFormatError as e:
        print_error(str(e))
        raise typer.Exit(1)

    runtime = build_runtime(offline=True)
    tracker = runtime.tracker
    console.print(f"Found {result.summary} in {file}")
    if not yes and not tracker.lists.is_empty:
        if not typer.confirm("This replaces your current lists. Continue?", default=False):
            console.print("[dim]Cancelled.[/dim]")
            raise typer.Exit(0)

    tracker.replace(result.lists)
    runtime.events.track(EventName.IMPORT_SUCCESS, metadata={"format": result.source_type})
    print_success("Data imported successfully.")


# ============================================================================
# Sync Commands
# ============================================================================


@app.command()
def sync() -> None:
    """Sync your lists with your account."""
    runtime = build_runtime(offline=True)
    require_auth(runtime)
    if not runtime.context.is_authenticated:
        print_error("Not signed in. Use 'leafnote auth login' or 'leafnote auth signin'.")
        raise typer.Exit(1)

    outcome = runtime.tracker.sync()
    if outcome is None or not outcome.success:
        for error in (outcome.errors if outcome else [])[:5]:
            console.print(f"  [red]- {error}[/red]")
        print_error("Sync did not complete.")
        raise typer.Exit(1)

    lists = outcome.lists
    console.print(Panel(
        f"{outcome.action.value.replace('_', ' ')}\n"
        f"Read: {len(lists.read_books)}  To read: {len(lists.to_read_books)}"
        + (f"\nUploaded: {outcome.uploaded}" if outcome.uploaded else ""),
        title="Sync Complete",
    ))


@app.command()
def report(
    no_send: bool = typer.Option(False, "--no-send", help="Build the report without e-mailing it"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Also write the CSV here"),
) -> None:
    """Build the weekly engagement report and e-mail it."""
    from .reports import ReportError, WeeklyReportJob, report_to_csv

    try:
        job = WeeklyReportJob.from_config()
        result = job.run(send=not no_send)
    except ReportError as e:
        print_error(str(e))
        raise typer.Exit(1)

    summary = result.report.summary
    console.print(Panel(
        f"New users: {summary.new_users}\n"
        f"Repeat users: {summary.repeat_users}\n"
        f"Add Read clicks: {summary.add_read_clicks}\n"
        f"Add To-Read clicks: {summary.add_toread_clicks}",
        title=result.report.subject,
    ))

    if output:
        output.write_text(report_to_csv(result.report), encoding="utf-8")
        print_info(f"CSV written to {output}")

    if result.sent:
        print_success(result.message)
    else:
        print_warning(result.message)


# ============================================================================
# Auth Commands
# ============================================================================


@auth_app.command("login")
def auth_login(
    email: str = typer.Argument(..., help="E-mail address"),
    resend: bool = typer.Option(False, "--resend", help="Send the link again"),
) -> None:
    """E-mail yourself a magic sign-in link."""
    runtime = build_runtime(offline=True)
    auth = require_auth(runtime)
    try:
        result = auth.send_magic_link(email, resend=resend)
    except AuthError as e:
        print_error(e.user_message)
        raise typer.Exit(1)
    print_success(result.message)
    print_info(f"Then run: leafnote auth verify {email}")


@auth_app.command("verify")
def auth_verify(
    email: str = typer.Argument(..., help="E-mail address the link was sent to"),
    code: str = typer.Option(..., "--code", "-c", prompt=True, help="Code from the sign-in e-mail"),
) -> None:
    """Finish a magic-link sign-in with the e-mailed code."""
    runtime = build_runtime(offline=True)
    auth = require_auth(runtime)
    try:
        result = auth.verify_otp(email, code)
    except AuthError as e:
        print_error(e.user_message)
        raise typer.Exit(1)
    runtime.events.track(EventName.SIGNIN_SUCCESS)
    print_success(result.message)

    outcome = runtime.tracker.last_sync
    if outcome is not None and not outcome.success:
        print_warning("Signed in, but your lists could not be synced. Try 'leafnote sync'.")


@auth_app.command("signup")
def auth_signup(
    email: str = typer.Argument(..., help="E-mail address"),
    password: str = typer.Option(
        ..., "--password", "-p", prompt=True, hide_input=True, confirmation_prompt=True
    ),
) -> None:
    """Create an account with a password."""
    runtime = build_runtime(offline=True)
    auth = require_auth(runtime)
    try:
        result = auth.sign_up(email, password)
    except AuthError as e:
        print_error(e.user_message)
        raise typer.Exit(1)
    runtime.events.track(EventName.SIGNUP_SUCCESS)
    print_success(result.message)


@auth_app.command("signin")
def auth_signin(
    email: str = typer.Argument(..., help="E-mail address"),
    password: str = typer.Option(..., "--password", "-p", prompt=True, hide_input=True),
) -> None:
    """Sign in with e-mail and password."""
    runtime = build_runtime(offline=True)
    auth = require_auth(runtime)
    try:
        result = auth.sign_in(email, password)
    except AuthError as e:
        print_error(e.user_message)
        if e.needs_confirmation_or_credentials:
            print_info("Forgot your password? Use 'leafnote auth reset-password'.")
        raise typer.Exit(1)
    runtime.events.track(EventName.SIGNIN_SUCCESS)
    print_success(result.message)

    outcome = runtime.tracker.last_sync
    if outcome is not None and not outcome.success:
        print_warning("Signed in, but your lists could not be synced. Try 'leafnote sync'.")


@auth_app.command("reset-password")
def auth_reset_password(
    email: str = typer.Argument(..., help="E-mail address"),
) -> None:
    """Request a password reset e-mail."""
    runtime = build_runtime(offline=True)
    auth = require_auth(runtime)
    try:
        result = auth.request_password_reset(email)
    except AuthError as e:
        print_error(e.user_message)
        raise typer.Exit(1)
    print_success(result.message)


@auth_app.command("signout")
def auth_signout() -> None:
    """Sign out and clear the local lists."""
    runtime = build_runtime(offline=True)
    auth = require_auth(runtime)
    runtime.events.track(EventName.SIGNOUT)
    result = auth.sign_out()
    print_success(result.message)


@auth_app.command("whoami")
def auth_whoami() -> None:
    """Show who is signed in."""
    runtime = build_runtime(offline=True)
    identity = runtime.context.identity
    if identity is None:
        console.print("[dim]Not signed in. Your lists are kept on this device only.[/dim]")
        return
    console.print(f"Signed in as [bold]{identity.email or identity.id}[/bold]")


# ============================================================================
# Version Command
# ============================================================================


@app.command()
def version() -> None:
    """Show version information."""
    from . import __version__

    console.print(f"leafnote version {__version__}")


# ============================================================================
# Main Entry Point
# ============================================================================


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
