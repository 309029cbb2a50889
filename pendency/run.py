"""Command-line entry point for the pendency tracker."""

import json
import logging
import sys
import time
from typing import Optional, Tuple

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .api import create_api_client
from .auth import AuthService
from .config import settings
from .models import PendencyRecord
from .repository import PendencyRepository
from .session import PendencySession, SyncResult
from .state import StateStore
from .status import business_today
from .utils import format_currency
from .views import ListCategory, filter_records

console = Console()
logger = logging.getLogger(__name__)


# Configure logging
def setup_logging(level: str) -> None:
    """Set up logging with Rich handler or JSON lines."""
    log_level = getattr(logging, level.upper())
    if settings.log_json:

        class JsonFormatter(logging.Formatter):
            def format(self, record: logging.LogRecord) -> str:
                payload = {
                    "level": record.levelname,
                    "time": self.formatTime(record, "%Y-%m-%dT%H:%M:%SZ"),
                    "message": record.getMessage(),
                    "name": record.name,
                }
                return json.dumps(payload)

        handler = logging.StreamHandler()
        handler.setFormatter(JsonFormatter())
        logging.basicConfig(level=log_level, handlers=[handler])
    else:
        logging.basicConfig(
            level=log_level,
            format="%(message)s",
            datefmt="[%X]",
            handlers=[RichHandler(console=console, rich_tracebacks=True)],
        )


def build_services() -> Tuple[PendencyRepository, StateStore, AuthService]:
    """Wire the client, repository, state store and auth service from settings."""
    client = create_api_client(settings)
    repository = PendencyRepository(
        client,
        ttl_seconds=settings.cache_ttl_seconds,
        today_provider=lambda: business_today(settings.timezone),
    )
    store = StateStore(settings.state_file)
    auth = AuthService(repository, store, settings)
    return repository, store, auth


def open_session() -> Tuple[PendencySession, AuthService]:
    repository, store, auth = build_services()
    user = auth.current_user()
    if user is None:
        console.print("[red]Not signed in.[/red] Run [bold]pendency login[/bold] first.")
        sys.exit(1)
    logger.debug(f"Opening session for {user.username!r}")
    return PendencySession(repository, store, user), auth


def render_records(records: list, title: str) -> Table:
    table = Table(title=title)
    table.add_column("Id")
    table.add_column("Limit")
    table.add_column("Status")
    table.add_column("Origin")
    table.add_column("Destination")
    table.add_column("Recipient")
    table.add_column("Value", justify="right")
    table.add_column("Type")
    for record in records:
        table.add_row(
            record.id,
            record.limit_date or "—",
            record.status.value + (" 🔎" if record.is_search else ""),
            record.collection_unit,
            record.delivery_unit,
            record.recipient,
            format_currency(record.value),
            record.payment_type.value,
        )
    return table


def print_counts(result: SyncResult) -> None:
    if result.is_placeholder:
        console.print("[yellow]Remote source unavailable - showing placeholder data[/yellow]")
    console.print(
        f"Pending: {result.sidebar.pending}  "
        f"Critical: {result.sidebar.critical}  "
        f"Search: {result.sidebar.search}  "
        f"Unread notifications: {result.notifications.total}"
    )


@click.group()
@click.option(
    "--log-level",
    default="WARNING",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    help="Set logging level",
)
def main(log_level: str) -> None:
    """Track shipment pendencies from the remote spreadsheet."""
    settings.log_level = log_level
    setup_logging(settings.log_level)


@main.command()
@click.argument("username")
@click.option("--password", prompt=True, hide_input=True)
def login(username: str, password: str) -> None:
    """Sign in and remember the identity for later commands."""
    _, _, auth = build_services()
    result = auth.login(username, password)
    if not result.success or result.user is None:
        console.print(f"[red]❌ Login failed:[/red] {result.message}")
        sys.exit(1)
    console.print(f"✅ Signed in as [bold]{result.user.name or result.user.username}[/bold]")


@main.command()
def logout() -> None:
    """Forget the stored identity."""
    _, _, auth = build_services()
    auth.logout()
    console.print("Signed out.")


@main.command()
@click.option("--refresh", is_flag=True, default=False, help="Bypass the cache")
@click.option(
    "--category",
    default="ALL",
    type=click.Choice([c.value for c in ListCategory]),
    help="Which list to show",
)
@click.option("--search", "search_term", default=None, help="Free-text filter")
def summary(refresh: bool, category: str, search_term: Optional[str]) -> None:
    """Show counters and a pendency list."""
    session, _ = open_session()
    with session:
        result = session.sync(force_refresh=refresh)
        print_counts(result)
        records = filter_records(
            result.records,
            category=ListCategory(category),
            user=session.user,
            search_term=search_term,
        )
        console.print(render_records(records, f"Pendencies ({category})"))


def _notification_label(record: PendencyRecord) -> str:
    return "Goods under search" if record.is_search else "Critical pendency"


@main.command()
@click.option("--mark-all", is_flag=True, default=False, help="Acknowledge all shown")
def notifications(mark_all: bool) -> None:
    """List notifications, unread first."""
    session, _ = open_session()
    with session:
        session.sync()
        center = session.notifications
        if mark_all:
            added = center.mark_all_read()
            console.print(f"Marked {added} notifications as read.")

        table = Table(title="Notifications")
        table.add_column("")
        table.add_column("Id")
        table.add_column("Kind")
        table.add_column("Recipient")
        for record in center.ordered():
            table.add_row(
                "" if center.is_read(record.id) else "●",
                record.id,
                _notification_label(record),
                record.recipient,
            )
        console.print(table)
        counts = center.counts()
        console.print(f"Unread: {counts.search} search, {counts.critical} critical")


@main.command(name="mark-read")
@click.argument("record_id")
def mark_read(record_id: str) -> None:
    """Acknowledge one notification and show its record."""
    session, _ = open_session()
    with session:
        session.sync()
        record = session.notifications.select(record_id)
        if record is None:
            console.print(f"[yellow]No current notification with id {record_id}[/yellow]")
            return
        console.print(render_records([record], _notification_label(record)))


@main.command()
@click.option("--interval", type=float, default=None, help="Seconds between refreshes")
def watch(interval: Optional[float]) -> None:
    """Keep refreshing in the background and print counters until interrupted."""
    session, _ = open_session()
    if interval is not None:
        session.poll_interval_seconds = interval
    with session:
        print_counts(session.sync())
        session.start_polling()
        last_seen = session.last_result
        try:
            while True:
                time.sleep(1)
                if session.last_result is not last_seen and session.last_result:
                    last_seen = session.last_result
                    print_counts(last_seen)
        except KeyboardInterrupt:
            console.print("Stopping.")


if __name__ == "__main__":
    main()
