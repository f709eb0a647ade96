"""Rich rendering helpers shared by the console tools."""

from datetime import datetime
from typing import Any, Iterable, Mapping, Optional

from rich.console import Console
from rich.table import Table

from querylab.core.errors import DataAccessError, IntegrityViolation, StoreUnavailableError


def _cell(value: Any) -> str:
    if value is None:
        return "[dim]-[/dim]"
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M:%S")
    return str(value)


def records_table(records: Iterable[Mapping[str, Any]], title: Optional[str] = None) -> Table:
    """Build a table whose columns are the keys of the first record."""
    records = list(records)
    table = Table(title=title, show_lines=False, header_style="bold cyan")
    if not records:
        table.add_column("(no records)")
        return table

    columns = list(records[0].keys())
    for column in columns:
        table.add_column(column, justify="right" if column == "id" else "left")
    for record in records:
        table.add_row(*(_cell(record.get(column)) for column in columns))
    return table


def print_records(console: Console, records: Iterable[Mapping[str, Any]], title: Optional[str] = None) -> None:
    console.print(records_table(records, title))


def print_error(console: Console, error: DataAccessError) -> None:
    """Render a data-access failure as a one-row table."""
    if isinstance(error, IntegrityViolation):
        kind = "Integrity violation"
        detail = f"{error.field or 'unknown field'} ({error.constraint or 'constraint'})"
    elif isinstance(error, StoreUnavailableError):
        kind = "Store unavailable"
        detail = error.operation
    else:
        kind = type(error).__name__
        detail = ""

    table = Table(title="⚠️  Operation failed", header_style="bold red")
    table.add_column("error")
    table.add_column("detail")
    table.add_column("message", overflow="fold")
    table.add_row(kind, detail, str(error))
    console.print(table)
