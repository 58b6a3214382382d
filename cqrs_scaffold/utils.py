"""Shared utility functions for the CQRS scaffolder.

Provides identifier/name helpers, atomic file I/O, and Rich-based console
reporting.  The naming helpers are pure and deterministic; the same input
always yields the same derived forms.
"""

from __future__ import annotations

import os
import re
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

from rich.console import Console
from rich.table import Table

if TYPE_CHECKING:
    from cqrs_scaffold.models import ApplyReport, GenerationPlan

console = Console()

# ---------------------------------------------------------------------------
# String / name helpers
# ---------------------------------------------------------------------------


def to_pascal(name: str) -> str:
    """Convert ``some-thing``, ``some_thing`` or ``someThing`` to ``SomeThing``.

    All-caps words are title-cased, so constant-style tokens convert too.

    Examples::

        to_pascal("invoice")          -> "Invoice"
        to_pascal("send-reminder")    -> "SendReminder"
        to_pascal("getById")          -> "GetById"
        to_pascal("PAYMENT_GATEWAY")  -> "PaymentGateway"
    """
    parts = re.split(r"[-_\s]+", name)
    return "".join(
        word.capitalize() if word.isupper() else word[:1].upper() + word[1:]
        for word in parts
        if word
    )


def to_camel(name: str) -> str:
    """Convert ``some-thing`` or ``some_thing`` to ``someThing``."""
    pascal = to_pascal(name)
    if pascal:
        return pascal[0].lower() + pascal[1:]
    return ""


def to_constant(name: str) -> str:
    """Convert ``someThing`` or ``some-thing`` to ``SOME_THING``."""
    s1 = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", name)
    return re.sub(r"[-\s]+", "_", s1).upper()


def pluralize(word: str) -> str:
    """Return the English plural of a lowercase entity name.

    Examples::

        pluralize("invoice")  -> "invoices"
        pluralize("category") -> "categories"
        pluralize("address")  -> "addresses"
        pluralize("journey")  -> "journeys"
    """
    if not word:
        return word
    if word.endswith("y") and len(word) > 1 and word[-2] not in "aeiou":
        return word[:-1] + "ies"
    if word.endswith(("s", "sh", "ch", "x", "z")):
        return word + "es"
    return word + "s"


# ---------------------------------------------------------------------------
# File-system helpers
# ---------------------------------------------------------------------------


def atomic_write_text(path: str | Path, content: str) -> Path:
    """Write *content* to *path* via a temp file in the same directory.

    The temp file is renamed over the target with ``os.replace`` so readers
    never observe a half-written file.  Parent directories are created
    automatically.
    """
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_name = tempfile.mkstemp(
        prefix=f".{target.name}.", suffix=".tmp", dir=str(target.parent)
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as handle:
            handle.write(content)
        os.replace(temp_name, target)
    except BaseException:
        Path(temp_name).unlink(missing_ok=True)
        raise
    return target


def read_text_if_exists(path: str | Path) -> str | None:
    """Return the file's text, or ``None`` when it does not exist."""
    file_path = Path(path)
    if not file_path.is_file():
        return None
    return file_path.read_text(encoding="utf-8")


# ---------------------------------------------------------------------------
# Rich output helpers
# ---------------------------------------------------------------------------


OUTCOME_STYLES: dict[str, str] = {
    "created": "green",
    "merged": "cyan",
    "skipped": "yellow",
    "failed": "bold red",
}


def print_plan_table(plan: GenerationPlan, title: str = "Generation plan") -> None:
    """Print the planned actions without touching the filesystem."""
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Kind", style="dim", no_wrap=True)
    table.add_column("Path")
    table.add_column("Action")
    table.add_column("New entries", justify="right")

    for action in plan:
        entries = str(len(action.entries)) if action.is_merge else ""
        table.add_row(action.kind.value, action.target_path, action.action.value, entries)

    console.print(table)
    console.print()


def print_report_table(report: ApplyReport, title: str = "Scaffold summary") -> None:
    """Print one row per artifact with its outcome.

    Args:
        report: The report produced by the emitter.
        title: Table title.
    """
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Kind", style="dim", no_wrap=True)
    table.add_column("Path")
    table.add_column("Outcome")
    table.add_column("Details")

    for entry in report:
        style = OUTCOME_STYLES.get(entry.outcome.value, "white")
        details = entry.reason
        if entry.merged_entries:
            details = ", ".join(entry.merged_entries)
        elif entry.outcome.value == "merged":
            details = "no new entries"
        table.add_row(
            entry.kind.value,
            entry.path,
            f"[{style}]{entry.outcome.value}[/{style}]",
            details,
        )

    console.print(table)
    console.print()


def print_success(message: str) -> None:
    """Print a green success message."""
    console.print(f"[bold green]{message}[/bold green]")


def print_error(message: str) -> None:
    """Print a red error message."""
    console.print(f"[bold red]{message}[/bold red]")


def print_warning(message: str) -> None:
    """Print a yellow warning message."""
    console.print(f"[bold yellow]{message}[/bold yellow]")
