# triage_engine/report_sink.py

"""
Report sink: renders classified rows on screen and persists them to disk.
"""

from __future__ import annotations

import csv
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Sequence

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from . import config_loader
from .models import ClassifiedRecord

COLUMNS = ["Process", "PID", "ProcessPath", "State", "LocalAddress", "RemoteAddress", "Flags"]
FILE_PREFIX = "conn-triage"


@dataclass(frozen=True)
class ReportSummary:
    total: int
    flagged: int
    unresolved: int = 0
    top_flagged: List[ClassifiedRecord] = field(default_factory=list)


def summarize(rows: Sequence[ClassifiedRecord], top: int = 5) -> ReportSummary:
    flagged = [row for row in rows if row.flagged]
    return ReportSummary(
        total=len(rows),
        flagged=len(flagged),
        unresolved=sum(1 for row in rows if not row.identity.resolved),
        top_flagged=flagged[: max(top, 0)],
    )


def build_table(rows: Sequence[ClassifiedRecord], title: str = "Connection Triage") -> Table:
    table = Table(title=title)
    table.add_column("Process", justify="left")
    table.add_column("PID", justify="right")
    table.add_column("ProcessPath", justify="left", overflow="fold")
    table.add_column("State", justify="left")
    table.add_column("Local", justify="left")
    table.add_column("Remote", justify="left")
    table.add_column("Flags", justify="left")

    for record in rows:
        row = record.to_row()
        table.add_row(
            *(escape(row[column]) for column in COLUMNS),
            style="bold yellow" if record.flagged else None,
        )
    return table


def print_table(rows: Sequence[ClassifiedRecord], console: Optional[Console] = None, title: str = "Connection Triage") -> None:
    console = console or Console()
    console.print(build_table(rows, title=title))


def print_summary(summary: ReportSummary, console: Optional[Console] = None) -> None:
    console = console or Console()
    console.print(f"[bold]Total connections:[/bold] {summary.total}")
    colour = "red" if summary.flagged else "green"
    console.print(f"[bold]Flagged for review:[/bold] [{colour}]{summary.flagged}[/{colour}]")
    if summary.unresolved:
        console.print(f"[bold]Unresolved owners:[/bold] {summary.unresolved}")
    for record in summary.top_flagged:
        row = record.to_row()
        console.print(
            f"  ⚠ {row['Process']} (PID {row['PID']}) {row['LocalAddress']} -> {row['RemoteAddress']} [{row['Flags']}]",
            markup=False,
        )


def _report_path(output_dir: Optional[str], extension: str) -> Path:
    if output_dir:
        dest_dir = Path(output_dir).expanduser()
    else:
        config_loader.ensure_runtime_dirs()
        dest_dir = Path(config_loader.REPORT_DIR)
    dest_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    candidate = dest_dir / f"{FILE_PREFIX}-{timestamp}.{extension}"
    counter = 1
    while candidate.exists():
        candidate = dest_dir / f"{FILE_PREFIX}-{timestamp}-{counter}.{extension}"
        counter += 1
    return candidate


def export_csv(rows: Sequence[ClassifiedRecord], output_dir: Optional[str] = None) -> Path:
    path = _report_path(output_dir, "csv")
    with open(path, "x", newline="", encoding="utf-8") as handle:
        writer = csv.DictWriter(handle, fieldnames=COLUMNS)
        writer.writeheader()
        writer.writerows(record.to_row() for record in rows)
    return path


def export_json(rows: Sequence[ClassifiedRecord], output_dir: Optional[str] = None) -> Path:
    path = _report_path(output_dir, "json")
    with open(path, "x", encoding="utf-8") as handle:
        json.dump([record.to_row() for record in rows], handle, indent=2)
    return path


EXPORTERS = {"csv": export_csv, "json": export_json}


__all__ = [
    "COLUMNS",
    "EXPORTERS",
    "ReportSummary",
    "build_table",
    "export_csv",
    "export_json",
    "print_summary",
    "print_table",
    "summarize",
]
