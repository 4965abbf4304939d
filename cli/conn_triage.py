"""
conn-triage: one-shot view of which processes own which TCP connections,
with heuristic flags for manual review. Read-only: nothing is blocked or killed.
"""

from __future__ import annotations

import argparse
import logging
import sys

from rich.console import Console
from rich.markup import escape

from triage_engine.config_loader import EXPORT_FORMATS, load_triage_config, parse_ports
from triage_engine.logging_utils import logger_from_settings, parse_level
from triage_engine.pipeline import scan
from triage_engine.report_sink import EXPORTERS, print_summary, print_table, summarize
from triage_engine.sources import JsonSnapshotSource, PsutilConnectionSource, dump_snapshot

EXIT_OK = 0
EXIT_ENUMERATION_FAILED = 1

console = Console()


def _port_list(value: str):
    try:
        return sorted(parse_ports(value))
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc))


def _log_level(value: str) -> int:
    try:
        return parse_level(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc))


class _RecordingSource:
    """Wraps a source so the enumerated records can be saved as a snapshot."""

    def __init__(self, source, path, logger=None):
        self.source = source
        self.path = path
        self.logger = logger
        self.error = None

    def snapshot(self):
        records = self.source.snapshot()
        try:
            dump_snapshot(records, self.path)
        except OSError as exc:
            self.error = str(exc)
            if self.logger:
                self.logger.error("Failed to save snapshot to %s: %s", self.path, exc)
        return records


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Map TCP connections to processes and flag ones worth a look")
    parser.add_argument("--ports", type=_port_list, help="Comma-separated suspicious remote ports (replaces configured set)")
    parser.add_argument("--config", help="Path to a JSON config file")
    parser.add_argument("--snapshot", help="Classify a saved JSON snapshot instead of the live table")
    parser.add_argument("--dump-snapshot", help="Save the enumerated connections to this JSON file")
    parser.add_argument("--export", choices=EXPORT_FORMATS, default=None, help="Report file format")
    parser.add_argument("--output-dir", default=None, help="Report directory (defaults to ~/.conn-triage/reports)")
    parser.add_argument("--flagged-only", action="store_true", help="Only show flagged connections on screen")
    parser.add_argument("--top", type=int, default=None, help="Flagged connections listed in the summary")
    parser.add_argument("--workers", type=int, default=None, help="Threads used to resolve owning processes")
    parser.add_argument("--log-level", type=_log_level, default=logging.WARNING, help="Logging verbosity")
    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config, settings = load_triage_config(
            args.config,
            overrides={
                "suspicious_ports": args.ports,
                "export_format": args.export,
                "report_dir": args.output_dir,
                "top_flagged": args.top,
                "workers": args.workers,
            },
        )
    except (RuntimeError, ValueError) as exc:
        parser.error(str(exc))

    logger = logger_from_settings(settings, level=args.log_level)

    source = JsonSnapshotSource(args.snapshot) if args.snapshot else PsutilConnectionSource()
    if args.dump_snapshot:
        source = _RecordingSource(source, args.dump_snapshot, logger=logger)

    report = scan(source, config, workers=settings["workers"], logger=logger)

    if isinstance(source, _RecordingSource) and source.error:
        console.print(f"[bold red]❌ Could not save snapshot:[/bold red] {escape(source.error)}", highlight=False)

    if report.enumeration_failed:
        console.print(f"[bold red]❌ Could not enumerate connections:[/bold red] {escape(report.error)}", highlight=False)
        return EXIT_ENUMERATION_FAILED

    shown = report.flagged if args.flagged_only else report.records
    print_table(shown, console=console)
    print_summary(summarize(report.records, top=settings["top_flagged"]), console=console)

    export_format = settings["export_format"]
    exporter = EXPORTERS.get(export_format)
    if exporter:
        path = exporter(report.records, output_dir=settings.get("report_dir"))
        logger.info("Report written to %s", path)
        console.print(f"[green]✔ {export_format.upper()} report saved to {escape(str(path))}[/green]")

    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
