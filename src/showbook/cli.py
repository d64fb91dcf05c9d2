"""Diagnostic command line for the show identification engine."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Optional, Sequence

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from .config import AppConfig, default_config, load_config
from .logging_utils import render_section_block
from .parsers.show_filename import ShowFilenameParser
from .phishnet import OperationCancelledError, PhishNetClient
from .provider import build_provider
from .version import __version__

LOGGER = logging.getLogger(__name__)


def _configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s\n%(message)s\n",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    # httpx logs every request URL, API key included
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _load(config_path: Optional[Path]) -> AppConfig:
    if config_path is None:
        return default_config()
    return load_config(config_path)


def _run_parse(config: AppConfig, args: argparse.Namespace, console: Console) -> int:
    parser = ShowFilenameParser(config.settings.artist)
    result = parser.parse(args.label, args.context)

    table = Table(title=f"Identification: {escape(args.label)}", show_header=False)
    table.add_column("Field", style="bold cyan")
    table.add_column("Value")
    for key, value in result.summary_fields():
        table.add_row(key, "" if value is None else escape(str(value)))
    console.print(table)

    candidates = parser.candidates(args.label)
    if candidates:
        ranking = Table(title="Matching rules")
        ranking.add_column("Rule")
        ranking.add_column("Confidence", justify="right")
        ranking.add_column("Date")
        for rule, candidate in candidates:
            ranking.add_row(
                rule.description,
                f"{candidate.confidence:.2f}",
                candidate.date.isoformat() if candidate.date else "",
            )
        console.print(ranking)
    return 0 if result.confidence > 0 else 1


def _run_identify(config: AppConfig, args: argparse.Namespace, console: Console) -> int:
    # diagnostics never write collections
    config.settings.collections.enabled = False
    provider = build_provider(config, verify_connection=not args.offline)
    try:
        metadata = provider.get_metadata(args.label, args.path)
    except OperationCancelledError:
        console.print("[yellow]Cancelled[/yellow]")
        return 1
    finally:
        provider.close()

    body = Table.grid(padding=(0, 2))
    body.add_column(style="bold cyan")
    body.add_column()
    body.add_row("Title", escape(metadata.name))
    body.add_row("Date", metadata.premiere_date.isoformat() if metadata.premiere_date else "")
    body.add_row("Confidence", f"{metadata.confidence:.2f}")
    if metadata.community_rating is not None:
        body.add_row("Rating", f"{metadata.community_rating:.1f}/10")
    body.add_row("Tags", escape(", ".join(metadata.tags)))
    body.add_row("Provider ids", ", ".join(f"{key}={value}" for key, value in metadata.provider_ids.items()))
    style = "green" if metadata.has_metadata else "yellow"
    console.print(Panel(body, title=escape(args.label), border_style=style))
    console.print(metadata.overview, markup=False)
    return 0 if metadata.has_metadata else 1


def _run_test_connection(config: AppConfig, args: argparse.Namespace, console: Console) -> int:
    settings = config.settings
    if not settings.phishnet.api_key:
        console.print("[red]No Phish.net API key configured[/red] (set PHISHNET_API_KEY or settings.phishnet.api_key)")
        return 1
    with PhishNetClient(
        settings.phishnet.api_key,
        base_url=settings.phishnet.base_url,
        artist_slug=settings.artist.slug,
        artist_name=settings.artist.name,
        founding_year=settings.artist.founding_year,
        timeout=settings.phishnet.timeout,
        min_interval=settings.phishnet.min_interval,
    ) as client:
        connected = client.test_connection()
    if connected:
        console.print(f"[green]Connected[/green] to {settings.phishnet.base_url}")
        return 0
    console.print(f"[red]Could not reach[/red] {settings.phishnet.base_url}")
    return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="showbook", description="Identify concert recordings from their filenames.")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--config",
        type=Path,
        default=Path(os.environ["SHOWBOOK_CONFIG"]) if os.getenv("SHOWBOOK_CONFIG") else None,
        help="Path to showbook YAML config (defaults to built-in settings)",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    parse_cmd = subparsers.add_parser("parse", help="Parse a filename without contacting the catalog")
    parse_cmd.add_argument("label", help="Filename or item name to parse")
    parse_cmd.add_argument("--context", help="Enclosing folder used for venue and year hints")
    parse_cmd.set_defaults(handler=_run_parse)

    identify_cmd = subparsers.add_parser("identify", help="Build full metadata for a filename")
    identify_cmd.add_argument("label", help="Filename or item name to identify")
    identify_cmd.add_argument("--path", help="Full path of the media file")
    identify_cmd.add_argument("--offline", action="store_true", help="Skip the connection test and catalog lookups")
    identify_cmd.set_defaults(handler=_run_identify)

    connection_cmd = subparsers.add_parser("test-connection", help="Check that the Phish.net API is reachable")
    connection_cmd.set_defaults(handler=_run_test_connection)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entrypoint."""
    args = build_parser().parse_args(argv)
    _configure_logging(args.verbose)

    try:
        config = _load(args.config)
    except Exception as exc:  # noqa: BLE001
        LOGGER.exception("Failed to load config: %s", exc)
        return 1

    if args.command == "identify" and args.offline:
        config.settings.phishnet.api_key = None

    LOGGER.debug(
        render_section_block(
            "Showbook",
            [
                ("Command", [args.command]),
                ("Configuration", [str(args.config) if args.config else "(defaults)"]),
            ],
        )
    )
    return args.handler(config, args, Console())


if __name__ == "__main__":
    sys.exit(main())
