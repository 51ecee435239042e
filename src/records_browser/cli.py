"""CLI/bootstrap helpers for the records browser application."""

from __future__ import annotations

import argparse
import asyncio
import logging
import logging.handlers
import sys
from collections.abc import Callable, Sequence
from dataclasses import replace
from pathlib import Path
from typing import Any

import httpx
from platformdirs import user_config_dir

from records_browser.action_messages import build_actionable_error
from records_browser.config import load_config
from records_browser.models import (
    CONFIG_APP_NAME,
    MAX_PAGE_SIZE,
    ListQuery,
    UserConfig,
)
from records_browser.services.interfaces import (
    AppServices,
    bind_page_fetcher,
    build_default_app_services,
)
from records_browser.widgets.listing import discover_columns, format_cell, format_pagination_line
from records_browser.window import WindowedListController

logger = logging.getLogger(__name__)


def _parse_filter_args(values: Sequence[str] | None) -> dict[str, list[str]]:
    """Parse repeated ``KEY=VALUE`` flags into a multi-valued filter mapping."""
    filters: dict[str, list[str]] = {}
    for raw in values or ():
        key, sep, value = raw.partition("=")
        key = key.strip()
        if not sep or not key:
            raise ValueError(f"Invalid --filter {raw!r}; expected KEY=VALUE")
        filters.setdefault(key, []).append(value.strip())
    return filters


def apply_cli_overrides(args: argparse.Namespace, config: UserConfig) -> UserConfig:
    """Return a copy of config with one-run CLI overrides applied (never persisted)."""
    overrides: dict[str, Any] = {}
    if getattr(args, "api_base", None):
        overrides["api_base_url"] = args.api_base
    if getattr(args, "collection", None):
        overrides["collection"] = args.collection
    if getattr(args, "items_key", None):
        overrides["items_key"] = args.items_key
    if getattr(args, "token", None):
        overrides["api_token"] = args.token
    if getattr(args, "page_size", None) is not None:
        overrides["page_size"] = max(1, min(args.page_size, MAX_PAGE_SIZE))
    return replace(config, **overrides) if overrides else config


def build_initial_query(args: argparse.Namespace, config: UserConfig) -> ListQuery:
    """Combine restored session state and CLI flags into the first query."""
    page_size = config.page_size
    search = ""
    sort_column: str | None = None
    sort_direction = "asc"
    if not getattr(args, "no_restore", False):
        session = config.session
        page_size = session.page_size
        search = session.search
        sort_column = session.sort_column
        sort_direction = session.sort_direction

    if getattr(args, "page_size", None) is not None:
        page_size = max(1, min(args.page_size, MAX_PAGE_SIZE))
    if getattr(args, "search", None) is not None:
        search = args.search.strip()
    if getattr(args, "sort", None):
        sort_column = args.sort
        sort_direction = "desc" if getattr(args, "desc", False) else "asc"
    elif getattr(args, "desc", False) and sort_column:
        sort_direction = "desc"

    return ListQuery(
        page_size=page_size,
        search_text=search,
        sort_column=sort_column,
        sort_direction=sort_direction,
        server_sort=getattr(args, "server_sort", None) or "",
    ).with_filters(_parse_filter_args(getattr(args, "filter", None)))


async def _dump_window(
    config: UserConfig,
    query: ListQuery,
    services: AppServices,
) -> int:
    """Fetch the first window once and print it as tab-separated rows."""
    async with httpx.AsyncClient(timeout=config.request_timeout_seconds) as client:
        controller = WindowedListController(
            bind_page_fetcher(services, config, client),
            snapshot_cap=config.snapshot_cap,
            duration_columns=config.duration_columns,
            trust_server_total=config.trust_server_total,
        )
        await controller.set_query(query)
        state = controller.get_view()
        controller.close()

    if state.error:
        print(state.error, file=sys.stderr)
        return 1
    columns = discover_columns(state.items)
    if columns:
        print("\t".join(columns))
    for record in state.items:
        print("\t".join(format_cell(record.get(column)) for column in columns))
    print(format_pagination_line(state))
    return 0


def _configure_logging(debug: bool) -> None:
    """Configure logging. When debug=True, logs to file at DEBUG level."""
    if not debug:
        # Default: suppress all logging (TUI captures stderr)
        logging.disable(logging.CRITICAL)
        return

    log_dir = Path(user_config_dir(CONFIG_APP_NAME))
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "debug.log"

    handler = logging.handlers.RotatingFileHandler(
        log_file,
        maxBytes=5 * 1024 * 1024,
        backupCount=3,
        encoding="utf-8",
    )
    handler.setFormatter(
        logging.Formatter(
            "%(asctime)s %(name)s %(levelname)s %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    logging.root.addHandler(handler)
    logging.root.setLevel(logging.DEBUG)


def _validate_interactive_tty() -> bool:
    """Return True when stdin/stdout are interactive terminals."""
    return bool(sys.stdin.isatty() and sys.stdout.isatty())


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Browse a paginated REST record collection in a TUI"
    )
    parser.add_argument(
        "--api-base",
        type=str,
        default=None,
        help="Base URL of the records API (default: config value)",
    )
    parser.add_argument(
        "--collection",
        type=str,
        default=None,
        help="Collection path under the API base, e.g. org/call-logs",
    )
    parser.add_argument(
        "--items-key",
        type=str,
        default=None,
        help="Response key holding the record list (default: config value)",
    )
    parser.add_argument(
        "--token",
        type=str,
        default=None,
        help="Bearer token for the records API (not saved)",
    )
    parser.add_argument(
        "--page-size",
        type=int,
        default=None,
        help=f"Records per page (1-{MAX_PAGE_SIZE}; default: config value)",
    )
    parser.add_argument(
        "--search",
        type=str,
        default=None,
        help="Initial free-text search",
    )
    parser.add_argument(
        "--sort",
        type=str,
        default=None,
        help="Sort by this column on the client (loads a bounded snapshot)",
    )
    parser.add_argument(
        "--desc",
        action="store_true",
        help="Sort descending (with --sort)",
    )
    parser.add_argument(
        "--server-sort",
        type=str,
        default=None,
        help="Server-side ordering token sent as sort=<token>, e.g. newest",
    )
    parser.add_argument(
        "--filter",
        action="append",
        default=None,
        metavar="KEY=VALUE",
        help="Filter records; repeat for multiple values or keys",
    )
    parser.add_argument(
        "--no-restore",
        action="store_true",
        help="Start with a fresh session (ignore saved search, sort and page size)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging to file (~/.config/records-browser/debug.log)",
    )
    parser.add_argument(
        "--dump",
        action="store_true",
        help="Print the first page of records and exit (no TUI)",
    )
    return parser


def main(
    argv: list[str] | None = None,
    *,
    load_config_fn: Callable[[], UserConfig] = load_config,
    configure_logging_fn: Callable[[bool], None] = _configure_logging,
    validate_interactive_tty_fn: Callable[[], bool] = _validate_interactive_tty,
    services: AppServices | None = None,
    app_factory: Callable[..., Any] | None = None,
) -> int:
    """Main entry point. Returns exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.page_size is not None and not 1 <= args.page_size <= MAX_PAGE_SIZE:
        print(f"Error: --page-size must be between 1 and {MAX_PAGE_SIZE}", file=sys.stderr)
        return 1

    configure_logging_fn(args.debug)
    logger.debug("records-viewer starting, argv=%s", argv)

    config = apply_cli_overrides(args, load_config_fn())
    try:
        query = build_initial_query(args, config)
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    services = services or build_default_app_services()

    if args.dump:
        return asyncio.run(_dump_window(config, query, services))

    if not validate_interactive_tty_fn():
        print(
            build_actionable_error(
                "start records-viewer",
                why="the full UI requires an interactive terminal",
                next_step="run records-viewer in a terminal, or use --dump for plain output",
            ),
            file=sys.stderr,
        )
        return 2

    if app_factory is None:
        from records_browser.app import RecordsBrowser as _RecordsBrowser

        app_factory = _RecordsBrowser

    app = app_factory(
        config=config,
        initial_query=query,
        restore_session=not args.no_restore,
        services=services,
    )
    app.run()
    return 0


__all__ = [
    "_configure_logging",
    "_parse_filter_args",
    "_validate_interactive_tty",
    "apply_cli_overrides",
    "build_initial_query",
    "build_parser",
    "main",
]
