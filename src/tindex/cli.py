"""
tindex CLI thin entrypoint.

Command implementations are registered from `tindex.cli_commands.*`.
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

import click
import structlog

from tindex.config import load_config

# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def _configure_structlog() -> None:
    # Route structlog through stdlib logging; until handlers are installed the
    # stdlib root drops anything below WARNING.
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def _setup_logging(verbose: bool) -> None:
    env_level = os.environ.get("TINDEX_LOG_LEVEL", "").strip().lower()
    if verbose or env_level in {"debug", "trace"}:
        level = logging.DEBUG
    elif env_level in {"warning", "warn"}:
        level = logging.WARNING
    elif env_level == "error":
        level = logging.ERROR
    elif env_level == "critical":
        level = logging.CRITICAL
    else:
        level = logging.INFO
    # Logs go to stderr so stdout stays a clean list of paths / JSON.
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    log_path = os.environ.get("TINDEX_LOG_PATH", "").strip()
    if log_path:
        Path(log_path).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path))
    logging.basicConfig(format="%(message)s", level=level, handlers=handlers, force=True)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def main(ctx: click.Context, verbose: bool) -> None:
    """tindex: plan daily/monthly/yearly index (re)builds for day-partitioned datasets."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    _configure_structlog()
    # .env may carry TINDEX_LOG_LEVEL / TINDEX_LOG_PATH, so it is read before handlers exist.
    load_config()
    _setup_logging(verbose)


# Command groups live in `tindex.cli_commands.*` and are registered here.
from tindex.cli_commands.indexes import register as _register_indexes

_register_indexes(main)


if __name__ == "__main__":
    main()
