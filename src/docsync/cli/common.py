"""Shared utilities for DocSync CLI commands."""
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Optional

import click

from ..config import CONFIG_FILENAME, get_base_path as _resolve_base_path

# Verbosity levels
VERBOSITY_QUIET = 0
VERBOSITY_NORMAL = 1
VERBOSITY_VERBOSE = 2


def get_base_path(ctx_data_dir: Optional[Path] = None) -> Path:
    """Get the base path for DocSync data.

    Priority: --data-dir flag > DOCSYNC_BASE_PATH env var > ~/.docsync.
    """
    return _resolve_base_path(ctx_data_dir)


def require_initialized(base_path: Path, verbosity: int) -> Path:
    """Exit with an error unless `docsync init` has been run for base_path.

    Returns:
        Path to config.yaml
    """
    config_path = base_path / CONFIG_FILENAME
    if not config_path.exists():
        echo_quiet(click.style("Error: DocSync not initialized. Run 'docsync init' first.", fg="red"), verbosity)
        sys.exit(1)
    return config_path


def run_async(coro) -> Any:
    """Run a coroutine to completion from a synchronous click command."""
    return asyncio.run(coro)


def echo_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2, default=str))


def should_print(verbosity: int, message_level: int) -> bool:
    return verbosity >= message_level


def echo_verbose(message: str, verbosity: int) -> None:
    """Print a message only in verbose mode."""
    if should_print(verbosity, VERBOSITY_VERBOSE):
        click.echo(message, err=False)


def echo_normal(message: str, verbosity: int) -> None:
    """Print a message in normal and verbose modes."""
    if should_print(verbosity, VERBOSITY_NORMAL):
        click.echo(message, err=False)


def echo_quiet(message: str, verbosity: int) -> None:
    """Print a message that is shown even in quiet mode."""
    click.echo(message, err=False)
