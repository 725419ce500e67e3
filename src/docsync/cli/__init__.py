"""DocSync CLI - offline-first sync core command line interface

Command groups are organized into separate modules:
- session.py: init
- config.py: config set, get, show
- queue.py: queue status, list, remove, clear
- conflict.py: conflict detect, resolve
- common.py: shared utilities
"""
from pathlib import Path
import logging
import click

from .. import __version__
from ..config import configure_logging
from .common import get_base_path, VERBOSITY_QUIET, VERBOSITY_NORMAL, VERBOSITY_VERBOSE
from .session import session_group
from .config import config_group
from .queue import queue_group
from .conflict import conflict_group


@click.group()
@click.version_option(version=__version__, prog_name="docsync")
@click.option('--data-dir', type=click.Path(), default=None, envvar='DOCSYNC_BASE_PATH',
              help='Base directory for DocSync data (default: ~/.docsync)')
@click.option('--verbose', '-v', is_flag=True, default=False,
              help='Enable verbose output and debug logging')
@click.option('--quiet', '-q', is_flag=True, default=False,
              help='Suppress non-essential output')
@click.pass_context
def cli(ctx, data_dir, verbose, quiet):
    """DocSync - offline-first document sync core

    \b
    Key Commands:
        init              Initialize the data directory
        queue             Inspect the persisted offline queue
        conflict          Detect and resolve document conflicts
        config            Configuration management

    \b
    Examples:
        docsync init
        docsync queue status
        docsync conflict resolve quiz q1 local.json remote.json --base base.json
    """
    ctx.ensure_object(dict)

    if verbose and quiet:
        raise click.UsageError("--verbose and --quiet are mutually exclusive")

    if quiet:
        ctx.obj['verbosity'] = VERBOSITY_QUIET
    elif verbose:
        ctx.obj['verbosity'] = VERBOSITY_VERBOSE
        configure_logging(logging.DEBUG)
    else:
        ctx.obj['verbosity'] = VERBOSITY_NORMAL

    ctx.obj['data_dir'] = Path(data_dir) if data_dir else None


cli.add_command(session_group.commands['init'])
cli.add_command(config_group, name='config')
cli.add_command(queue_group, name='queue')
cli.add_command(conflict_group, name='conflict')


def main():
    """Entry point for the CLI."""
    cli()


__all__ = [
    'cli',
    'main',
    'get_base_path',
]
