"""Initialization command for DocSync CLI."""
import click

from ..config import CONFIG_FILENAME, DEFAULT_CONFIG_TEMPLATE
from .common import get_base_path, echo_normal, VERBOSITY_NORMAL


@click.group()
def session_group():
    """Setup commands."""
    pass


@session_group.command("init")
@click.pass_context
def init(ctx) -> None:
    """Initialize the DocSync data directory.

    Creates the data directory and a config.yaml with default settings.
    An existing config.yaml is left untouched.
    """
    base_path = get_base_path(ctx.obj.get('data_dir'))
    verbosity = ctx.obj.get('verbosity', VERBOSITY_NORMAL)

    echo_normal(click.style("Initializing DocSync...", fg="cyan", bold=True), verbosity)

    base_path.mkdir(parents=True, exist_ok=True)
    echo_normal(f" ✓ Created directory: {base_path}", verbosity)

    config_path = base_path / CONFIG_FILENAME
    if not config_path.exists():
        config_path.write_text(DEFAULT_CONFIG_TEMPLATE)
        echo_normal(f" ✓ Created config: {config_path}", verbosity)
    else:
        echo_normal(f" ⚠ Config exists: {config_path}", verbosity)
