"""Configuration management commands for DocSync CLI."""
import sys
import click
import yaml

from ..config import load_settings
from .common import get_base_path, require_initialized, echo_quiet, echo_normal, echo_json


def _parse_value(value: str):
    """Interpret a command-line value as YAML ('3' -> 3, 'true' -> True, '[a, b]' -> list)."""
    try:
        return yaml.safe_load(value)
    except yaml.YAMLError:
        return value


@click.group()
def config_group():
    """Configuration management commands."""
    pass


@config_group.command('set')
@click.argument('key')
@click.argument('value')
@click.pass_context
def config_set(ctx, key: str, value: str) -> None:
    """Set a configuration value.

    The updated file must still load; otherwise nothing is written.

    Examples:
        docsync config set queue.max_retries 3
        docsync config set conflicts.question.strategy first-write-wins
        docsync config set logging.level DEBUG
    """
    base_path = get_base_path(ctx.obj.get('data_dir'))
    verbosity = ctx.obj.get('verbosity', 1)
    config_path = require_initialized(base_path, verbosity)

    try:
        config_data = yaml.safe_load(config_path.read_text()) or {}
    except yaml.YAMLError as e:
        echo_quiet(click.style(f"Error: Invalid config file: {e}", fg="red"), verbosity)
        sys.exit(1)

    # Parse nested keys (e.g., 'queue.max_retries')
    keys = key.split('.')
    current = config_data
    for k in keys[:-1]:
        if not isinstance(current.get(k), dict):
            current[k] = {}
        current = current[k]
    current[keys[-1]] = _parse_value(value)

    previous = config_path.read_text()
    config_path.write_text(yaml.dump(config_data, default_flow_style=False, sort_keys=False))
    try:
        load_settings(base_path)
    except ValueError as e:
        config_path.write_text(previous)
        echo_quiet(click.style(f"Error: Invalid value for {key}: {e}", fg="red"), verbosity)
        sys.exit(1)

    echo_normal(click.style(f"✓ Set {key} = {current[keys[-1]]}", fg="green"), verbosity)


@config_group.command('get')
@click.argument('key')
@click.pass_context
def config_get(ctx, key: str) -> None:
    """Get a configuration value.

    Examples:
        docsync config get queue.max_queue_size
    """
    base_path = get_base_path(ctx.obj.get('data_dir'))
    verbosity = ctx.obj.get('verbosity', 1)
    config_path = require_initialized(base_path, verbosity)

    config_data = yaml.safe_load(config_path.read_text()) or {}

    current = config_data
    for k in key.split('.'):
        if not isinstance(current, dict) or k not in current:
            echo_quiet(click.style(f"Key '{key}' not found", fg="yellow"), verbosity)
            sys.exit(1)
        current = current[k]

    echo_quiet(current if not isinstance(current, (dict, list)) else yaml.dump(current), verbosity)


@config_group.command('show')
@click.option('--effective', is_flag=True, help='Show resolved settings (defaults applied) as JSON')
@click.pass_context
def config_show(ctx, effective: bool) -> None:
    """Display full configuration."""
    base_path = get_base_path(ctx.obj.get('data_dir'))
    verbosity = ctx.obj.get('verbosity', 1)
    config_path = require_initialized(base_path, verbosity)

    if effective:
        try:
            echo_json(load_settings(base_path).to_dict())
        except ValueError as e:
            echo_quiet(click.style(f"Error: {e}", fg="red"), verbosity)
            sys.exit(1)
        return

    echo_normal(click.style("Current configuration:", fg="cyan", bold=True), verbosity)
    echo_quiet(config_path.read_text(), verbosity)
