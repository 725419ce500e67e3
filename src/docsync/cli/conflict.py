"""Conflict detection and resolution commands for DocSync CLI.

Documents are read from JSON files; results are printed as JSON.
"""
import json
import sys
from pathlib import Path
from typing import Any, Dict, Optional, Tuple
import click

from ..config import load_settings
from ..conflict import ConflictStrategy, build_conflict, detect_conflicts, resolve_conflict
from .common import get_base_path, echo_json, echo_quiet, VERBOSITY_NORMAL


def _read_document(path: str, verbosity: int) -> Dict[str, Any]:
    try:
        data = json.loads(Path(path).read_text())
    except (OSError, json.JSONDecodeError) as e:
        echo_quiet(click.style(f"Error: Cannot read {path}: {e}", fg="red"), verbosity)
        sys.exit(1)
    if not isinstance(data, dict):
        echo_quiet(click.style(f"Error: {path} must contain a JSON object", fg="red"), verbosity)
        sys.exit(1)
    return data


@click.group()
def conflict_group():
    """Conflict detection and resolution commands."""
    pass


@conflict_group.command('detect')
@click.argument('local', type=click.Path(exists=True, dir_okay=False))
@click.argument('remote', type=click.Path(exists=True, dir_okay=False))
@click.option('--exclude', '-x', multiple=True, help='Field to ignore (repeatable)')
@click.pass_context
def conflict_detect(ctx, local: str, remote: str, exclude: Tuple[str, ...]) -> None:
    """List fields that differ between two JSON documents.

    Examples:
        docsync conflict detect local.json remote.json
        docsync conflict detect local.json remote.json -x updatedAt
    """
    verbosity = ctx.obj.get('verbosity', VERBOSITY_NORMAL)
    fields = detect_conflicts(
        _read_document(local, verbosity),
        _read_document(remote, verbosity),
        exclude_fields=exclude,
    )
    echo_json(fields)


@conflict_group.command('resolve')
@click.argument('document_type')
@click.argument('document_id')
@click.argument('local', type=click.Path(exists=True, dir_okay=False))
@click.argument('remote', type=click.Path(exists=True, dir_okay=False))
@click.option('--base', type=click.Path(exists=True, dir_okay=False), default=None,
              help='Common ancestor document (enables 3-way merge)')
@click.option('--strategy', type=click.Choice([s.value for s in ConflictStrategy]), default=None,
              help='Override the policy for this document type')
@click.option('--user-id', default='cli', help='User recorded on the conflict')
@click.pass_context
def conflict_resolve(ctx, document_type: str, document_id: str, local: str, remote: str,
                     base: Optional[str], strategy: Optional[str], user_id: str) -> None:
    """Resolve a conflict between two JSON documents.

    Uses the policy for DOCUMENT_TYPE, including overrides from config.yaml
    when the data directory is initialized. Exits with status 2 when the
    conflict needs a human decision.

    Examples:
        docsync conflict resolve quiz q1 local.json remote.json --base base.json
        docsync conflict resolve question q9 local.json remote.json --strategy manual
    """
    verbosity = ctx.obj.get('verbosity', VERBOSITY_NORMAL)

    base_path = get_base_path(ctx.obj.get('data_dir'))
    try:
        load_settings(base_path).apply_conflict_overrides()
    except ValueError as e:
        echo_quiet(click.style(f"Error: {e}", fg="red"), verbosity)
        sys.exit(1)

    conflict = build_conflict(
        document_type,
        document_id,
        _read_document(local, verbosity),
        _read_document(remote, verbosity),
        user_id=user_id,
        base_version=_read_document(base, verbosity) if base else None,
    )
    result = resolve_conflict(conflict, {"strategy": strategy} if strategy else None)

    output = result.to_dict()
    output["conflicting_fields"] = conflict.conflicting_fields
    echo_json(output)
    if not result.resolved:
        sys.exit(2)
