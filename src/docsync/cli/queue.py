"""Offline queue inspection commands for DocSync CLI.

These commands never run queued operations: actions are bound by the host
application, so the CLI opens the persisted queue with auto_process off.
"""
import sys
from dataclasses import replace
from typing import Optional
import click

from ..config import load_settings
from ..errors import QueueStorageError
from ..queue import OfflineQueue, OperationStatus, JsonFileQueueStorage
from .common import (
    get_base_path,
    require_initialized,
    run_async,
    echo_json,
    echo_normal,
    echo_quiet,
    echo_verbose,
    VERBOSITY_NORMAL,
)

STATUS_COLORS = {
    OperationStatus.PENDING: "yellow",
    OperationStatus.PROCESSING: "cyan",
    OperationStatus.COMPLETED: "green",
    OperationStatus.FAILED: "red",
}


def _queue_opener(ctx):
    """Validate the data directory.

    Returns:
        (coroutine factory opening the queue, its storage backend)
    """
    base_path = get_base_path(ctx.obj.get('data_dir'))
    verbosity = ctx.obj.get('verbosity', VERBOSITY_NORMAL)
    require_initialized(base_path, verbosity)

    try:
        settings = load_settings(base_path)
    except ValueError as e:
        echo_quiet(click.style(f"Error: {e}", fg="red"), verbosity)
        sys.exit(1)

    config = replace(settings.queue, auto_process=False)
    storage = JsonFileQueueStorage(base_path, config.storage_key)

    async def _open() -> OfflineQueue:
        return await OfflineQueue.open(config=config, storage=storage)

    return _open, storage


@click.group()
def queue_group():
    """Offline queue commands."""
    pass


@queue_group.command('status')
@click.option('--json-output', is_flag=True, help='Output as JSON')
@click.pass_context
def queue_status(ctx, json_output: bool) -> None:
    """Show queue counters.

    Examples:
        docsync queue status
        docsync queue status --json-output
    """
    verbosity = ctx.obj.get('verbosity', VERBOSITY_NORMAL)

    open_queue, _ = _queue_opener(ctx)

    async def _status():
        async with await open_queue() as queue:
            return queue.get_state(), queue.config

    state, config = run_async(_status())

    if json_output:
        echo_json(state.to_dict(include_operations=False))
        return

    echo_normal(click.style(f"Offline queue '{config.storage_key}'", fg="cyan", bold=True), verbosity)
    echo_quiet(f"  Total:      {state.total}/{config.max_queue_size}", verbosity)
    echo_quiet(f"  Pending:    {state.pending}", verbosity)
    echo_quiet(f"  Processing: {state.processing}", verbosity)
    echo_quiet(f"  Completed:  {state.completed}", verbosity)
    echo_quiet(f"  Failed:     {state.failed}", verbosity)
    if state.persistence_error:
        echo_quiet(click.style(f"  Storage:    {state.persistence_error}", fg="red"), verbosity)


@queue_group.command('list')
@click.option('--status', 'status_filter', type=click.Choice([s.value for s in OperationStatus]),
              default=None, help='Only show operations with this status')
@click.option('--json-output', is_flag=True, help='Output as JSON')
@click.pass_context
def queue_list(ctx, status_filter: Optional[str], json_output: bool) -> None:
    """List queued operations in FIFO order.

    Examples:
        docsync queue list
        docsync queue list --status failed --json-output
    """
    verbosity = ctx.obj.get('verbosity', VERBOSITY_NORMAL)

    open_queue, _ = _queue_opener(ctx)

    async def _list():
        async with await open_queue() as queue:
            return queue.operations

    operations = run_async(_list())
    if status_filter:
        operations = [op for op in operations if op.status.value == status_filter]

    if json_output:
        echo_json([op.to_dict() for op in operations])
        return

    if not operations:
        echo_normal(click.style("No queued operations.", fg="yellow"), verbosity)
        return

    for op in operations:
        status = click.style(op.status.value, fg=STATUS_COLORS[op.status])
        echo_quiet(
            f"{op.id}  {op.type.value:<6} {op.collection:<16} {status} "
            f"({op.attempts}/{op.max_retries} attempts)",
            verbosity,
        )
        if op.last_error:
            echo_normal(f"    last error: {op.last_error}", verbosity)
        echo_verbose(f"    created {op.created_at.isoformat()}, updated {op.updated_at.isoformat()}", verbosity)


@queue_group.command('remove')
@click.argument('operation_id')
@click.pass_context
def queue_remove(ctx, operation_id: str) -> None:
    """Remove a single operation by ID."""
    verbosity = ctx.obj.get('verbosity', VERBOSITY_NORMAL)

    open_queue, _ = _queue_opener(ctx)

    async def _remove():
        async with await open_queue() as queue:
            return await queue.remove_operation(operation_id)

    if not run_async(_remove()):
        echo_quiet(click.style(f"Error: Operation '{operation_id}' not found", fg="red"), verbosity)
        sys.exit(1)
    echo_normal(click.style(f"✓ Removed {operation_id}", fg="green"), verbosity)


@queue_group.command('clear')
@click.option('--completed', 'completed_only', is_flag=True, help='Only remove completed operations')
@click.option('--yes', is_flag=True, help='Do not ask for confirmation')
@click.pass_context
def queue_clear(ctx, completed_only: bool, yes: bool) -> None:
    """Remove all operations (or only completed ones).

    Examples:
        docsync queue clear --completed
        docsync queue clear --yes
    """
    verbosity = ctx.obj.get('verbosity', VERBOSITY_NORMAL)

    if not completed_only and not yes:
        click.confirm("Discard every queued operation, including unsent writes?", abort=True)

    open_queue, storage = _queue_opener(ctx)

    async def _clear():
        if completed_only:
            # Loading already drops completed operations, so count them first
            try:
                stored = await storage.load()
            except QueueStorageError:
                stored = []
            completed = sum(1 for op in stored if op.get("status") == OperationStatus.COMPLETED.value)
            async with await open_queue() as queue:
                await queue.clear_completed()
            return completed
        async with await open_queue() as queue:
            return await queue.clear_queue()

    removed = run_async(_clear())
    echo_normal(click.style(f"✓ Removed {removed} operations", fg="green"), verbosity)
