"""
Conflict orchestration - the public entry point for conflict resolution.

resolve_conflict() picks the effective policy (caller override or the
registry default for the document type), runs the matching strategy and
reports which policy ran. Unresolved outcomes are results, never exceptions.

Usage:
    conflict = build_conflict("quiz", "quiz-1", local, remote, user_id="u1", base=base)
    result = resolve_conflict(conflict)

    if result.resolved:
        await store.write(result.merged_data)
    else:
        # show a chooser, then:
        result = apply_manual_resolution(conflict, ManualChoice.LOCAL)
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Dict, Any, Mapping, Union
import logging

from ..errors import ConflictError
from ..event_bus import get_event_bus
from ..events import ConflictResolvedEvent, ConflictRequiresInputEvent
from .detector import detect_conflicts
from .models import (
    ConflictStrategy,
    ConflictResolutionConfig,
    ConflictResolutionResult,
    DocumentConflict,
    DocumentType,
)
from .registry import get_conflict_config
from .strategies import STRATEGY_HANDLERS, parse_timestamp

logger = logging.getLogger(__name__)


ConfigOverride = Union[ConflictResolutionConfig, Mapping[str, Any]]


class ManualChoice(str, Enum):
    """Decisions available in the manual-resolution chooser."""
    LOCAL = "local"
    REMOTE = "remote"
    MERGE = "merge"


def effective_config(
    document_type: Union[DocumentType, str],
    config_override: Optional[ConfigOverride] = None,
) -> ConflictResolutionConfig:
    """
    Combine the registry default for a type with a caller override.

    A full ConflictResolutionConfig replaces the default; a mapping is laid
    over it.
    """
    if isinstance(config_override, ConflictResolutionConfig):
        return config_override
    config = get_conflict_config(document_type)
    if config_override:
        config = config.merged_with(config_override)
    return config


def resolve_conflict(
    conflict: DocumentConflict,
    config_override: Optional[ConfigOverride] = None,
) -> ConflictResolutionResult:
    """
    Resolve a conflict with the policy for its document type.

    Args:
        conflict: The diverged local/remote pair
        config_override: Optional full or partial policy replacing the default

    Returns:
        ConflictResolutionResult stamped with the strategy that ran
    """
    try:
        config = effective_config(conflict.document_type, config_override)
    except (ValueError, TypeError) as e:
        logger.error(f"Invalid conflict config override for {conflict.document_id}: {e}")
        result = ConflictResolutionResult.needs_input(ConflictStrategy.MANUAL, error=e)
        _publish(conflict, result)
        return result

    handler = STRATEGY_HANDLERS[config.strategy]
    logger.debug(
        f"Resolving conflict for {conflict.document_type}/{conflict.document_id} "
        f"using {config.strategy.value}"
    )

    try:
        result = handler(
            conflict.local_version,
            conflict.remote_version,
            config,
            conflict.base_version,
        )
    except Exception as e:
        logger.error(
            f"Conflict resolution failed for {conflict.document_type}/{conflict.document_id}: {e}",
            exc_info=True,
        )
        result = ConflictResolutionResult.needs_input(config.strategy, error=e)

    result.strategy = config.strategy
    _publish(conflict, result)
    return result


def build_conflict(
    document_type: Union[DocumentType, str],
    document_id: str,
    local_version: Dict[str, Any],
    remote_version: Dict[str, Any],
    user_id: str,
    base_version: Optional[Dict[str, Any]] = None,
) -> DocumentConflict:
    """
    Assemble a DocumentConflict from raw documents.

    conflicting_fields is computed with the type's timestamp field excluded,
    and local/remote timestamps are read from that field (now, if absent).
    """
    timestamp_field = get_conflict_config(document_type).timestamp_field
    doc_type = DocumentType.from_string(document_type) or document_type

    return DocumentConflict(
        document_type=doc_type,
        document_id=document_id,
        local_version=local_version,
        remote_version=remote_version,
        base_version=base_version,
        local_timestamp=_as_datetime(local_version.get(timestamp_field)),
        remote_timestamp=_as_datetime(remote_version.get(timestamp_field)),
        conflicting_fields=detect_conflicts(
            local_version, remote_version, exclude_fields=[timestamp_field]
        ),
        user_id=user_id,
    )


def check_version_conflict(
    document_type: Union[DocumentType, str],
    document_id: str,
    expected_version: Optional[int],
    current_version: Optional[int],
    user_id: str,
) -> None:
    """
    Check that a document is still at the revision the caller last read.

    Args:
        expected_version: Revision the local draft was based on; None skips the check
        current_version: Revision currently stored remotely

    Raises:
        ConflictError: If the remote revision moved on. context carries
            documentType, documentId, expectedVersion, currentVersion, userId
    """
    if expected_version is None or current_version == expected_version:
        return

    logger.info(
        f"Version conflict on {document_type}/{document_id}: "
        f"expected {expected_version}, found {current_version}"
    )
    raise ConflictError(
        "Document has been modified by another user",
        context={
            "documentType": str(document_type),
            "documentId": document_id,
            "expectedVersion": expected_version,
            "currentVersion": current_version,
            "userId": user_id,
        },
    )


def apply_manual_resolution(
    conflict: DocumentConflict,
    choice: Union[ManualChoice, str],
    merged_data: Optional[Dict[str, Any]] = None,
) -> ConflictResolutionResult:
    """
    Turn a human decision into a resolved result.

    Args:
        conflict: The conflict shown to the user
        choice: 'local' keeps the draft, 'remote' keeps the server copy,
                'merge' uses merged_data as given (not re-validated)
        merged_data: Required for 'merge'

    Raises:
        ValueError: For an unknown choice, or 'merge' without merged_data
    """
    choice = ManualChoice(choice)

    if choice is ManualChoice.LOCAL:
        data = conflict.local_version
    elif choice is ManualChoice.REMOTE:
        data = conflict.remote_version
    else:
        if merged_data is None:
            raise ValueError("merged_data is required for a 'merge' resolution")
        data = merged_data

    logger.info(
        f"Manual resolution for {conflict.document_type}/{conflict.document_id}: {choice.value}"
    )
    result = ConflictResolutionResult.success(data, ConflictStrategy.MANUAL)
    _publish(conflict, result)
    return result


def merge_field_choices(
    conflict: DocumentConflict,
    choices: Mapping[str, Union[ManualChoice, str]],
) -> Dict[str, Any]:
    """
    Build a hand-picked merge from per-field choices.

    Starts from the remote version; each field named in choices is taken from
    the chosen side (a field missing on that side is dropped). Fields not
    named keep the remote value, except local-only additions, which are kept.

    Returns:
        The merged document, ready for apply_manual_resolution(..., 'merge', merged)
    """
    local = conflict.local_version
    remote = conflict.remote_version
    merged = dict(remote)

    for key, value in local.items():
        if key not in remote and key not in choices:
            merged[key] = value

    for key, side in choices.items():
        side = ManualChoice(side)
        if side is ManualChoice.MERGE:
            raise ValueError(f"Field '{key}': per-field choice must be 'local' or 'remote'")
        source = local if side is ManualChoice.LOCAL else remote
        if key in source:
            merged[key] = source[key]
        else:
            merged.pop(key, None)

    return merged


def _as_datetime(value: Any) -> datetime:
    seconds = parse_timestamp(value)
    if seconds is not None:
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            logger.debug(f"Timestamp out of range: {value!r}")
    return datetime.now(timezone.utc)


def _publish(conflict: DocumentConflict, result: ConflictResolutionResult) -> None:
    if result.resolved:
        event = ConflictResolvedEvent(
            document_type=str(conflict.document_type),
            document_id=conflict.document_id,
            strategy=result.strategy.value,
            conflicting_fields=list(conflict.conflicting_fields),
        )
    else:
        event = ConflictRequiresInputEvent(
            document_type=str(conflict.document_type),
            document_id=conflict.document_id,
            strategy=result.strategy.value,
            user_id=conflict.user_id,
            unresolved_fields=list(result.unresolved_fields),
            error=str(result.error) if result.error else None,
        )
    get_event_bus().publish(event)
