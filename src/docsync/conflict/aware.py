"""
Conflict-aware document writes.

ConflictAwareWriter wraps a pair of async callables (fetch the remote
snapshot, write a document) and runs the save flow:

1. Fetch the remote snapshot
2. No remote, remote unchanged since the base version, or remote still at
   the expected revision -> write local as is
3. Otherwise resolve the conflict; write merged_data if resolved
4. If not resolved, return the DocumentConflict so the caller can collect a
   decision and call save_resolution()

Usage:
    writer = ConflictAwareWriter(fetch_remote=store.get_document, write=store.put_document)
    outcome = await writer.save("quiz", quiz_id, draft, user_id, base=last_synced)
    if outcome.requires_user_input:
        choice = await ask_user(outcome.conflict)
        await writer.save_resolution(outcome.conflict, apply_manual_resolution(outcome.conflict, choice))
"""

from dataclasses import dataclass
from typing import Optional, Dict, Any, Callable, Awaitable, Union
import logging

from ..errors import ConflictError
from .detector import deep_equal
from .models import ConflictResolutionResult, DocumentConflict, DocumentType
from .registry import get_conflict_config
from .resolver import (
    ConfigOverride,
    build_conflict,
    check_version_conflict,
    effective_config,
    resolve_conflict,
)

logger = logging.getLogger(__name__)


FetchRemote = Callable[[str, str], Awaitable[Optional[Dict[str, Any]]]]
WriteDocument = Callable[[str, str, Dict[str, Any]], Awaitable[Any]]

DEFAULT_VERSION_FIELD = "version"


@dataclass
class SaveResult:
    """
    Outcome of ConflictAwareWriter.save().

    Attributes:
        success: The document was written
        data: What was written
        conflict: The unresolved conflict, when requires_user_input
        requires_user_input: A human decision is needed before writing
        resolution: The resolution result, when a conflict was resolved
    """
    success: bool
    data: Optional[Dict[str, Any]] = None
    conflict: Optional[DocumentConflict] = None
    requires_user_input: bool = False
    resolution: Optional[ConflictResolutionResult] = None


class ConflictAwareWriter:
    """Runs fetch / resolve / write for documents that may have diverged."""

    def __init__(self, fetch_remote: FetchRemote, write: WriteDocument):
        """
        Args:
            fetch_remote: async (document_type, document_id) -> remote dict or None
            write: async (document_type, document_id, data) -> anything
        """
        self._fetch_remote = fetch_remote
        self._write = write

    async def save(
        self,
        document_type: Union[DocumentType, str],
        document_id: str,
        local: Dict[str, Any],
        user_id: str,
        base: Optional[Dict[str, Any]] = None,
        config_override: Optional[ConfigOverride] = None,
        expected_version: Optional[int] = None,
    ) -> SaveResult:
        """
        Save a local draft, reconciling with the remote copy if needed.

        Args:
            expected_version: Revision the draft was based on. When the remote
                document still carries it the draft is written as is; when
                the remote moved on the conflict is resolved as usual and an
                unresolved result carries the ConflictError.

        Errors from fetch_remote/write propagate (the queue or the caller
        decides whether they are offline errors).
        """
        doc_type = str(document_type)
        remote = await self._fetch_remote(doc_type, document_id)

        version_error: Optional[ConflictError] = None
        unchanged = base is not None and remote is not None and deep_equal(remote, base)
        if remote is not None and expected_version is not None:
            current = remote.get(_version_field(document_type, config_override))
            try:
                check_version_conflict(document_type, document_id, expected_version, current, user_id)
                unchanged = True
            except ConflictError as e:
                version_error = e
                unchanged = False

        if remote is None or unchanged:
            await self._write(doc_type, document_id, local)
            logger.debug(f"Saved {doc_type}/{document_id} without conflict")
            return SaveResult(success=True, data=local)

        conflict = build_conflict(document_type, document_id, local, remote, user_id, base)
        result = resolve_conflict(conflict, config_override)

        if not result.resolved:
            if result.error is None:
                result.error = version_error
            logger.info(
                f"Save of {doc_type}/{document_id} needs user input "
                f"({result.strategy.value}, fields={result.unresolved_fields})"
            )
            return SaveResult(
                success=False,
                conflict=conflict,
                requires_user_input=True,
                resolution=result,
            )

        await self._write(doc_type, document_id, result.merged_data)
        logger.info(f"Saved {doc_type}/{document_id} after {result.strategy.value} resolution")
        return SaveResult(success=True, data=result.merged_data, resolution=result)

    async def save_resolution(
        self,
        conflict: DocumentConflict,
        result: ConflictResolutionResult,
    ) -> SaveResult:
        """
        Persist the outcome of a manual decision.

        Raises:
            ConflictError: If result is still unresolved
        """
        if not result.resolved:
            raise ConflictError(
                "Cannot save an unresolved conflict",
                context={
                    "documentType": str(conflict.document_type),
                    "documentId": conflict.document_id,
                    "userId": conflict.user_id,
                },
            )

        await self._write(str(conflict.document_type), conflict.document_id, result.merged_data)
        return SaveResult(success=True, data=result.merged_data, resolution=result)


def _version_field(
    document_type: Union[DocumentType, str],
    config_override: Optional[ConfigOverride],
) -> str:
    try:
        config = effective_config(document_type, config_override)
    except (ValueError, TypeError):
        config = get_conflict_config(document_type)
    return config.version_field or DEFAULT_VERSION_FIELD
