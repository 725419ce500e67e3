"""
Conflict Resolution Engine

Detects divergence between a local draft and the remote copy of a document
and reconciles them according to per-document-type policy.

Key Components:
    - detect_conflicts: structural field diff
    - ConflictStrategy: last-write-wins, first-write-wins, auto-merge, manual
    - get_conflict_config: per-document-type policy registry
    - resolve_conflict: the single entry point for application code
    - ConflictAwareWriter: fetch / resolve / write flow for document saves
"""

from .models import (
    ConflictStrategy,
    DocumentType,
    DocumentConflict,
    ConflictResolutionConfig,
    ConflictResolutionResult,
)
from .detector import detect_conflicts, deep_equal
from .registry import (
    DEFAULT_CONFIGS,
    FALLBACK_CONFIG,
    get_conflict_config,
    register_conflict_config,
    load_conflict_configs,
    reset_conflict_configs,
)
from .resolver import (
    ManualChoice,
    resolve_conflict,
    build_conflict,
    check_version_conflict,
    apply_manual_resolution,
    merge_field_choices,
)
from .aware import ConflictAwareWriter, SaveResult

__all__ = [
    "ConflictStrategy",
    "DocumentType",
    "DocumentConflict",
    "ConflictResolutionConfig",
    "ConflictResolutionResult",
    "detect_conflicts",
    "deep_equal",
    "DEFAULT_CONFIGS",
    "FALLBACK_CONFIG",
    "get_conflict_config",
    "register_conflict_config",
    "load_conflict_configs",
    "reset_conflict_configs",
    "ManualChoice",
    "resolve_conflict",
    "build_conflict",
    "check_version_conflict",
    "apply_manual_resolution",
    "merge_field_choices",
    "ConflictAwareWriter",
    "SaveResult",
]
