"""
Per-document-type conflict resolution defaults.

Pure lookup: no I/O. Registered overrides (from config.yaml's 'conflicts'
section) take precedence over the built-in defaults; unregistered document
types fall back to last-write-wins on 'updatedAt'.
"""

from typing import Dict, Any, Mapping, Union
import logging

from .models import ConflictStrategy, ConflictResolutionConfig, DocumentType

logger = logging.getLogger(__name__)


DEFAULT_CONFIGS: Dict[DocumentType, ConflictResolutionConfig] = {
    DocumentType.QUIZ: ConflictResolutionConfig(
        strategy=ConflictStrategy.AUTO_MERGE,
        auto_merge_fields=frozenset({"title", "description", "tags", "timeLimit"}),
        timestamp_field="updatedAt",
        version_field="version",
    ),
    DocumentType.QUIZ_TEMPLATE: ConflictResolutionConfig(
        strategy=ConflictStrategy.AUTO_MERGE,
        auto_merge_fields=frozenset({"title", "description", "tags"}),
        timestamp_field="updatedAt",
        version_field="version",
    ),
    DocumentType.QUESTION: ConflictResolutionConfig(
        strategy=ConflictStrategy.LAST_WRITE_WINS,
        timestamp_field="updatedAt",
    ),
    DocumentType.USER_PROGRESS: ConflictResolutionConfig(
        strategy=ConflictStrategy.AUTO_MERGE,
        auto_merge_fields=frozenset({"questionsAnswered", "correctAnswers", "streak"}),
        timestamp_field="lastUpdated",
    ),
    DocumentType.LECTURE: ConflictResolutionConfig(
        strategy=ConflictStrategy.AUTO_MERGE,
        auto_merge_fields=frozenset({"title", "tags", "difficulty"}),
        timestamp_field="updatedAt",
    ),
    DocumentType.MATERIAL: ConflictResolutionConfig(
        strategy=ConflictStrategy.AUTO_MERGE,
        auto_merge_fields=frozenset({"title", "description", "tags"}),
        timestamp_field="updatedAt",
    ),
}

FALLBACK_CONFIG = ConflictResolutionConfig(
    strategy=ConflictStrategy.LAST_WRITE_WINS,
    timestamp_field="updatedAt",
)

_overrides: Dict[DocumentType, ConflictResolutionConfig] = {}


def get_conflict_config(document_type: Union[DocumentType, str]) -> ConflictResolutionConfig:
    """
    Get the resolution policy for a document type.

    Args:
        document_type: DocumentType or its string tag

    Returns:
        Registered override, built-in default, or FALLBACK_CONFIG for
        unregistered types
    """
    doc_type = DocumentType.from_string(document_type)
    if doc_type is None:
        logger.debug(f"No conflict policy for document type '{document_type}', using fallback")
        return FALLBACK_CONFIG

    if doc_type in _overrides:
        return _overrides[doc_type]
    return DEFAULT_CONFIGS[doc_type]


def register_conflict_config(
    document_type: Union[DocumentType, str],
    config: Union[ConflictResolutionConfig, Mapping[str, Any]],
) -> ConflictResolutionConfig:
    """
    Override the policy for a document type.

    A mapping is applied on top of the current policy, so a config file can
    change only the strategy and keep the default merge fields.

    Raises:
        ValueError: If document_type is not a known DocumentType
    """
    doc_type = DocumentType.from_string(document_type)
    if doc_type is None:
        raise ValueError(
            f"Unknown document type '{document_type}'. "
            f"Must be one of: {', '.join(t.value for t in DocumentType)}"
        )

    if not isinstance(config, ConflictResolutionConfig):
        config = get_conflict_config(doc_type).merged_with(config)

    _overrides[doc_type] = config
    logger.info(f"Conflict policy for '{doc_type.value}' set to {config.strategy.value}")
    return config


def load_conflict_configs(section: Mapping[str, Mapping[str, Any]]) -> Dict[str, ConflictResolutionConfig]:
    """
    Register overrides from a config file section.

    Example config.yaml:
        conflicts:
          question:
            strategy: first-write-wins
          quiz:
            auto_merge_fields: [title, description]

    Returns:
        The effective config for each registered type
    """
    loaded = {}
    for document_type, settings in (section or {}).items():
        loaded[document_type] = register_conflict_config(document_type, settings or {})
    return loaded


def reset_conflict_configs() -> None:
    """Drop all registered overrides (mainly for testing)."""
    _overrides.clear()
