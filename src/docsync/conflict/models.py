"""
Data model for conflict resolution.

A DocumentConflict pairs the local draft of a document with the snapshot
currently on the server (plus, when known, their common ancestor). A
ConflictResolutionConfig says how a document type is reconciled, and a
ConflictResolutionResult says what happened.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Any, FrozenSet, Iterable, Mapping, Union


class ConflictStrategy(str, Enum):
    """
    Policies for reconciling a local draft with a remote snapshot

    - LAST_WRITE_WINS: the side with the newer timestamp is kept whole
    - FIRST_WRITE_WINS: the remote (already committed) version is always kept
    - AUTO_MERGE: field-level 3-way merge; collisions outside the allow-list
                  need a human
    - MANUAL: no computation, a human always chooses
    """
    LAST_WRITE_WINS = "last-write-wins"
    FIRST_WRITE_WINS = "first-write-wins"
    AUTO_MERGE = "auto-merge"
    MANUAL = "manual"

    @classmethod
    def from_string(cls, strategy: str) -> "ConflictStrategy":
        """
        Convert a string to a ConflictStrategy.

        Accepts either separator ('last-write-wins' or 'last_write_wins'),
        case-insensitive.

        Raises:
            ValueError: If strategy is not one of the four policies
        """
        if isinstance(strategy, cls):
            return strategy
        if not isinstance(strategy, str):
            raise ValueError(f"Conflict resolution strategy must be a string, got {strategy!r}")
        normalized = strategy.strip().lower().replace("_", "-")
        for member in cls:
            if member.value == normalized:
                return member
        raise ValueError(
            f"Invalid conflict resolution strategy '{strategy}'. "
            f"Must be one of: {', '.join(m.value for m in cls)}"
        )

    def __str__(self) -> str:
        return self.value


class DocumentType(str, Enum):
    """Document types with a registered resolution policy."""
    QUIZ = "quiz"
    QUIZ_TEMPLATE = "quizTemplate"
    LECTURE = "lecture"
    MATERIAL = "material"
    QUESTION = "question"
    USER_PROGRESS = "userProgress"

    @classmethod
    def from_string(cls, value: Union[str, "DocumentType"]) -> Optional["DocumentType"]:
        """
        Look up a document type tag.

        Returns:
            The matching DocumentType, or None for unregistered tags
        """
        if isinstance(value, cls):
            return value
        for member in cls:
            if member.value == value:
                return member
        return None

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class ConflictResolutionConfig:
    """
    How conflicts for one document type are reconciled.

    Attributes:
        strategy: Which policy runs
        auto_merge_fields: Fields that may be reconciled silently under
                           AUTO_MERGE when both sides changed them. Fields not
                           listed are never auto-merged.
        timestamp_field: Field holding the last-modified time
        version_field: Optional numeric revision field; under AUTO_MERGE the
                       merged document keeps the higher revision
    """
    strategy: ConflictStrategy
    auto_merge_fields: FrozenSet[str] = frozenset()
    timestamp_field: str = "updatedAt"
    version_field: Optional[str] = None

    def __post_init__(self):
        # Allow plain strings and lists from config files
        if not isinstance(self.strategy, ConflictStrategy):
            object.__setattr__(self, "strategy", ConflictStrategy.from_string(self.strategy))
        fields = self.auto_merge_fields
        if isinstance(fields, str):
            # A single field name, not a sequence of characters
            fields = [fields]
        if not isinstance(fields, frozenset):
            object.__setattr__(self, "auto_merge_fields", frozenset(fields))

    def merged_with(self, overrides: Mapping[str, Any]) -> "ConflictResolutionConfig":
        """
        Return a copy with some settings replaced.

        Accepts snake_case keys or the camelCase keys used by the client
        application ('autoMergeFields', 'timestampField', 'versionField').
        """
        aliases = {
            "autoMergeFields": "auto_merge_fields",
            "timestampField": "timestamp_field",
            "versionField": "version_field",
        }
        changes = {}
        for key, value in overrides.items():
            name = aliases.get(key, key)
            if name not in ("strategy", "auto_merge_fields", "timestamp_field", "version_field"):
                raise ValueError(f"Unknown conflict config setting: {key}")
            if value is not None:
                changes[name] = value
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "strategy": self.strategy.value,
            "auto_merge_fields": sorted(self.auto_merge_fields),
            "timestamp_field": self.timestamp_field,
            "version_field": self.version_field,
        }


@dataclass
class DocumentConflict:
    """
    A local draft and a remote snapshot of the same document that diverged.

    conflicting_fields is advisory: strategies recompute differences themselves.
    """
    document_type: Union[DocumentType, str]
    document_id: str
    local_version: Dict[str, Any]
    remote_version: Dict[str, Any]
    base_version: Optional[Dict[str, Any]] = None
    local_timestamp: Optional[datetime] = None
    remote_timestamp: Optional[datetime] = None
    conflicting_fields: List[str] = field(default_factory=list)
    user_id: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "document_type": str(self.document_type),
            "document_id": self.document_id,
            "local_version": self.local_version,
            "remote_version": self.remote_version,
            "base_version": self.base_version,
            "local_timestamp": self.local_timestamp.isoformat() if self.local_timestamp else None,
            "remote_timestamp": self.remote_timestamp.isoformat() if self.remote_timestamp else None,
            "conflicting_fields": list(self.conflicting_fields),
            "user_id": self.user_id,
        }


@dataclass
class ConflictResolutionResult:
    """
    Outcome of resolving a conflict.

    Invariant: an unresolved result has no merged_data and always requires
    user input. There is no outcome that silently drops either side.

    Attributes:
        resolved: Whether merged_data is ready to be written
        strategy: The policy that actually ran
        requires_user_input: True iff a human must choose
        merged_data: The document to persist (only when resolved)
        error: Exception raised while resolving, if any
        unresolved_fields: Fields that blocked an automatic merge
    """
    resolved: bool
    strategy: ConflictStrategy
    requires_user_input: bool
    merged_data: Optional[Dict[str, Any]] = None
    error: Optional[BaseException] = None
    unresolved_fields: List[str] = field(default_factory=list)

    def __post_init__(self):
        if self.resolved and self.merged_data is None:
            raise ValueError("A resolved result must carry merged_data")
        if not self.resolved and (self.merged_data is not None or not self.requires_user_input):
            raise ValueError("An unresolved result requires user input and has no merged_data")

    @classmethod
    def success(cls, merged_data: Dict[str, Any], strategy: ConflictStrategy) -> "ConflictResolutionResult":
        return cls(
            resolved=True,
            strategy=strategy,
            requires_user_input=False,
            merged_data=merged_data,
        )

    @classmethod
    def needs_input(
        cls,
        strategy: ConflictStrategy,
        unresolved_fields: Optional[Iterable[str]] = None,
        error: Optional[BaseException] = None,
    ) -> "ConflictResolutionResult":
        return cls(
            resolved=False,
            strategy=strategy,
            requires_user_input=True,
            error=error,
            unresolved_fields=list(unresolved_fields or []),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "resolved": self.resolved,
            "strategy": self.strategy.value,
            "requires_user_input": self.requires_user_input,
            "merged_data": self.merged_data,
            "error": str(self.error) if self.error else None,
            "unresolved_fields": list(self.unresolved_fields),
        }
