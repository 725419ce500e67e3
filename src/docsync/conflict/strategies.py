"""
Resolution strategies.

Every strategy takes (local, remote, config, base_version) and returns a
ConflictResolutionResult. Application code should go through
docsync.conflict.resolver.resolve_conflict rather than calling these directly.

Timestamp comparison (used by last-write-wins and by the per-field tie-break
inside auto-merge):
1. Parse both timestamps (datetime, ISO string, epoch number, Firestore map)
2. If either is missing or unparsable, local wins
3. Local wins only when strictly newer; otherwise remote wins
"""

from datetime import datetime, date, timezone
from typing import Optional, List, Dict, Any, Mapping
import logging

from .detector import deep_equal
from .models import ConflictStrategy, ConflictResolutionConfig, ConflictResolutionResult

logger = logging.getLogger(__name__)

# Epoch numbers above this are taken to be milliseconds
_EPOCH_MILLIS_THRESHOLD = 1e11

_MISSING = object()


def parse_timestamp(value: Any) -> Optional[float]:
    """
    Convert a last-modified value to epoch seconds.

    Args:
        value: datetime/date, ISO-8601 string (trailing 'Z' allowed), epoch
               seconds or milliseconds, a Firestore-style
               {"seconds": ..., "nanoseconds": ...} map, or an object with
               to_datetime()

    Returns:
        Epoch seconds, or None if the value is missing or unparsable
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        # Naive datetimes are read as UTC, like naive ISO strings below
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.timestamp()
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc).timestamp()

    if isinstance(value, (int, float)):
        if value != value:  # NaN
            return None
        return value / 1000.0 if abs(value) > _EPOCH_MILLIS_THRESHOLD else float(value)

    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed.timestamp()

    if isinstance(value, Mapping):
        seconds = value.get("seconds", value.get("_seconds"))
        if isinstance(seconds, (int, float)) and not isinstance(seconds, bool):
            nanos = value.get("nanoseconds", value.get("_nanoseconds", 0)) or 0
            return float(seconds) + float(nanos) / 1e9
        return None

    to_datetime = getattr(value, "to_datetime", None)
    if callable(to_datetime):
        try:
            return parse_timestamp(to_datetime())
        except Exception as e:
            logger.debug(f"Unparsable timestamp object {type(value).__name__}: {e}")
            return None

    return None


def local_is_newer(
    local: Mapping[str, Any],
    remote: Mapping[str, Any],
    timestamp_field: str,
) -> bool:
    """
    Decide whether the local side wins a timestamp comparison.

    Missing or unparsable timestamps favour local; equal timestamps favour remote.
    """
    local_time = parse_timestamp(local.get(timestamp_field))
    remote_time = parse_timestamp(remote.get(timestamp_field))

    if local_time is None or remote_time is None:
        return True
    return local_time > remote_time


def resolve_first_write_wins(
    local: Dict[str, Any],
    remote: Dict[str, Any],
    config: ConflictResolutionConfig,
    base_version: Optional[Dict[str, Any]] = None,
) -> ConflictResolutionResult:
    """Keep the remote (already committed) version, whatever local says."""
    return ConflictResolutionResult.success(remote, ConflictStrategy.FIRST_WRITE_WINS)


def resolve_last_write_wins(
    local: Dict[str, Any],
    remote: Dict[str, Any],
    config: ConflictResolutionConfig,
    base_version: Optional[Dict[str, Any]] = None,
) -> ConflictResolutionResult:
    """Keep whichever side was modified last, whole (not merged)."""
    winner = local if local_is_newer(local, remote, config.timestamp_field) else remote
    logger.debug(
        f"Last-write-wins on '{config.timestamp_field}': "
        f"{'local' if winner is local else 'remote'} kept"
    )
    return ConflictResolutionResult.success(winner, ConflictStrategy.LAST_WRITE_WINS)


def resolve_manual(
    local: Dict[str, Any],
    remote: Dict[str, Any],
    config: ConflictResolutionConfig,
    base_version: Optional[Dict[str, Any]] = None,
) -> ConflictResolutionResult:
    """Hand the decision to a human. Performs no computation."""
    return ConflictResolutionResult.needs_input(ConflictStrategy.MANUAL)


def auto_merge(
    local: Dict[str, Any],
    remote: Dict[str, Any],
    config: ConflictResolutionConfig,
    base_version: Optional[Dict[str, Any]] = None,
) -> ConflictResolutionResult:
    """
    Field-level merge of local and remote.

    With a base version (3-way): a field changed by only one side takes that
    side's value, including removal. Without one (2-way) a field is "changed"
    wherever the two sides differ, and a field present on one side only is
    an addition.

    When both sides changed a field to different values:
    - fields in config.auto_merge_fields are settled per field by timestamp
    - any other field blocks the whole merge (resolved=False)

    The timestamp field never blocks a merge; the merged document carries the
    newer side's timestamp. The version field, if configured, carries the
    higher revision.
    """
    ts_field = config.timestamp_field
    version_field = config.version_field
    metadata_fields = {ts_field} | ({version_field} if version_field else set())

    local_newer = local_is_newer(local, remote, ts_field)
    merged: Dict[str, Any] = {}
    blocked: List[str] = []
    auto_resolved: List[str] = []

    keys = list(local) + [key for key in remote if key not in local]
    if base_version is not None:
        keys += [key for key in base_version if key not in local and key not in remote]

    for key in keys:
        if key in metadata_fields:
            continue

        local_value = local.get(key, _MISSING)
        remote_value = remote.get(key, _MISSING)

        if base_version is not None:
            base_value = base_version.get(key, _MISSING)
            local_changed = not _values_equal(local_value, base_value)
            remote_changed = not _values_equal(remote_value, base_value)
        else:
            # Without an ancestor, any difference counts as a change on both sides
            differs = (
                local_value is not _MISSING
                and remote_value is not _MISSING
                and not deep_equal(local_value, remote_value)
            )
            local_changed = remote_changed = differs
            if not differs:
                value = local_value if local_value is not _MISSING else remote_value
                _put(merged, key, value)
                continue

        if local_changed and remote_changed and not _values_equal(local_value, remote_value):
            if key in config.auto_merge_fields:
                _put(merged, key, local_value if local_newer else remote_value)
                auto_resolved.append(key)
            else:
                blocked.append(key)
        elif local_changed:
            _put(merged, key, local_value)
        else:
            _put(merged, key, remote_value)

    if blocked:
        logger.info(f"Auto-merge blocked by non-mergeable fields: {blocked}")
        return ConflictResolutionResult.needs_input(ConflictStrategy.AUTO_MERGE, blocked)

    _merge_timestamp(merged, local, remote, ts_field, local_newer)
    if version_field:
        _merge_version(merged, local, remote, version_field)

    if auto_resolved:
        logger.debug(f"Auto-merge settled fields by timestamp: {auto_resolved}")
    return ConflictResolutionResult.success(merged, ConflictStrategy.AUTO_MERGE)


def _values_equal(a: Any, b: Any) -> bool:
    if a is _MISSING or b is _MISSING:
        return a is b
    return deep_equal(a, b)


def _put(merged: Dict[str, Any], key: str, value: Any) -> None:
    if value is not _MISSING:
        merged[key] = value


def _merge_timestamp(
    merged: Dict[str, Any],
    local: Mapping[str, Any],
    remote: Mapping[str, Any],
    ts_field: str,
    local_newer: bool,
) -> None:
    preferred, other = (local, remote) if local_newer else (remote, local)
    if ts_field in preferred:
        merged[ts_field] = preferred[ts_field]
    elif ts_field in other:
        merged[ts_field] = other[ts_field]


def _merge_version(
    merged: Dict[str, Any],
    local: Mapping[str, Any],
    remote: Mapping[str, Any],
    version_field: str,
) -> None:
    candidates = [
        doc[version_field] for doc in (local, remote)
        if isinstance(doc.get(version_field), (int, float))
        and not isinstance(doc.get(version_field), bool)
    ]
    if candidates:
        merged[version_field] = max(candidates)
    elif version_field in remote:
        merged[version_field] = remote[version_field]
    elif version_field in local:
        merged[version_field] = local[version_field]


STRATEGY_HANDLERS = {
    ConflictStrategy.FIRST_WRITE_WINS: resolve_first_write_wins,
    ConflictStrategy.LAST_WRITE_WINS: resolve_last_write_wins,
    ConflictStrategy.AUTO_MERGE: auto_merge,
    ConflictStrategy.MANUAL: resolve_manual,
}
