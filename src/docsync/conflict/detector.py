"""
Structural conflict detection between two document snapshots.

A field conflicts when both sides define it (None counts as defined) and the
values are not deeply equal. A field present on only one side is an addition,
not a conflict.
"""

from datetime import datetime, date
from typing import Any, Iterable, List, Mapping, Optional, Set, Tuple
import logging

logger = logging.getLogger(__name__)


def deep_equal(a: Any, b: Any) -> bool:
    """
    Structural equality for document values.

    - Mappings: same keys, deeply equal values
    - Lists/tuples: same length, element-wise deep equality
    - datetimes: same instant
    - bool is never equal to a number (True != 1)

    Self-referential structures do not raise: a pair of containers that is
    already being compared further up the stack is compared by identity.
    """
    try:
        return _deep_equal(a, b, set())
    except RecursionError:
        logger.debug("deep_equal: structure too deep, comparing by identity")
        return a is b


def _deep_equal(a: Any, b: Any, active: Set[Tuple[int, int]]) -> bool:
    if a is b:
        return True
    if a is None or b is None:
        return False

    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b

    if isinstance(a, (datetime, date)) or isinstance(b, (datetime, date)):
        if type(a) is not type(b):
            return False
        try:
            return a == b
        except TypeError:
            # naive vs aware datetimes
            return False

    a_is_map, b_is_map = isinstance(a, Mapping), isinstance(b, Mapping)
    a_is_seq, b_is_seq = isinstance(a, (list, tuple)), isinstance(b, (list, tuple))

    if a_is_map or b_is_map:
        if not (a_is_map and b_is_map) or len(a) != len(b):
            return False
        pair = (id(a), id(b))
        if pair in active:
            return a is b
        active.add(pair)
        try:
            return all(key in b and _deep_equal(a[key], b[key], active) for key in a)
        finally:
            active.discard(pair)

    if a_is_seq or b_is_seq:
        if not (a_is_seq and b_is_seq) or len(a) != len(b):
            return False
        pair = (id(a), id(b))
        if pair in active:
            return a is b
        active.add(pair)
        try:
            return all(_deep_equal(x, y, active) for x, y in zip(a, b))
        finally:
            active.discard(pair)

    try:
        return bool(a == b)
    except Exception:
        # Opaque values with a broken __eq__
        return False


def detect_conflicts(
    local: Mapping[str, Any],
    remote: Mapping[str, Any],
    exclude_fields: Optional[Iterable[str]] = None,
) -> List[str]:
    """
    List the fields whose values differ between two snapshots.

    Args:
        local: Local draft
        remote: Remote snapshot
        exclude_fields: Fields never reported (typically the timestamp field)

    Returns:
        Conflicting field names in the local document's key order
    """
    excluded = set(exclude_fields or ())
    conflicts = []

    for key in local:
        if key in excluded or key not in remote:
            continue
        if not deep_equal(local[key], remote[key]):
            conflicts.append(key)

    return conflicts
