"""
Dotted-path access into nested version records.

Version records are flat-or-nested dicts built from refinement answers.
Option 'sets' keys such as 'stretch.kind' address nested levels.
"""

from typing import Any, Dict


_MISSING = object()


def set_deep(record: Dict[str, Any], dotted_key: str, value: Any) -> None:
    """
    Assign value at dotted_key, creating intermediate dicts as needed.

    A non-dict value sitting on an intermediate level is replaced by a dict.

    Example:
        >>> record = {}
        >>> set_deep(record, 'stretch.kind', 'project')
        >>> record
        {'stretch': {'kind': 'project'}}
    """
    parts = dotted_key.split(".")
    current = record
    for part in parts[:-1]:
        nxt = current.get(part)
        if not isinstance(nxt, dict):
            nxt = {}
            current[part] = nxt
        current = nxt
    current[parts[-1]] = value


def get_deep(record: Dict[str, Any], dotted_key: str, default: Any = None) -> Any:
    """Read the value at dotted_key, or default when any level is missing."""
    current: Any = record
    for part in dotted_key.split("."):
        if not isinstance(current, dict):
            return default
        current = current.get(part, _MISSING)
        if current is _MISSING:
            return default
    return current
