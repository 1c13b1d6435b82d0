"""Recursive redaction of sensitive data."""

from collections.abc import Mapping
from typing import Any, Dict, Iterable, List

FILTERED_VALUE = "[FILTERED]"
MAX_DEPTH_VALUE = "[MAX DEPTH EXCEEDED]"
MAX_DEPTH = 10
MAX_STRING_LENGTH = 10000

_SEQUENCE_TYPES = (list, tuple, set, frozenset)


class SanitizeFilter:
    """
    Redact sensitive keys from arbitrary nested data.

    Any key whose lowercase form contains one of the filter keys has its
    value replaced with ``[FILTERED]``. Nesting is bounded by ``MAX_DEPTH``;
    deeper values collapse to ``[MAX DEPTH EXCEEDED]``.
    """

    def __init__(self, filter_keys: Iterable[str]):
        self.filter_keys = tuple(key.lower() for key in filter_keys)

    def filter(self, data: Mapping) -> Dict[str, Any]:
        """
        Sanitize a mapping.

        Args:
            data: Arbitrary nested mapping

        Returns:
            New dict with sensitive values redacted
        """
        if not isinstance(data, Mapping):
            return {}
        return self._filter_mapping(data, 0)

    def should_filter(self, key: Any) -> bool:
        key_lower = str(key).lower()
        return any(filter_key in key_lower for filter_key in self.filter_keys)

    def _filter_mapping(self, data: Mapping, depth: int) -> Dict[str, Any]:
        if depth > MAX_DEPTH:
            return {"_truncated": MAX_DEPTH_VALUE}

        result: Dict[str, Any] = {}
        for key, value in data.items():
            if self.should_filter(key):
                result[str(key)] = FILTERED_VALUE
            else:
                result[str(key)] = self._filter_value(value, depth + 1)
        return result

    def _filter_sequence(self, data: Iterable, depth: int) -> List[Any]:
        return [self._filter_value(item, depth + 1) for item in data]

    def _filter_value(self, value: Any, depth: int) -> Any:
        if depth > MAX_DEPTH:
            return MAX_DEPTH_VALUE

        if isinstance(value, Mapping):
            return self._filter_mapping(value, depth)

        if isinstance(value, _SEQUENCE_TYPES):
            return self._filter_sequence(value, depth)

        if isinstance(value, str):
            return truncate(value)

        if value is None or isinstance(value, (bool, int, float)):
            return value

        # Objects with their own string conversion are rendered through it
        if type(value).__str__ is not object.__str__:
            try:
                return truncate(str(value))
            except Exception:
                pass

        return f"[OBJECT: {type(value).__name__}]"


def truncate(value: str, max_length: int = MAX_STRING_LENGTH) -> str:
    """Cap a string at ``max_length`` characters plus a trailing ellipsis."""
    if len(value) > max_length:
        return value[:max_length] + "..."
    return value
