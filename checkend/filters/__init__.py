"""Sanitization and ignore filters."""

from .ignore import FaultIdentity, IgnoreFilter, type_name
from .sanitize import FILTERED_VALUE, MAX_DEPTH_VALUE, SanitizeFilter

__all__ = [
    "FILTERED_VALUE",
    "MAX_DEPTH_VALUE",
    "FaultIdentity",
    "IgnoreFilter",
    "SanitizeFilter",
    "type_name",
]
