"""Error report model and wire payload."""

from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

import orjson
from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> str:
    """Current UTC time in ISO 8601."""
    return datetime.now(timezone.utc).isoformat()


class Report(BaseModel):
    """
    A single captured fault, sanitized and ready for delivery.

    Reports are immutable. Hooks that want to change one return a copy made
    with ``model_copy(update=...)``.
    """

    model_config = ConfigDict(frozen=True)

    error_class: str
    message: str = ""
    backtrace: Tuple[str, ...] = ()
    fingerprint: Optional[str] = None
    tags: Tuple[str, ...] = ()
    context: Dict[str, Any] = Field(default_factory=dict)
    request: Dict[str, Any] = Field(default_factory=dict)
    user: Dict[str, Any] = Field(default_factory=dict)
    environment: str = "development"
    occurred_at: str = Field(default_factory=utc_now)
    notifier: Dict[str, Any] = Field(default_factory=dict)

    def to_payload(self) -> Dict[str, Any]:
        """
        Convert the report to the ingestion API payload.

        Returns:
            Dict with ``error``, ``context``, ``notifier`` and, when
            non-empty, ``request`` and ``user``
        """
        error: Dict[str, Any] = {
            "class": self.error_class,
            "message": self.message,
            "backtrace": list(self.backtrace),
            "occurred_at": self.occurred_at,
        }

        if self.fingerprint is not None:
            error["fingerprint"] = self.fingerprint

        if self.tags:
            error["tags"] = list(self.tags)

        payload: Dict[str, Any] = {
            "error": error,
            "context": {"environment": self.environment, **self.context},
            "notifier": dict(self.notifier),
        }

        if self.request:
            payload["request"] = self.request

        if self.user:
            payload["user"] = self.user

        return payload

    def to_json(self) -> bytes:
        """
        Encode the payload as JSON.

        Raises:
            orjson.JSONEncodeError: If the payload holds unserializable values
        """
        return orjson.dumps(self.to_payload(), option=orjson.OPT_NON_STR_KEYS)
