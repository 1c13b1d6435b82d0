"""Configuration management using Pydantic Settings."""

import os
from typing import Any, Callable, List, Optional, Tuple

import structlog
from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .filters.ignore import type_name

logger = structlog.get_logger("checkend")

DEFAULT_ENDPOINT = "https://app.checkend.com"
DEFAULT_TIMEOUT = 15.0
DEFAULT_OPEN_TIMEOUT = 5.0
DEFAULT_MAX_QUEUE_SIZE = 1000
DEFAULT_FLUSH_TIMEOUT = 10.0

DEFAULT_FILTER_KEYS: Tuple[str, ...] = (
    "password",
    "password_confirmation",
    "secret",
    "secret_key",
    "api_key",
    "apikey",
    "access_token",
    "auth_token",
    "authorization",
    "token",
    "credit_card",
    "card_number",
    "cvv",
    "cvc",
    "ssn",
    "social_security",
)

# Expected faults: interpreter exits, 404s, permission and validation errors
DEFAULT_IGNORED_EXCEPTIONS: Tuple[str, ...] = (
    "KeyboardInterrupt",
    "SystemExit",
    "django.http.response.Http404",
    "django.core.exceptions.PermissionDenied",
    "django.core.exceptions.SuspiciousOperation",
    "werkzeug.exceptions.NotFound",
    "werkzeug.exceptions.MethodNotAllowed",
    "fastapi.exceptions.RequestValidationError",
)

ENVIRONMENT_VARIABLES = ("APP_ENV", "ENVIRONMENT", "ENV", "PYTHON_ENV")
ENABLED_ENVIRONMENTS = ("production", "staging")


def _parse_list(v: Any) -> List[Any]:
    """Parse a list option from a comma-separated string or an iterable."""
    if v is None or v == "":
        return []
    if isinstance(v, str):
        return [x.strip() for x in v.split(",") if x.strip()]
    if isinstance(v, (list, tuple, set, frozenset)):
        return list(v)
    return [v]


def _merge(*groups) -> Tuple[str, ...]:
    """Concatenate groups, dropping repeats but keeping first-seen order."""
    return tuple(dict.fromkeys(item for group in groups for item in group))


class Settings(BaseSettings):
    """
    SDK settings.

    Every option can be passed as a keyword argument. API key, endpoint,
    environment, proxy and debug also fall back to ``CHECKEND_*`` environment
    variables. The object is frozen once built.
    """

    model_config = SettingsConfigDict(
        env_prefix="CHECKEND_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # Core
    api_key: str = ""
    endpoint: str = DEFAULT_ENDPOINT
    environment: str = Field(default="", validate_default=True)
    enabled: Optional[bool] = Field(default=None, validate_default=True)
    async_send: bool = True
    max_queue_size: int = Field(default=DEFAULT_MAX_QUEUE_SIZE, ge=0)
    flush_timeout: float = DEFAULT_FLUSH_TIMEOUT
    debug: bool = False

    # HTTP
    timeout: float = DEFAULT_TIMEOUT
    open_timeout: float = DEFAULT_OPEN_TIMEOUT
    proxy: Optional[str] = None
    ssl_verify: bool = True
    ssl_ca_path: Optional[str] = None

    # Data control
    send_request_data: bool = True
    send_session_data: bool = True
    send_environment: bool = False
    send_user_data: bool = True

    # App metadata
    app_name: Optional[str] = None
    revision: Optional[str] = None
    root_path: Optional[str] = None

    # Filtering
    filter_keys: Tuple[str, ...] = Field(default=(), validate_default=True)
    disable_default_ignored_exceptions: bool = False
    ignored_exceptions: Tuple[str, ...] = Field(default=(), validate_default=True)

    # Hooks
    before_notify: List[Callable[..., Any]] = []
    log_function: Optional[Callable[[str, str], Any]] = None

    @field_validator("endpoint", mode="after")
    @classmethod
    def strip_endpoint(cls, v: str) -> str:
        """Drop trailing slashes so paths can be appended."""
        return v.rstrip("/") or DEFAULT_ENDPOINT

    @field_validator("environment", mode="before")
    @classmethod
    def detect_environment(cls, v: Any) -> str:
        """Fall back to common environment variables, then 'development'."""
        if v:
            return str(v)
        for var in ENVIRONMENT_VARIABLES:
            value = os.environ.get(var)
            if value:
                return value
        return "development"

    @field_validator("enabled", mode="after")
    @classmethod
    def default_enabled(cls, v: Optional[bool], info: ValidationInfo) -> bool:
        """Enabled by default only in production and staging."""
        if v is None:
            return info.data.get("environment") in ENABLED_ENVIRONMENTS
        return v

    @field_validator("filter_keys", mode="before")
    @classmethod
    def merge_filter_keys(cls, v: Any) -> Tuple[str, ...]:
        """Append user-supplied filter keys to the defaults."""
        return _merge(DEFAULT_FILTER_KEYS, (str(x) for x in _parse_list(v)))

    @field_validator("ignored_exceptions", mode="before")
    @classmethod
    def merge_ignored_exceptions(cls, v: Any, info: ValidationInfo) -> Tuple[str, ...]:
        """Append ignore patterns to the defaults unless they are disabled."""
        patterns = [
            type_name(x) if isinstance(x, type) else str(x)
            for x in _parse_list(v)
        ]
        if info.data.get("disable_default_ignored_exceptions"):
            return _merge(patterns)
        return _merge(DEFAULT_IGNORED_EXCEPTIONS, patterns)

    @field_validator("before_notify", mode="before")
    @classmethod
    def parse_before_notify(cls, v: Any) -> List[Any]:
        """Accept a single callable or a list of them."""
        if v is None:
            return []
        if callable(v):
            return [v]
        return list(v)

    def validate_settings(self) -> List[str]:
        """
        Check the configuration for problems.

        Returns:
            List of error messages, empty when valid
        """
        errors = []
        if not self.api_key:
            errors.append("api_key is required")
        return errors

    def is_valid(self) -> bool:
        return not self.validate_settings()

    def log(self, level: str, message: str) -> None:
        """
        Emit an SDK log line.

        Debug lines are dropped unless ``debug`` is set. A configured
        ``log_function`` replaces the structlog sink; if it raises, the line
        goes to structlog instead.
        """
        if level == "debug" and not self.debug:
            return

        if self.log_function is not None:
            try:
                self.log_function(level, message)
                return
            except Exception as e:
                logger.warning(f"log_function failed, using default logger: {e!r}")

        getattr(logger, level, logger.error)(message)
