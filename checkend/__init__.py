"""
Checkend error reporting SDK.

Usage:
    import checkend

    checkend.configure(api_key="your-api-key")
    try:
        ...
    except Exception as e:
        checkend.notify(e)
"""

from typing import Any, Dict, Iterable, Mapping, Optional

from .config import Settings
from .dispatcher import Dispatcher, HookOutcome, get_dispatcher
from .filters import FaultIdentity, IgnoreFilter, SanitizeFilter
from .reporting import Report, ReportBuilder
from .version import VERSION

__version__ = VERSION


def configure(settings: Optional[Settings] = None, **options: Any) -> Settings:
    """Configure the default dispatcher. See ``Settings`` for options."""
    return get_dispatcher().configure(settings, **options)


def get_configuration() -> Optional[Settings]:
    return get_dispatcher().settings


def notify(
    exception: BaseException,
    context: Optional[Mapping[str, Any]] = None,
    user: Optional[Mapping[str, Any]] = None,
    request: Optional[Mapping[str, Any]] = None,
    fingerprint: Optional[str] = None,
    tags: Optional[Iterable[str]] = None,
) -> Optional[Dict[str, Any]]:
    """Report an exception. Never raises."""
    return get_dispatcher().notify(exception, context, user, request, fingerprint, tags)


def notify_sync(
    exception: BaseException,
    context: Optional[Mapping[str, Any]] = None,
    user: Optional[Mapping[str, Any]] = None,
    request: Optional[Mapping[str, Any]] = None,
    fingerprint: Optional[str] = None,
    tags: Optional[Iterable[str]] = None,
) -> Optional[Dict[str, Any]]:
    """Report an exception inline and return the API response."""
    return get_dispatcher().notify_sync(
        exception, context, user, request, fingerprint, tags
    )


def set_context(context: Mapping[str, Any]) -> None:
    get_dispatcher().set_context(context)


def get_context() -> Dict[str, Any]:
    return get_dispatcher().get_context()


def set_user(user: Mapping[str, Any]) -> None:
    get_dispatcher().set_user(user)


def get_user() -> Dict[str, Any]:
    return get_dispatcher().get_user()


def set_request(request: Mapping[str, Any]) -> None:
    get_dispatcher().set_request(request)


def get_request() -> Dict[str, Any]:
    return get_dispatcher().get_request()


def clear() -> None:
    get_dispatcher().clear()


def flush(timeout: Optional[float] = None) -> bool:
    return get_dispatcher().flush(timeout)


def stop() -> None:
    get_dispatcher().stop()


def reset() -> None:
    get_dispatcher().reset()


__all__ = [
    "VERSION",
    "Dispatcher",
    "FaultIdentity",
    "HookOutcome",
    "IgnoreFilter",
    "Report",
    "ReportBuilder",
    "SanitizeFilter",
    "Settings",
    "clear",
    "configure",
    "flush",
    "get_configuration",
    "get_context",
    "get_dispatcher",
    "get_request",
    "get_user",
    "notify",
    "notify_sync",
    "reset",
    "set_context",
    "set_request",
    "set_user",
    "stop",
]
