"""Build error reports from exceptions."""

import os
import platform
import traceback
from types import FrameType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from ..config import Settings
from ..filters.ignore import FaultIdentity
from ..filters.sanitize import SanitizeFilter, truncate
from ..version import SDK_NAME, VERSION
from .report import Report

MAX_BACKTRACE_LINES = 100
MAX_MESSAGE_LENGTH = 10000
PROJECT_ROOT = "[PROJECT_ROOT]"

_PACKAGE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__))) + os.sep


class ReportBuilder:
    """
    Turn an exception plus ambient state into a Report.

    Handles backtrace formatting, path normalization and sanitization of
    context, user and request data.
    """

    def __init__(self, settings: Settings):
        """
        Initialize report builder.

        Args:
            settings: SDK settings
        """
        self.settings = settings
        self.sanitize_filter = SanitizeFilter(settings.filter_keys)

    def build(
        self,
        exception: BaseException,
        context: Optional[Mapping[str, Any]] = None,
        user: Optional[Mapping[str, Any]] = None,
        request: Optional[Mapping[str, Any]] = None,
        fingerprint: Optional[str] = None,
        tags: Iterable[str] = (),
    ) -> Report:
        """
        Build a Report from an exception.

        Args:
            exception: The captured fault
            context: Extra context, always sanitized
            user: User data, kept only when user data is enabled
            request: Request data, kept only when request data is enabled
            fingerprint: Optional grouping key
            tags: Tags attached to the report

        Returns:
            Immutable Report
        """
        sanitized_context = self.sanitize_filter.filter(context or {})

        if self.settings.send_environment:
            sanitized_context["environment_variables"] = self.sanitize_filter.filter(
                os.environ
            )

        sanitized_user: Dict[str, Any] = {}
        if self.settings.send_user_data and user:
            sanitized_user = self.sanitize_filter.filter(user)

        sanitized_request: Dict[str, Any] = {}
        if self.settings.send_request_data and request:
            if not self.settings.send_session_data:
                request = {k: v for k, v in request.items() if k != "session"}
            sanitized_request = self.sanitize_filter.filter(request)

        return Report(
            error_class=self._extract_class_name(exception),
            message=self._extract_message(exception),
            backtrace=self._extract_backtrace(exception),
            fingerprint=str(fingerprint) if fingerprint is not None else None,
            tags=(tags,) if isinstance(tags, str) else tuple(str(tag) for tag in tags),
            context=sanitized_context,
            request=sanitized_request,
            user=sanitized_user,
            environment=self.settings.environment,
            notifier=self._build_notifier(),
        )

    def _extract_class_name(self, exception: BaseException) -> str:
        return FaultIdentity.from_exception(exception).full_name

    def _extract_message(self, exception: BaseException) -> str:
        try:
            message = str(exception)
        except Exception:
            message = ""
        return truncate(message, MAX_MESSAGE_LENGTH)

    def _extract_backtrace(self, exception: BaseException) -> Tuple[str, ...]:
        """
        Format the stack, innermost frame first.

        The first line is the fault's origin as ``file:line``; the rest are
        the outer frames as ``file:line in qualname`` entries.
        """
        frames = self._stack_for(exception)
        if not frames:
            return ()

        origin_frame, origin_line = frames[0]
        lines: List[str] = [
            f"{self._clean_path(origin_frame.f_code.co_filename)}:{origin_line}"
        ]

        for frame, lineno in frames[1:MAX_BACKTRACE_LINES]:
            code = frame.f_code
            lines.append(f"{self._clean_path(code.co_filename)}:{lineno} in {code.co_qualname}")

        return tuple(lines)

    def _stack_for(self, exception: BaseException) -> List[Tuple[FrameType, int]]:
        if exception.__traceback__ is not None:
            return list(reversed(list(traceback.walk_tb(exception.__traceback__))))

        # Never raised: use the caller's stack, minus the SDK's own frames
        return [
            (frame, lineno)
            for frame, lineno in traceback.walk_stack(None)
            if not frame.f_code.co_filename.startswith(_PACKAGE_DIR)
        ]

    def _clean_path(self, path: str) -> str:
        """Replace the configured root path with a placeholder."""
        root_path = self.settings.root_path
        if root_path and path.startswith(root_path):
            return PROJECT_ROOT + path[len(root_path):]
        return path

    def _build_notifier(self) -> Dict[str, str]:
        notifier = {
            "name": SDK_NAME,
            "version": VERSION,
            "language": "python",
            "language_version": platform.python_version(),
        }

        if self.settings.app_name is not None:
            notifier["app_name"] = self.settings.app_name

        if self.settings.revision is not None:
            notifier["revision"] = self.settings.revision

        return notifier
