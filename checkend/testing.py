"""
Test-capture mode: collect reports in memory instead of sending them.

Usage:
    checkend.testing.setup()
    # ... code under test ...
    assert checkend.testing.has_reports()
    checkend.testing.teardown()
"""

from threading import Lock
from typing import List, Optional

from .reporting.report import Report


class ReportCapture:
    """In-memory buffer of captured reports."""

    def __init__(self):
        self._enabled = False
        self._reports: List[Report] = []
        self._lock = Lock()

    def setup(self) -> None:
        """Enable capture and discard anything captured earlier."""
        with self._lock:
            self._enabled = True
            self._reports = []

    def teardown(self) -> None:
        """Disable capture and discard captured reports."""
        with self._lock:
            self._enabled = False
            self._reports = []

    def is_enabled(self) -> bool:
        return self._enabled

    def add(self, report: Report) -> None:
        with self._lock:
            self._reports.append(report)

    def reports(self) -> List[Report]:
        with self._lock:
            return list(self._reports)

    def first(self) -> Optional[Report]:
        with self._lock:
            return self._reports[0] if self._reports else None

    def last(self) -> Optional[Report]:
        with self._lock:
            return self._reports[-1] if self._reports else None

    def count(self) -> int:
        with self._lock:
            return len(self._reports)

    def has_reports(self) -> bool:
        return self.count() > 0

    def clear(self) -> None:
        with self._lock:
            self._reports = []


def _capture() -> ReportCapture:
    from .dispatcher import get_dispatcher

    return get_dispatcher().capture


def setup() -> None:
    _capture().setup()


def teardown() -> None:
    _capture().teardown()


def is_enabled() -> bool:
    return _capture().is_enabled()


def reports() -> List[Report]:
    return _capture().reports()


def first_report() -> Optional[Report]:
    return _capture().first()


def last_report() -> Optional[Report]:
    return _capture().last()


def report_count() -> int:
    return _capture().count()


def has_reports() -> bool:
    return _capture().has_reports()


def clear_reports() -> None:
    _capture().clear()
