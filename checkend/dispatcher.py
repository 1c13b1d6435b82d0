"""Capture pipeline orchestration."""

import atexit
import sys
from contextvars import ContextVar
from dataclasses import dataclass, field, replace
from threading import Lock
from typing import Any, Dict, Iterable, List, Mapping, Optional

import httpx

from .config import Settings
from .delivery.client import Client
from .delivery.worker import Worker
from .filters.ignore import IgnoreFilter
from .reporting.builder import ReportBuilder
from .reporting.report import Report
from .testing import ReportCapture

NOTIFIED_ATTR = "__checkend_notified__"
TEST_RESPONSE = {"id": 0, "problem_id": 0}


@dataclass(frozen=True)
class Scope:
    """Ambient context, user and request for one unit of work."""

    context: Mapping[str, Any] = field(default_factory=dict)
    user: Mapping[str, Any] = field(default_factory=dict)
    request: Mapping[str, Any] = field(default_factory=dict)


EMPTY_SCOPE = Scope()


@dataclass
class HookOutcome:
    """Result of running the before-notify hooks."""

    proceed: bool
    report: Report
    errors: List[Exception] = field(default_factory=list)


@dataclass(frozen=True)
class _Runtime:
    settings: Settings
    ignore_filter: IgnoreFilter
    builder: ReportBuilder
    client: Client
    worker: Optional[Worker] = None


class Dispatcher:
    """
    Route captured faults through the pipeline.

    Orchestrates: ignore check -> build -> before-notify hooks ->
    test capture, queue or inline send.

    Ambient state lives in a ContextVar, so each thread and asyncio task
    sees its own context, user and request.
    """

    def __init__(self):
        self.capture = ReportCapture()
        self._runtime: Optional[_Runtime] = None
        self._scope: ContextVar[Scope] = ContextVar(
            f"checkend_scope_{id(self)}", default=EMPTY_SCOPE
        )
        self._lock = Lock()
        self._shutdown_registered = False

    @property
    def settings(self) -> Optional[Settings]:
        return self._runtime.settings if self._runtime else None

    @property
    def worker(self) -> Optional[Worker]:
        return self._runtime.worker if self._runtime else None

    def configure(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.BaseTransport] = None,
        **options: Any,
    ) -> Settings:
        """
        Install a configuration.

        Args:
            settings: Ready-made Settings; built from ``options`` if omitted
            transport: Optional httpx transport for the client
            **options: Settings fields

        Returns:
            The active Settings
        """
        if settings is None:
            settings = Settings(**options)

        client = Client(settings, transport=transport)
        worker = None
        if settings.async_send and settings.enabled:
            worker = Worker(settings, client=client)

        with self._lock:
            previous = self._runtime
            self._runtime = _Runtime(
                settings=settings,
                ignore_filter=IgnoreFilter(settings.ignored_exceptions),
                builder=ReportBuilder(settings),
                client=client,
                worker=worker,
            )
            if not self._shutdown_registered:
                atexit.register(self.shutdown)
                self._shutdown_registered = True

        if previous is not None and previous.worker is not None:
            previous.worker.stop()

        if worker is not None:
            worker.start()

        settings.log("debug", f"Configured for environment '{settings.environment}'")
        return settings

    def notify(
        self,
        exception: BaseException,
        context: Optional[Mapping[str, Any]] = None,
        user: Optional[Mapping[str, Any]] = None,
        request: Optional[Mapping[str, Any]] = None,
        fingerprint: Optional[str] = None,
        tags: Optional[Iterable[str]] = None,
    ) -> Optional[Dict[str, Any]]:
        """
        Report an exception.

        With async send the report is queued and None is returned; otherwise
        it is sent inline and the decoded API response is returned.
        Never raises.
        """
        return self._dispatch(
            exception, context, user, request, fingerprint, tags, sync=False
        )

    def notify_sync(
        self,
        exception: BaseException,
        context: Optional[Mapping[str, Any]] = None,
        user: Optional[Mapping[str, Any]] = None,
        request: Optional[Mapping[str, Any]] = None,
        fingerprint: Optional[str] = None,
        tags: Optional[Iterable[str]] = None,
    ) -> Optional[Dict[str, Any]]:
        """Report an exception inline, bypassing the queue."""
        return self._dispatch(
            exception, context, user, request, fingerprint, tags, sync=True
        )

    def _dispatch(
        self,
        exception: BaseException,
        context: Optional[Mapping[str, Any]],
        user: Optional[Mapping[str, Any]],
        request: Optional[Mapping[str, Any]],
        fingerprint: Optional[str],
        tags: Optional[Iterable[str]],
        sync: bool,
    ) -> Optional[Dict[str, Any]]:
        runtime = self._runtime
        if runtime is None or not runtime.settings.enabled:
            return None

        try:
            if runtime.ignore_filter.should_ignore(exception):
                return None

            _mark_notified(exception)

            scope = self._scope.get()
            report = runtime.builder.build(
                exception,
                context={**scope.context, **(context or {})},
                user=user if user is not None else scope.user,
                request={**scope.request, **(request or {})},
                fingerprint=fingerprint,
                tags=tags or (),
            )

            outcome = self.run_before_notify(report, runtime.settings)
            if not outcome.proceed:
                return None
            report = outcome.report

            if self.capture.is_enabled():
                self.capture.add(report)
                return dict(TEST_RESPONSE) if sync else None

            if not sync and runtime.worker is not None:
                runtime.worker.push(report)
                return None

            return runtime.client.send(report)

        except Exception as e:
            runtime.settings.log("error", f"Failed to notify: {e}")
            return None

    def run_before_notify(
        self, report: Report, settings: Optional[Settings] = None
    ) -> HookOutcome:
        """
        Run before-notify hooks in registration order.

        A hook returning False aborts; returning a Report replaces the
        report; anything else continues. A hook that raises is logged and
        recorded, and the chain continues.
        """
        settings = settings or self.settings
        outcome = HookOutcome(proceed=True, report=report)
        if settings is None:
            return outcome

        for hook in settings.before_notify:
            try:
                result = hook(outcome.report)
            except Exception as e:
                outcome.errors.append(e)
                settings.log("warning", f"before_notify hook failed: {e!r}")
                continue

            if result is False:
                outcome.proceed = False
                return outcome
            if isinstance(result, Report):
                outcome.report = result

        return outcome

    def set_context(self, context: Mapping[str, Any]) -> None:
        """Merge keys into the ambient context."""
        scope = self._scope.get()
        self._scope.set(replace(scope, context={**scope.context, **context}))

    def get_context(self) -> Dict[str, Any]:
        return dict(self._scope.get().context)

    def set_user(self, user: Mapping[str, Any]) -> None:
        """Replace the ambient user."""
        self._scope.set(replace(self._scope.get(), user=dict(user)))

    def get_user(self) -> Dict[str, Any]:
        return dict(self._scope.get().user)

    def set_request(self, request: Mapping[str, Any]) -> None:
        """Replace the ambient request."""
        self._scope.set(replace(self._scope.get(), request=dict(request)))

    def get_request(self) -> Dict[str, Any]:
        return dict(self._scope.get().request)

    def clear(self) -> None:
        """Reset context, user and request."""
        self._scope.set(EMPTY_SCOPE)

    def flush(self, timeout: Optional[float] = None) -> bool:
        """Wait for queued reports to be delivered."""
        worker = self.worker
        if worker is None:
            return True
        return worker.flush(timeout)

    def stop(self) -> None:
        """Flush and stop the worker."""
        with self._lock:
            runtime = self._runtime
            if runtime is None or runtime.worker is None:
                return
            self._runtime = replace(runtime, worker=None)
        runtime.worker.stop()

    def reset(self) -> None:
        """Drop configuration and all state."""
        self.stop()
        with self._lock:
            self._runtime = None
        self.clear()
        self.capture.teardown()

    def shutdown(self) -> None:
        """
        Process-exit hook.

        Reports an unhandled fault the interpreter left behind, then
        flushes the queue.
        """
        fault = getattr(sys, "last_exc", None) or getattr(sys, "last_value", None)
        if fault is not None and not getattr(fault, NOTIFIED_ATTR, False):
            self.notify(fault)
        self.flush()


def _mark_notified(exception: BaseException) -> None:
    try:
        setattr(exception, NOTIFIED_ATTR, True)
    except (AttributeError, TypeError):
        pass


# Process default dispatcher
_dispatcher: Optional[Dispatcher] = None
_dispatcher_lock = Lock()


def get_dispatcher() -> Dispatcher:
    """
    Get the process default dispatcher.

    Thread-safe lazy initialization.
    """
    global _dispatcher

    if _dispatcher is None:
        with _dispatcher_lock:
            if _dispatcher is None:
                _dispatcher = Dispatcher()

    return _dispatcher
