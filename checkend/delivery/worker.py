"""Bounded delivery queue with retry."""

import threading
import time
from collections import deque
from typing import Callable, Deque, Optional

from ..config import Settings
from ..reporting.report import Report
from .client import Client

MAX_RETRIES = 3
BASE_DELAY_SECONDS = 0.1


class Worker:
    """
    Delivery queue between capture and the ingestion API.

    Reports are delivered in arrival order:
    - ``push`` never blocks; a full queue rejects the new report
    - each report gets ``MAX_RETRIES`` attempts with exponential backoff
    - a report that fails every attempt is logged and dropped

    Without ``start()`` the queue is drained by ``flush()`` in the calling
    thread. After ``start()`` a daemon thread drains it and ``flush()``
    waits until everything pending has been handled.
    """

    def __init__(
        self,
        settings: Settings,
        client: Optional[Client] = None,
        sleep: Callable[[float], None] = time.sleep,
        max_retries: int = MAX_RETRIES,
        base_delay: float = BASE_DELAY_SECONDS,
    ):
        """
        Initialize the worker.

        Args:
            settings: SDK settings
            client: Client used for delivery attempts
            sleep: Backoff sleep function
            max_retries: Attempts per report
            base_delay: Delay before the first retry, doubled after each
        """
        self.settings = settings
        self.client = client if client is not None else Client(settings)
        self.max_retries = max_retries
        self.base_delay = base_delay
        self._sleep = sleep

        self._queue: Deque[Report] = deque()
        self._cond = threading.Condition()
        self._in_flight = 0
        self._thread: Optional[threading.Thread] = None
        self._running = False

    def start(self) -> None:
        """Start the background sender thread."""
        with self._cond:
            if self._running:
                return
            self._running = True
            self._thread = threading.Thread(
                target=self._run, name="checkend-worker", daemon=True
            )
            self._thread.start()

        self.settings.log(
            "debug", f"Worker started (max_queue_size={self.settings.max_queue_size})"
        )

    def push(self, report: Report) -> bool:
        """
        Queue a report for delivery.

        Args:
            report: Report to deliver

        Returns:
            False if the queue was full and the report was dropped
        """
        with self._cond:
            accepted = len(self._queue) < self.settings.max_queue_size
            if accepted:
                self._queue.append(report)
                self._cond.notify_all()

        if not accepted:
            self.settings.log("warning", "Queue full, notice dropped")
        return accepted

    def flush(self, timeout: Optional[float] = None) -> bool:
        """
        Deliver everything queued.

        Args:
            timeout: Grace period when a sender thread is running, defaults
                to ``settings.flush_timeout``

        Returns:
            True if the queue was drained, False if the grace period ran out
        """
        if not self.is_running:
            while True:
                report = self._take()
                if report is None:
                    return True
                try:
                    self._send_with_retry(report)
                finally:
                    self._done()

        grace = self.settings.flush_timeout if timeout is None else timeout
        deadline = time.monotonic() + grace

        with self._cond:
            while self._queue or self._in_flight:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    self.settings.log(
                        "warning",
                        f"Flush timed out with {len(self._queue) + self._in_flight} notices pending",
                    )
                    return False
                self._cond.wait(remaining)

        return True

    def stop(self) -> None:
        """Flush, stop the sender thread and close the client."""
        self.flush()

        with self._cond:
            self._running = False
            self._cond.notify_all()

        if self._thread is not None:
            self._thread.join(timeout=self.settings.flush_timeout)
            self._thread = None

        close = getattr(self.client, "close", None)
        if close is not None:
            close()

        self.settings.log("debug", "Worker stopped")

    @property
    def pending_count(self) -> int:
        """Get number of reports waiting in the queue."""
        with self._cond:
            return len(self._queue)

    @property
    def is_running(self) -> bool:
        """Check if the sender thread is running."""
        return self._running

    def _take(self) -> Optional[Report]:
        with self._cond:
            if not self._queue:
                return None
            self._in_flight += 1
            return self._queue.popleft()

    def _done(self) -> None:
        with self._cond:
            self._in_flight -= 1
            self._cond.notify_all()

    def _run(self) -> None:
        while True:
            with self._cond:
                while self._running and not self._queue:
                    self._cond.wait()
                if not self._queue:
                    return
                self._in_flight += 1
                report = self._queue.popleft()

            try:
                self._send_with_retry(report)
            finally:
                self._done()

    def _send_with_retry(self, report: Report) -> bool:
        last_error = "no response"

        for attempt in range(self.max_retries):
            try:
                response = self.client.send(report)
            except Exception as e:
                response = None
                last_error = str(e)

            if response is not None:
                self.settings.log(
                    "debug", f"Notice delivered after {attempt + 1} attempt(s)"
                )
                return True

            if attempt < self.max_retries - 1:
                self._sleep(self.base_delay * 2 ** attempt)

        self.settings.log(
            "error",
            f"Failed to send notice after {self.max_retries} attempts: {last_error}",
        )
        return False
