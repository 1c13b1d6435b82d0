"""Report uncaught exceptions from the main thread and worker threads."""

import sys
import threading
from typing import Callable, Optional

from ..dispatcher import Dispatcher, get_dispatcher


class ExceptHookHandler:
    """
    Install ``sys.excepthook`` and ``threading.excepthook`` handlers.

    Uncaught exceptions are reported, then handed to whichever hook was
    installed before, so default tracebacks still print.

    Usage:
        checkend.configure(api_key="your-api-key")
        ExceptHookHandler.register()
    """

    _registered = False
    _dispatcher: Optional[Dispatcher] = None
    _previous_excepthook: Optional[Callable] = None
    _previous_threading_excepthook: Optional[Callable] = None

    @classmethod
    def register(cls, dispatcher: Optional[Dispatcher] = None) -> None:
        if cls._registered:
            return

        cls._registered = True
        cls._dispatcher = dispatcher
        cls._previous_excepthook = sys.excepthook
        cls._previous_threading_excepthook = threading.excepthook

        sys.excepthook = cls.handle_exception
        threading.excepthook = cls.handle_thread_exception

    @classmethod
    def unregister(cls) -> None:
        if not cls._registered:
            return

        sys.excepthook = cls._previous_excepthook or sys.__excepthook__
        threading.excepthook = (
            cls._previous_threading_excepthook or threading.__excepthook__
        )
        cls._registered = False
        cls._dispatcher = None

    @classmethod
    def _get_dispatcher(cls) -> Dispatcher:
        return cls._dispatcher or get_dispatcher()

    @classmethod
    def handle_exception(cls, exc_type, exc_value, exc_traceback) -> None:
        """sys.excepthook: report, then chain."""
        if exc_value is not None:
            dispatcher = cls._get_dispatcher()
            dispatcher.notify(exc_value)
            # The interpreter is about to exit
            dispatcher.flush()

        previous = cls._previous_excepthook or sys.__excepthook__
        previous(exc_type, exc_value, exc_traceback)

    @classmethod
    def handle_thread_exception(cls, args) -> None:
        """threading.excepthook: report, then chain."""
        if args.exc_value is not None:
            thread_name = args.thread.name if args.thread is not None else None
            cls._get_dispatcher().notify(
                args.exc_value, context={"thread": thread_name}
            )

        previous = cls._previous_threading_excepthook or threading.__excepthook__
        previous(args)
