"""Celery signal handlers for reporting task failures."""

from threading import Lock
from typing import Any, Dict, Optional

import structlog
from celery.signals import task_failure, task_postrun, task_prerun

from ..dispatcher import Dispatcher, get_dispatcher

logger = structlog.get_logger("checkend")

_registered: Optional[Dispatcher] = None
_register_lock = Lock()


def register_celery_signals(dispatcher: Optional[Dispatcher] = None) -> None:
    """
    Connect Checkend to Celery's task signals.

    - task_prerun: set job context
    - task_failure: report the exception, flush and clear
    - task_postrun: clear ambient state

    Safe to call more than once.
    """
    global _registered

    with _register_lock:
        _registered = dispatcher or get_dispatcher()
        task_prerun.connect(_on_task_prerun, weak=False, dispatch_uid="checkend_prerun")
        task_failure.connect(_on_task_failure, weak=False, dispatch_uid="checkend_failure")
        task_postrun.connect(_on_task_postrun, weak=False, dispatch_uid="checkend_postrun")


def unregister_celery_signals() -> None:
    global _registered

    with _register_lock:
        task_prerun.disconnect(dispatch_uid="checkend_prerun")
        task_failure.disconnect(dispatch_uid="checkend_failure")
        task_postrun.disconnect(dispatch_uid="checkend_postrun")
        _registered = None


def _dispatcher() -> Dispatcher:
    return _registered or get_dispatcher()


def extract_task_context(task: Any, task_id: Optional[str] = None) -> Dict[str, Any]:
    """
    Describe a Celery task for the report context.

    Args:
        task: Celery task instance (the signal sender)
        task_id: Task identifier

    Returns:
        Context dict with name, id, queue and retry counts
    """
    request = getattr(task, "request", None)
    delivery_info = getattr(request, "delivery_info", None) or {}

    context: Dict[str, Any] = {
        "task_name": getattr(task, "name", None) or type(task).__name__,
        "task_id": task_id or getattr(request, "id", None),
        "queue": delivery_info.get("routing_key") or "default",
        "retries": getattr(request, "retries", 0),
    }

    max_retries = getattr(task, "max_retries", None)
    if max_retries is not None:
        context["max_retries"] = max_retries

    return context


def _on_task_prerun(sender=None, task_id=None, task=None, **kwargs) -> None:
    _dispatcher().set_context({"queue": extract_task_context(task or sender, task_id)})


def _on_task_failure(sender=None, task_id=None, exception=None, **kwargs) -> None:
    if exception is None:
        return

    dispatcher = _dispatcher()
    job_context = extract_task_context(sender, task_id)

    dispatcher.notify(
        exception,
        context={"queue": job_context},
        tags=["queue", job_context["queue"]],
    )

    # Workers are long-running; deliver now rather than at exit
    dispatcher.flush()
    dispatcher.clear()
    logger.debug(f"Reported failure of task {job_context['task_name']}")


def _on_task_postrun(sender=None, task_id=None, **kwargs) -> None:
    _dispatcher().clear()
