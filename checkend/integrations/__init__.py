"""
Host integrations.

Framework integrations are imported from their own modules so their
dependencies stay optional:

    from checkend.integrations.asgi import CheckendMiddleware
    from checkend.integrations.celery import register_celery_signals
"""

from .excepthook import ExceptHookHandler

__all__ = ["ExceptHookHandler"]
