"""Report delivery: HTTP client and background queue."""

from .client import Client
from .worker import Worker

__all__ = ["Client", "Worker"]
