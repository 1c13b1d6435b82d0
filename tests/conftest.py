"""Shared fixtures."""

import os
from unittest.mock import patch

import pytest

import checkend


@pytest.fixture(autouse=True)
def clean_environment():
    """Run every test without CHECKEND_* or app environment variables."""
    keep = {
        key: value
        for key, value in os.environ.items()
        if not key.startswith("CHECKEND_")
        and key not in ("APP_ENV", "ENVIRONMENT", "ENV", "PYTHON_ENV")
    }
    with patch.dict(os.environ, keep, clear=True):
        yield


@pytest.fixture(autouse=True)
def reset_default_dispatcher():
    """Leave the process default dispatcher unconfigured after each test."""
    yield
    checkend.reset()


@pytest.fixture
def log_lines():
    """Collect SDK log lines as (level, message) pairs."""
    lines = []

    def log_function(level, message):
        lines.append((level, message))

    log_function.lines = lines
    return log_function
