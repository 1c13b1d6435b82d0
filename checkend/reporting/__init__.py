"""Report model and builder."""

from .builder import ReportBuilder
from .report import Report

__all__ = ["Report", "ReportBuilder"]
