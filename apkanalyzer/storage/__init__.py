"""Report storage for apkanalyzer."""

from .interface import ReportStore
from .local import LocalReportStore

__all__ = ["ReportStore", "LocalReportStore"]
