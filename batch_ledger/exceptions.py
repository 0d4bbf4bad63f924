"""Error types raised by the reporting layer."""
from __future__ import annotations

from typing import Any


class ReportError(RuntimeError):
    """Base error for report generation failures caused by caller input."""

    def __init__(self, detail: str, *, context: dict[str, Any] | None = None) -> None:
        super().__init__(detail)
        self.detail = detail
        self.context = context or {}

    def __str__(self) -> str:
        if not self.context:
            return self.detail
        return f"{self.detail} (context={self.context})"


class MissingDateRangeError(ReportError):
    """Raised when a report needs both ends of a date range and got fewer."""


class InvalidReportParameterError(ReportError):
    """Raised when a report parameter is outside its accepted values."""


__all__ = ["InvalidReportParameterError", "MissingDateRangeError", "ReportError"]
