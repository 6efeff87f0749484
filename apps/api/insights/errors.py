"""Exception hierarchy for completion and generation failures."""
from __future__ import annotations

from typing import Any, Optional


class InsightsError(RuntimeError):
    """Base class for all application errors."""


class CompletionError(InsightsError):
    """Raised when the completion service answers with a non-2xx status or an undecodable body."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: Any = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class CompletionTransportError(InsightsError):
    """Raised when the completion service could not be reached at all."""
