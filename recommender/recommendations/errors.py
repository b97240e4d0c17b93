from __future__ import annotations

from typing import Any


class RecommendationError(Exception):
    """Base class for errors surfaced by the recommendation pipeline."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class ValidationError(RecommendationError):
    """Bad input shape or range; the caller can correct it."""

    status_code = 400
    code = "VALIDATION_ERROR"


class UpstreamUnavailable(RecommendationError):
    """The place source or a model call failed. Retryable."""

    status_code = 502
    code = "UPSTREAM_UNAVAILABLE"

    def __init__(self, service: str, message: str, details: Any = None) -> None:
        super().__init__(message, details)
        self.service = service


class NotFound(RecommendationError):
    status_code = 404
    code = "NOT_FOUND"


class PersistenceFailure(RecommendationError):
    """A history/profile write failed. Logged by the pipeline, never surfaced."""

    code = "PERSISTENCE_FAILURE"
