"""Exception hierarchy for the RFP workflow service.

Services raise these; the API layer maps them to HTTP responses through a
single exception handler (see ``rfp_workflow.api.app``).
"""

from typing import Any


class RFPWorkflowError(Exception):
    """Base class for all service errors."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, *, code: str | None = None, **extra: Any):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.extra = extra

    def to_dict(self) -> dict[str, Any]:
        """Serialize for an API error body."""
        return {"detail": self.message, "code": self.code, **self.extra}


class NotFoundError(RFPWorkflowError):
    status_code = 404
    code = "NOT_FOUND"


class ValidationFailedError(RFPWorkflowError):
    status_code = 400
    code = "VALIDATION_FAILED"


class PermissionDeniedError(RFPWorkflowError):
    status_code = 403
    code = "PERMISSION_DENIED"


class ConflictError(RFPWorkflowError):
    status_code = 409
    code = "CONFLICT"


class QuotaExceededError(RFPWorkflowError):
    status_code = 429
    code = "QUOTA_EXCEEDED"


class ExtractionError(RFPWorkflowError):
    """No strategy could pull usable text out of a document."""

    status_code = 422
    code = "EXTRACTION_FAILED"


class AIProviderError(RFPWorkflowError):
    """An upstream LLM call failed or returned unusable output."""

    status_code = 502
    code = "AI_PROVIDER_ERROR"
