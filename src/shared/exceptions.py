"""Error taxonomy for the capture pipeline.

Every error carries the HTTP status and the user-facing category it maps to
at the API boundary. ``detail`` is a fixed, safe message; internal detail
(provider error text, SQL errors) is logged by the raiser and never copied
into it.
"""

from fastapi import status


class CaptureError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    category: str = "internal_error"
    default_detail: str = "Something went wrong. Please try again."

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class ValidationError(CaptureError):
    """Rejected pre-flight: empty narrative, unknown or foreign id, bad input."""
    status_code = status.HTTP_400_BAD_REQUEST
    category = "invalid_request"
    default_detail = "The request is invalid."


class NotFoundError(ValidationError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found."


class InvalidStateTransition(CaptureError):
    status_code = status.HTTP_409_CONFLICT
    category = "conflict"
    default_detail = "This capture cannot do that in its current state."

    def __init__(self, current: str | None = None, target: str | None = None, detail: str | None = None):
        self.current = current
        self.target = target
        if detail is None and current is not None and target is not None:
            detail = f"Cannot move capture from {current} to {target}."
        super().__init__(detail)


class StaleExtractionError(InvalidStateTransition):
    """An extraction result arrived after the capture left ``processing``."""
    default_detail = "The capture was cancelled while it was being analyzed."


class EvidenceProcessingError(CaptureError):
    """Per-item failure. Recorded on the item, never raised past the pre-processor."""
    status_code = status.HTTP_502_BAD_GATEWAY
    category = "upload_failed"
    default_detail = "Evidence upload or analysis failed."


class ExtractionError(CaptureError):
    status_code = status.HTTP_502_BAD_GATEWAY
    category = "analysis_failed"
    default_detail = "We couldn't analyze this capture. Please try again."


class ExtractionSchemaError(ExtractionError):
    """The provider answered, but the answer does not satisfy the extraction contract."""


class ExtractionProviderError(ExtractionError):
    """Timeout, rate limit, network or any other provider-side failure."""


class CommitError(CaptureError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    category = "save_failed"
    default_detail = "We couldn't save these events. Please try again."


class QuotaExceededError(CaptureError):
    status_code = status.HTTP_403_FORBIDDEN
    category = "limit_reached"
    default_detail = "Capture limit reached for your plan. Upgrade to keep capturing."
