"""Error taxonomy shared by the HTTP layer and the job pipeline."""
from __future__ import annotations


class ServiceError(RuntimeError):
    """Base class for failures reported to clients as ``{error, details}``."""

    status_code: int = 500
    summary: str = "Internal server error"

    def __init__(
        self,
        details: str,
        *,
        summary: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(details)
        self.details = details
        if summary is not None:
            self.summary = summary
        self.__cause__ = cause

    def to_payload(self) -> dict[str, str]:
        return {"error": self.summary, "details": self.details}


class ValidationError(ServiceError):
    """Missing or unusable request input."""

    status_code = 400
    summary = "Invalid request"


class ExtractionError(ValidationError):
    """A document could not be read as its detected format."""

    summary = "Unreadable document"


class DownloadError(ServiceError):
    """A remote segment could not be fetched."""

    summary = "Download failed"


class TransformError(ServiceError):
    """The external transcoder reported a failure."""

    summary = "Concatenation failed"


class TransformTimeoutError(TransformError):
    """The external transcoder exceeded its deadline and was terminated."""

    summary = "Concatenation timed out"


class DeliveryError(ServiceError):
    """The output artifact could not be read or sent."""

    summary = "Delivery failed"


class InternalError(ServiceError):
    """Any unexpected fault while handling a job."""
