"""
errors.py — Typed error taxonomy for the intake backend.

Every failure the pipeline can surface to a caller is one of these classes.
Each carries a stable machine code and the HTTP status the global handler in
main.py uses when rendering the standard {error: {code, message, details}} body.

Business logic raises these; it never raises HTTPException.
"""
from typing import Any, Optional


class IntakeError(Exception):
    """Base class — code/status_code are overridden by subclasses."""

    code: str = "INTERNAL_ERROR"
    status_code: int = 500
    default_message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: Optional[str] = None,
        details: Optional[list[dict[str, Any]]] = None,
    ) -> None:
        self.message = message or self.default_message
        self.details = details or []
        super().__init__(self.message)


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------

class Unauthenticated(IntakeError):
    code = "UNAUTHENTICATED"
    status_code = 401
    default_message = "Authentication required"


class Unauthorized(IntakeError):
    """Token is valid but does not belong to a signed-in user."""

    code = "UNAUTHORIZED"
    status_code = 403
    default_message = "You are not allowed to perform this action"


# ---------------------------------------------------------------------------
# Caller input
# ---------------------------------------------------------------------------

class BadInput(IntakeError):
    code = "BAD_INPUT"
    status_code = 400
    default_message = "Invalid request"


class UnsupportedFileType(BadInput):
    code = "UNSUPPORTED_FILE_TYPE"
    status_code = 415
    default_message = "Unsupported file type. Please upload PDF, DOCX, or TXT files."


class DocumentUnreadable(BadInput):
    code = "UNREADABLE_DOCUMENT"
    default_message = "The document could not be opened. It may be corrupted or password-protected."


class PayloadTooLarge(BadInput):
    code = "PAYLOAD_TOO_LARGE"
    status_code = 413
    default_message = "Payload too large"


class ProfileValidationError(BadInput):
    code = "VALIDATION_ERROR"
    default_message = "Business profile validation failed"


class NoExtractableText(IntakeError):
    code = "NO_EXTRACTABLE_TEXT"
    status_code = 422
    default_message = (
        "Unable to extract text from the document. The file may be image-based or "
        "encrypted. Please upload a text-based file or fill in the questionnaire manually."
    )


class NotFound(IntakeError):
    code = "NOT_FOUND"
    status_code = 404
    default_message = "Analysis not found"


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------

class UpstreamUnavailable(IntakeError):
    code = "UPSTREAM_UNAVAILABLE"
    status_code = 502
    default_message = "An upstream service is unavailable"


class DownloadFailed(UpstreamUnavailable):
    code = "DOWNLOAD_FAILED"
    default_message = "Failed to download file"


class AnalyzerError(UpstreamUnavailable):
    code = "ANALYSIS_FAILED"
    default_message = "Failed to analyze business profile"


class ServiceNotConfigured(IntakeError):
    """A required collaborator credential is missing. Details stay server-side."""

    code = "SERVICE_NOT_CONFIGURED"
    status_code = 503
    default_message = "Server configuration error. Please contact support."
