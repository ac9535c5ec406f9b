from enum import StrEnum
from typing import Any


class ErrorCode(StrEnum):
    """User-facing error codes for the discovery workflow."""

    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    INVALID_STAGE = "INVALID_STAGE"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    RESEARCH_FAILED = "RESEARCH_FAILED"
    PRD_GENERATION_FAILED = "PRD_GENERATION_FAILED"
    QUALITY_ASSESSMENT_FAILED = "QUALITY_ASSESSMENT_FAILED"
    SESSION_EXPIRED = "SESSION_EXPIRED"
    STAGE_NOT_READY = "STAGE_NOT_READY"


class DiscoveryError(Exception):
    """Base exception for the discovery engine."""

    code: ErrorCode = ErrorCode.VALIDATION_FAILED

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class SessionNotFoundError(DiscoveryError):
    """Raised when a session id is unknown to the repository."""

    code = ErrorCode.SESSION_NOT_FOUND

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Discovery session '{session_id}' not found")


class InvalidStageError(DiscoveryError):
    """Raised for unknown stage keys or operations run from the wrong stage."""

    code = ErrorCode.INVALID_STAGE


class ValidationFailedError(DiscoveryError):
    """Raised when input fails validation at an operation boundary."""

    code = ErrorCode.VALIDATION_FAILED


class ResearchFailedError(DiscoveryError):
    """Raised when every candidate provider was unavailable or failed."""

    code = ErrorCode.RESEARCH_FAILED

    def __init__(self, query: str, attempts: list[dict[str, Any]], last_error: BaseException | None = None):
        self.query = query
        self.attempts = attempts
        self.last_error = last_error
        tried = ", ".join(f"{a['provider']} ({a['reason']})" for a in attempts) or "none registered"
        super().__init__(f"All research providers exhausted for query '{query}': {tried}")


class PRDGenerationError(DiscoveryError):
    """Raised when PRD preconditions are not met or assembly fails."""

    code = ErrorCode.PRD_GENERATION_FAILED


class QualityAssessmentError(DiscoveryError):
    """Raised when a document cannot be scored."""

    code = ErrorCode.QUALITY_ASSESSMENT_FAILED


class SessionExpiredError(DiscoveryError):
    """Raised when a caller rejects an operation on an expired session."""

    code = ErrorCode.SESSION_EXPIRED

    def __init__(self, session_id: str, timeout_hours: float):
        self.session_id = session_id
        self.timeout_hours = timeout_hours
        super().__init__(f"Discovery session '{session_id}' expired (older than {timeout_hours:g}h)")


class StageNotReadyError(DiscoveryError):
    """Raised when a stage has not reached its minimum required-field set."""

    code = ErrorCode.STAGE_NOT_READY

    def __init__(self, stage: str, missing_fields: list[str] | None = None, detail: str = ""):
        self.stage = stage
        self.missing_fields = missing_fields or []
        message = f"Stage '{stage}' is not ready"
        if self.missing_fields:
            message += f"; missing required fields: {', '.join(self.missing_fields)}"
        if detail:
            message += f"; {detail}"
        super().__init__(message)


def to_error_payload(exc: DiscoveryError) -> dict[str, Any]:
    """Convert a DiscoveryError into the structured failure envelope."""
    return {
        "success": False,
        "error": {"code": exc.code.value, "message": exc.message},
    }
