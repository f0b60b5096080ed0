"""
Domain errors raised by the assessment services.

Every error is raised before any mutation is flushed; callers may correct the
input (ValidationError), re-fetch and retry (Conflict) or report it as-is.
"""
from fastapi import status


class AssessmentError(Exception):
    kind = "assessment_error"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        payload = {"type": self.kind, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(AssessmentError):
    kind = "validation_error"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class InvalidStateTransition(AssessmentError):
    kind = "invalid_state_transition"
    status_code = status.HTTP_409_CONFLICT


class NotFound(AssessmentError):
    kind = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class Conflict(AssessmentError):
    kind = "conflict"
    status_code = status.HTTP_409_CONFLICT
