"""Domain errors raised by the services and rendered by a single handler in main."""
from typing import Optional


class SurveyAppError(Exception):
    status_code = 400

    def __init__(self, message: str, details: Optional[list[str]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or []


class NotFoundError(SurveyAppError):
    status_code = 404


class PermissionDeniedError(SurveyAppError):
    status_code = 403


class ValidationFailed(SurveyAppError):
    status_code = 400


class InviteNotFound(NotFoundError):
    def __init__(self, message: str = "Invalid invitation link."):
        super().__init__(message)


class InviteAlreadyCompleted(SurveyAppError):
    status_code = 409

    def __init__(self, message: str = "This invitation has already been completed or is no longer valid."):
        super().__init__(message)


class InviteExpired(SurveyAppError):
    status_code = 410

    def __init__(self, message: str = "This invitation has expired."):
        super().__init__(message)


class AssignmentClosed(SurveyAppError):
    status_code = 409

    def __init__(self, message: str = "This survey has already been submitted."):
        super().__init__(message)


class EmailDeliveryError(SurveyAppError):
    status_code = 502
