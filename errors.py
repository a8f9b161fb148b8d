"""
Domain exceptions raised by the data-access and service layers.

Each carries the HTTP status and error code the API renders it with.
"""


class CounsellorError(Exception):
    status_code = 400
    error = "BAD_REQUEST"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(CounsellorError):
    status_code = 404
    error = "NOT_FOUND"


class ConflictError(CounsellorError):
    status_code = 409
    error = "CONFLICT"


class StageTransitionError(ConflictError):
    error = "INVALID_STAGE_TRANSITION"


class PermissionDeniedError(CounsellorError):
    status_code = 403
    error = "FORBIDDEN"


class OnboardingRequiredError(CounsellorError):
    status_code = 400
    error = "ONBOARDING_REQUIRED"
