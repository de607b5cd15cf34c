"""Error types raised by handlers and workflow steps.

Every error carries a machine readable ``code`` and is rendered as
``{"error": message, "code": code}`` by the handler registered in app.py.
"""


class ApiError(Exception):
    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message, code=None, status_code=None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self):
        return {"error": self.message, "code": self.code}


class ValidationError(ApiError):
    status_code = 400
    code = "VALIDATION_ERROR"


class AuthorizationError(ApiError):
    status_code = 403
    code = "NOT_AUTHORIZED"


class NotFoundError(ApiError):
    status_code = 404
    code = "NOT_FOUND"


class ConflictError(ApiError):
    status_code = 409
    code = "CONFLICT"


class NoEligibleTargetError(ApiError):
    status_code = 404
    code = "NO_ELIGIBLE_TARGET"


class InvalidCoordinates(ValidationError):
    code = "INVALID_COORDINATES"


class NoActiveTeams(NoEligibleTargetError):
    code = "NO_ACTIVE_TEAMS"

    def __init__(self, message="No active teams available", **kwargs):
        super().__init__(message, **kwargs)
