"""Service error taxonomy.

Services raise these exceptions; the HTTP layer renders them as
`{"message": ...}` with the attached status code. No error is retried
or compensated locally.
"""


class ServiceError(Exception):
    """Base class for failures surfaced directly to the caller."""
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(ServiceError):
    status_code = 404


class ValidationError(ServiceError):
    status_code = 400


class Conflict(ServiceError):
    status_code = 400


class Forbidden(ServiceError):
    status_code = 401


class Unauthenticated(ServiceError):
    status_code = 401
