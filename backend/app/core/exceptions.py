# app/core/exceptions.py
"""
Domain errors shared by the chat gateway, the notification dispatcher
and the REST routers.

None of these are fatal: each one is scoped to the single operation (or
realtime event) that raised it. Routers map them to HTTP status codes,
the chat gateway turns them into ``error`` events for the sender only.
"""


class CoursePortalError(Exception):
    """Base class for domain errors"""
    code = "error"
    status_code = 400

    def __init__(self, detail: str = ""):
        self.detail = detail or self.__class__.__doc__ or self.code
        super().__init__(self.detail)

    def to_event(self) -> dict:
        return {"code": self.code, "detail": self.detail}


class ValidationError(CoursePortalError):
    """Invalid or empty input"""
    code = "validation_error"
    status_code = 400


class AuthorizationError(CoursePortalError):
    """Not allowed to act on this resource"""
    code = "forbidden"
    status_code = 403


class NotFoundError(CoursePortalError):
    """Resource not found"""
    code = "not_found"
    status_code = 404


class PersistenceError(CoursePortalError):
    """Failed to write to the database"""
    code = "persistence_error"
    status_code = 503
