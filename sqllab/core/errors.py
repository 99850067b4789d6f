"""
Error taxonomy for the SQL lab.
Every error carries a message that is safe to show to the user as-is.
"""


class SQLLabError(Exception):
    """Base class for errors surfaced to lab users."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {"type": self.__class__.__name__, "message": self.message}


class NotFoundError(SQLLabError):
    """No database is registered for the requested session."""

    status_code = 404


class ValidationError(SQLLabError):
    """The statement was rejected before reaching the engine."""

    status_code = 400


class ExecutionError(SQLLabError):
    """The engine reported a failure; the message has been sanitized."""

    status_code = 400


class QueryTimeoutError(SQLLabError):
    status_code = 504
