# taskboard/errors.py
"""
Error taxonomy shared by the core services and both transport bindings.

Every error carries the HTTP-ish status code the bindings report, so REST
responses and socket acknowledgements stay consistent.
"""


class TaskboardError(Exception):
    status_code = 500
    default_message = "Internal error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"status": self.status_code, "error": self.message}


class InvalidInput(TaskboardError):
    status_code = 400
    default_message = "Invalid input"


class AlreadyExists(TaskboardError):
    status_code = 409
    default_message = "User exists"


class InvalidCredentials(TaskboardError):
    status_code = 401
    default_message = "Invalid credentials"


class Unauthorized(TaskboardError):
    status_code = 401
    default_message = "Unauthorized"


class NotFound(TaskboardError):
    status_code = 404
    default_message = "Not found"


class StorageFailure(TaskboardError):
    status_code = 500
    default_message = "Storage failure"
