"""
Error types raised by the service layer.

Services raise these with a human-readable message; the routers translate
them into HTTP responses and never expose tracebacks.

    ChatBackendError
    ├── InvalidInput        missing or malformed fields (400)
    │   └── NotProvided     a required identifier was not supplied
    ├── NotFound            referenced chat or user is absent (404)
    ├── Unauthorized        bad credentials or token (401)
    ├── Conflict            duplicate record, e.g. email (400)
    └── PersistenceError    storage failure, wraps the cause (500)
        └── CreationFailed  a record could not be created
"""


class ChatBackendError(Exception):
    status_code: int = 400

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class InvalidInput(ChatBackendError):
    status_code = 400


class NotProvided(InvalidInput):
    pass


class NotFound(ChatBackendError):
    status_code = 404


class Unauthorized(ChatBackendError):
    status_code = 401


class Conflict(ChatBackendError):
    status_code = 400


class PersistenceError(ChatBackendError):
    status_code = 500


class CreationFailed(PersistenceError):
    pass
