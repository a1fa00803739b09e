"""Error taxonomy shared by the services and the HTTP layer.

Services raise these; ``taskboard.main`` turns them into ``{"message": ...}``
responses with the matching status code.
"""


class TaskboardError(Exception):
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(TaskboardError):
    status_code = 400


class AuthError(TaskboardError):
    status_code = 401


class ForbiddenError(TaskboardError):
    status_code = 403


class NotFoundError(TaskboardError):
    status_code = 404


class ConflictError(TaskboardError):
    status_code = 409


class InternalError(TaskboardError):
    status_code = 500
