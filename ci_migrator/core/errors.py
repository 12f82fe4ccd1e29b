from __future__ import annotations


class MigrationError(Exception):
    """Base class for every error raised by ci_migrator."""


class TransportError(MigrationError):
    """The HTTP request could not be delivered (DNS, connection, timeout)."""


class AuthenticationError(MigrationError):
    """The client credential exchange failed."""


class RemoteStatusError(MigrationError):
    """The request was delivered but the response status is outside [200, 300)."""

    def __init__(self, status_code: int, reason: str, body: str, operation: str | None = None):
        self.status_code = status_code
        self.reason = reason
        self.body = body
        self.operation = operation
        message = f"response with status: {status_code} {reason}, body: {body}"
        if operation:
            message = f"{operation}: {message}"
        super().__init__(message)


class DecodeError(MigrationError):
    """The response body could not be parsed into the expected shape."""


class StageExecutionError(MigrationError):
    def __init__(self, stage: str, cause: BaseException):
        self.stage = stage
        self.cause = cause
        super().__init__(f"migration stage {stage}: execution failed: {cause}")


class PersistenceError(MigrationError):
    def __init__(self, task_id: str | None, cause: BaseException):
        self.task_id = task_id
        self.cause = cause
        super().__init__(f"error updating migration status of task {task_id}: {cause}")
