"""
Error hierarchy.

Every failure raised by the memory layer is a StrataError subclass carrying
the operation or field that failed, so callers can log and branch on it.
"""


class StrataError(Exception):
    """Base class for all memory subsystem errors."""


class StorageError(StrataError):
    """Failure reported by the key-value storage backend."""

    def __init__(self, operation: str, cause: BaseException | str):
        self.operation = operation
        self.cause = cause
        super().__init__(f"Storage operation '{operation}' failed: {cause}")


class SerializationError(StrataError):
    """Structured document could not be encoded or decoded."""

    def __init__(self, operation: str, detail: str | None = None):
        self.operation = operation
        self.detail = detail
        message = f"Serialization failed during '{operation}'"
        if detail:
            message += f": {detail}"
        super().__init__(message)


class ValidationError(StrataError):
    """Input violated a documented rule."""

    def __init__(self, field: str, rule: str, observed: object):
        self.field = field
        self.rule = rule
        self.observed = observed
        super().__init__(f"Invalid {field}: {rule} (got {observed})")


class ExternalServiceError(StrataError):
    """Language model or embedding collaborator failed."""

    def __init__(self, operation: str, cause: BaseException | str):
        self.operation = operation
        self.cause = cause
        super().__init__(f"External service failed during '{operation}': {cause}")
