"""Error types raised by lxcompose components."""

from typing import Any, Dict, Optional


class LxcomposeError(Exception):
    """Base class for all lxcompose errors."""

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = context

    def __str__(self) -> str:
        return self.message


class SpecValidationError(LxcomposeError):
    """Container specification is malformed or contradictory."""

    def __init__(self, message: str, errors: Optional[list] = None, **context: Any):
        super().__init__(message, **context)
        self.errors = errors or []


class NotFoundError(LxcomposeError):
    """Unknown container or template."""


class AlreadyExistsError(LxcomposeError):
    """Container or template name is already in use."""


class InvalidStateError(LxcomposeError):
    """Operation is not legal from the container's current status."""

    def __init__(self, name: str, status: str, operation: str, message: Optional[str] = None):
        super().__init__(
            message or f"cannot {operation} container '{name}' (current state: {status})",
            name=name,
            status=status,
            operation=operation,
        )
        self.name = name
        self.status = status
        self.operation = operation


class RuntimeCommandError(LxcomposeError):
    """External runtime command failed."""

    def __init__(
        self,
        name: str,
        operation: str,
        returncode: Optional[int],
        output: str = "",
        message: Optional[str] = None,
    ):
        detail = output.strip()
        text = message or f"failed to {operation} container '{name}' (exit code {returncode})"
        if detail:
            text = f"{text}: {detail}"
        super().__init__(text, name=name, operation=operation, returncode=returncode)
        self.name = name
        self.operation = operation
        self.returncode = returncode
        self.output = output


class OperationCancelledError(LxcomposeError):
    """Caller cancelled an in-flight operation."""


class RetryableError(LxcomposeError):
    """Transient failure that the retry helper may attempt again."""


class StorageError(RetryableError):
    """Persistence I/O failure."""


class NetworkError(RetryableError):
    """Transient network failure."""


class RegistryError(RetryableError):
    """Transient image registry failure."""


class HostError(RetryableError):
    """System-level failure on the host, such as a missing binary."""


class RetryExhaustedError(LxcomposeError):
    """Retry helper gave up."""

    def __init__(self, message: str, attempts: int, last_error: Optional[BaseException] = None):
        if last_error is not None:
            message = f"{message}: {last_error}"
        super().__init__(message, attempts=attempts)
        self.attempts = attempts
        self.last_error = last_error
