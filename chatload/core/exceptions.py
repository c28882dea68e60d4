"""Exception hierarchy for fatal load-test errors.

Only setup and storage problems are raised as exceptions. Failures of
individual exchanges are recorded as ``Outcome`` values and never raised;
see ``chatload.models.outcome``.
"""

from enum import Enum
from typing import Any

EXIT_OK = 0
EXIT_FATAL = 1


class ErrorKind(str, Enum):
    """Category of a fatal error."""

    CONFIG = "CONFIG"
    CREDENTIALS = "CREDENTIALS"
    STORAGE = "STORAGE"
    INTERNAL = "INTERNAL"


class LoadTestError(Exception):
    """Base exception for all fatal load-test errors.

    Attributes:
        message: Human-readable error description.
        exit_code: Process exit code the CLI uses for this error.
        kind: Error category.
        details: Additional error details.
    """

    def __init__(
        self,
        message: str,
        exit_code: int = EXIT_FATAL,
        kind: ErrorKind = ErrorKind.INTERNAL,
        details: list[dict[str, Any]] | None = None,
    ) -> None:
        """Initialize LoadTestError.

        Args:
            message: Human-readable error description.
            exit_code: Process exit code.
            kind: Error category enum value.
            details: Optional list of additional error details.
        """
        super().__init__(message)
        self.message = message
        self.exit_code = exit_code
        self.kind = kind
        self.details = details or []

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a JSON-serialisable error document.

        Returns:
            Dictionary with the error message, kind and details.
        """
        return {
            "error": {
                "message": self.message,
                "kind": self.kind.value,
                "exit_code": self.exit_code,
                "details": self.details,
            }
        }


class ConfigError(LoadTestError):
    """Fatal setup error raised before any request is dispatched.

    Covers invalid settings, an unusable endpoint and a result directory
    that already exists.
    """

    def __init__(
        self,
        message: str,
        details: list[dict[str, Any]] | None = None,
        kind: ErrorKind = ErrorKind.CONFIG,
    ) -> None:
        super().__init__(
            message=message,
            exit_code=EXIT_FATAL,
            kind=kind,
            details=details,
        )


class CredentialStoreError(ConfigError):
    """The credential store is missing, unreadable, malformed or empty."""

    def __init__(
        self,
        message: str,
        path: str | None = None,
    ) -> None:
        """Initialize CredentialStoreError.

        Args:
            message: Description of the problem.
            path: Path of the credential store, if known.
        """
        super().__init__(
            message=message,
            details=[{"path": path}] if path else None,
            kind=ErrorKind.CREDENTIALS,
        )
        self.path = path


class ResultStoreError(LoadTestError):
    """A result document could not be written or read back."""

    def __init__(
        self,
        message: str,
        path: str | None = None,
    ) -> None:
        super().__init__(
            message=message,
            exit_code=EXIT_FATAL,
            kind=ErrorKind.STORAGE,
            details=[{"path": path}] if path else None,
        )
        self.path = path
