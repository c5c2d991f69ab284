"""
security_engine/errors.py

Error taxonomy for depguard.

Every error that can reach the CLI boundary derives from DepGuardError and
carries the process exit code it maps to. Policy blocks are NOT raised by the
engine itself: PolicyEngine returns a Decision, and only the CLI turns a
blocking decision into a PolicyBlockError.

Exit codes:
    0    success
    1    general error
    2    security block (policy decision)
    3    configuration error
    6    scanner error
    7    manifest error
    130  cancelled by the user
"""

from enum import Enum
from typing import Optional


EXIT_SUCCESS = 0
EXIT_GENERAL_ERROR = 1
EXIT_SECURITY_BLOCK = 2
EXIT_CONFIG_ERROR = 3
EXIT_SCANNER_ERROR = 6
EXIT_MANIFEST_ERROR = 7
EXIT_USER_ABORT = 130


class DepGuardError(Exception):
    """Base error. `details` holds extra key/value context for display."""

    exit_code = EXIT_GENERAL_ERROR

    def __init__(
        self,
        message: str,
        cause: Optional[BaseException] = None,
        details: Optional[dict] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause
        self.details = dict(details or {})

    def __str__(self) -> str:
        if self.cause is not None:
            return f"{self.message}: {self.cause}"
        return self.message

    def with_detail(self, key: str, value) -> "DepGuardError":
        self.details[key] = value
        return self


class ConfigError(DepGuardError):
    exit_code = EXIT_CONFIG_ERROR


class ManifestError(DepGuardError):
    exit_code = EXIT_MANIFEST_ERROR


class ScannerErrorKind(str, Enum):
    AUTH = "auth"
    QUOTA = "quota"
    TRANSPORT = "transport"
    CANCELLED = "cancelled"


class ScannerError(DepGuardError):
    """
    A single scanner failed. Isolated to that scanner: the orchestrator only
    escalates when every scanner fails.
    """

    exit_code = EXIT_SCANNER_ERROR

    def __init__(
        self,
        scanner: str,
        message: str,
        kind: ScannerErrorKind = ScannerErrorKind.TRANSPORT,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(f"{scanner} scanner failed: {message}", cause)
        self.scanner = scanner
        self.kind = kind


class AllScannersFailedError(DepGuardError):
    """Every available scanner raised; no findings are trustworthy."""

    exit_code = EXIT_SCANNER_ERROR

    def __init__(self, errors: list) -> None:
        first = errors[0] if errors else None
        super().__init__("all security scanners failed", cause=first)
        self.errors = list(errors)

    @property
    def first_error(self) -> Optional[BaseException]:
        return self.cause


class PolicyBlockError(DepGuardError):
    exit_code = EXIT_SECURITY_BLOCK


class UserAbortError(DepGuardError):
    exit_code = EXIT_USER_ABORT

    def __init__(self, message: str = "operation cancelled by user") -> None:
        super().__init__(message)
