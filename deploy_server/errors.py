"""Exception hierarchy for the deployment server.

Every request-level failure is a DeployError carrying the HTTP status code
it should be reported with. The application's exception handlers turn these
into the standard JSON envelope, so handlers and helpers simply raise.

Hierarchy:
    DeployError
    +-- BadRequestError        (400)
    +-- UnauthorizedError      (401)
    +-- PayloadTooLargeError   (413)
    +-- InternalError          (500)
    |   +-- ExtractionError    (500, with an ExtractionErrorKind)
    +-- UnsafePathError        (400, raised by the path guard)
"""

from __future__ import annotations

from enum import Enum


class DeployError(Exception):
    """Base class for failures that abort a request.

    Attributes:
        message: Human-readable description sent back to the caller.
        status_code: HTTP status code for the error envelope.
    """

    status_code: int = 500

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class BadRequestError(DeployError):
    status_code = 400


class UnauthorizedError(DeployError):
    status_code = 401


class LengthRequiredError(DeployError):
    status_code = 411


class PayloadTooLargeError(DeployError):
    status_code = 413


class InternalError(DeployError):
    status_code = 500


class UnsafePathError(DeployError):
    """A caller-supplied path escapes its containment root.

    Attributes:
        candidate: The rejected relative path as supplied.
    """

    status_code = 400

    def __init__(self, candidate: str, message: str | None = None) -> None:
        super().__init__(message or f"illegal file path: {candidate}")
        self.candidate = candidate


class ExtractionErrorKind(str, Enum):
    """Why an archive extraction stopped."""

    MALFORMED = "malformed"
    UNSAFE_PATH = "unsafe_path"
    IO_FAILURE = "io_failure"


class ExtractionError(InternalError):
    """Archive extraction failed; partial output is left on disk.

    Attributes:
        kind: Failure category.
        entry_name: Archive entry being processed when it failed, if any.
    """

    def __init__(
        self,
        kind: ExtractionErrorKind,
        message: str,
        entry_name: str | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.entry_name = entry_name
