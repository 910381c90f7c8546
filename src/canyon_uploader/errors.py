"""Exceptions raised by the coverage upload pipeline."""

from __future__ import annotations


class CanyonUploadError(RuntimeError):
    """Base class for every fatal upload condition."""


class InputError(CanyonUploadError):
    """Raised when a required input is missing or an input value is invalid."""


class CoverageParseError(CanyonUploadError):
    """Raised when a coverage file cannot be decoded as a JSON object."""

    def __init__(self, path: str, detail: str) -> None:
        super().__init__(f"Failed to parse coverage file {path}: {detail}")
        self.path = path


class EmptyCoverageError(CanyonUploadError):
    """Raised when the merged coverage map has no entries."""


class CanyonClientError(CanyonUploadError):
    """Raised when a Canyon API request fails."""


class CanyonHTTPError(CanyonClientError):
    """Raised when the Canyon server answers with a non-2xx status."""

    def __init__(self, status_code: int, reason: str, body: str) -> None:
        super().__init__(f"HTTP {status_code}: {reason}\n{body}")
        self.status_code = status_code
        self.reason = reason
        self.body = body


class CanyonRejectedError(CanyonClientError):
    """Raised when the Canyon server answers ``success: false``."""
