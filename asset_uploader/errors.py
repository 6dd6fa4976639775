"""
Exceptions for the asset upload pipeline.

Per-file failures are reported as UploadOutcome values, not raised.
These exceptions travel between the blob store adapters and the
upload task, and between the caller helpers and their callers.
"""
from typing import Optional


class AssetUploadError(Exception):
    """Base class for all uploader errors."""


class ConfigurationError(AssetUploadError):
    """Storage credentials or configuration values are missing or invalid.

    Raised at startup only, before any batch is accepted.
    """


class TransientWriteError(AssetUploadError):
    """Network or stream failure while writing an object. Retryable."""

    def __init__(self, key: str, message: str = "write failed"):
        super().__init__(f"{message} ({key})")
        self.key = key


class ObjectRejectedError(AssetUploadError):
    """The store refused the object (too large, forbidden...). Not retryable."""

    def __init__(self, key: str, reason: str):
        super().__init__(f"object rejected: {reason} ({key})")
        self.key = key
        self.reason = reason


class PermanentUploadFailure(AssetUploadError):
    """Write retry budget exhausted without a finished stream."""

    def __init__(self, key: str, attempts: int, last_error: Optional[BaseException] = None):
        super().__init__(f"upload of {key} failed after {attempts} attempt(s): {last_error}")
        self.key = key
        self.attempts = attempts
        self.last_error = last_error


class SignedUrlError(AssetUploadError):
    """Object written but a read URL could not be minted."""

    def __init__(self, key: str, message: str = "could not sign read url"):
        super().__init__(f"{message} ({key})")
        self.key = key


class NoValidUrlError(AssetUploadError):
    """A batch produced no URL that could be attached to a record."""


class InvalidListingIdError(AssetUploadError):
    """The target listing identifier is not an integer."""


class APIError(AssetUploadError):
    """Marketplace API answered with an error status."""

    def __init__(self, status_code: int, method: str, endpoint: str, detail):
        super().__init__(f"API error {status_code} on {method} {endpoint}: {detail}")
        self.status_code = status_code
        self.detail = detail


class UploadTimeoutError(AssetUploadError):
    """The batch deadline passed before the file reached a terminal state."""

    def __init__(self, key: str):
        super().__init__(f"batch deadline exceeded ({key})")
        self.key = key
