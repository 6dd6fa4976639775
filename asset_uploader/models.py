"""
Models for the asset upload pipeline.

Immutable dataclasses for requests, per-file outcomes and configuration.
"""
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Iterator, List, Optional

from .errors import ConfigurationError


class UploadStatus(Enum):
    """Terminal status of one file."""
    SUCCESS = "success"
    FAILED = "failed"


class ErrorKind(Enum):
    """Why a file did not produce a URL."""
    PERMANENT_UPLOAD_FAILURE = "permanent_upload_failure"
    SIGNED_URL_ERROR = "signed_url_error"
    REJECTED = "rejected"
    TIMEOUT = "timeout"


class UploadState(Enum):
    """Per-file upload state machine."""
    PENDING = "pending"
    WRITING = "writing"
    FINISHED = "finished"
    URL_REQUESTED = "url_requested"
    SUCCEEDED = "succeeded"
    WRITE_FAILED = "write_failed"
    PERMANENTLY_FAILED = "permanently_failed"

    @property
    def is_terminal(self) -> bool:
        return self in (UploadState.SUCCEEDED, UploadState.PERMANENTLY_FAILED)


@dataclass(frozen=True)
class UploadRequest:
    """One in-memory file of a batch, as received by the request handler."""
    content: bytes
    filename: str
    mime_type: str = "application/octet-stream"

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass(frozen=True)
class UploadOutcome:
    """Immutable result of uploading one file."""
    filename: str
    status: UploadStatus = UploadStatus.SUCCESS
    url: Optional[str] = None
    key: Optional[str] = None
    error: Optional[ErrorKind] = None
    detail: Optional[str] = None
    attempts: int = 0

    @property
    def success(self) -> bool:
        return self.status == UploadStatus.SUCCESS

    @classmethod
    def ok(cls, filename: str, url: str, key: str, attempts: int = 1):
        return cls(
            filename=filename,
            status=UploadStatus.SUCCESS,
            url=url,
            key=key,
            attempts=attempts,
        )

    @classmethod
    def fail(
        cls,
        filename: str,
        error: ErrorKind,
        detail: Optional[str] = None,
        key: Optional[str] = None,
        attempts: int = 0,
    ):
        return cls(
            filename=filename,
            status=UploadStatus.FAILED,
            key=key,
            error=error,
            detail=detail,
            attempts=attempts,
        )


@dataclass
class BatchResult:
    """Outcomes of one batch, index-aligned with the input batch."""
    outcomes: List[UploadOutcome] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.outcomes)

    def __iter__(self) -> Iterator[UploadOutcome]:
        return iter(self.outcomes)

    def __getitem__(self, index: int) -> UploadOutcome:
        return self.outcomes[index]

    @property
    def urls(self) -> List[str]:
        """URLs of successful files, in input order."""
        return [o.url for o in self.outcomes if o.success and o.url]

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.success)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if not o.success)

    @property
    def all_success(self) -> bool:
        return self.failed == 0


# Far-future expiry used by the original signed URLs ("never expires").
DEFAULT_URL_EXPIRY = datetime(2500, 3, 9, tzinfo=timezone.utc)


def _env_int(name: str, default: Optional[int], minimum: int) -> Optional[int]:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from exc
    if value < minimum:
        raise ConfigurationError(f"{name} must be >= {minimum}, got {value}")
    return value


def _env_float(name: str, default: Optional[float]) -> Optional[float]:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from exc
    if value < 0:
        raise ConfigurationError(f"{name} must not be negative, got {value}")
    return value


def _env_bool(name: str, default: bool) -> bool:
    raw = (os.getenv(name) or "").strip().lower()
    if not raw:
        return default
    if raw in {"1", "true", "yes", "on"}:
        return True
    if raw in {"0", "false", "no", "off"}:
        return False
    raise ConfigurationError(f"{name} must be a boolean, got {raw!r}")


@dataclass(frozen=True)
class UploadConfig:
    """Immutable configuration for upload operations."""
    key_prefix: str = "imoveis"
    max_attempts: int = 3
    retry_delay: float = 3.0  # seconds, flat between attempts
    url_attempts: int = 3
    url_expires_at: datetime = DEFAULT_URL_EXPIRY
    max_parallel: Optional[int] = None  # None = one task per file, no bound
    batch_timeout: Optional[float] = None  # seconds
    cleanup_on_failure: bool = True

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ConfigurationError("max_attempts must be >= 1")
        if self.url_attempts < 1:
            raise ConfigurationError("url_attempts must be >= 1")
        if self.retry_delay < 0:
            raise ConfigurationError("retry_delay must not be negative")
        if self.max_parallel is not None and self.max_parallel < 1:
            raise ConfigurationError("max_parallel must be >= 1")
        if self.batch_timeout is not None and self.batch_timeout <= 0:
            raise ConfigurationError("batch_timeout must be positive")
        if not self.key_prefix.strip("/"):
            raise ConfigurationError("key_prefix must not be empty")

    @classmethod
    def from_env(cls) -> "UploadConfig":
        """Build configuration from ASSET_UPLOAD_* environment variables."""
        defaults = cls()
        return cls(
            key_prefix=(os.getenv("ASSET_UPLOAD_KEY_PREFIX") or defaults.key_prefix).strip(),
            max_attempts=_env_int("ASSET_UPLOAD_MAX_ATTEMPTS", defaults.max_attempts, 1),
            retry_delay=_env_float("ASSET_UPLOAD_RETRY_DELAY", defaults.retry_delay),
            url_attempts=_env_int("ASSET_UPLOAD_URL_ATTEMPTS", defaults.url_attempts, 1),
            max_parallel=_env_int("ASSET_UPLOAD_MAX_PARALLEL", None, 1),
            batch_timeout=_env_float("ASSET_UPLOAD_BATCH_TIMEOUT", None),
            cleanup_on_failure=_env_bool("ASSET_UPLOAD_CLEANUP_ON_FAILURE", True),
        )


DEFAULT_KEY_PATH = "/etc/secrets/firebase-key.json"
LOCAL_KEY_PATH = Path("etc/secrets/firebase-key.json")


@dataclass(frozen=True)
class StorageSettings:
    """Blob store location and credentials."""
    bucket: str
    key_path: Optional[Path] = None

    @classmethod
    def from_env(cls) -> "StorageSettings":
        """
        Read FIREBASE_STORAGE_BUCKET and FIREBASE_KEY_PATH.

        Falls back to a local etc/secrets/firebase-key.json when the
        configured key file does not exist.

        Raises:
            ConfigurationError: bucket is not set or no key file exists
        """
        bucket = (os.getenv("FIREBASE_STORAGE_BUCKET") or "").strip()
        if not bucket:
            raise ConfigurationError("FIREBASE_STORAGE_BUCKET environment variable is not set")

        key_path = Path(os.getenv("FIREBASE_KEY_PATH") or DEFAULT_KEY_PATH)
        if not key_path.is_file():
            if not LOCAL_KEY_PATH.is_file():
                raise ConfigurationError(
                    f"service account key not found at {key_path} or {LOCAL_KEY_PATH}"
                )
            key_path = LOCAL_KEY_PATH
        return cls(bucket=bucket, key_path=key_path)
