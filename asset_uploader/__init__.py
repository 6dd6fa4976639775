"""
asset_uploader - batch upload of listing assets to blob storage.

Takes the in-memory files of one request, writes each to the blob store
under a unique key with bounded retry, and returns a long-lived signed
read URL (or a failure) per file, in input order.

Usage:
    from asset_uploader import BatchUploadOrchestrator, UploadConfig, UploadRequest
    from asset_uploader.services import GCSBlobStore
    from asset_uploader.models import StorageSettings

    store = GCSBlobStore.from_settings(StorageSettings.from_env())
    orchestrator = BatchUploadOrchestrator(store, UploadConfig.from_env())

    result = await orchestrator.upload([
        UploadRequest(content=data, filename="living-room.jpg", mime_type="image/jpeg"),
    ])
    for outcome in result:
        print(outcome.filename, outcome.url or outcome.error)
"""
from .errors import (
    AssetUploadError,
    ConfigurationError,
    ObjectRejectedError,
    PermanentUploadFailure,
    SignedUrlError,
    TransientWriteError,
)
from .models import (
    BatchResult,
    ErrorKind,
    StorageSettings,
    UploadConfig,
    UploadOutcome,
    UploadRequest,
    UploadState,
    UploadStatus,
)
from .orchestrator import BatchUploadOrchestrator, SingleUploadHandler
from .protocols import BlobStore, BlobWriteStream

__version__ = "0.1.0"
__all__ = [
    # Main
    "BatchUploadOrchestrator",
    "SingleUploadHandler",
    # Models
    "BatchResult",
    "ErrorKind",
    "StorageSettings",
    "UploadConfig",
    "UploadOutcome",
    "UploadRequest",
    "UploadState",
    "UploadStatus",
    # Interfaces
    "BlobStore",
    "BlobWriteStream",
    # Errors
    "AssetUploadError",
    "ConfigurationError",
    "ObjectRejectedError",
    "PermanentUploadFailure",
    "SignedUrlError",
    "TransientWriteError",
]
