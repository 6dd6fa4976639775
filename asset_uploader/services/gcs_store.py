"""
GCS Blob Store - Single Responsibility: move bytes to Google Cloud Storage.

Backs Firebase Storage buckets as well. The google-cloud-storage SDK is
blocking, so every call runs in a worker thread.
"""
import asyncio
import logging
from datetime import datetime
from typing import Optional

from google.api_core import exceptions as api_exceptions
from google.cloud import storage

from ..errors import ConfigurationError, ObjectRejectedError, TransientWriteError
from ..models import StorageSettings

logger = logging.getLogger(__name__)

# Status codes in the 4xx range that are still worth retrying.
RETRYABLE_CLIENT_CODES = {408, 429}


def _translate_write_error(key: str, exc: Exception) -> Exception:
    """Map SDK errors to the retryable / non-retryable split."""
    if isinstance(exc, (TransientWriteError, ObjectRejectedError)):
        return exc
    if isinstance(exc, api_exceptions.ClientError) and exc.code not in RETRYABLE_CLIENT_CODES:
        return ObjectRejectedError(key, str(exc))
    return TransientWriteError(key, f"{type(exc).__name__}: {exc}")


class GCSWriteStream:
    """
    Resumable write to one blob.

    The object is created by the service only when the writer is closed,
    so an aborted stream leaves nothing addressable. Cancelling an await
    does not stop the worker thread behind it, so the in-flight call is
    kept and abort() waits for it to settle.
    """

    def __init__(self, key: str, writer):
        self._key = key
        self._writer = writer
        self._pending: Optional[asyncio.Future] = None

    async def _run(self, func, *args) -> None:
        self._pending = asyncio.ensure_future(asyncio.to_thread(func, *args))
        try:
            await asyncio.shield(self._pending)
        except Exception as e:
            raise _translate_write_error(self._key, e) from e

    async def write(self, data: bytes) -> None:
        await self._run(self._writer.write, data)

    async def finish(self) -> None:
        await self._run(self._writer.close)

    async def abort(self) -> None:
        pending, self._pending = self._pending, None
        if pending is not None:
            # A close already running in its thread may still finalize the
            # object; the caller's delete must come after it.
            try:
                await pending
            except Exception as e:
                logger.debug(f"[gcs] In-flight call for {self._key} ended with {e}")
        # An unclosed resumable session is never finalized into an object.
        self._writer = None


class GCSBlobStore:
    """
    BlobStore backed by a google.cloud.storage bucket.

    Usage:
        store = GCSBlobStore.from_settings(StorageSettings.from_env())
        stream = await store.open_write_stream("imoveis/abc.jpg", "image/jpeg")
    """

    def __init__(self, bucket: storage.Bucket, chunk_size: Optional[int] = None):
        """
        Args:
            bucket: Bucket handle from an authenticated storage.Client
            chunk_size: Resumable upload chunk size (multiple of 256 KiB)
        """
        self._bucket = bucket
        self._chunk_size = chunk_size

    @classmethod
    def from_settings(cls, settings: StorageSettings) -> "GCSBlobStore":
        """
        Build the store from service-account credentials.

        Raises:
            ConfigurationError: credentials cannot be loaded
        """
        try:
            if settings.key_path is not None:
                client = storage.Client.from_service_account_json(str(settings.key_path))
            else:
                client = storage.Client()
        except Exception as e:
            raise ConfigurationError(f"could not initialize storage client: {e}") from e
        logger.info(f"[gcs] Using bucket {settings.bucket}")
        return cls(client.bucket(settings.bucket))

    @property
    def bucket_name(self) -> str:
        return self._bucket.name

    async def open_write_stream(self, key: str, content_type: str) -> GCSWriteStream:
        blob = self._bucket.blob(key)

        def _open():
            return blob.open("wb", content_type=content_type, chunk_size=self._chunk_size)

        try:
            writer = await asyncio.to_thread(_open)
        except Exception as e:
            raise _translate_write_error(key, e) from e
        return GCSWriteStream(key, writer)

    async def sign_read_url(self, key: str, expires_at: datetime) -> str:
        blob = self._bucket.blob(key)
        # V4 signatures are capped at 7 days; V2 accepts far-future expiries.
        return await asyncio.to_thread(
            blob.generate_signed_url,
            version="v2",
            expiration=expires_at,
            method="GET",
        )

    async def delete(self, key: str) -> None:
        blob = self._bucket.blob(key)
        try:
            await asyncio.to_thread(blob.delete)
        except api_exceptions.NotFound:
            logger.debug(f"[gcs] Nothing to delete at {key}")


__all__ = ["GCSBlobStore", "GCSWriteStream"]
