"""
In-memory blob store.

Implements the BlobStore protocol inside the process. Used for dry runs
from the CLI and as the fake store in tests. Signed URLs can be
dereferenced through ``transport()``, an httpx transport that serves the
stored objects.
"""
import hashlib
import hmac
import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple
from urllib.parse import quote, unquote

import httpx

from ..errors import ObjectRejectedError

logger = logging.getLogger(__name__)


class InMemoryWriteStream:
    """Buffers writes and commits them to the store on finish()."""

    def __init__(self, store: "InMemoryBlobStore", key: str, content_type: str):
        self._store = store
        self._key = key
        self._content_type = content_type
        self._chunks: List[bytes] = []
        self._size = 0
        self._closed = False

    async def write(self, data: bytes) -> None:
        if self._closed:
            raise RuntimeError(f"stream for {self._key} is closed")
        self._size += len(data)
        limit = self._store.max_object_bytes
        if limit is not None and self._size > limit:
            raise ObjectRejectedError(self._key, f"object exceeds {limit} bytes")
        self._chunks.append(bytes(data))

    async def finish(self) -> None:
        if self._closed:
            raise RuntimeError(f"stream for {self._key} is closed")
        self._closed = True
        self._store._commit(self._key, b"".join(self._chunks), self._content_type)

    async def abort(self) -> None:
        self._closed = True
        self._chunks.clear()


class InMemoryBlobStore:
    """
    Process-local object store with signed read URLs.

    Objects become visible only when their write stream finishes, so an
    interrupted write never leaves an addressable object behind.
    """

    def __init__(
        self,
        bucket: str = "assets",
        base_url: str = "https://storage.local",
        max_object_bytes: Optional[int] = None,
        secret: bytes = b"in-memory-signing-key",
    ):
        self.bucket = bucket
        self.base_url = base_url.rstrip("/")
        self.max_object_bytes = max_object_bytes
        self._secret = secret
        self._objects: Dict[str, Tuple[bytes, str]] = {}
        self.opened_keys: List[str] = []
        self.deleted_keys: List[str] = []

    # --- BlobStore protocol -------------------------------------------------

    async def open_write_stream(self, key: str, content_type: str) -> InMemoryWriteStream:
        self.opened_keys.append(key)
        return InMemoryWriteStream(self, key, content_type)

    async def sign_read_url(self, key: str, expires_at: datetime) -> str:
        if key not in self._objects:
            raise FileNotFoundError(f"no object at {key}")
        expires = int(expires_at.timestamp())
        signature = self._sign(key, expires)
        return (
            f"{self.base_url}/{self.bucket}/{quote(key)}"
            f"?Expires={expires}&Signature={signature}"
        )

    async def delete(self, key: str) -> None:
        self.deleted_keys.append(key)
        self._objects.pop(key, None)

    # --- Helpers ------------------------------------------------------------

    def _commit(self, key: str, data: bytes, content_type: str) -> None:
        self._objects[key] = (data, content_type)
        logger.debug(f"[memory-store] stored {key} ({len(data)} bytes, {content_type})")

    def _sign(self, key: str, expires: int) -> str:
        message = f"GET\n{self.bucket}/{key}\n{expires}".encode()
        return hmac.new(self._secret, message, hashlib.sha256).hexdigest()

    def exists(self, key: str) -> bool:
        return key in self._objects

    def get(self, key: str) -> bytes:
        return self._objects[key][0]

    def content_type(self, key: str) -> str:
        return self._objects[key][1]

    @property
    def keys(self) -> List[str]:
        return list(self._objects)

    def transport(self) -> httpx.MockTransport:
        """httpx transport that answers GETs on signed URLs with object bytes."""

        def handler(request: httpx.Request) -> httpx.Response:
            prefix = f"/{self.bucket}/"
            path = request.url.path
            if request.method != "GET" or not path.startswith(prefix):
                return httpx.Response(404)
            key = unquote(path[len(prefix):])
            try:
                expires = int(request.url.params.get("Expires", ""))
            except ValueError:
                return httpx.Response(403, text="missing expiry")
            signature = request.url.params.get("Signature", "")
            if not hmac.compare_digest(signature, self._sign(key, expires)):
                return httpx.Response(403, text="bad signature")
            if expires < datetime.now(timezone.utc).timestamp():
                return httpx.Response(403, text="url expired")
            if key not in self._objects:
                return httpx.Response(404)
            data, content_type = self._objects[key]
            return httpx.Response(200, content=data, headers={"content-type": content_type})

        return httpx.MockTransport(handler)


__all__ = ["InMemoryBlobStore", "InMemoryWriteStream"]
