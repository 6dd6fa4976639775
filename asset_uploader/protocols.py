"""
Protocols (Interfaces) for Dependency Inversion.

The pipeline depends only on these small surfaces so any object store
with a streamed write and a signed read URL can be plugged in.
"""
from datetime import datetime
from typing import Any, Dict, Protocol, runtime_checkable


@runtime_checkable
class BlobWriteStream(Protocol):
    """An open write to one key. Nothing is visible until finish() returns."""

    async def write(self, data: bytes) -> None:
        """Append data to the pending object."""
        ...

    async def finish(self) -> None:
        """Complete the write. Raises if the store did not accept it."""
        ...

    async def abort(self) -> None:
        """Drop the pending write without exposing it."""
        ...


@runtime_checkable
class BlobStore(Protocol):
    """Interface for object storage operations."""

    async def open_write_stream(self, key: str, content_type: str) -> BlobWriteStream:
        """Open a write stream for key."""
        ...

    async def sign_read_url(self, key: str, expires_at: datetime) -> str:
        """Return a signed URL granting read access until expires_at."""
        ...

    async def delete(self, key: str) -> None:
        """Remove key if it exists."""
        ...


@runtime_checkable
class IAPIClient(Protocol):
    """Interface for API operations."""

    async def post(self, endpoint: str, json: Dict) -> Any:
        """POST request to API."""
        ...

    async def get(self, endpoint: str) -> Any:
        """GET request to API."""
        ...


@runtime_checkable
class ImageRecordRepository(Protocol):
    """Persists the association between an uploaded URL and a listing."""

    async def create_image(self, listing_id: int, url: str) -> Dict[str, Any]:
        ...
