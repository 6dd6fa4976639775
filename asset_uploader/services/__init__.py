"""Services for the uploader: blob stores, key generation and API adapters."""
from .api_client import HTTPAPIClient
from .gcs_store import GCSBlobStore
from .keys import make_storage_key
from .memory_store import InMemoryBlobStore
from .repository import ListingImageRepository

__all__ = [
    "GCSBlobStore",
    "HTTPAPIClient",
    "InMemoryBlobStore",
    "ListingImageRepository",
    "make_storage_key",
]
