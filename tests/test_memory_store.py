"""Tests for the in-memory blob store."""
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from asset_uploader.errors import ObjectRejectedError
from asset_uploader.protocols import BlobStore, BlobWriteStream
from asset_uploader.services.memory_store import InMemoryBlobStore

FAR_FUTURE = datetime(2500, 3, 9, tzinfo=timezone.utc)


def test_implements_protocols():
    store = InMemoryBlobStore()
    assert isinstance(store, BlobStore)


@pytest.mark.asyncio
async def test_object_visible_only_after_finish():
    store = InMemoryBlobStore()
    stream = await store.open_write_stream("imoveis/a.jpg", "image/jpeg")
    assert isinstance(stream, BlobWriteStream)

    await stream.write(b"part-1,")
    await stream.write(b"part-2")
    assert not store.exists("imoveis/a.jpg")

    await stream.finish()
    assert store.get("imoveis/a.jpg") == b"part-1,part-2"


@pytest.mark.asyncio
async def test_aborted_stream_leaves_nothing():
    store = InMemoryBlobStore()
    stream = await store.open_write_stream("imoveis/a.jpg", "image/jpeg")
    await stream.write(b"half")
    await stream.abort()

    assert store.keys == []
    with pytest.raises(FileNotFoundError):
        await store.sign_read_url("imoveis/a.jpg", FAR_FUTURE)


@pytest.mark.asyncio
async def test_rejects_oversized_object():
    store = InMemoryBlobStore(max_object_bytes=3)
    stream = await store.open_write_stream("imoveis/big.bin", "application/octet-stream")

    with pytest.raises(ObjectRejectedError):
        await stream.write(b"1234")


@pytest.mark.asyncio
async def test_expired_url_is_refused():
    store = InMemoryBlobStore()
    stream = await store.open_write_stream("imoveis/a.jpg", "image/jpeg")
    await stream.write(b"x")
    await stream.finish()

    url = await store.sign_read_url("imoveis/a.jpg", datetime.now(timezone.utc) - timedelta(seconds=5))
    async with httpx.AsyncClient(transport=store.transport()) as client:
        response = await client.get(url)

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_delete_removes_object():
    store = InMemoryBlobStore()
    stream = await store.open_write_stream("imoveis/a.jpg", "image/jpeg")
    await stream.write(b"x")
    await stream.finish()

    await store.delete("imoveis/a.jpg")
    await store.delete("imoveis/never-existed.jpg")

    assert store.keys == []
    assert store.deleted_keys == ["imoveis/a.jpg", "imoveis/never-existed.jpg"]
