"""
Pytest configuration for asset_uploader tests.

ScriptedBlobStore is an InMemoryBlobStore whose writes can be told to
fail a number of times, or to take a while, per file content.
"""
import asyncio
from collections import Counter
from typing import Dict, List, Optional

import pytest

from asset_uploader.errors import TransientWriteError
from asset_uploader.models import UploadConfig, UploadRequest
from asset_uploader.services.memory_store import InMemoryBlobStore, InMemoryWriteStream


ALWAYS = 10 ** 6


class ScriptedWriteStream(InMemoryWriteStream):
    async def finish(self) -> None:
        store: "ScriptedBlobStore" = self._store
        data = b"".join(self._chunks)
        store.in_flight += 1
        store.max_in_flight = max(store.max_in_flight, store.in_flight)
        try:
            delay = store.delays.get(data, 0)
            if delay:
                await asyncio.sleep(delay)
            if store.should_fail(self._key, data):
                await self.abort()
                raise TransientWriteError(self._key, "connection reset by peer")
            await super().finish()
        finally:
            store.in_flight -= 1


class ScriptedBlobStore(InMemoryBlobStore):
    """
    Args:
        write_failures: content -> number of leading attempts that fail
        sign_failures: number of leading sign_read_url calls that fail
        delays: content -> seconds finish() takes
    """

    def __init__(
        self,
        write_failures: Optional[Dict[bytes, int]] = None,
        sign_failures: int = 0,
        delays: Optional[Dict[bytes, float]] = None,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.write_failures = write_failures or {}
        self.sign_failures = sign_failures
        self.delays = delays or {}
        self.attempts: Counter = Counter()
        self.sign_calls = 0
        self.in_flight = 0
        self.max_in_flight = 0
        self.finished_order: List[str] = []

    async def open_write_stream(self, key, content_type):
        self.opened_keys.append(key)
        self.attempts[key] += 1
        return ScriptedWriteStream(self, key, content_type)

    def should_fail(self, key: str, data: bytes) -> bool:
        return self.attempts[key] <= self.write_failures.get(data, 0)

    def _commit(self, key, data, content_type):
        super()._commit(key, data, content_type)
        self.finished_order.append(key)

    async def sign_read_url(self, key, expires_at):
        self.sign_calls += 1
        if self.sign_calls <= self.sign_failures:
            raise ConnectionError("metadata server unreachable")
        return await super().sign_read_url(key, expires_at)


class RecordingSleep:
    """Stand-in for asyncio.sleep that records the requested delays."""

    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.calls.append(delay)
        await asyncio.sleep(0)


def make_request(content: bytes, filename: str = "photo.jpg", mime_type: str = "image/jpeg") -> UploadRequest:
    return UploadRequest(content=content, filename=filename, mime_type=mime_type)


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def config():
    return UploadConfig()


@pytest.fixture
def store():
    return ScriptedBlobStore()
