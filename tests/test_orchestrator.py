"""Tests for the batch upload orchestrator."""
from unittest.mock import AsyncMock

import httpx
import pytest

from asset_uploader.models import ErrorKind, UploadConfig, UploadOutcome, UploadStatus
from asset_uploader.orchestrator.core import BatchUploadOrchestrator
from asset_uploader.services.memory_store import InMemoryBlobStore

from conftest import ALWAYS, ScriptedBlobStore, make_request


def _orchestrator(store, sleep, **config):
    return BatchUploadOrchestrator(store, UploadConfig(**config), sleep=sleep)


@pytest.mark.asyncio
async def test_empty_batch_returns_empty_result_without_io(sleep):
    store = AsyncMock()
    orchestrator = _orchestrator(store, sleep)

    result = await orchestrator.upload([])

    assert len(result) == 0
    assert result.all_success is True
    store.open_write_stream.assert_not_called()
    store.sign_read_url.assert_not_called()


@pytest.mark.asyncio
async def test_result_order_follows_input_not_completion(sleep):
    contents = [f"file-{i}".encode() for i in range(6)]
    # Later files finish first.
    delays = {content: 0.01 * (len(contents) - i) for i, content in enumerate(contents)}
    store = ScriptedBlobStore(delays=delays)
    completion = []
    orchestrator = _orchestrator(store, sleep)

    batch = [make_request(c, f"photo-{i}.jpg") for i, c in enumerate(contents)]
    result = await orchestrator.upload(
        batch,
        progress_callback=lambda outcome, done, total: completion.append(outcome.filename),
    )

    assert len(result) == len(batch)
    assert completion == [r.filename for r in reversed(batch)]
    for request, outcome in zip(batch, result):
        assert outcome.filename == request.filename
        assert store.get(outcome.key) == request.content


@pytest.mark.asyncio
async def test_failing_file_does_not_affect_others(sleep):
    store = ScriptedBlobStore(write_failures={b"bad": ALWAYS})
    orchestrator = _orchestrator(store, sleep)

    result = await orchestrator.upload([
        make_request(b"bad", "broken.jpg"),
        make_request(b"good", "fine.jpg"),
    ])

    assert [o.status for o in result] == [UploadStatus.FAILED, UploadStatus.SUCCESS]
    assert result[0].error == ErrorKind.PERMANENT_UPLOAD_FAILURE
    assert result[0].attempts == 3
    assert result[1].attempts == 1
    assert store.get(result[1].key) == b"good"
    assert result.urls == [result[1].url]
    assert result.succeeded == 1
    assert result.failed == 1
    assert result.all_success is False


@pytest.mark.asyncio
async def test_mixed_batch_recovers_and_fails_independently(sleep):
    store = ScriptedBlobStore(write_failures={b"flaky": 2, b"bad": ALWAYS})
    orchestrator = _orchestrator(store, sleep)

    result = await orchestrator.upload([
        make_request(b"flaky", "a.jpg"),
        make_request(b"bad", "b.jpg"),
        make_request(b"good", "c.jpg"),
    ])

    assert [o.success for o in result] == [True, False, True]
    assert [o.attempts for o in result] == [3, 3, 1]


@pytest.mark.asyncio
async def test_uploads_run_concurrently(sleep):
    contents = [f"c{i}".encode() for i in range(5)]
    store = ScriptedBlobStore(delays={c: 0.05 for c in contents})
    orchestrator = _orchestrator(store, sleep)

    result = await orchestrator.upload([make_request(c) for c in contents])

    assert result.all_success is True
    assert store.max_in_flight == 5


@pytest.mark.asyncio
async def test_max_parallel_bounds_concurrency(sleep):
    contents = [f"c{i}".encode() for i in range(6)]
    store = ScriptedBlobStore(delays={c: 0.02 for c in contents})
    orchestrator = _orchestrator(store, sleep, max_parallel=2)

    result = await orchestrator.upload([make_request(c) for c in contents])

    assert result.all_success is True
    assert store.max_in_flight == 2


@pytest.mark.asyncio
async def test_identical_filenames_get_distinct_keys(sleep):
    store = ScriptedBlobStore()
    orchestrator = _orchestrator(store, sleep)

    result = await orchestrator.upload([make_request(b"same", "photo.jpg") for _ in range(300)])

    keys = [o.key for o in result]
    assert len(set(keys)) == 300
    assert len(store.keys) == 300


@pytest.mark.asyncio
async def test_returned_url_serves_written_bytes(sleep):
    store = ScriptedBlobStore()
    orchestrator = _orchestrator(store, sleep)
    payload = bytes(range(256)) * 4

    result = await orchestrator.upload([make_request(payload, "plan.pdf", "application/pdf")])

    async with httpx.AsyncClient(transport=store.transport()) as client:
        response = await client.get(result[0].url)

    assert response.status_code == 200
    assert response.content == payload
    assert response.headers["content-type"] == "application/pdf"


@pytest.mark.asyncio
async def test_tampered_url_is_refused(sleep):
    store = ScriptedBlobStore()
    orchestrator = _orchestrator(store, sleep)

    result = await orchestrator.upload([make_request(b"secret")])
    tampered = result[0].url.replace("Signature=", "Signature=0")

    async with httpx.AsyncClient(transport=store.transport()) as client:
        response = await client.get(tampered)

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_unexpected_handler_error_fails_only_that_file():
    async def upload_one(request, deadline=None):
        if request.filename == "boom.jpg":
            raise RuntimeError("handler exploded")
        return UploadOutcome.ok(request.filename, url=f"https://cdn/{request.filename}", key="k")

    handler = AsyncMock()
    handler.config = UploadConfig()
    handler.upload_one.side_effect = upload_one
    orchestrator = BatchUploadOrchestrator(AsyncMock(), handler=handler)

    result = await orchestrator.upload([
        make_request(b"1", "ok.jpg"),
        make_request(b"2", "boom.jpg"),
    ])

    assert result[0].success is True
    assert result[1].error == ErrorKind.PERMANENT_UPLOAD_FAILURE
    assert result[1].detail == "handler exploded"


@pytest.mark.asyncio
async def test_batch_timeout_fails_outstanding_files(sleep):
    store = ScriptedBlobStore(delays={b"slow": 5.0})
    orchestrator = _orchestrator(store, sleep, batch_timeout=0.1)

    result = await orchestrator.upload([
        make_request(b"fast", "fast.jpg"),
        make_request(b"slow", "slow.jpg"),
    ])

    assert result[0].success is True
    assert result[1].error == ErrorKind.TIMEOUT
    assert len(store.keys) == 1
    assert store.in_flight == 0
    assert store.deleted_keys == [k for k in store.opened_keys if k != result[0].key]
    assert len(store.deleted_keys) == 1


@pytest.mark.asyncio
async def test_progress_callback_errors_are_contained(sleep):
    store = ScriptedBlobStore()
    orchestrator = _orchestrator(store, sleep)
    calls = []

    def callback(outcome, done, total):
        calls.append((done, total))
        raise ValueError("display crashed")

    result = await orchestrator.upload([make_request(b"a"), make_request(b"b")], progress_callback=callback)

    assert result.all_success is True
    assert sorted(calls) == [(1, 2), (2, 2)]


@pytest.mark.asyncio
async def test_rejected_file_fails_alone_in_batch(sleep):
    store = InMemoryBlobStore(max_object_bytes=8)
    orchestrator = _orchestrator(store, sleep)

    result = await orchestrator.upload([
        make_request(b"small", "a.jpg"),
        make_request(b"far too large for the store", "b.jpg"),
        make_request(b"tiny", "c.jpg"),
    ])

    assert [o.status for o in result] == [UploadStatus.SUCCESS, UploadStatus.FAILED, UploadStatus.SUCCESS]
    assert result[1].error == ErrorKind.REJECTED
    assert result[1].attempts == 1
    assert sleep.calls == []
    assert sorted(store.keys) == sorted([result[0].key, result[2].key])
