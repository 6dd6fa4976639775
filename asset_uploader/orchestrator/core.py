"""Core orchestrator - uploads a batch of files concurrently."""
import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Sequence

from ..models import BatchResult, ErrorKind, UploadConfig, UploadOutcome, UploadRequest
from ..protocols import BlobStore
from .single_upload import SingleUploadHandler

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[UploadOutcome, int, int], None]


class BatchUploadOrchestrator:
    """
    Uploads every file of a batch in parallel and waits for all of them.

    Follows:
    - Dependency Injection (blob store injected, no global client)
    - Single Responsibility (per-file work delegated to SingleUploadHandler)

    One file failing never cancels or delays the others. Partial failure is
    reported per element and never raised; deciding whether a partial batch
    is acceptable is left to the caller.

    Usage:
        orchestrator = BatchUploadOrchestrator(store, UploadConfig(key_prefix="imoveis"))
        result = await orchestrator.upload([
            UploadRequest(content=data, filename="front.jpg", mime_type="image/jpeg"),
        ])
        if not result.all_success:
            ...
    """

    def __init__(
        self,
        store: BlobStore,
        config: Optional[UploadConfig] = None,
        handler: Optional[SingleUploadHandler] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize orchestrator with dependencies.

        Args:
            store: Blob store shared by all upload tasks
            config: Upload configuration
            handler: Pre-built single file handler (built from store/config otherwise)
            sleep: Retry delay awaitable passed to the default handler
        """
        self._config = config or (handler.config if handler else UploadConfig())
        self._handler = handler or SingleUploadHandler(store, self._config, sleep=sleep)

    @property
    def config(self) -> UploadConfig:
        return self._config

    async def upload(
        self,
        batch: Sequence[UploadRequest],
        progress_callback: Optional[ProgressCallback] = None,
    ) -> BatchResult:
        """
        Upload a batch of files.

        Args:
            batch: Files to upload
            progress_callback: Called with (outcome, completed, total) as each
                file reaches a terminal state

        Returns:
            BatchResult whose i-th outcome belongs to batch[i]
        """
        requests = list(batch)
        if not requests:
            return BatchResult([])

        total = len(requests)
        total_bytes = sum(r.size for r in requests)
        logger.info(f"Starting upload: {total} file(s), {total_bytes / (1024 * 1024):.2f} MB")

        loop = asyncio.get_running_loop()
        timeout = self._config.batch_timeout
        deadline = loop.time() + timeout if timeout is not None else None
        semaphore = asyncio.Semaphore(self._config.max_parallel) if self._config.max_parallel else None

        outcomes: List[Optional[UploadOutcome]] = [None] * total
        completed = 0

        async def run(index: int, request: UploadRequest) -> None:
            nonlocal completed
            outcome = await self._upload_single_file(request, semaphore, deadline)
            outcomes[index] = outcome
            completed += 1
            self._notify(progress_callback, outcome, completed, total)

        tasks = [asyncio.create_task(run(idx, request)) for idx, request in enumerate(requests)]

        if deadline is None:
            await asyncio.gather(*tasks)
        else:
            _, pending = await asyncio.wait(tasks, timeout=max(deadline - loop.time(), 0))
            if pending:
                logger.warning(f"Batch deadline reached, cancelling {len(pending)} upload(s)")
                await self._cancel_remaining_tasks(pending)

        for idx, outcome in enumerate(outcomes):
            if outcome is None:
                outcome = UploadOutcome.fail(
                    requests[idx].filename,
                    ErrorKind.TIMEOUT,
                    detail="batch deadline exceeded",
                )
                outcomes[idx] = outcome
                completed += 1
                self._notify(progress_callback, outcome, completed, total)

        result = BatchResult(list(outcomes))
        logger.info(f"Upload complete: {result.succeeded} successful, {result.failed} failed")
        return result

    async def _upload_single_file(
        self,
        request: UploadRequest,
        semaphore: Optional[asyncio.Semaphore],
        deadline: Optional[float],
    ) -> UploadOutcome:
        """Run one upload, turning anything unexpected into a failed outcome."""
        try:
            if semaphore is None:
                return await self._handler.upload_one(request, deadline=deadline)
            async with semaphore:
                return await self._handler.upload_one(request, deadline=deadline)
        except Exception as e:
            error_msg = str(e) or type(e).__name__
            logger.exception(f"Unexpected error uploading {request.filename}: {error_msg}")
            return UploadOutcome.fail(request.filename, ErrorKind.PERMANENT_UPLOAD_FAILURE, detail=error_msg)

    @staticmethod
    def _notify(
        callback: Optional[ProgressCallback],
        outcome: UploadOutcome,
        completed: int,
        total: int,
    ) -> None:
        status = "✓" if outcome.success else "✗"
        logger.debug(f"[{completed}/{total}] {status} {outcome.filename}")
        if callback is None:
            return
        try:
            callback(outcome, completed, total)
        except Exception as e:
            logger.error(f"Error in progress callback for {outcome.filename}: {e}")

    @staticmethod
    async def _cancel_remaining_tasks(tasks) -> None:
        """Cancel unfinished tasks and wait for them to unwind."""
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
