"""Single file upload with bounded retry."""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional

from ..errors import (
    ObjectRejectedError,
    PermanentUploadFailure,
    SignedUrlError,
    UploadTimeoutError,
)
from ..models import ErrorKind, UploadConfig, UploadOutcome, UploadRequest, UploadState
from ..protocols import BlobStore, BlobWriteStream
from ..services.keys import make_storage_key

logger = logging.getLogger(__name__)


@dataclass
class UploadRun:
    """Mutable progress of one file through the upload state machine."""
    key: str
    filename: str
    state: UploadState = UploadState.PENDING
    attempts: int = 0
    history: List[UploadState] = field(default_factory=lambda: [UploadState.PENDING])


class SingleUploadHandler:
    """
    Uploads one file and mints a long-lived read URL for it.

    Write failures are retried with the same key, up to
    ``config.max_attempts`` attempts separated by a flat ``config.retry_delay``.
    URL minting has its own budget (``config.url_attempts``) so a signing
    hiccup does not rewrite the object.
    """

    def __init__(
        self,
        store: BlobStore,
        config: Optional[UploadConfig] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        key_factory: Callable[[str, str], str] = make_storage_key,
        on_transition: Optional[Callable[[UploadRun, UploadState], None]] = None,
    ):
        """
        Initialize single upload handler.

        Args:
            store: Blob store the files are written to
            config: Upload configuration
            sleep: Awaitable used for the retry delay (injectable for tests)
            key_factory: Builds a storage key from (prefix, filename)
            on_transition: Called with (run, new_state) on every state change
        """
        self._store = store
        self._config = config or UploadConfig()
        self._sleep = sleep
        self._key_factory = key_factory
        self._on_transition = on_transition

    @property
    def config(self) -> UploadConfig:
        return self._config

    async def upload_one(self, request: UploadRequest, deadline: Optional[float] = None) -> UploadOutcome:
        """
        Upload a file and report the result as an outcome. Never raises for
        upload failures.

        Args:
            request: File to upload
            deadline: Event-loop time after which no new attempt is started
        """
        run = self._start(request)
        try:
            return await self._execute(run, request, deadline)
        except ObjectRejectedError as e:
            return self._failed(run, ErrorKind.REJECTED, e)
        except PermanentUploadFailure as e:
            return self._failed(run, ErrorKind.PERMANENT_UPLOAD_FAILURE, e)
        except SignedUrlError as e:
            return self._failed(run, ErrorKind.SIGNED_URL_ERROR, e)
        except UploadTimeoutError as e:
            return self._failed(run, ErrorKind.TIMEOUT, e)

    async def upload_or_raise(self, request: UploadRequest, deadline: Optional[float] = None) -> UploadOutcome:
        """
        Upload a file, raising instead of returning a failed outcome.

        Raises:
            ObjectRejectedError: the store refused the object
            PermanentUploadFailure: write attempts exhausted
            SignedUrlError: object written but no URL could be minted
            UploadTimeoutError: deadline reached before completion
        """
        return await self._execute(self._start(request), request, deadline)

    # --- Internals ----------------------------------------------------------

    def _start(self, request: UploadRequest) -> UploadRun:
        key = self._key_factory(self._config.key_prefix, request.filename)
        return UploadRun(key=key, filename=request.filename)

    def _move(self, run: UploadRun, state: UploadState) -> None:
        logger.debug(f"[{run.filename}] {run.state.value} -> {state.value} ({run.key})")
        run.state = state
        run.history.append(state)
        if self._on_transition:
            self._on_transition(run, state)

    async def _execute(self, run: UploadRun, request: UploadRequest, deadline: Optional[float]) -> UploadOutcome:
        try:
            await self._write_with_retry(run, request, deadline)
            url = await self._sign_with_retry(run, deadline)
        except (asyncio.CancelledError, Exception):
            if run.state != UploadState.PERMANENTLY_FAILED:
                self._move(run, UploadState.PERMANENTLY_FAILED)
            await self._cleanup(run)
            raise

        self._move(run, UploadState.SUCCEEDED)
        logger.info(f"Uploaded {run.filename} -> {run.key} ({run.attempts} attempt(s))")
        return UploadOutcome.ok(run.filename, url=url, key=run.key, attempts=run.attempts)

    async def _write_with_retry(self, run: UploadRun, request: UploadRequest, deadline: Optional[float]) -> None:
        max_attempts = self._config.max_attempts
        last_error: Optional[Exception] = None

        for attempt in range(1, max_attempts + 1):
            self._check_deadline(run, deadline)
            run.attempts = attempt
            self._move(run, UploadState.WRITING)

            stream: Optional[BlobWriteStream] = None
            try:
                stream = await self._store.open_write_stream(run.key, request.mime_type)
                await stream.write(request.content)
                await stream.finish()
            except ObjectRejectedError as e:
                await self._abort(run, stream)
                self._move(run, UploadState.WRITE_FAILED)
                logger.error(f"Store rejected {run.filename} ({run.key}): {e.reason}")
                raise
            except asyncio.CancelledError:
                await self._abort(run, stream)
                raise
            except Exception as e:
                await self._abort(run, stream)
                last_error = e
                self._move(run, UploadState.WRITE_FAILED)
                if attempt < max_attempts:
                    logger.warning(
                        f"[{attempt}/{max_attempts}] Write failed for {run.filename} ({run.key}): "
                        f"{e}; retrying in {self._config.retry_delay}s"
                    )
                    await self._pause(run, deadline)
                continue

            self._move(run, UploadState.FINISHED)
            return

        logger.error(f"Giving up on {run.filename} ({run.key}) after {max_attempts} attempt(s): {last_error}")
        raise PermanentUploadFailure(run.key, max_attempts, last_error)

    async def _sign_with_retry(self, run: UploadRun, deadline: Optional[float]) -> str:
        url_attempts = self._config.url_attempts
        last_error: Optional[Exception] = None

        for attempt in range(1, url_attempts + 1):
            self._move(run, UploadState.URL_REQUESTED)
            try:
                return await self._store.sign_read_url(run.key, self._config.url_expires_at)
            except Exception as e:
                last_error = e
                if attempt < url_attempts:
                    logger.warning(
                        f"[{attempt}/{url_attempts}] Signing failed for {run.key}: {e}; "
                        f"retrying in {self._config.retry_delay}s"
                    )
                    await self._pause(run, deadline)

        logger.error(f"Could not sign read url for {run.key}: {last_error}")
        raise SignedUrlError(run.key, f"could not sign read url: {last_error}")

    def _check_deadline(self, run: UploadRun, deadline: Optional[float]) -> None:
        if deadline is not None and asyncio.get_running_loop().time() >= deadline:
            raise UploadTimeoutError(run.key)

    async def _pause(self, run: UploadRun, deadline: Optional[float]) -> None:
        delay = self._config.retry_delay
        if deadline is not None and asyncio.get_running_loop().time() + delay >= deadline:
            raise UploadTimeoutError(run.key)
        await self._sleep(delay)

    async def _abort(self, run: UploadRun, stream: Optional[BlobWriteStream]) -> None:
        if stream is None:
            return
        try:
            await stream.abort()
        except Exception as e:
            logger.debug(f"Abort of {run.key} failed: {e}")

    async def _cleanup(self, run: UploadRun) -> None:
        """Best-effort removal of whatever may exist at the run's key."""
        if not self._config.cleanup_on_failure or run.attempts == 0:
            return
        try:
            await self._store.delete(run.key)
            logger.debug(f"Removed leftover object at {run.key}")
        except Exception as e:
            logger.warning(f"Could not remove leftover object at {run.key}: {e}")

    def _failed(self, run: UploadRun, kind: ErrorKind, error: Exception) -> UploadOutcome:
        return UploadOutcome.fail(
            run.filename,
            kind,
            detail=str(error),
            key=run.key,
            attempts=run.attempts,
        )
