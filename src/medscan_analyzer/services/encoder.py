"""
Chunked base64 encoding of caller documents.

Small files are encoded in one pass. Large files are streamed in fixed-size
chunks with coarse progress reporting, then joined and encoded once. Every
file is bounded by a wall-clock timeout, and a batch of files is encoded
concurrently with fail-fast semantics.
"""

from __future__ import annotations

import asyncio
import base64
import time
from collections.abc import Callable, Sequence
from enum import Enum
from typing import BinaryIO

from ..core.config import Settings
from ..core.exceptions import EncodingError
from ..core.logging import LoggerMixin, get_logger
from ..domain.models import EncodedFile, RawFile

logger = get_logger(__name__)

ProgressCallback = Callable[[str, int], None]
"""Called with ``(file_name, percent)`` at each progress mark."""


class EncoderState(str, Enum):
    """States of a single file encoding."""

    PENDING = "pending"
    READING_CHUNK = "reading_chunk"
    ACCUMULATING = "accumulating"
    FINALIZING = "finalizing"
    DONE = "done"
    FAILED = "failed"


TERMINAL_STATES = frozenset({EncoderState.DONE, EncoderState.FAILED})


class EncodingJob:
    """
    State machine for encoding one RawFile.

    ``history`` records every state entered, in order. A timeout or read error
    moves the job from any non-terminal state straight to ``FAILED`` and drops
    the accumulated chunks.
    """

    def __init__(
        self,
        raw: RawFile,
        *,
        chunk_size: int,
        progress_step: int = 20,
        progress: ProgressCallback | None = None,
    ) -> None:
        self.raw = raw
        self.chunk_size = chunk_size
        self.progress_step = progress_step
        self.progress = progress
        self.state = EncoderState.PENDING
        self.history: list[EncoderState] = []
        self.processed_bytes = 0
        self._chunks: list[bytes] = []
        self._next_mark = progress_step

    def _enter(self, state: EncoderState) -> None:
        if self.state in TERMINAL_STATES:
            raise RuntimeError(f"encoding of {self.raw.name} already finished ({self.state.value})")
        self.state = state
        self.history.append(state)

    def fail(self) -> None:
        if self.state not in TERMINAL_STATES:
            self._enter(EncoderState.FAILED)
        self._chunks.clear()

    async def run_single_pass(self) -> EncodedFile:
        self._enter(EncoderState.READING_CHUNK)
        data = await asyncio.to_thread(_read_all, self.raw)
        self.processed_bytes = len(data)
        self._enter(EncoderState.FINALIZING)
        payload = base64.b64encode(data).decode("ascii")
        return self._finish(payload)

    async def run_chunked(self) -> EncodedFile:
        stream = await asyncio.to_thread(self.raw.open)
        try:
            while True:
                self._enter(EncoderState.READING_CHUNK)
                chunk = await asyncio.to_thread(stream.read, self.chunk_size)
                if not chunk:
                    break
                self._enter(EncoderState.ACCUMULATING)
                self._chunks.append(chunk)
                self.processed_bytes += len(chunk)
                self._report_progress()
        except BaseException:
            # A worker thread may still be blocked in read(), and close()
            # waits on the same lock; close from a thread, never the loop.
            asyncio.get_running_loop().run_in_executor(None, _close_stream, stream, self.raw.name)
            raise
        stream.close()

        self._enter(EncoderState.FINALIZING)
        chunks, self._chunks = self._chunks, []
        payload = await asyncio.to_thread(_join_and_encode, chunks)
        return self._finish(payload)

    def _report_progress(self) -> None:
        if self.progress is None or self.raw.byte_size <= 0:
            return
        percent = min(100, self.processed_bytes * 100 // self.raw.byte_size)
        while self._next_mark <= percent:
            self.progress(self.raw.name, self._next_mark)
            self._next_mark += self.progress_step

    def _finish(self, payload: str) -> EncodedFile:
        self._enter(EncoderState.DONE)
        return EncodedFile(
            name=self.raw.name,
            mime_type=self.raw.mime_type,
            byte_size=self.processed_bytes,
            base64_payload=payload,
        )


class ChunkedEncoder(LoggerMixin):
    """
    Encode RawFiles to EncodedFiles.

    Args:
        small_file_threshold: Files below this size are encoded in one pass
        chunk_size: Read size for large files
        timeout_seconds: Wall-clock limit per file
        progress_step: Percentage between progress reports
    """

    def __init__(
        self,
        *,
        small_file_threshold: int = 5 * 1_048_576,
        chunk_size: int = 1_048_576,
        timeout_seconds: float = 60.0,
        progress_step: int = 20,
    ) -> None:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self.small_file_threshold = small_file_threshold
        self.chunk_size = chunk_size
        self.timeout_seconds = timeout_seconds
        self.progress_step = progress_step

    @classmethod
    def from_settings(cls, settings: Settings) -> ChunkedEncoder:
        return cls(
            small_file_threshold=settings.small_file_threshold_bytes,
            chunk_size=settings.chunk_size_bytes,
            timeout_seconds=settings.encode_timeout_seconds,
        )

    def is_large(self, raw: RawFile) -> bool:
        return raw.byte_size >= self.small_file_threshold

    async def encode_file(
        self,
        raw: RawFile,
        progress: ProgressCallback | None = None,
    ) -> EncodedFile:
        """
        Encode a single file.

        Raises:
            EncodingError: On read failure or when the timeout elapses
        """
        job = EncodingJob(
            raw,
            chunk_size=self.chunk_size,
            progress_step=self.progress_step,
            progress=progress or self._log_progress,
        )
        large = self.is_large(raw)
        started = time.monotonic()
        if large:
            self.logger.warning(
                "large_file_encoding",
                file_name=raw.name,
                size_bytes=raw.byte_size,
                note="analysis may take longer",
            )
        else:
            self.logger.debug("file_encoding_started", file_name=raw.name, size_bytes=raw.byte_size)

        runner = job.run_chunked() if large else job.run_single_pass()
        try:
            encoded = await asyncio.wait_for(runner, timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            last_state = job.state
            job.fail()
            self.logger.error(
                "file_encoding_timeout",
                file_name=raw.name,
                state=last_state.value,
                processed_bytes=job.processed_bytes,
                timeout_seconds=self.timeout_seconds,
            )
            raise EncodingError(
                "File reading timed out",
                file_name=raw.name,
                reason="timeout",
                processed_bytes=job.processed_bytes,
            ) from None
        except asyncio.CancelledError:
            job.fail()
            raise
        except OSError as e:
            job.fail()
            self.logger.error("file_encoding_failed", file_name=raw.name, error=str(e))
            raise EncodingError(
                "Unable to read file",
                file_name=raw.name,
                reason="read_error",
            ) from e

        if encoded.byte_size != raw.byte_size:
            self.logger.warning(
                "file_size_changed",
                file_name=raw.name,
                declared_bytes=raw.byte_size,
                read_bytes=encoded.byte_size,
            )
        self.logger.info(
            "file_encoded",
            file_name=raw.name,
            size_bytes=encoded.byte_size,
            chunked=large,
            duration_ms=round((time.monotonic() - started) * 1000),
        )
        return encoded

    async def encode_files(
        self,
        raws: Sequence[RawFile],
        progress: ProgressCallback | None = None,
    ) -> list[EncodedFile]:
        """
        Encode all files concurrently.

        The first failure cancels the remaining encodings and discards any
        that already completed. On success the result keeps input order.
        """
        if not raws:
            return []

        tasks = [
            asyncio.create_task(self.encode_file(raw, progress), name=f"encode:{raw.name}")
            for raw in raws
        ]
        try:
            done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
        except asyncio.CancelledError:
            for task in tasks:
                task.cancel()
            raise

        failed = [t for t in tasks if t in done and not t.cancelled() and t.exception() is not None]
        if failed:
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            self.logger.warning(
                "batch_encoding_aborted",
                failed=[t.get_name() for t in failed],
                cancelled=len(pending),
            )
            raise failed[0].exception()  # type: ignore[misc]

        return [task.result() for task in tasks]

    def _log_progress(self, file_name: str, percent: int) -> None:
        self.logger.info("file_encoding_progress", file_name=file_name, percent=percent)


def _read_all(raw: RawFile) -> bytes:
    with raw.open() as stream:
        return stream.read()


def _join_and_encode(chunks: list[bytes]) -> str:
    return base64.b64encode(b"".join(chunks)).decode("ascii")


def _close_stream(stream: BinaryIO, file_name: str) -> None:
    try:
        stream.close()
    except OSError as e:
        logger.warning("file_stream_close_failed", file_name=file_name, error=str(e))
