"""
Background Upload Session - run staged uploads as trackable tasks.

Each submitted request becomes an asyncio.Task identified by an integer.
Callers follow a task through events or by awaiting wait(task_id), and
cancel it with cancel(task_id). The session owns every staged file handed
to it and releases it when the task ends, however it ends.
"""
from __future__ import annotations

import asyncio
import itertools
import logging
from typing import Dict, Optional

from ..errors import UploadError
from ..models import UploadPhase, UploadRequest, VideoUploadTask
from ..utils.events import (
    TASK_COMPLETE,
    TASK_FAIL,
    TASK_PROGRESS,
    EventEmitter,
    TransferProgress,
)
from .api_client import parse_json_object
from .stream_copy import DEFAULT_CHUNK_SIZE
from .transport import HTTPXTransport

logger = logging.getLogger(__name__)


class BackgroundUploadSession:
    """
    Transport session for long-running uploads.

    Implements ITransportSession protocol.

    Usage:
        async with BackgroundUploadSession() as session:
            session.events.on(TASK_PROGRESS, show_progress)
            task_id = await coordinator.upload_video(video_path, lambda: session)
            record = await session.wait(task_id)
    """

    def __init__(
        self,
        identifier: str = "streamupload.video-upload",
        transport: Optional[HTTPXTransport] = None,
        timeout: float = 60,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        events: Optional[EventEmitter] = None,
    ):
        self._identifier = identifier
        self._transport = transport
        self._owns_transport = transport is None
        self._timeout = timeout
        self._chunk_size = chunk_size
        self._events = events or EventEmitter()
        self._ids = itertools.count(1)
        self._tasks: Dict[int, asyncio.Task] = {}
        self._records: Dict[int, VideoUploadTask] = {}

    @property
    def identifier(self) -> str:
        return self._identifier

    @property
    def events(self) -> EventEmitter:
        return self._events

    async def __aenter__(self):
        if self._transport is None:
            self._transport = HTTPXTransport(timeout=self._timeout)
            await self._transport.__aenter__()
        return self

    async def __aexit__(self, *args):
        await self.aclose()

    def submit(self, request: UploadRequest) -> int:
        """
        Start uploading request in the background.

        Must be called from a running event loop.

        Returns:
            Task identifier for wait(), cancel() and emitted events
        """
        if self._transport is None:
            raise RuntimeError("BackgroundUploadSession not initialized. Use 'async with' context.")

        task_id = next(self._ids)
        record = VideoUploadTask(
            task_id=task_id,
            url=request.url,
            filename=request.staged.path.name,
        )
        self._records[task_id] = record
        task = asyncio.create_task(
            self._run(record, request),
            name=f"{self._identifier}-{task_id}",
        )
        self._tasks[task_id] = task
        task.add_done_callback(lambda done: self._finalize(done, record, request))
        logger.info("[%s] Task %d submitted: %s", self._identifier, task_id, request.url)
        return task_id

    async def _run(self, record: VideoUploadTask, request: UploadRequest) -> VideoUploadTask:
        async def on_progress(sent: int, total: int):
            await self._events.emit(
                TASK_PROGRESS,
                TransferProgress(record.task_id, record.filename, sent, total),
            )

        try:
            response = await self._transport.upload_file(
                request,
                chunk_size=self._chunk_size,
                progress_callback=on_progress,
            )
            record.status_code = response.status_code
            record.response = parse_json_object(response.content)

            if response.is_success:
                record.phase = UploadPhase.COMPLETED
                logger.info("[%s] Task %d completed (%d)", self._identifier, record.task_id, response.status_code)
                await self._events.emit(TASK_COMPLETE, record)
            else:
                record.phase = UploadPhase.FAILED
                record.error = f"HTTP {response.status_code}"
                logger.warning("[%s] Task %d failed: %s", self._identifier, record.task_id, record.error)
                await self._events.emit(TASK_FAIL, record)
        except UploadError as exc:
            record.phase = UploadPhase.FAILED
            record.error = str(exc)
            logger.warning("[%s] Task %d failed: %s", self._identifier, record.task_id, exc)
            await self._events.emit(TASK_FAIL, record)

        return record

    def _finalize(self, task: asyncio.Task, record: VideoUploadTask, request: UploadRequest) -> None:
        # runs even when the task is cancelled before its first step
        request.staged.release()
        self._tasks.pop(record.task_id, None)
        if task.cancelled():
            record.phase = UploadPhase.FAILED
            record.error = "cancelled"
            logger.info("[%s] Task %d cancelled", self._identifier, record.task_id)
        elif task.exception() is not None:
            record.phase = UploadPhase.FAILED
            record.error = str(task.exception())
            logger.error("[%s] Task %d crashed: %s", self._identifier, record.task_id, record.error)

    def task(self, task_id: int) -> Optional[VideoUploadTask]:
        """Current record for task_id, or None if unknown."""
        return self._records.get(task_id)

    def pending(self) -> Dict[int, VideoUploadTask]:
        return {
            task_id: record
            for task_id, record in self._records.items()
            if not record.phase.finished
        }

    async def wait(self, task_id: int) -> VideoUploadTask:
        """Wait until task_id finishes and return its record."""
        if task_id not in self._records:
            raise KeyError(f"Unknown upload task: {task_id}")
        task = self._tasks.get(task_id)
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)
        return self._records[task_id]

    def forget(self, task_id: int) -> bool:
        """
        Drop the record of a finished task.

        Returns:
            False if task_id is unknown or still running
        """
        if task_id in self._tasks or task_id not in self._records:
            return False
        del self._records[task_id]
        return True

    def cancel(self, task_id: int) -> bool:
        """Cancel task_id. Returns False if it is unknown or already done."""
        task = self._tasks.get(task_id)
        if task is None or task.done():
            return False
        return task.cancel()

    async def aclose(self) -> None:
        """Cancel unfinished tasks and close the transport if we created it."""
        unfinished = [task for task in self._tasks.values() if not task.done()]
        for task in unfinished:
            task.cancel()
        if unfinished:
            await asyncio.gather(*unfinished, return_exceptions=True)

        if self._transport and self._owns_transport:
            await self._transport.aclose()
            self._transport = None
