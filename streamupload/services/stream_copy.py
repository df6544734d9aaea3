"""
Stream Copier - copy a file into a staged body with bounded memory.

The source is never read whole: a single chunk-sized buffer is reused for
every read, so a multi-hundred-megabyte video costs the same memory as a
thumbnail.
"""
import asyncio
import logging
import tempfile
import uuid
from pathlib import Path
from typing import Optional, Union

from ..errors import StreamIOError
from ..models import StagedUploadFile

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024  # 64KB chunks


def write_all(sink, data) -> int:
    """
    Write every byte of data to sink, retrying partial writes.

    Raises:
        StreamIOError: If the sink reports writing zero bytes
    """
    view = memoryview(data)
    total = len(view)
    offset = 0
    while offset < total:
        written = sink.write(view[offset:])
        if not written:
            raise StreamIOError(
                f"Write stalled after {offset} of {total} bytes; destination is unusable"
            )
        offset += written
    return total


def _release_abandoned(copy: "asyncio.Future[StagedUploadFile]") -> None:
    if copy.cancelled() or copy.exception() is not None:
        return
    staged = copy.result()
    staged.release()
    logger.debug("Released abandoned staged file %s", staged.path.name)


class StreamCopier:
    """
    Copies source files into freshly created staged files.

    Usage:
        copier = StreamCopier(temp_dir)
        with copier.copy_with_framing(video_path, framing.prefix, framing.suffix) as staged:
            await transport.upload_file(...)
    """

    def __init__(
        self,
        temp_dir: Optional[Path] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        self._temp_dir = Path(temp_dir) if temp_dir else None
        self._chunk_size = chunk_size

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    def _new_destination(self) -> Path:
        directory = self._temp_dir or Path(tempfile.gettempdir())
        return directory / f"{str(uuid.uuid4()).upper()}.tmp"

    def copy_with_framing(
        self,
        source: Union[str, Path],
        prefix: bytes,
        append: bytes,
    ) -> StagedUploadFile:
        """
        Copy source into a new staged file as prefix + source + append.

        Args:
            source: File to copy
            prefix: Bytes written before the source content
            append: Bytes written after the source content

        Returns:
            Handle to the staged file, returned after both files are closed

        Raises:
            StreamIOError: On any read or write failure
        """
        source = Path(source)
        destination = self._new_destination()
        buffer = bytearray(self._chunk_size)
        size = 0

        try:
            with open(source, "rb", buffering=0) as src, open(destination, "xb", buffering=0) as dst:
                size += write_all(dst, prefix)
                while True:
                    read = src.readinto(buffer)
                    if not read:
                        break
                    size += write_all(dst, memoryview(buffer)[:read])
                size += write_all(dst, append)
        except OSError as exc:
            destination.unlink(missing_ok=True)
            raise StreamIOError(f"Could not stream copy {source} to {destination}: {exc}") from exc
        except StreamIOError:
            destination.unlink(missing_ok=True)
            raise

        logger.debug("Staged %s -> %s (%d bytes)", source.name, destination.name, size)
        return StagedUploadFile(path=destination, size=size)

    async def copy_async(
        self,
        source: Union[str, Path],
        prefix: bytes,
        append: bytes,
    ) -> StagedUploadFile:
        """
        Run copy_with_framing in a worker thread so the event loop stays free.

        The thread cannot be interrupted; if the caller is cancelled first,
        the staged file it produces is released when the copy finishes.
        """
        copy = asyncio.ensure_future(
            asyncio.to_thread(self.copy_with_framing, source, prefix, append)
        )
        try:
            return await asyncio.shield(copy)
        except asyncio.CancelledError:
            copy.add_done_callback(_release_abandoned)
            raise
