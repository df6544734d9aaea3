"""
Download Service - Single Responsibility: fetch remote files to temp files.

Downloads of a URL already in flight are refused rather than duplicated.
"""
import asyncio
import logging
import tempfile
import uuid
from pathlib import Path
from typing import Optional
from urllib.parse import urlsplit

from ..errors import UploadError
from .download_registry import DownloadRegistry
from .stream_copy import DEFAULT_CHUNK_SIZE
from .transport import HTTPXTransport

logger = logging.getLogger(__name__)


def file_extension_from_url(url: str) -> Optional[str]:
    """Extension of the last path component of url, without the dot."""
    name = urlsplit(str(url)).path.rsplit("/", 1)[-1]
    if "." not in name:
        return None
    extension = name.rsplit(".", 1)[-1]
    return extension or None


class DownloadService:
    """
    Service for downloading remote files into the temp directory.

    The returned file keeps the URL's extension when it has one and is
    owned by the caller from then on.
    """

    def __init__(
        self,
        transport: HTTPXTransport,
        registry: Optional[DownloadRegistry] = None,
        temp_dir: Optional[Path] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        """
        Initialize download service.

        Args:
            transport: Initialized HTTP transport
            registry: Registry shared by every service that must not race
                on the same URL (a private one is created if omitted)
            temp_dir: Directory for downloaded files (system temp by default)
            chunk_size: Bytes per streamed chunk
        """
        self._transport = transport
        self._registry = registry if registry is not None else DownloadRegistry()
        self._temp_dir = Path(temp_dir) if temp_dir else Path(tempfile.gettempdir())
        self._chunk_size = chunk_size

    @property
    def registry(self) -> DownloadRegistry:
        return self._registry

    def _destination_for(self, url: str) -> Path:
        extension = file_extension_from_url(url) or "tmp"
        return self._temp_dir / f"{str(uuid.uuid4()).upper()}.{extension}"

    async def download(self, url: str) -> Optional[Path]:
        """
        Download url to a new temporary file.

        Returns:
            Path of the downloaded file, or None if the URL is already being
            downloaded or the download failed
        """
        try:
            destination = self._destination_for(url)
        except ValueError as exc:
            logger.warning("Download failed for %s: %s", url, exc)
            return None

        if not self._registry.try_begin(url):
            logger.info("Skipping %s: download already in progress", url)
            return None

        try:
            written = await self._transport.download_to(url, destination, self._chunk_size)
        except UploadError as exc:
            logger.warning("Download failed for %s: %s", url, exc)
            destination.unlink(missing_ok=True)
            return None
        except asyncio.CancelledError:
            destination.unlink(missing_ok=True)
            raise
        finally:
            self._registry.end(url)

        logger.info("Downloaded %s -> %s (%d bytes)", url, destination.name, written)
        return destination
