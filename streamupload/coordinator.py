"""Upload coordinator - frames, stages and submits uploads."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

from .errors import TransportError, UnsupportedFileTypeError, UploadError
from .models import UploadConfig, UploadKind, UploadPhase, UploadRequest, StagedUploadFile
from .protocols import IUploadTransport, TransportSessionFactory
from .services.api_client import parse_json_object
from .services.framing import MultipartBodyBuilder, content_type_header, make_boundary
from .services.stream_copy import StreamCopier

logger = logging.getLogger(__name__)


class UploadCoordinator:
    """
    Orchestrates multipart uploads using injected services.

    Every attempt moves through BUILDING -> STAGING -> SUBMITTED and ends
    COMPLETED or FAILED. Nothing is retried; failures are reported to the
    caller, who owns the retry policy.

    Usage:
        async with HTTPXTransport() as transport:
            coordinator = UploadCoordinator(transport, config)
            data = await coordinator.upload_media(url, "image", photo_path)

        async with BackgroundUploadSession() as session:
            task_id = await coordinator.upload_video(video_path, lambda: session)
    """

    def __init__(
        self,
        transport: Optional[IUploadTransport] = None,
        config: Optional[UploadConfig] = None,
        builder: Optional[MultipartBodyBuilder] = None,
        copier: Optional[StreamCopier] = None,
    ):
        """
        Initialize coordinator with dependencies.

        Args:
            transport: Transport for single-shot uploads (needed by upload_media)
            config: Upload configuration
            builder: Multipart framing builder
            copier: Stream copier used to stage bodies
        """
        self._transport = transport
        self._config = config or UploadConfig()
        self._builder = builder or MultipartBodyBuilder()
        self._copier = copier or StreamCopier(self._config.temp_dir, self._config.chunk_size)

    @property
    def config(self) -> UploadConfig:
        return self._config

    @staticmethod
    def _advance(boundary: str, phase: UploadPhase, detail: str = "") -> None:
        logger.debug("Upload %s -> %s %s", boundary, phase.name, detail)

    async def _stage(
        self,
        boundary: str,
        kind: UploadKind,
        field_name: str,
        filename: str,
        source: Path,
    ) -> StagedUploadFile:
        self._advance(boundary, UploadPhase.BUILDING, filename)
        framing = self._builder.build_framing(boundary, kind, field_name, filename)

        self._advance(boundary, UploadPhase.STAGING, source.name)
        return await self._copier.copy_async(source, framing.prefix, framing.suffix)

    @staticmethod
    def _request(url: str, staged: StagedUploadFile, boundary: str) -> UploadRequest:
        return UploadRequest(
            url=url,
            staged=staged,
            headers={"Content-Type": content_type_header(boundary)},
        )

    async def upload_media(
        self,
        destination_url: str,
        field_name: str,
        local_file: Union[str, Path],
    ) -> Optional[Dict[str, Any]]:
        """
        Upload a local image or video as a single multipart request.

        The file name must describe its type (jpg/jpeg, png or mov);
        anything else is rejected before touching the network.

        Args:
            destination_url: Endpoint receiving the POST
            field_name: Form field carrying the file
            local_file: Local file to upload

        Returns:
            JSON object from a successful response, or None on any failure
        """
        local_path = Path(local_file)
        try:
            return await self._upload_media(destination_url, field_name, local_path)
        except UploadError as exc:
            logger.warning("Media upload failed for %s: %s", local_path.name, exc)
            return None

    async def _upload_media(
        self,
        destination_url: str,
        field_name: str,
        local_path: Path,
    ) -> Dict[str, Any]:
        kind = UploadKind.from_path(local_path)
        if kind is None:
            raise UnsupportedFileTypeError(f"Unsupported file type: {local_path.name}")
        if self._transport is None:
            raise RuntimeError("upload_media requires a transport")

        boundary = make_boundary()
        filename = f"{self._config.media_filename_stem}{kind.file_extension}"

        try:
            with await self._stage(boundary, kind, field_name, filename, local_path) as staged:
                self._advance(boundary, UploadPhase.SUBMITTED, destination_url)
                response = await self._transport.upload_file(
                    self._request(destination_url, staged, boundary),
                    chunk_size=self._config.chunk_size,
                )

            if not response.is_success:
                raise TransportError(
                    f"POST {destination_url} returned HTTP {response.status_code}"
                )

            data = parse_json_object(response.content)
            if data is None:
                raise TransportError(f"POST {destination_url} returned no JSON object")
        except UploadError as exc:
            self._advance(boundary, UploadPhase.FAILED, str(exc))
            raise

        self._advance(boundary, UploadPhase.COMPLETED, destination_url)
        logger.info("Uploaded %s to %s", local_path.name, destination_url)
        return data

    async def upload_video(
        self,
        local_video: Union[str, Path],
        session_factory: TransportSessionFactory,
        destination_url: Optional[str] = None,
    ) -> int:
        """
        Stage a video and hand it to a background-capable session.

        The session owns the staged file once submit() succeeds; progress
        and completion are reported by the session, not here.

        Args:
            local_video: Local video file
            session_factory: Builds the session that runs the upload
            destination_url: Endpoint (defaults to config.video_endpoint)

        Returns:
            The session's identifier for the in-flight task

        Raises:
            FramingEncodingError: If the multipart framing cannot be built
            StreamIOError: If the local file cannot be stream copied
            TransportError: If the session refuses the request
        """
        url = destination_url or self._config.video_endpoint
        if not url:
            raise ValueError("Either destination_url or config.video_endpoint must be provided")

        local_path = Path(local_video)
        kind = UploadKind.QUICKTIME
        boundary = make_boundary()
        filename = f"{self._config.video_filename_stem}{kind.file_extension}"

        staged = await self._stage(boundary, kind, self._config.video_field, filename, local_path)

        try:
            session = session_factory()
            task_id = session.submit(self._request(url, staged, boundary))
        except Exception as exc:
            staged.release()
            self._advance(boundary, UploadPhase.FAILED, str(exc))
            raise TransportError(f"Could not submit video upload to {url}: {exc}") from exc

        self._advance(boundary, UploadPhase.SUBMITTED, f"task={task_id}")
        return task_id
