"""
streamupload - Streamed multipart uploads with bounded memory.

Files are framed as a single multipart/form-data part, copied chunk by
chunk into a staged temporary file and then streamed to the server, so
memory use does not grow with the file size.

Usage:
    from streamupload import UploadCoordinator, HTTPXTransport, BackgroundUploadSession

    # Photo upload, returns the JSON response or None
    async with HTTPXTransport() as transport:
        coordinator = UploadCoordinator(transport)
        data = await coordinator.upload_media(url, "image", photo_path)

    # Background video upload, returns a task id
    async with BackgroundUploadSession() as session:
        task_id = await coordinator.upload_video(video_path, lambda: session, url)
        record = await session.wait(task_id)

    # De-duplicated download
    downloader = DownloadService(transport, DownloadRegistry())
    path = await downloader.download(remote_url)
"""
from .coordinator import UploadCoordinator
from .errors import (
    FramingEncodingError,
    StreamIOError,
    TransportError,
    UnsupportedFileTypeError,
    UploadError,
)
from .models import (
    HTTPMethod,
    MultipartFraming,
    StagedUploadFile,
    UploadConfig,
    UploadKind,
    UploadPhase,
    UploadRequest,
    VideoUploadTask,
)
from .services import (
    BackgroundUploadSession,
    DownloadRegistry,
    DownloadService,
    HTTPAPIClient,
    HTTPXTransport,
    MultipartBodyBuilder,
    StreamCopier,
)

__version__ = "0.1.0"
__all__ = [
    # Main
    "UploadCoordinator",
    # Models
    "HTTPMethod",
    "MultipartFraming",
    "StagedUploadFile",
    "UploadConfig",
    "UploadKind",
    "UploadPhase",
    "UploadRequest",
    "VideoUploadTask",
    # Errors
    "UploadError",
    "FramingEncodingError",
    "UnsupportedFileTypeError",
    "StreamIOError",
    "TransportError",
    # Services
    "BackgroundUploadSession",
    "DownloadRegistry",
    "DownloadService",
    "HTTPAPIClient",
    "HTTPXTransport",
    "MultipartBodyBuilder",
    "StreamCopier",
]
