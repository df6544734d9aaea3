"""
Models for streamupload.

Value objects are immutable dataclasses; only the background task record
changes over its lifetime.
"""
import os
import tempfile
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Union

PathLike = Union[str, Path]


class UploadKind(Enum):
    """Supported upload payloads, valued by MIME type."""
    JPEG = "image/jpeg"
    PNG = "image/png"
    QUICKTIME = "video/quicktime"

    @property
    def mime(self) -> str:
        return self.value

    @property
    def file_extension(self) -> str:
        return _EXTENSIONS[self]

    @classmethod
    def from_path(cls, path: PathLike) -> Optional["UploadKind"]:
        """Detect the kind from the file name, or None when unrecognized."""
        name = Path(path).name.lower()
        if ".jpg" in name or "jpeg" in name:
            return cls.JPEG
        if "png" in name:
            return cls.PNG
        if ".mov" in name:
            return cls.QUICKTIME
        return None


_EXTENSIONS = {
    UploadKind.JPEG: ".jpg",
    UploadKind.PNG: ".png",
    UploadKind.QUICKTIME: ".mov",
}


class HTTPMethod(Enum):
    """HTTP request verbs."""
    OPTIONS = "OPTIONS"
    GET = "GET"
    HEAD = "HEAD"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"
    TRACE = "TRACE"
    CONNECT = "CONNECT"


class UploadPhase(Enum):
    """Lifecycle of a single upload attempt."""
    BUILDING = "building"
    STAGING = "staging"
    SUBMITTED = "submitted"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def finished(self) -> bool:
        return self in (UploadPhase.COMPLETED, UploadPhase.FAILED)


@dataclass(frozen=True)
class MultipartFraming:
    """Bytes that surround the raw file content in a multipart body."""
    boundary: str
    prefix: bytes
    suffix: bytes

    @property
    def overhead(self) -> int:
        return len(self.prefix) + len(self.suffix)


@dataclass
class StagedUploadFile:
    """
    Temporary file holding a fully framed request body.

    The creator owns the file until it is handed to a transport. Nothing
    deletes it implicitly: call release() or use it as a context manager.
    """
    path: Path
    size: int
    released: bool = False

    def release(self) -> None:
        """Delete the staged file. Safe to call more than once."""
        if self.released:
            return
        self.path.unlink(missing_ok=True)
        self.released = True

    def __enter__(self) -> "StagedUploadFile":
        return self

    def __exit__(self, *args) -> None:
        self.release()


@dataclass(frozen=True)
class UploadRequest:
    """A staged body ready to be handed to a transport."""
    url: str
    staged: StagedUploadFile
    headers: Dict[str, str] = field(default_factory=dict)
    method: HTTPMethod = HTTPMethod.POST


@dataclass
class VideoUploadTask:
    """State of a background upload, keyed by its task id."""
    task_id: int
    url: str
    filename: str
    phase: UploadPhase = UploadPhase.SUBMITTED
    status_code: Optional[int] = None
    response: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.phase == UploadPhase.COMPLETED


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value else default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value else default


@dataclass(frozen=True)
class UploadConfig:
    """Immutable configuration for upload and download operations."""
    chunk_size: int = 64 * 1024
    temp_dir: Path = field(default_factory=lambda: Path(tempfile.gettempdir()))
    media_field: str = "image"
    media_filename_stem: str = "image"
    video_field: str = "video"
    video_filename_stem: str = "video"
    video_endpoint: Optional[str] = None
    request_timeout: float = 60.0
    session_identifier: str = "streamupload.video-upload"

    def __post_init__(self):
        if self.chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {self.chunk_size}")

    @classmethod
    def from_env(cls) -> "UploadConfig":
        """Build a config from STREAMUPLOAD_* environment variables."""
        defaults = cls()
        temp_dir = os.getenv("STREAMUPLOAD_TEMP_DIR")
        return cls(
            chunk_size=_env_int("STREAMUPLOAD_CHUNK_SIZE", defaults.chunk_size),
            temp_dir=Path(temp_dir) if temp_dir else defaults.temp_dir,
            media_field=os.getenv("STREAMUPLOAD_MEDIA_FIELD", defaults.media_field),
            media_filename_stem=os.getenv(
                "STREAMUPLOAD_MEDIA_FILENAME", defaults.media_filename_stem
            ),
            video_field=os.getenv("STREAMUPLOAD_VIDEO_FIELD", defaults.video_field),
            video_filename_stem=os.getenv(
                "STREAMUPLOAD_VIDEO_FILENAME", defaults.video_filename_stem
            ),
            video_endpoint=os.getenv("STREAMUPLOAD_VIDEO_ENDPOINT") or None,
            request_timeout=_env_float("STREAMUPLOAD_TIMEOUT", defaults.request_timeout),
            session_identifier=os.getenv(
                "STREAMUPLOAD_SESSION_ID", defaults.session_identifier
            ),
        )
