"""Services for streamupload module."""
from .api_client import HTTPAPIClient, parse_json_object, query_components
from .download_registry import DownloadRegistry
from .downloader import DownloadService
from .framing import MultipartBodyBuilder, content_type_header, make_boundary
from .session import BackgroundUploadSession
from .stream_copy import DEFAULT_CHUNK_SIZE, StreamCopier, write_all
from .transport import HTTPXTransport

__all__ = [
    "HTTPAPIClient",
    "parse_json_object",
    "query_components",
    "DownloadRegistry",
    "DownloadService",
    "MultipartBodyBuilder",
    "content_type_header",
    "make_boundary",
    "BackgroundUploadSession",
    "DEFAULT_CHUNK_SIZE",
    "StreamCopier",
    "write_all",
    "HTTPXTransport",
]
