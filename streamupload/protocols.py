"""
Protocols (Interfaces) for Dependency Inversion.

The coordinator only talks to transports and sessions through these.
"""
from typing import Any, Callable, Optional, Protocol, runtime_checkable

from .models import UploadRequest


@runtime_checkable
class IUploadTransport(Protocol):
    """Interface for single-shot uploads of a staged body."""

    async def upload_file(
        self,
        request: UploadRequest,
        chunk_size: int = ...,
        progress_callback: Optional[Callable[[int, int], Any]] = None,
    ) -> Any:
        """Send the staged body and return the HTTP response."""
        ...


@runtime_checkable
class ITransportSession(Protocol):
    """Interface for background-capable upload sessions."""

    def submit(self, request: UploadRequest) -> int:
        """Start the upload and return an identifier for the in-flight task."""
        ...


TransportSessionFactory = Callable[[], ITransportSession]
