"""
Multipart Body Builder - Single Responsibility: frame raw file bytes.

Produces the bytes that precede and follow a file inside a single-part
multipart/form-data body.
"""
import logging
import uuid

from ..errors import FramingEncodingError
from ..models import MultipartFraming, UploadKind

logger = logging.getLogger(__name__)

CRLF = "\r\n"


def make_boundary() -> str:
    """Generate a boundary unique to one upload attempt."""
    return f"Boundary-{str(uuid.uuid4()).upper()}"


def content_type_header(boundary: str) -> str:
    """Value of the Content-Type header matching a boundary."""
    return f"multipart/form-data; boundary={boundary}"


class MultipartBodyBuilder:
    """
    Builds prefix/suffix framing for one file part.

    Usage:
        builder = MultipartBodyBuilder()
        framing = builder.build_framing(make_boundary(), UploadKind.JPEG, "image", "image.jpg")
        # staged body = framing.prefix + <file bytes> + framing.suffix
    """

    def __init__(self, encoding: str = "utf-8"):
        self._encoding = encoding

    def build_framing(
        self,
        boundary: str,
        kind: UploadKind,
        field_name: str,
        filename: str,
    ) -> MultipartFraming:
        """
        Build the framing for a single file part.

        Args:
            boundary: Delimiter unique to this attempt
            kind: Upload kind providing the part's Content-Type
            field_name: Form field name
            filename: File name announced to the server

        Returns:
            MultipartFraming with non-empty prefix and suffix

        Raises:
            FramingEncodingError: If either sequence cannot be encoded
        """
        prefix_parts = (
            f"--{boundary}{CRLF}",
            f'Content-Disposition: form-data; name="{field_name}"; filename="{filename}"{CRLF}',
            f"Content-Type: {kind.mime}{CRLF}{CRLF}",
        )
        suffix_parts = (
            CRLF,
            f"--{boundary}--{CRLF}",
        )

        prefix = self._encode(prefix_parts)
        suffix = self._encode(suffix_parts)

        if not prefix or not suffix:
            raise FramingEncodingError("Could not create prefix and append data from strings")

        logger.debug(
            "Framing built: boundary=%s kind=%s field=%s filename=%s overhead=%d",
            boundary,
            kind.name,
            field_name,
            filename,
            len(prefix) + len(suffix),
        )
        return MultipartFraming(boundary=boundary, prefix=prefix, suffix=suffix)

    def _encode(self, parts) -> bytes:
        try:
            return b"".join(part.encode(self._encoding) for part in parts)
        except (UnicodeEncodeError, LookupError) as exc:
            raise FramingEncodingError(f"Could not encode multipart framing: {exc}") from exc
