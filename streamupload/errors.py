"""Error kinds raised by the upload pipeline.

Every error is terminal for the attempt that raised it; nothing here is
retried internally.
"""


class UploadError(RuntimeError):
    """Base class for upload pipeline failures."""


class FramingEncodingError(UploadError):
    """Multipart prefix or suffix could not be encoded to bytes."""


class UnsupportedFileTypeError(UploadError):
    """Local file name does not map to a known upload kind."""


class StreamIOError(UploadError):
    """Reading the source or writing the staged file failed."""


class TransportError(UploadError):
    """The HTTP layer failed or returned an unusable response."""
