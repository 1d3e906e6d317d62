"""Error taxonomy for fcos_images.

Every failure in the resolve/fetch/verify/publish pipeline is raised as a
subclass of ImageCacheError carrying a stable code. Nothing is retried; the
CLI turns any ImageCacheError into a single error line and exit code 1.
"""

from __future__ import annotations

# Stable error codes
USAGE_ERROR = "usage_error"
DEPENDENCY_MISSING = "dependency_missing"
NETWORK_ERROR = "network_error"
DOWNLOAD_ERROR = "download_error"
PARSE_ERROR = "parse_error"
NOT_FOUND = "not_found"
INTEGRITY_ERROR = "integrity_error"
AUTHENTICITY_ERROR = "authenticity_error"
CACHE_IO_ERROR = "cache_io_error"

# Appended to verification failures
DELETE_AND_RETRY_HINT = (
    "Delete the cache directory {directory} and run the download again."
)


class ImageCacheError(Exception):
    """Base class for all handled fcos_images errors."""

    default_code = "error"

    def __init__(self, message: str, code: str | None = None) -> None:
        """Initialize ImageCacheError.

        Args:
            message: Error description.
            code: Error code for structured error handling.
        """
        super().__init__(message)
        self.code = code or self.default_code


class UsageError(ImageCacheError):
    """Raised when request arguments are invalid."""

    default_code = USAGE_ERROR


class DependencyMissingError(ImageCacheError):
    """Raised when a required external tool is not installed."""

    default_code = DEPENDENCY_MISSING

    def __init__(self, tool: str, code: str | None = None) -> None:
        super().__init__(
            f"Required tool '{tool}' was not found in PATH; please install it",
            code=code,
        )
        self.tool = tool


class NetworkError(ImageCacheError):
    """Raised when a remote document cannot be retrieved."""

    default_code = NETWORK_ERROR


class DownloadError(NetworkError):
    """Raised when a download fails or produces an empty file."""

    default_code = DOWNLOAD_ERROR


class ParseError(ImageCacheError):
    """Raised when a remote document is not valid or is malformed."""

    default_code = PARSE_ERROR


class NotFoundError(ImageCacheError):
    """Raised when an expected key path is absent from a document."""

    default_code = NOT_FOUND


class IntegrityError(ImageCacheError):
    """Raised when an artifact does not match its recorded checksum."""

    default_code = INTEGRITY_ERROR


class AuthenticityError(ImageCacheError):
    """Raised when signature validation of an artifact fails."""

    default_code = AUTHENTICITY_ERROR


class CacheIOError(ImageCacheError):
    """Raised when the cache directory cannot be created or written."""

    default_code = CACHE_IO_ERROR


__all__ = [
    "AUTHENTICITY_ERROR",
    "AuthenticityError",
    "CACHE_IO_ERROR",
    "CacheIOError",
    "DELETE_AND_RETRY_HINT",
    "DEPENDENCY_MISSING",
    "DOWNLOAD_ERROR",
    "DependencyMissingError",
    "DownloadError",
    "INTEGRITY_ERROR",
    "ImageCacheError",
    "IntegrityError",
    "NETWORK_ERROR",
    "NOT_FOUND",
    "NetworkError",
    "NotFoundError",
    "PARSE_ERROR",
    "ParseError",
    "USAGE_ERROR",
    "UsageError",
]
