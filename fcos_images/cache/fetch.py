"""Artifact fetch module.

This module handles:
- Creating the HTTPS-only HTTP client (TLS 1.2 minimum)
- Idempotent "download if absent" of a single remote file
- Zero-byte detection after download

fetch_if_absent() is the only path through which remote content is
written into the cache.
"""

from __future__ import annotations

import logging
import ssl
from pathlib import Path

import httpx

from fcos_images.errors import CacheIOError, DownloadError

logger = logging.getLogger(__name__)

# Timeout for downloads (seconds)
DOWNLOAD_TIMEOUT = 3600

# Chunk size for downloads (bytes)
DOWNLOAD_CHUNK_SIZE = 64 * 1024  # 64 KB


def make_ssl_context() -> ssl.SSLContext:
    """Create an SSL context that refuses anything older than TLS 1.2."""
    context = ssl.create_default_context()
    context.minimum_version = ssl.TLSVersion.TLSv1_2
    return context


def require_https(request: httpx.Request) -> None:
    """Request hook refusing any hop, redirects included, that is not HTTPS."""
    if request.url.scheme != "https":
        raise DownloadError(
            f"Refusing non-HTTPS URL: {request.url}", code="insecure_url"
        )


def make_http_client(timeout: float = DOWNLOAD_TIMEOUT) -> httpx.Client:
    """Create the HTTP client used for all remote requests.

    Args:
        timeout: Default request timeout in seconds.

    Returns:
        httpx.Client pinned to TLS 1.2 or newer that follows redirects
        only to HTTPS locations.
    """
    return httpx.Client(
        verify=make_ssl_context(),
        follow_redirects=True,
        timeout=timeout,
        event_hooks={"request": [require_https]},
    )


def fetch_if_absent(
    client: httpx.Client,
    url: str,
    dest_path: Path,
    timeout: float = DOWNLOAD_TIMEOUT,
    chunk_size: int = DOWNLOAD_CHUNK_SIZE,
) -> bool:
    """Download a file unless it already exists.

    An existing destination is never re-validated or re-downloaded,
    whatever its size. A partially written file is left in place on failure.

    Args:
        client: HTTPX client instance.
        url: HTTPS URL to download from.
        dest_path: Destination path for the downloaded file.
        timeout: Download timeout in seconds.
        chunk_size: Size of chunks to download.

    Returns:
        True if the file was downloaded, False if it was already present.

    Raises:
        DownloadError: If the download fails or produces an empty file.
        CacheIOError: If the destination cannot be written.
    """
    if dest_path.exists():
        logger.debug("Already present, skipping %s", dest_path)
        return False

    if not url.startswith("https://"):
        raise DownloadError(f"Refusing non-HTTPS URL: {url}", code="insecure_url")

    logger.info("Downloading %s to %s", url, dest_path)

    try:
        with client.stream("GET", url, timeout=timeout) as response:
            response.raise_for_status()
            # Clients without the require_https hook may still have
            # followed a redirect to plain HTTP
            if response.url.scheme != "https":
                raise DownloadError(
                    f"Refusing redirect of {url} to non-HTTPS {response.url}",
                    code="insecure_url",
                )

            total_bytes = 0
            with dest_path.open("wb") as f:
                for chunk in response.iter_bytes(chunk_size):
                    f.write(chunk)
                    total_bytes += len(chunk)

    except httpx.HTTPStatusError as e:
        raise DownloadError(
            f"HTTP error downloading {url}: "
            f"{e.response.status_code} {e.response.reason_phrase}",
            code="http_error",
        ) from e
    except httpx.TimeoutException as e:
        raise DownloadError(
            f"Timeout downloading {url}",
            code="timeout",
        ) from e
    except httpx.RequestError as e:
        raise DownloadError(
            f"Network error downloading {url}: {e}",
            code="network_error",
        ) from e
    except OSError as e:
        raise CacheIOError(f"Cannot write {dest_path}: {e}") from e

    if not dest_path.exists() or dest_path.stat().st_size == 0:
        raise DownloadError(
            f"Download of {url} produced an empty file at {dest_path}",
            code="empty_download",
        )

    logger.info("Downloaded %s (%d bytes)", dest_path.name, total_bytes)
    return True


__all__ = [
    "DOWNLOAD_CHUNK_SIZE",
    "DOWNLOAD_TIMEOUT",
    "fetch_if_absent",
    "make_http_client",
    "make_ssl_context",
    "require_https",
]
