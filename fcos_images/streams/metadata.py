"""Stream manifest and build metadata client.

This module handles:
- Fetching and parsing ``<base>/streams/<stream>.json``
- Fetching and parsing ``<build-url>/meta.json``
- Resolving the "latest" version of a stream
- Enumerating architectures, image types and formats of a manifest
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import httpx
from pydantic import BaseModel, ValidationError

from fcos_images.errors import NetworkError, NotFoundError, ParseError
from fcos_images.streams.models import (
    SHA256_PATTERN,
    BuildMetadata,
    StreamManifest,
)
from fcos_images.types import Stream

logger = logging.getLogger(__name__)

# Timeout for manifest/metadata requests (seconds)
METADATA_TIMEOUT = 30

# Manifest location of the release identifier used for "latest". Streams
# without an x86_64 qemu artifact cannot resolve "latest".
LATEST_ARCHITECTURE = "x86_64"
LATEST_ARTIFACT = "qemu"


def _parse_document(content: bytes | str, model: type[BaseModel], source: str) -> Any:
    try:
        data = json.loads(content)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ParseError(f"Invalid JSON in {source}: {e}") from e
    if not isinstance(data, dict):
        raise ParseError(f"Expected a JSON object in {source}")
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise ParseError(f"Malformed document {source}: {e}") from e


def parse_stream_manifest(
    content: bytes | str, source: str = "manifest"
) -> StreamManifest:
    """Parse a stream manifest document."""
    manifest: StreamManifest = _parse_document(content, StreamManifest, source)
    return manifest


def parse_build_metadata(
    content: bytes | str, source: str = "meta.json"
) -> BuildMetadata:
    """Parse a build metadata document."""
    metadata: BuildMetadata = _parse_document(content, BuildMetadata, source)
    return metadata


def load_build_metadata(path: Path) -> BuildMetadata:
    """Parse a build metadata document cached on disk.

    Raises:
        ParseError: If the file cannot be read or is malformed.
    """
    try:
        content = path.read_bytes()
    except OSError as e:
        raise ParseError(f"Cannot read {path}: {e}") from e
    return parse_build_metadata(content, source=str(path))


def _normalise_digest(digest: str, image_type: str) -> str:
    if not SHA256_PATTERN.match(digest):
        raise ParseError(
            f"Malformed build metadata: sha256 '{digest}' of image type "
            f"'{image_type}' is not a hex digest",
            code="malformed_metadata",
        )
    return digest.lower()


def expected_sha256(metadata: BuildMetadata, image_type: str) -> str:
    """Return the recorded sha256 of an image type.

    Raises:
        NotFoundError: If the image type or its sha256 is absent.
        ParseError: If the recorded sha256 is not a hex digest.
    """
    record = metadata.images.get(image_type)
    if record is None or record.sha256 is None:
        raise NotFoundError(
            f"No sha256 recorded for image type '{image_type}' in build metadata",
            code="checksum_not_found",
        )
    return _normalise_digest(record.sha256, image_type)


def uncompressed_sha256(metadata: BuildMetadata, image_type: str) -> str | None:
    """Return the recorded uncompressed sha256 of an image type, if any.

    Raises:
        ParseError: If the recorded digest is not a hex digest.
    """
    record = metadata.images.get(image_type)
    if record is None or record.uncompressed_sha256 is None:
        return None
    return _normalise_digest(record.uncompressed_sha256, image_type)


def _require_keys(keys: list[str], level: str) -> list[str]:
    """Reject a manifest level that is empty or has an empty key."""
    if not keys:
        raise ParseError(f"Malformed manifest: no {level}", code="malformed_manifest")
    if any(not key.strip() for key in keys):
        raise ParseError(
            f"Malformed manifest: empty key among {level}", code="malformed_manifest"
        )
    return keys


def list_architectures(manifest: StreamManifest) -> list[str]:
    """List architectures in manifest order.

    Raises:
        ParseError: If the manifest lists no architectures or an empty key.
    """
    return _require_keys(list(manifest.architectures), "architectures")


def list_artifact_types(manifest: StreamManifest, architecture: str) -> list[str]:
    """List image types of an architecture in manifest order.

    Raises:
        NotFoundError: If the architecture is not in the manifest.
        ParseError: If the architecture lists no artifacts or an empty key.
    """
    entry = manifest.architectures.get(architecture)
    if entry is None:
        raise NotFoundError(f"Architecture '{architecture}' not found in manifest")
    return _require_keys(list(entry.artifacts), f"artifacts for {architecture}")


def list_formats(
    manifest: StreamManifest, architecture: str, image_type: str
) -> list[str]:
    """List formats of an image type in manifest order.

    Raises:
        NotFoundError: If the architecture or image type is not in the manifest.
        ParseError: If the image type lists no formats or an empty key.
    """
    if architecture not in manifest.architectures:
        raise NotFoundError(f"Architecture '{architecture}' not found in manifest")
    artifact = manifest.architectures[architecture].artifacts.get(image_type)
    if artifact is None:
        raise NotFoundError(
            f"Image type '{image_type}' not found for {architecture} in manifest"
        )
    return _require_keys(
        list(artifact.formats), f"formats for {architecture}/{image_type}"
    )


def latest_release(manifest: StreamManifest) -> str:
    """Return the release at architectures.x86_64.artifacts.qemu.release.

    Raises:
        NotFoundError: If that path is absent.
    """
    architecture = manifest.architectures.get(LATEST_ARCHITECTURE)
    artifact = architecture.artifacts.get(LATEST_ARTIFACT) if architecture else None
    if artifact is None or not artifact.release:
        raise NotFoundError(
            "Cannot resolve latest version: manifest has no "
            f"architectures.{LATEST_ARCHITECTURE}.artifacts.{LATEST_ARTIFACT}.release",
            code="latest_not_found",
        )
    return artifact.release


class MetadataClient:
    """Client for the stream manifests and per-build metadata."""

    def __init__(
        self,
        client: httpx.Client,
        base_url: str,
        timeout: float = METADATA_TIMEOUT,
    ) -> None:
        self.client = client
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def manifest_url(self, stream: Stream) -> str:
        """URL of the manifest of a stream."""
        return f"{self.base_url}/streams/{Stream(stream).value}.json"

    def _get(self, url: str) -> bytes:
        logger.debug("Fetching %s", url)
        try:
            response = self.client.get(url, timeout=self.timeout)
            response.raise_for_status()
            if response.url.scheme != "https":
                raise NetworkError(
                    f"Refusing redirect of {url} to non-HTTPS {response.url}",
                    code="insecure_url",
                )
            return response.content

        except httpx.HTTPStatusError as e:
            raise NetworkError(
                f"HTTP error fetching {url}: {e.response.status_code}",
                code="http_error",
            ) from e
        except httpx.TimeoutException as e:
            raise NetworkError(
                f"Timeout fetching {url}",
                code="timeout",
            ) from e
        except httpx.RequestError as e:
            raise NetworkError(
                f"Network error fetching {url}: {e}",
                code="network_error",
            ) from e

    def fetch_stream_manifest(self, stream: Stream) -> StreamManifest:
        """Fetch and parse the manifest of a stream.

        Raises:
            NetworkError: If the transport fails.
            ParseError: If the body is not a valid manifest.
        """
        url = self.manifest_url(stream)
        return parse_stream_manifest(self._get(url), source=url)

    def fetch_build_metadata(self, build_url: str) -> BuildMetadata:
        """Fetch and parse ``<build_url>/meta.json``.

        Raises:
            NetworkError: If the transport fails.
            ParseError: If the body is not valid build metadata.
        """
        url = f"{build_url.rstrip('/')}/meta.json"
        return parse_build_metadata(self._get(url), source=url)

    def resolve_latest_version(self, stream: Stream) -> str:
        """Return the current release of a stream.

        Raises:
            NetworkError: If the manifest cannot be fetched.
            ParseError: If the manifest is malformed.
            NotFoundError: If the manifest has no x86_64 qemu release.
        """
        version = latest_release(self.fetch_stream_manifest(stream))
        logger.info("Latest %s release is %s", Stream(stream).value, version)
        return version


__all__ = [
    "LATEST_ARCHITECTURE",
    "LATEST_ARTIFACT",
    "METADATA_TIMEOUT",
    "MetadataClient",
    "expected_sha256",
    "latest_release",
    "list_architectures",
    "list_artifact_types",
    "list_formats",
    "load_build_metadata",
    "parse_build_metadata",
    "parse_stream_manifest",
    "uncompressed_sha256",
]
