"""Shared type definitions for fcos_images.

This module contains enums and dataclasses shared across subpackages to
avoid circular imports.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from fcos_images.errors import UsageError

# Version sentinel resolved against the stream manifest
LATEST = "latest"

# Filename prefix of every artifact published by the build infrastructure
ARTIFACT_PREFIX = "fedora-coreos"


class Stream(str, Enum):
    """Release channel with its own version sequence."""

    STABLE = "stable"
    TESTING = "testing"
    NEXT = "next"


class PipelineState(str, Enum):
    """Stage of a download pipeline run."""

    RESOLVE_VERSION = "resolve_version"
    ENSURE_CACHE_DIR = "ensure_cache_dir"
    FETCH_ARTIFACTS = "fetch_artifacts"
    VERIFY_CHECKSUM = "verify_checksum"
    VERIFY_SIGNATURE = "verify_signature"
    EMIT_DERIVED_FILES = "emit_derived_files"
    SUCCESS = "success"
    FAILED = "failed"


def _check_component(name: str, value: str) -> None:
    """Reject values that cannot be used as a single path segment."""
    if not value:
        raise UsageError(f"{name} must not be empty")
    if "/" in value or "\\" in value or value in (".", ".."):
        raise UsageError(f"{name} must not contain path separators: {value!r}")


@dataclass(frozen=True)
class ArtifactIdentity:
    """Fully resolved identity of one downloadable artifact.

    Attributes:
        stream: Release stream.
        version: Concrete build version (never the "latest" sentinel).
        architecture: CPU architecture (e.g., 'x86_64').
        image_type: Artifact/image type (e.g., 'qemu').
        image_format: Image format (e.g., 'qcow2.xz').
    """

    stream: Stream
    version: str
    architecture: str
    image_type: str
    image_format: str

    def __post_init__(self) -> None:
        """Validate components after initialization."""
        if not isinstance(self.stream, Stream):
            try:
                object.__setattr__(self, "stream", Stream(self.stream))
            except ValueError:
                raise UsageError(f"Unknown stream: {self.stream!r}") from None
        if self.version == LATEST:
            raise UsageError("version must be resolved before building an identity")
        _check_component("version", self.version)
        _check_component("architecture", self.architecture)
        _check_component("image type", self.image_type)
        _check_component("image format", self.image_format)

    @property
    def artifact_filename(self) -> str:
        """Name of the source artifact file."""
        return (
            f"{ARTIFACT_PREFIX}-{self.version}-{self.image_type}"
            f".{self.architecture}.{self.image_format}"
        )

    @property
    def signature_filename(self) -> str:
        """Name of the detached signature file."""
        return f"{self.artifact_filename}.sig"

    @property
    def checksum_filename(self) -> str:
        """Name of the generated checksum sidecar."""
        return f"{self.artifact_filename}-CHECKSUM"

    def build_url(self, base_url: str) -> str:
        """URL of the build directory for this architecture."""
        return (
            f"{base_url.rstrip('/')}/prod/streams/{self.stream.value}"
            f"/builds/{self.version}/{self.architecture}"
        )

    def artifact_url(self, base_url: str) -> str:
        """URL of the source artifact."""
        return f"{self.build_url(base_url)}/{self.artifact_filename}"

    def signature_url(self, base_url: str) -> str:
        """URL of the detached signature."""
        return f"{self.build_url(base_url)}/{self.signature_filename}"

    def __str__(self) -> str:
        return (
            f"{self.stream.value}/{self.version}/{self.architecture}"
            f"/{self.image_type}/{self.image_format}"
        )


@dataclass(frozen=True)
class CatalogEntry:
    """One (architecture, image type, image format) leaf of a stream."""

    architecture: str
    image_type: str
    image_format: str


__all__ = [
    "ARTIFACT_PREFIX",
    "ArtifactIdentity",
    "CatalogEntry",
    "LATEST",
    "PipelineState",
    "Stream",
]
