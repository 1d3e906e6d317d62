"""Pydantic models for stream manifests and build metadata.

The stream manifest (``streams/<stream>.json``) is nested as
architectures -> artifacts -> formats. Only key enumeration and the
per-artifact ``release`` field are used, so unknown fields are ignored.

Build metadata (``meta.json``) maps each image type to its checksums.
"""

import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

SHA256_PATTERN = re.compile(r"^[0-9a-fA-F]{64}$")


class ArtifactEntry(BaseModel):
    """One image type published for an architecture."""

    model_config = ConfigDict(extra="ignore")

    release: str | None = Field(default=None, description="Build version")
    formats: dict[str, Any] = Field(default_factory=dict)


class ArchitectureEntry(BaseModel):
    """Artifacts published for one architecture."""

    model_config = ConfigDict(extra="ignore")

    artifacts: dict[str, ArtifactEntry] = Field(default_factory=dict)


class StreamManifest(BaseModel):
    """Per-stream manifest document."""

    model_config = ConfigDict(extra="ignore")

    stream: str | None = None
    architectures: dict[str, ArchitectureEntry] = Field(default_factory=dict)


class ImageChecksums(BaseModel):
    """Checksums recorded for one image type in meta.json.

    Digests are checked when an image type is looked up, so a malformed
    record does not affect the other image types.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    sha256: str | None = None
    uncompressed_sha256: str | None = Field(
        default=None, alias="uncompressed-sha256"
    )


class BuildMetadata(BaseModel):
    """Per-build metadata document (meta.json)."""

    model_config = ConfigDict(extra="ignore")

    images: dict[str, ImageChecksums] = Field(default_factory=dict)


__all__ = [
    "ArchitectureEntry",
    "ArtifactEntry",
    "BuildMetadata",
    "ImageChecksums",
    "SHA256_PATTERN",
    "StreamManifest",
]
