"""Cache directory layout.

Every artifact lives in its own directory:

    <cache-root>/<stream>/<version>/<arch>/<image-type>/
        meta.json
        <artifact>
        <artifact>.sig
        fedora.gpg
        <artifact>-CHECKSUM
        sha256
        sha256-uncompressed   (only when meta.json records it)

Files are written once and never overwritten.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

from fcos_images.errors import CacheIOError
from fcos_images.types import ArtifactIdentity

logger = logging.getLogger(__name__)

META_FILENAME = "meta.json"
KEYRING_FILENAME = "fedora.gpg"
SHA256_FILENAME = "sha256"
SHA256_UNCOMPRESSED_FILENAME = "sha256-uncompressed"

# Holds advisory lock files; never a stream name
LOCKS_DIRNAME = ".locks"

# Files in an entry that are not source artifacts
SIDE_FILENAMES = frozenset(
    {META_FILENAME, KEYRING_FILENAME, SHA256_FILENAME, SHA256_UNCOMPRESSED_FILENAME}
)


@dataclass(frozen=True)
class CacheEntry:
    """Paths of every file belonging to one cached artifact."""

    directory: Path
    meta: Path
    artifact: Path
    signature: Path
    keyring: Path
    checksum: Path
    sha256: Path
    sha256_uncompressed: Path

    @property
    def downloads(self) -> tuple[Path, Path, Path, Path]:
        """Remote files in fetch order: metadata, artifact, signature, keyring."""
        return (self.meta, self.artifact, self.signature, self.keyring)

    def is_complete(self) -> bool:
        """Return True if all four remote files are present."""
        return all(path.exists() for path in self.downloads)


@dataclass(frozen=True)
class CachedDownload:
    """A cache entry found on disk."""

    stream: str
    version: str
    architecture: str
    image_type: str
    directory: Path
    artifacts: list[str]


class CacheLayout:
    """Deterministic mapping from artifact identities to cache directories."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def directory_for(self, identity: ArtifactIdentity) -> Path:
        """Return the cache directory for an identity (not created)."""
        return (
            self.root
            / identity.stream.value
            / identity.version
            / identity.architecture
            / identity.image_type
        )

    def ensure_exists(self, path: Path) -> Path:
        """Create a directory and its parents if absent.

        Raises:
            CacheIOError: If the directory cannot be created.
        """
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise CacheIOError(f"Cannot create cache directory {path}: {e}") from e
        return path

    def entry_for(self, identity: ArtifactIdentity) -> CacheEntry:
        """Return the file paths of the cache entry for an identity."""
        directory = self.directory_for(identity)
        artifact = directory / identity.artifact_filename
        return CacheEntry(
            directory=directory,
            meta=directory / META_FILENAME,
            artifact=artifact,
            signature=directory / identity.signature_filename,
            keyring=directory / KEYRING_FILENAME,
            checksum=directory / identity.checksum_filename,
            sha256=directory / SHA256_FILENAME,
            sha256_uncompressed=directory / SHA256_UNCOMPRESSED_FILENAME,
        )

    def iter_entries(self) -> Iterator[CachedDownload]:
        """Yield every cache entry directory found under the root.

        Entries are yielded in sorted path order. Directories that do not sit
        at the <stream>/<version>/<arch>/<image-type> depth are ignored.
        """
        if not self.root.is_dir():
            return
        for directory in sorted(self.root.glob("*/*/*/*")):
            if not directory.is_dir():
                continue
            relative = directory.relative_to(self.root)
            if relative.parts[0] == LOCKS_DIRNAME:
                continue
            stream, version, architecture, image_type = relative.parts
            artifacts = sorted(
                p.name
                for p in directory.iterdir()
                if p.is_file()
                and p.name not in SIDE_FILENAMES
                and not p.name.endswith((".sig", "-CHECKSUM"))
            )
            yield CachedDownload(
                stream=stream,
                version=version,
                architecture=architecture,
                image_type=image_type,
                directory=directory,
                artifacts=artifacts,
            )


__all__ = [
    "CacheEntry",
    "CacheLayout",
    "CachedDownload",
    "KEYRING_FILENAME",
    "LOCKS_DIRNAME",
    "META_FILENAME",
    "SHA256_FILENAME",
    "SHA256_UNCOMPRESSED_FILENAME",
]
