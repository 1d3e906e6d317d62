"""Download pipeline.

This module provides the high-level download workflow:
resolve version -> ensure cache dir -> fetch artifacts -> verify checksum
-> verify signature -> emit derived files.

Any stage failure aborts the run. Files already written are left in place;
nothing is retried or rolled back.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager, nullcontext
from dataclasses import dataclass, field
from pathlib import Path

import httpx

from fcos_images.cache.fetch import fetch_if_absent
from fcos_images.cache.layout import CacheEntry, CacheLayout
from fcos_images.cache.lock import entry_lock
from fcos_images.config import Settings
from fcos_images.errors import CacheIOError, UsageError
from fcos_images.streams.metadata import (
    MetadataClient,
    expected_sha256,
    load_build_metadata,
    uncompressed_sha256,
)
from fcos_images.streams.models import BuildMetadata
from fcos_images.types import LATEST, ArtifactIdentity, PipelineState, Stream
from fcos_images.verify import require_tools, verify_checksum, verify_signature

logger = logging.getLogger(__name__)


@dataclass
class DownloadResult:
    """Result of a download pipeline run.

    Attributes:
        identity: Resolved artifact identity.
        directory: Cache entry directory.
        artifact_path: Path to the verified artifact.
        sha256: Verified digest of the artifact.
        fetched: Names of files downloaded during this run.
        derived: Names of derived files written during this run.
        state: Final pipeline state.
    """

    identity: ArtifactIdentity
    directory: Path
    artifact_path: Path
    sha256: str
    fetched: list[str] = field(default_factory=list)
    derived: list[str] = field(default_factory=list)
    state: PipelineState = PipelineState.SUCCESS


def write_if_absent(path: Path, content: str) -> bool:
    """Write a small text file unless it already exists.

    Returns:
        True if the file was written.

    Raises:
        CacheIOError: If the file cannot be written.
    """
    if path.exists():
        return False
    try:
        path.write_text(content)
    except OSError as e:
        raise CacheIOError(f"Cannot write {path}: {e}") from e
    return True


class DownloadPipeline:
    """Resolves, fetches, verifies and publishes one artifact per run."""

    def __init__(
        self,
        settings: Settings,
        client: httpx.Client,
        metadata: MetadataClient | None = None,
        layout: CacheLayout | None = None,
        report: Callable[[str], None] | None = None,
    ) -> None:
        """Initialize DownloadPipeline.

        Args:
            settings: Application settings.
            client: HTTPX client used for every remote request.
            metadata: Metadata client (built from settings if not provided).
            layout: Cache layout (built from settings if not provided).
            report: Optional callback receiving progress messages.
        """
        self.settings = settings
        self.client = client
        self.metadata = metadata or MetadataClient(
            client, settings.base_url, timeout=settings.metadata_timeout
        )
        self.layout = layout or CacheLayout(settings.cache_dir)
        self.report = report or (lambda message: None)
        self.state = PipelineState.RESOLVE_VERSION

    def _enter(self, state: PipelineState) -> None:
        logger.debug("Pipeline stage: %s", state.value)
        self.state = state

    def resolve_identity(
        self,
        stream: Stream,
        version: str,
        architecture: str,
        image_type: str,
        image_format: str,
    ) -> ArtifactIdentity:
        """Build the artifact identity, resolving "latest" first.

        A literal version is passed through without checking that it exists
        upstream; an unknown version surfaces later as a DownloadError.
        """
        try:
            stream = Stream(stream)
        except ValueError:
            raise UsageError(f"Unknown stream: {stream!r}") from None
        if version == LATEST:
            version = self.metadata.resolve_latest_version(stream)
            self.report(f"Resolved latest {stream.value} version: {version}")
        return ArtifactIdentity(stream, version, architecture, image_type, image_format)

    @contextmanager
    def _locked(self, identity: ArtifactIdentity) -> Iterator[None]:
        lock = (
            entry_lock(self.settings.cache_dir, identity)
            if self.settings.lock_entries
            else nullcontext()
        )
        with lock:
            yield

    def _fetch(self, identity: ArtifactIdentity, entry: CacheEntry) -> list[str]:
        if entry.is_complete():
            logger.info("All files cached for %s, skipping downloads", identity)
            return []

        base_url = self.settings.base_url
        urls = (
            f"{identity.build_url(base_url)}/meta.json",
            identity.artifact_url(base_url),
            identity.signature_url(base_url),
            self.settings.keyring_url,
        )
        fetched: list[str] = []
        for url, path in zip(urls, entry.downloads):
            if not path.exists():
                self.report(f"Downloading {path.name}")
            if fetch_if_absent(
                self.client, url, path, timeout=self.settings.download_timeout
            ):
                fetched.append(path.name)
        return fetched

    def _emit_derived(
        self,
        identity: ArtifactIdentity,
        entry: CacheEntry,
        digest: str,
        metadata: BuildMetadata,
    ) -> list[str]:
        derived: list[str] = []
        if write_if_absent(entry.sha256, digest):
            derived.append(entry.sha256.name)

        uncompressed = uncompressed_sha256(metadata, identity.image_type)
        if uncompressed is not None and write_if_absent(
            entry.sha256_uncompressed, uncompressed
        ):
            derived.append(entry.sha256_uncompressed.name)
        return derived

    def run(
        self,
        stream: Stream,
        version: str,
        architecture: str,
        image_type: str,
        image_format: str,
    ) -> DownloadResult:
        """Download and verify one artifact.

        Args:
            stream: Release stream.
            version: Build version or "latest".
            architecture: CPU architecture.
            image_type: Image type (e.g., 'qemu').
            image_format: Image format (e.g., 'qcow2.xz').

        Returns:
            DownloadResult for the verified artifact.

        Raises:
            DependencyMissingError: If gpgv is not installed.
            UsageError: If an identity component is not a valid path segment.
            NetworkError: If a remote document cannot be fetched.
            DownloadError: If an artifact download fails or is empty.
            ParseError: If a remote document is malformed.
            NotFoundError: If "latest" or the image checksum cannot be found.
            IntegrityError: If the checksum does not match.
            AuthenticityError: If the signature is rejected.
            CacheIOError: If the cache cannot be written.
        """
        require_tools(self.settings.gpgv_path)

        try:
            self._enter(PipelineState.RESOLVE_VERSION)
            identity = self.resolve_identity(
                stream, version, architecture, image_type, image_format
            )

            with self._locked(identity):
                self._enter(PipelineState.ENSURE_CACHE_DIR)
                entry = self.layout.entry_for(identity)
                self.layout.ensure_exists(entry.directory)

                self._enter(PipelineState.FETCH_ARTIFACTS)
                fetched = self._fetch(identity, entry)

                self._enter(PipelineState.VERIFY_CHECKSUM)
                self.report(f"Verifying checksum of {entry.artifact.name}")
                metadata = load_build_metadata(entry.meta)
                digest = verify_checksum(
                    entry, expected_sha256(metadata, identity.image_type)
                )

                self._enter(PipelineState.VERIFY_SIGNATURE)
                self.report(f"Verifying signature of {entry.artifact.name}")
                verify_signature(entry, gpgv_path=self.settings.gpgv_path)

                self._enter(PipelineState.EMIT_DERIVED_FILES)
                derived = self._emit_derived(identity, entry, digest, metadata)

        except Exception:
            failed_stage = self.state
            self.state = PipelineState.FAILED
            logger.debug("Pipeline failed during %s", failed_stage.value)
            raise

        self._enter(PipelineState.SUCCESS)
        logger.info("Artifact ready: %s", entry.artifact)
        return DownloadResult(
            identity=identity,
            directory=entry.directory,
            artifact_path=entry.artifact,
            sha256=digest,
            fetched=fetched,
            derived=derived,
            state=self.state,
        )


__all__ = ["DownloadPipeline", "DownloadResult", "write_if_absent"]
