"""Read-only catalog queries over stream manifests."""

from __future__ import annotations

import logging

from fcos_images.streams.metadata import (
    MetadataClient,
    list_architectures,
    list_artifact_types,
    list_formats,
)
from fcos_images.types import CatalogEntry, Stream

logger = logging.getLogger(__name__)


class Catalog:
    """Lists what a stream publishes and which version is current."""

    def __init__(self, metadata: MetadataClient) -> None:
        self.metadata = metadata

    def list_available(self, stream: Stream) -> list[CatalogEntry]:
        """List every (architecture, image type, format) leaf of a stream.

        Rows are architecture-major and keep the manifest key order at
        each level.

        Raises:
            NetworkError: If the manifest cannot be fetched.
            ParseError: If the manifest is malformed or a level is empty.
        """
        manifest = self.metadata.fetch_stream_manifest(stream)
        entries: list[CatalogEntry] = []
        for architecture in list_architectures(manifest):
            for image_type in list_artifact_types(manifest, architecture):
                for image_format in list_formats(manifest, architecture, image_type):
                    entries.append(CatalogEntry(architecture, image_type, image_format))
        logger.debug("Stream %s lists %d artifacts", Stream(stream).value, len(entries))
        return entries

    def check_latest(self, stream: Stream) -> str:
        """Return the current version string of a stream."""
        return self.metadata.resolve_latest_version(stream)


__all__ = ["Catalog"]
