"""Stream metadata module.

This module handles:
- Fetching stream manifests and build metadata
- Resolving the latest version of a stream
- Catalog queries (available artifacts, latest version)
"""

from fcos_images.streams.catalog import Catalog
from fcos_images.streams.metadata import MetadataClient
from fcos_images.streams.models import BuildMetadata, ImageChecksums, StreamManifest

__all__ = [
    "BuildMetadata",
    "Catalog",
    "ImageChecksums",
    "MetadataClient",
    "StreamManifest",
]
