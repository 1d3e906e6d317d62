"""Image cache module.

This module handles:
- Mapping artifact identities to cache directories
- Downloading remote files into the cache, once
- Advisory locking of cache entries
"""

from fcos_images.cache.fetch import fetch_if_absent, make_http_client
from fcos_images.cache.layout import CacheEntry, CacheLayout, CachedDownload
from fcos_images.cache.lock import entry_lock

__all__ = [
    "CacheEntry",
    "CacheLayout",
    "CachedDownload",
    "entry_lock",
    "fetch_if_absent",
    "make_http_client",
]
