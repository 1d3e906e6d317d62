"""Advisory locking for cache entries.

Two invocations downloading the same artifact would otherwise race on file
creation and on checksum verification of a half-written file. The lock is
advisory: processes that do not take it are not blocked.
"""

from __future__ import annotations

import fcntl
import logging
import os
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from fcos_images.cache.layout import LOCKS_DIRNAME
from fcos_images.errors import CacheIOError
from fcos_images.types import ArtifactIdentity

logger = logging.getLogger(__name__)


def lock_path_for(cache_root: Path, identity: ArtifactIdentity) -> Path:
    """Return the lock file path for a cache entry."""
    safe_name = (
        f"{identity.stream.value}_{identity.version}_"
        f"{identity.architecture}_{identity.image_type}.lock"
    )
    return cache_root / LOCKS_DIRNAME / safe_name


@contextmanager
def entry_lock(
    cache_root: Path,
    identity: ArtifactIdentity,
    timeout: float | None = None,
) -> Iterator[Path]:
    """Acquire an exclusive lock on the cache entry of an identity.

    Args:
        cache_root: Root cache directory.
        identity: Artifact whose entry is locked.
        timeout: Lock acquisition timeout in seconds (None = blocking).

    Yields:
        Path of the lock file once the lock is held.

    Raises:
        CacheIOError: If the lock file cannot be created, or the lock
            cannot be acquired within timeout.
    """
    lock_file = lock_path_for(cache_root, identity)
    try:
        lock_file.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(str(lock_file), os.O_RDWR | os.O_CREAT, 0o600)
    except OSError as e:
        raise CacheIOError(f"Cannot create lock file {lock_file}: {e}") from e

    logger.debug("Acquiring lock for %s", identity)
    try:
        if timeout is not None:
            start = time.monotonic()
            while True:
                try:
                    fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
                    break
                except BlockingIOError as e:
                    if time.monotonic() - start >= timeout:
                        raise CacheIOError(
                            f"Timeout waiting for lock on {identity}",
                            code="lock_timeout",
                        ) from e
                    time.sleep(0.1)
        else:
            fcntl.flock(fd, fcntl.LOCK_EX)

        logger.debug("Lock acquired for %s", identity)
        yield lock_file
    finally:
        fcntl.flock(fd, fcntl.LOCK_UN)
        os.close(fd)
        logger.debug("Lock released for %s", identity)


__all__ = ["entry_lock", "lock_path_for"]
