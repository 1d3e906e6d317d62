"""Artifact verification.

Verification has two mandatory stages, run in order on every download,
including fully cached ones:

1. Checksum: the artifact digest must match the ``<artifact>-CHECKSUM``
   sidecar. The sidecar is synthesized from meta.json the first time and is
   never regenerated, so later runs check against the first-seen digest even
   if the remote metadata changes.
2. Signature: ``gpgv`` must accept the detached ``.sig`` against the
   distribution keyring stored in the same cache directory.

Failures are never repaired; the operator is told to delete the entry.
"""

from __future__ import annotations

import hashlib
import logging
import re
import shutil
import subprocess
from pathlib import Path

from fcos_images.cache.layout import CacheEntry
from fcos_images.errors import (
    DELETE_AND_RETRY_HINT,
    AuthenticityError,
    CacheIOError,
    DependencyMissingError,
    IntegrityError,
)

logger = logging.getLogger(__name__)

# Chunk size for hashing (bytes)
HASH_CHUNK_SIZE = 1024 * 1024

# Timeout for gpgv (seconds)
SIGNATURE_TIMEOUT = 300

# BSD-style tag line understood by `sha256sum -c`
CHECKSUM_LINE_PATTERN = re.compile(
    r"^SHA256 \((?P<name>.+)\) = (?P<digest>[0-9a-fA-F]{64})$"
)


def compute_file_sha256(file_path: Path, chunk_size: int = HASH_CHUNK_SIZE) -> str:
    """Compute SHA256 checksum of a file.

    Args:
        file_path: Path to the file.
        chunk_size: Size of chunks to read.

    Returns:
        SHA256 hex digest.
    """
    sha256 = hashlib.sha256()
    with file_path.open("rb") as f:
        while chunk := f.read(chunk_size):
            sha256.update(chunk)
    return sha256.hexdigest()


def format_checksum_line(filename: str, digest: str) -> str:
    """Format a checksum sidecar line: ``SHA256 (<filename>) = <digest>``."""
    return f"SHA256 ({filename}) = {digest.lower()}\n"


def parse_checksum_file(content: str, filename: str) -> str | None:
    """Find the digest recorded for a file in checksum sidecar content.

    Args:
        content: Content of the sidecar.
        filename: Filename to look up.

    Returns:
        Lowercase SHA256 digest, or None if not found.
    """
    for line in content.splitlines():
        match = CHECKSUM_LINE_PATTERN.match(line.strip())
        if match and match.group("name") == filename:
            return match.group("digest").lower()
    return None


def write_checksum_sidecar(entry: CacheEntry, digest: str) -> bool:
    """Write the checksum sidecar unless it already exists.

    Returns:
        True if the sidecar was written, False if one was already present.
    """
    if entry.checksum.exists():
        return False
    try:
        entry.checksum.write_text(format_checksum_line(entry.artifact.name, digest))
    except OSError as e:
        raise CacheIOError(f"Cannot write {entry.checksum}: {e}") from e
    logger.debug("Wrote checksum sidecar %s", entry.checksum)
    return True


def verify_checksum(entry: CacheEntry, expected_sha256: str) -> str:
    """Check the artifact against its checksum sidecar.

    Args:
        entry: Cache entry holding the artifact.
        expected_sha256: Digest from build metadata, used only when the
            sidecar has to be created.

    Returns:
        The verified digest.

    Raises:
        IntegrityError: If the digest does not match or the sidecar is unusable.
    """
    hint = DELETE_AND_RETRY_HINT.format(directory=entry.directory)
    write_checksum_sidecar(entry, expected_sha256)

    try:
        recorded = parse_checksum_file(entry.checksum.read_text(), entry.artifact.name)
    except (OSError, UnicodeDecodeError) as e:
        raise IntegrityError(f"Cannot read {entry.checksum.name}: {e}. {hint}") from e
    if recorded is None:
        raise IntegrityError(
            f"No checksum for {entry.artifact.name} in {entry.checksum.name}. {hint}",
            code="checksum_sidecar_invalid",
        )

    try:
        actual = compute_file_sha256(entry.artifact)
    except OSError as e:
        raise IntegrityError(f"Cannot read {entry.artifact.name}: {e}. {hint}") from e

    if actual != recorded:
        logger.debug(
            "Checksum mismatch for %s: expected %s, got %s",
            entry.artifact,
            recorded,
            actual,
        )
        raise IntegrityError(
            f"Checksum verification failed for {entry.artifact.name}. {hint}",
            code="checksum_mismatch",
        )

    logger.info("Checksum OK for %s", entry.artifact.name)
    return actual


def require_tools(gpgv_path: str = "gpgv") -> str:
    """Check that the signature verifier is installed.

    Returns:
        Resolved path of the gpgv executable.

    Raises:
        DependencyMissingError: If gpgv cannot be found.
    """
    resolved = shutil.which(gpgv_path)
    if resolved is None:
        raise DependencyMissingError(gpgv_path)
    return resolved


def verify_signature(
    entry: CacheEntry,
    gpgv_path: str = "gpgv",
    timeout: int = SIGNATURE_TIMEOUT,
) -> None:
    """Validate the detached signature of the artifact with gpgv.

    Args:
        entry: Cache entry holding artifact, signature and keyring.
        gpgv_path: gpgv executable.
        timeout: Command timeout in seconds.

    Raises:
        AuthenticityError: If gpgv rejects the signature.
        DependencyMissingError: If gpgv cannot be executed.
    """
    hint = DELETE_AND_RETRY_HINT.format(directory=entry.directory)
    # gpgv resolves relative keyring names against its home directory
    cmd = [
        gpgv_path,
        "--keyring",
        str(entry.keyring.resolve()),
        str(entry.signature),
        str(entry.artifact),
    ]
    logger.debug("Running %s", " ".join(cmd))

    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except FileNotFoundError as e:
        raise DependencyMissingError(gpgv_path) from e
    except subprocess.TimeoutExpired as e:
        raise AuthenticityError(
            f"Signature verification of {entry.artifact.name} timed out. {hint}",
            code="signature_timeout",
        ) from e

    if result.returncode != 0:
        logger.debug(
            "gpgv exited with %d: %s", result.returncode, result.stderr.strip()
        )
        raise AuthenticityError(
            f"Signature verification failed for {entry.artifact.name}. {hint}",
            code="bad_signature",
        )

    logger.info("Signature OK for %s", entry.artifact.name)


__all__ = [
    "CHECKSUM_LINE_PATTERN",
    "compute_file_sha256",
    "format_checksum_line",
    "parse_checksum_file",
    "require_tools",
    "verify_checksum",
    "verify_signature",
    "write_checksum_sidecar",
]
