"""Shared fixtures for fcos_images tests.

Remote documents are served through respx; gpgv is never executed.
"""

import hashlib
import json

import pytest

from fcos_images.config import Settings

BASE_URL = "https://builds.example.test"
KEYRING_URL = "https://keys.example.test/fedora.gpg"
LATEST_VERSION = "39.20240322.3.1"

ARTIFACT_CONTENT = b"qcow2 image bytes" * 64
ARTIFACT_SHA256 = hashlib.sha256(ARTIFACT_CONTENT).hexdigest()
UNCOMPRESSED_SHA256 = "ab" * 32
SIGNATURE_CONTENT = b"-----BEGIN PGP SIGNATURE-----\nfake\n"
KEYRING_CONTENT = b"fake keyring"

MANIFEST = {
    "stream": "stable",
    "architectures": {
        "x86_64": {
            "artifacts": {
                "qemu": {
                    "release": LATEST_VERSION,
                    "formats": {"qcow2.xz": {"disk": {"location": "x"}}},
                },
                "metal": {
                    "release": LATEST_VERSION,
                    "formats": {"raw.xz": {}, "iso": {}},
                },
            }
        },
        "aarch64": {
            "artifacts": {
                "qemu": {
                    "release": LATEST_VERSION,
                    "formats": {"qcow2.xz": {}},
                },
            }
        },
    },
}

META = {
    "buildid": LATEST_VERSION,
    "images": {
        "qemu": {
            "path": f"fedora-coreos-{LATEST_VERSION}-qemu.x86_64.qcow2.xz",
            "sha256": ARTIFACT_SHA256,
            "uncompressed-sha256": UNCOMPRESSED_SHA256,
        },
        "metal": {
            "path": f"fedora-coreos-{LATEST_VERSION}-metal.x86_64.raw.xz",
            "sha256": "cd" * 32,
        },
    },
}


def build_url(version: str = LATEST_VERSION, arch: str = "x86_64") -> str:
    """Return the build directory URL used by the fixtures."""
    return f"{BASE_URL}/prod/streams/stable/builds/{version}/{arch}"


def artifact_name(
    image_type: str = "qemu",
    image_format: str = "qcow2.xz",
    version: str = LATEST_VERSION,
    arch: str = "x86_64",
) -> str:
    """Return the artifact filename used by the fixtures."""
    return f"fedora-coreos-{version}-{image_type}.{arch}.{image_format}"


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings pointing at a temporary cache and the test endpoints."""
    return Settings(
        cache_dir=tmp_path / "cache",
        base_url=BASE_URL,
        keyring_url=KEYRING_URL,
        lock_entries=True,
    )


@pytest.fixture
def manifest_bytes() -> bytes:
    """Serialized stream manifest."""
    return json.dumps(MANIFEST).encode()


@pytest.fixture
def meta_bytes() -> bytes:
    """Serialized build metadata."""
    return json.dumps(META).encode()
