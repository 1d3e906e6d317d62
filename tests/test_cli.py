"""Tests for the CLI.

Remote documents are mocked with respx and the cache lives in a temporary
directory set through FCOS_IMG_CACHE_DIR.
"""

import json
from unittest.mock import patch

import httpx
import pytest
import respx
from typer.testing import CliRunner

from conftest import (
    ARTIFACT_CONTENT,
    BASE_URL,
    KEYRING_CONTENT,
    KEYRING_URL,
    LATEST_VERSION,
    SIGNATURE_CONTENT,
    artifact_name,
    build_url,
)

from fcos_images import __version__
from fcos_images.cli import app
from fcos_images.errors import DependencyMissingError

runner = CliRunner()

ARTIFACT = artifact_name()


@pytest.fixture(autouse=True)
def env(monkeypatch, tmp_path):
    """Point the CLI at a temporary cache and the test endpoints."""
    monkeypatch.setenv("FCOS_IMG_CACHE_DIR", str(tmp_path / "cache"))
    monkeypatch.setenv("FCOS_IMG_BASE_URL", BASE_URL)
    monkeypatch.setenv("FCOS_IMG_KEYRING_URL", KEYRING_URL)
    monkeypatch.delenv("FCOS_IMG_LOG_LEVEL", raising=False)
    return tmp_path / "cache"


@pytest.fixture
def gpgv():
    with (
        patch("fcos_images.pipeline.require_tools", return_value="/usr/bin/gpgv"),
        patch("fcos_images.pipeline.verify_signature") as verify,
    ):
        yield verify


def mock_downloads(router, manifest_bytes: bytes, meta_bytes: bytes) -> None:
    router.get(f"{BASE_URL}/streams/stable.json").mock(
        return_value=httpx.Response(200, content=manifest_bytes)
    )
    router.get(f"{build_url()}/meta.json").mock(
        return_value=httpx.Response(200, content=meta_bytes)
    )
    router.get(f"{build_url()}/{ARTIFACT}").mock(
        return_value=httpx.Response(200, content=ARTIFACT_CONTENT)
    )
    router.get(f"{build_url()}/{ARTIFACT}.sig").mock(
        return_value=httpx.Response(200, content=SIGNATURE_CONTENT)
    )
    router.get(KEYRING_URL).mock(
        return_value=httpx.Response(200, content=KEYRING_CONTENT)
    )


class TestCLIHelp:
    """Test CLI help and version commands."""

    def test_help_returns_zero(self) -> None:
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "Fedora CoreOS image cache" in result.stdout

    def test_short_help(self) -> None:
        result = runner.invoke(app, ["-h"])
        assert result.exit_code == 0

    def test_version_flag(self) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_no_args_shows_help(self) -> None:
        result = runner.invoke(app, [])
        assert "Usage:" in result.output

    def test_malformed_invocation(self) -> None:
        """Missing download arguments is a usage error, not success."""
        result = runner.invoke(app, ["download", "stable"])
        assert result.exit_code == 2

    def test_unknown_stream(self) -> None:
        result = runner.invoke(app, ["check-latest", "rawhide"])
        assert result.exit_code == 2


class TestCLIConfig:
    """Test CLI config command."""

    def test_config_command(self, env) -> None:
        result = runner.invoke(app, ["config"])
        assert result.exit_code == 0
        assert "Cache directory" in result.stdout
        assert "Timeouts (seconds):" in result.stdout

    def test_config_json(self, env) -> None:
        result = runner.invoke(app, ["config", "--json"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["cache_dir"] == str(env)
        assert data["base_url"] == BASE_URL

    def test_invalid_config(self, monkeypatch) -> None:
        monkeypatch.setenv("FCOS_IMG_BASE_URL", "http://insecure.example.test")
        result = runner.invoke(app, ["config"])
        assert result.exit_code == 1
        assert "Error:" in result.output


class TestCatalogCommands:
    """Test list-available and check-latest."""

    @respx.mock
    def test_list_available(self, manifest_bytes) -> None:
        respx.get(f"{BASE_URL}/streams/stable.json").mock(
            return_value=httpx.Response(200, content=manifest_bytes)
        )
        result = runner.invoke(app, ["list-available"])

        assert result.exit_code == 0
        assert result.stdout.splitlines() == [
            "x86_64 qemu qcow2.xz",
            "x86_64 metal raw.xz",
            "x86_64 metal iso",
            "aarch64 qemu qcow2.xz",
        ]

    @respx.mock
    def test_list_available_json(self, manifest_bytes) -> None:
        respx.get(f"{BASE_URL}/streams/next.json").mock(
            return_value=httpx.Response(200, content=manifest_bytes)
        )
        result = runner.invoke(app, ["list-available", "next", "--json"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data[0] == {
            "architecture": "x86_64",
            "image_type": "qemu",
            "image_format": "qcow2.xz",
        }
        assert len(data) == 4

    @respx.mock
    def test_check_latest(self, manifest_bytes) -> None:
        respx.get(f"{BASE_URL}/streams/stable.json").mock(
            return_value=httpx.Response(200, content=manifest_bytes)
        )
        result = runner.invoke(app, ["check-latest"])

        assert result.exit_code == 0
        assert result.stdout.strip() == LATEST_VERSION

    @respx.mock
    def test_check_latest_json(self, manifest_bytes) -> None:
        respx.get(f"{BASE_URL}/streams/testing.json").mock(
            return_value=httpx.Response(200, content=manifest_bytes)
        )
        result = runner.invoke(app, ["check-latest", "testing", "--json"])

        assert result.exit_code == 0
        assert json.loads(result.stdout) == {
            "stream": "testing",
            "version": LATEST_VERSION,
        }

    @respx.mock
    def test_network_failure(self) -> None:
        respx.get(f"{BASE_URL}/streams/stable.json").mock(
            side_effect=httpx.ConnectError("refused")
        )
        result = runner.invoke(app, ["check-latest"])

        assert result.exit_code == 1
        assert "Error:" in result.output
        assert "Traceback" not in result.output


class TestDownloadCommand:
    """Test the download command."""

    def test_download_and_repeat(self, env, gpgv, manifest_bytes, meta_bytes) -> None:
        """Second run succeeds with no new network activity."""
        with respx.mock(assert_all_called=False) as router:
            mock_downloads(router, manifest_bytes, meta_bytes)
            first = runner.invoke(
                app, ["download", "stable", "latest", "x86_64", "qemu", "qcow2.xz"]
            )
            calls = len(router.calls)
            second = runner.invoke(
                app, ["download", "stable", "latest", "x86_64", "qemu", "qcow2.xz"]
            )

        assert first.exit_code == 0, first.output
        assert second.exit_code == 0, second.output
        # Only the manifest is consulted again to resolve "latest"
        assert len(router.calls) == calls + 1
        artifact = env / "stable" / LATEST_VERSION / "x86_64" / "qemu" / ARTIFACT
        assert artifact.read_bytes() == ARTIFACT_CONTENT
        assert str(artifact) in first.stdout

    def test_download_json(self, env, gpgv, manifest_bytes, meta_bytes) -> None:
        with respx.mock(assert_all_called=False) as router:
            mock_downloads(router, manifest_bytes, meta_bytes)
            result = runner.invoke(
                app,
                [
                    "download",
                    "stable",
                    LATEST_VERSION,
                    "x86_64",
                    "qemu",
                    "qcow2.xz",
                    "--json",
                ],
            )

        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["version"] == LATEST_VERSION
        assert data["fetched"] == ["meta.json", ARTIFACT, f"{ARTIFACT}.sig", "fedora.gpg"]
        assert data["derived"] == ["sha256", "sha256-uncompressed"]

    def test_tampered_artifact_exit_code(
        self, env, gpgv, manifest_bytes, meta_bytes
    ) -> None:
        with respx.mock(assert_all_called=False) as router:
            mock_downloads(router, manifest_bytes, meta_bytes)
            args = ["download", "stable", LATEST_VERSION, "x86_64", "qemu", "qcow2.xz"]
            assert runner.invoke(app, args).exit_code == 0

            artifact = env / "stable" / LATEST_VERSION / "x86_64" / "qemu" / ARTIFACT
            artifact.write_bytes(b"tampered")
            result = runner.invoke(app, args)

        assert result.exit_code == 1
        assert "Checksum verification failed" in result.output
        assert artifact.exists()

    def test_missing_gpgv(self) -> None:
        with patch(
            "fcos_images.pipeline.require_tools",
            side_effect=DependencyMissingError("gpgv"),
        ):
            result = runner.invoke(
                app, ["download", "stable", "latest", "x86_64", "qemu", "qcow2.xz"]
            )

        assert result.exit_code == 1
        assert "gpgv" in result.output

    def test_path_traversal_rejected(self, gpgv) -> None:
        result = runner.invoke(
            app, ["download", "stable", "../x", "x86_64", "qemu", "qcow2.xz"]
        )
        assert result.exit_code == 1
        assert "Error:" in result.output


class TestListDownloads:
    """Test the list-downloads command."""

    def test_arbitrary_no_color(self, monkeypatch) -> None:
        monkeypatch.setenv("NO_COLOR", "please")
        result = runner.invoke(app, ["list-downloads"])
        assert result.exit_code == 0
        assert "No downloads found" in result.stdout

    def test_empty(self) -> None:
        result = runner.invoke(app, ["list-downloads"])
        assert result.exit_code == 0
        assert "No downloads found" in result.stdout

    def test_empty_json(self) -> None:
        result = runner.invoke(app, ["list-downloads", "--json"])
        assert result.exit_code == 0
        assert json.loads(result.stdout) == []

    def test_after_download(self, env, gpgv, manifest_bytes, meta_bytes) -> None:
        with respx.mock(assert_all_called=False) as router:
            mock_downloads(router, manifest_bytes, meta_bytes)
            runner.invoke(
                app, ["download", "stable", LATEST_VERSION, "x86_64", "qemu", "qcow2.xz"]
            )

        result = runner.invoke(app, ["list-downloads", "--json"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data == [
            {
                "stream": "stable",
                "version": LATEST_VERSION,
                "architecture": "x86_64",
                "image_type": "qemu",
                "directory": str(env / "stable" / LATEST_VERSION / "x86_64" / "qemu"),
                "artifacts": [ARTIFACT],
            }
        ]

        text = runner.invoke(app, ["list-downloads"])
        assert ARTIFACT in text.stdout
