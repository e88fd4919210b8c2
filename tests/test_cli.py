"""Tests for CLI module."""

import io
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from click.testing import CliRunner
from PIL import Image

from lanotifica import __version__
from lanotifica.cli import main
from lanotifica.daemon import StartupError


@pytest.fixture
def runner():
    """Create a CLI test runner."""
    return CliRunner()


@pytest.fixture
def config_dir(tmp_path):
    return tmp_path / "config"


class TestCLIHelp:
    """Test CLI help output."""

    def test_cli_help(self, runner):
        """lanotifica --help lists the commands."""
        result = runner.invoke(main, ["--help"])

        assert result.exit_code == 0
        assert "LaNotifica" in result.output
        for command in ("serve", "pair", "fingerprint", "paths", "version"):
            assert command in result.output


class TestVersionCommand:
    """Test version command."""

    def test_version(self, runner):
        result = runner.invoke(main, ["version"])

        assert result.exit_code == 0
        assert result.output.strip() == f"lanotifica version {__version__}"


class TestPathsCommand:
    """Test paths command."""

    def test_paths_uses_config_dir(self, runner, config_dir):
        """--config-dir overrides where config and identity live."""
        result = runner.invoke(main, ["--config-dir", str(config_dir), "paths"])

        assert result.exit_code == 0
        assert str(config_dir / "config.json") in result.output
        assert str(config_dir / "cert.pem") in result.output
        assert str(config_dir / "key.pem") in result.output

    def test_paths_does_not_create_files(self, runner, config_dir):
        runner.invoke(main, ["--config-dir", str(config_dir), "paths"])

        assert not config_dir.exists()


class TestFingerprintCommand:
    """Test fingerprint command."""

    def test_prints_stable_fingerprint(self, runner, config_dir):
        """First call creates the identity; later calls print the same value."""
        first = runner.invoke(main, ["--config-dir", str(config_dir), "fingerprint"])
        second = runner.invoke(main, ["--config-dir", str(config_dir), "fingerprint"])

        assert first.exit_code == 0
        fingerprint = first.output.strip().splitlines()[-1]
        assert len(fingerprint) == 64
        assert fingerprint in second.output
        assert (config_dir / "config.json").exists()

    def test_corrupt_identity_exits_nonzero(self, runner, config_dir):
        """Unreadable identity files are reported, not raised."""
        runner.invoke(main, ["--config-dir", str(config_dir), "fingerprint"])
        (config_dir / "cert.pem").write_text("garbage")

        result = runner.invoke(main, ["--config-dir", str(config_dir), "fingerprint"])

        assert result.exit_code == 1
        assert "Error:" in result.output


class TestPairCommand:
    """Test pair command."""

    def test_pair_prints_qr(self, runner, config_dir):
        """pair renders the QR code in the terminal."""
        result = runner.invoke(main, ["--config-dir", str(config_dir), "pair"])

        assert result.exit_code == 0
        assert "Scan this QR code" in result.output
        assert "Certificate fingerprint:" in result.output

    def test_pair_saves_png(self, runner, config_dir, tmp_path):
        """pair -o writes a 256x256 PNG."""
        output = tmp_path / "pair.png"

        result = runner.invoke(
            main, ["--config-dir", str(config_dir), "pair", "-o", str(output)]
        )

        assert result.exit_code == 0
        assert f"QR code saved to: {output}" in result.output
        with Image.open(io.BytesIO(output.read_bytes())) as img:
            assert img.size == (256, 256)

    def test_pair_png_failure(self, runner, config_dir, tmp_path):
        """A QR encoding failure exits with an error."""
        output = tmp_path / "pair.png"

        with patch("lanotifica.pairing.PairingQr.to_png_bytes", return_value=b""):
            result = runner.invoke(
                main, ["--config-dir", str(config_dir), "pair", "-o", str(output)]
            )

        assert result.exit_code == 1
        assert not output.exists()


class TestServeCommand:
    """Test serve command with the relay mocked out."""

    def _mock_relay(self):
        relay = MagicMock()
        relay.start = AsyncMock()
        relay.run_forever = AsyncMock()
        relay.stop = AsyncMock()
        relay.request_stop = lambda: None
        relay.config.port = ":19420"
        return relay

    def test_serve_runs_relay(self, runner, config_dir):
        """serve starts, runs and stops the relay."""
        relay = self._mock_relay()

        with patch("lanotifica.daemon.Relay", return_value=relay):
            result = runner.invoke(main, ["--config-dir", str(config_dir), "serve"])

        assert result.exit_code == 0
        assert "https://localhost:19420" in result.output
        relay.start.assert_awaited_once()
        relay.run_forever.assert_awaited_once()
        relay.stop.assert_awaited_once()

    def test_serve_startup_error(self, runner, config_dir):
        """Startup errors are printed and exit with status 1."""
        relay = self._mock_relay()
        relay.start.side_effect = StartupError("Failed to load config: bad")

        with patch("lanotifica.daemon.Relay", return_value=relay):
            result = runner.invoke(main, ["--config-dir", str(config_dir), "serve"])

        assert result.exit_code == 1
        assert "Startup error: Failed to load config: bad" in result.output
        relay.run_forever.assert_not_called()
        relay.stop.assert_awaited_once()
