"""Unit tests for the command-line entry point."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from sockftp.config.settings import AppSettings, SettingsManager
from sockftp.ftp.exceptions import FTPConnectionError
from sockftp.ftp.features import FeatureMatrix
from sockftp.ftp.listing import FileInfo, FileType
from sockftp.main import build_config, build_parser, format_entry, format_info, main, run_command


@pytest.fixture
def isolated_app(tmp_path, monkeypatch):
    """Keep settings and logs out of the user's config directory."""
    settings_path = tmp_path / "settings.json"
    monkeypatch.setattr("sockftp.main.get_log_file_path", lambda: tmp_path / "sockftp.log")
    monkeypatch.setattr("sockftp.main.SettingsManager", lambda: SettingsManager(config_path=settings_path))
    return settings_path


class TestBuildConfig:
    """Tests for merging options with saved settings."""

    def test_options_override_settings(self):
        """Test command-line options win over saved values."""
        args = build_parser().parse_args(["--host", "ftp.example.com", "--port", "2121", "--user", "bob",
                                          "--password", "pw", "--secure", "pwd"])
        credentials = MagicMock()

        config = build_config(args, AppSettings(last_host="old.example.com"), credentials)

        assert (config.host, config.port, config.user, config.password) == ("ftp.example.com", 2121, "bob", "pw")
        assert config.secure is True
        credentials.get_password.assert_not_called()

    def test_saved_settings_and_keyring(self):
        """Test saved settings and keyring fill in missing options."""
        args = build_parser().parse_args(["ls"])
        credentials = MagicMock()
        credentials.get_password.return_value = "from-keyring"
        settings = AppSettings(last_host="saved.example.com", last_port=990, last_username="carol", secure=True)

        config = build_config(args, settings, credentials)

        assert (config.host, config.port, config.user) == ("saved.example.com", 990, "carol")
        assert config.password == "from-keyring"
        assert config.secure is True
        credentials.get_password.assert_called_once_with("saved.example.com", "carol")

    def test_anonymous_fallback(self):
        """Test the password falls back to anonymous."""
        args = build_parser().parse_args(["--host", "localhost", "pwd"])
        credentials = MagicMock()
        credentials.get_password.return_value = None

        config = build_config(args, AppSettings(), credentials)

        assert (config.user, config.password) == ("anonymous", "anonymous")

    def test_no_host(self):
        """Test a missing host is reported."""
        args = build_parser().parse_args(["pwd"])
        with pytest.raises(ValueError, match="No host"):
            build_config(args, AppSettings(), MagicMock())


class TestFormatting:
    """Tests for listing and stat output."""

    def test_format_entry(self):
        info = FileInfo(type=FileType.FILE, size=11, mtime=datetime(2024, 1, 2, 3, 4, tzinfo=timezone.utc))
        line = format_entry("hello.txt", info)

        assert line.startswith("- ")
        assert "11" in line
        assert "2024-01-02 03:04" in line
        assert line.endswith(" hello.txt")

    def test_format_directory_entry(self):
        assert format_entry("pub", FileInfo(type=FileType.DIRECTORY)).startswith("d ")

    def test_format_info(self):
        lines = format_info("a.sh", FileInfo(type=FileType.FILE, size=5, mode=755))

        assert lines[:2] == ["name: a.sh", "type: file"]
        assert "size: 5" in lines
        assert "mode: 755" in lines


class TestRunCommand:
    """Tests for sub-command dispatch."""

    @staticmethod
    def listing_client(features: FeatureMatrix) -> MagicMock:
        client = MagicMock()
        client.features = features
        client.list = AsyncMock(return_value=["readme.txt"])
        client.extended_list = AsyncMock(return_value=[("readme.txt", FileInfo(type=FileType.FILE, size=3))])
        return client

    @pytest.mark.asyncio
    async def test_long_listing_uses_mlsd(self, capsys):
        client = self.listing_client(FeatureMatrix(MLSD=True, MLST=("type", "size")))

        await run_command(client, build_parser().parse_args(["ls", "--long", "/pub"]))

        client.extended_list.assert_awaited_once_with("/pub")
        client.list.assert_not_called()
        assert capsys.readouterr().out.startswith("- ")

    @pytest.mark.asyncio
    async def test_long_listing_needs_mlsd_not_mlst(self, capsys):
        """Test a server with MLST but no MLSD gets a plain name listing."""
        client = self.listing_client(FeatureMatrix(MLST=("type", "size")))

        await run_command(client, build_parser().parse_args(["ls", "--long"]))

        client.list.assert_awaited_once_with(None)
        client.extended_list.assert_not_called()
        assert capsys.readouterr().out == "readme.txt\n"


class TestMain:
    """Tests for main()."""

    def test_parser_requires_command(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--host", "localhost"])

    def test_ftp_error_exit_status(self, isolated_app, capsys, monkeypatch):
        """Test FTP errors are printed and give exit status 1."""
        async def fail(config, args):
            raise FTPConnectionError(config.host, config.port, ConnectionRefusedError("refused"))

        monkeypatch.setattr("sockftp.main.run", fail)
        with patch("keyring.get_password", return_value=None):
            status = main(["--host", "localhost", "pwd"])

        assert status == 1
        assert "Failed to connect to localhost:21" in capsys.readouterr().err
        assert not isolated_app.exists()

    def test_success_saves_settings(self, isolated_app, monkeypatch):
        """Test a successful run remembers the connection and password."""
        async def succeed(config, args):
            return None

        monkeypatch.setattr("sockftp.main.run", succeed)
        with patch("keyring.set_password") as mock_set:
            status = main(["--host", "ftp.example.com", "--user", "dave", "--password", "pw",
                           "--save-password", "pwd"])

        assert status == 0
        saved = SettingsManager(config_path=isolated_app).load()
        assert (saved.last_host, saved.last_username) == ("ftp.example.com", "dave")
        mock_set.assert_called_once_with("sockftp", "ftp.example.com:dave", "pw")

    def test_missing_upload_file(self, isolated_app, tmp_path):
        """Test put with a missing local file is a usage error."""
        with pytest.raises(SystemExit) as exc_info:
            main(["--host", "localhost", "put", str(tmp_path / "missing.bin")])

        assert exc_info.value.code == 2

    def test_get_defaults_to_download_path(self, isolated_app, tmp_path, monkeypatch):
        """Test get without a local path writes into the saved download directory."""
        downloads = tmp_path / "downloads"
        downloads.mkdir()
        SettingsManager(config_path=isolated_app).save(
            AppSettings(last_host="ftp.example.com", download_path=str(downloads))
        )
        seen = []

        async def capture(config, args):
            seen.append(args.local)

        monkeypatch.setattr("sockftp.main.run", capture)
        with patch("keyring.get_password", return_value=None):
            status = main(["get", "/pub/data.bin"])

        assert status == 0
        assert seen == [str(downloads)]
        assert SettingsManager(config_path=isolated_app).load().download_path == str(downloads)

    def test_forget_password(self, isolated_app, monkeypatch):
        """Test --forget-password removes the keyring entry for host and user."""
        async def succeed(config, args):
            return None

        monkeypatch.setattr("sockftp.main.run", succeed)
        with patch("keyring.get_password", return_value="old"), \
                patch("keyring.delete_password") as mock_delete, \
                patch("keyring.set_password") as mock_set:
            status = main(["--host", "ftp.example.com", "--user", "erin", "--forget-password", "pwd"])

        assert status == 0
        mock_delete.assert_called_once_with("sockftp", "ftp.example.com:erin")
        mock_set.assert_not_called()
