"""Integration tests for FTP workflow.

Tests the complete client workflow of connecting, managing remote
files and transferring data against a local pyftpdlib server.
"""

import asyncio
import socket
import ssl

import pytest

from sockftp.ftp.client import FTPClient
from sockftp.ftp.connection import ConnectionState, FTPConnectionConfig
from sockftp.ftp.exceptions import FTPAuthenticationError, FTPConnectionError, FTPProtocolError
from sockftp.ftp.transfers import FileTransfer

from .mock_ftp_server import MockFTPServer

pytestmark = pytest.mark.integration


@pytest.fixture
def ftp_server():
    """Provide a running mock FTP server."""
    server = MockFTPServer()
    server.start()
    yield server
    server.stop()


@pytest.fixture
def ftps_server(tls_certificate):
    """Provide a running mock FTPS server requiring TLS on both channels."""
    certfile, keyfile = tls_certificate
    server = MockFTPServer(certfile=certfile, keyfile=keyfile)
    server.start()
    yield server
    server.stop()


def make_config(server: MockFTPServer, **overrides) -> FTPConnectionConfig:
    options = dict(
        host=server.host,
        port=server.port,
        user=server.username,
        password=server.password,
    )
    options.update(overrides)
    return FTPConnectionConfig(**options)


def self_signed_context() -> ssl.SSLContext:
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    return context


def unused_port() -> int:
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


class TestFTPConnectionWorkflow:
    """Integration tests for connecting and logging in."""

    @pytest.mark.asyncio
    async def test_connect_and_disconnect(self, ftp_server):
        """Test basic connect and disconnect cycle."""
        client = FTPClient(make_config(ftp_server))

        await client.connect()

        assert client.state == ConnectionState.CONNECTED
        assert client.is_connected is True
        assert "test server ready" in client.welcome
        assert client.features.EPSV is True
        assert client.features.supports("MLST")

        await client.close()

        assert client.state == ConnectionState.DISCONNECTED
        assert client.is_connected is False

    @pytest.mark.asyncio
    async def test_connect_wrong_password(self, ftp_server):
        """Test connection with wrong password fails."""
        client = FTPClient(make_config(ftp_server, password="wrongpassword"))

        with pytest.raises(FTPAuthenticationError):
            await client.connect()

        assert client.state == ConnectionState.ERROR
        assert client.is_connected is False

    @pytest.mark.asyncio
    async def test_connection_refused(self):
        """Test connecting to a closed port raises FTPConnectionError."""
        client = FTPClient(FTPConnectionConfig(host="127.0.0.1", port=unused_port()))

        with pytest.raises(FTPConnectionError):
            await client.connect()

        assert client.state == ConnectionState.ERROR

    @pytest.mark.asyncio
    async def test_quit(self, ftp_server):
        """Test QUIT ends the session."""
        async with FTPClient(make_config(ftp_server)) as client:
            await client.noop()
            await client.quit()

            assert client.is_connected is False


class TestRemoteFileWorkflow:
    """Integration tests for directory and file management."""

    @pytest.mark.asyncio
    async def test_list(self, ftp_server):
        """Test NLST lists names of the working and a given directory."""
        async with FTPClient(make_config(ftp_server)) as client:
            assert sorted(await client.list()) == ["pub", "readme.txt"]
            assert sorted(await client.list("/pub")) == ["data.bin", "nested"]

    @pytest.mark.asyncio
    async def test_upload_download_and_remove(self, ftp_server):
        """Test a file survives a round trip and can be removed."""
        async with FTPClient(make_config(ftp_server)) as client:
            await client.upload("hello.txt", b"hello world")

            assert "hello.txt" in await client.list()
            assert (ftp_server.root_dir / "hello.txt").read_bytes() == b"hello world"
            assert await client.download("hello.txt") == b"hello world"

            await client.rm("hello.txt")

            assert "hello.txt" not in await client.list()

    @pytest.mark.asyncio
    async def test_directories(self, ftp_server):
        """Test mkdir, chdir, cwd, cdup and rmdir."""
        async with FTPClient(make_config(ftp_server)) as client:
            assert await client.cwd() == "/"

            await client.mkdir("incoming")
            await client.chdir("incoming")
            assert await client.cwd() == "/incoming"

            await client.cdup()
            assert await client.cwd() == "/"

            await client.rmdir("incoming")
            assert not (ftp_server.root_dir / "incoming").exists()

    @pytest.mark.asyncio
    async def test_rename(self, ftp_server):
        """Test RNFR/RNTO moves a file."""
        async with FTPClient(make_config(ftp_server)) as client:
            await client.rename("readme.txt", "pub/notes.txt")

        assert not (ftp_server.root_dir / "readme.txt").exists()
        assert (ftp_server.root_dir / "pub" / "notes.txt").exists()

    @pytest.mark.asyncio
    async def test_missing_file(self, ftp_server):
        """Test the server's refusal surfaces as FTPProtocolError."""
        async with FTPClient(make_config(ftp_server)) as client:
            with pytest.raises(FTPProtocolError) as exc_info:
                await client.rm("missing.txt")

            assert exc_info.value.code == 550
            # Session is still usable afterwards
            await client.noop()


class TestMetadataWorkflow:
    """Integration tests for SIZE, MDTM, MLST and MLSD."""

    @pytest.mark.asyncio
    async def test_size_and_modified(self, ftp_server):
        async with FTPClient(make_config(ftp_server)) as client:
            assert await client.size("/pub/data.bin") == 16384

            modified = await client.modified("readme.txt")

        local_mtime = (ftp_server.root_dir / "readme.txt").stat().st_mtime
        assert modified.tzinfo is not None
        assert abs(modified.timestamp() - local_mtime) < 2

    @pytest.mark.asyncio
    async def test_stat(self, ftp_server):
        """Test MLST for a file and a directory."""
        async with FTPClient(make_config(ftp_server)) as client:
            readme = await client.stat("readme.txt")
            pub = await client.stat("pub")

        assert readme.is_file is True
        assert readme.size == len("Welcome to the test server\n")
        assert readme.mtime is not None
        assert pub.is_directory is True

    @pytest.mark.asyncio
    async def test_extended_list(self, ftp_server):
        """Test MLSD entries carry their facts."""
        async with FTPClient(make_config(ftp_server)) as client:
            entries = dict(await client.extended_list("/pub"))

        assert entries["data.bin"].is_file is True
        assert entries["data.bin"].size == 16384
        assert entries["nested"].is_directory is True


class TestTransferWorkflow:
    """Integration tests for file transfers and concurrent use."""

    @pytest.mark.asyncio
    async def test_file_transfer(self, ftp_server, sample_upload_file, tmp_path):
        """Test FileTransfer moves files both ways with progress."""
        async with FTPClient(make_config(ftp_server)) as client:
            transfer = FileTransfer(client)
            updates = []

            sent = await transfer.upload_file(sample_upload_file, "/pub/upload.bin", updates.append)
            received = await transfer.download_file("/pub/upload.bin", tmp_path / "copy.bin")

        assert sent == received == sample_upload_file.stat().st_size
        assert updates[-1].percent == 100.0
        assert (tmp_path / "copy.bin").read_bytes() == sample_upload_file.read_bytes()

    @pytest.mark.asyncio
    async def test_concurrent_operations(self, ftp_server):
        """Test operations issued together are serialized on one session."""
        async with FTPClient(make_config(ftp_server)) as client:
            size, names, data, cwd = await asyncio.gather(
                client.size("readme.txt"),
                client.list("/pub"),
                client.download("/pub/data.bin"),
                client.cwd(),
            )

        assert size == 27
        assert sorted(names) == ["data.bin", "nested"]
        assert data == bytes(range(256)) * 64
        assert cwd == "/"


class TestSecureWorkflow:
    """Integration tests for explicit FTPS with protected data channels."""

    def secure_config(self, server: MockFTPServer) -> FTPConnectionConfig:
        return make_config(server, secure=True, ssl_context=self_signed_context())

    @pytest.mark.asyncio
    async def test_secure_login(self, ftps_server):
        """Test AUTH TLS, PBSZ and PROT P before login."""
        async with FTPClient(self.secure_config(ftps_server)) as client:
            assert client.is_connected is True
            assert client.features.supports("AUTH")
            assert await client.cwd() == "/"

    @pytest.mark.asyncio
    async def test_secure_transfers(self, ftps_server):
        """Test data channels start TLS after the server accepts each transfer command."""
        async with FTPClient(self.secure_config(ftps_server)) as client:
            await asyncio.wait_for(client.upload("secret.txt", b"top secret"), 10)
            downloaded = await asyncio.wait_for(client.download("secret.txt"), 10)
            names = await asyncio.wait_for(client.list(), 10)
            entries = dict(await asyncio.wait_for(client.extended_list("/pub"), 10))

        assert downloaded == b"top secret"
        assert (ftps_server.root_dir / "secret.txt").read_bytes() == b"top secret"
        assert "secret.txt" in names
        assert entries["data.bin"].size == 16384
