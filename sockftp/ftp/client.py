"""FTP/FTPS client session for sockftp.

FTPClient owns one control connection and at most one data connection.
Every public operation takes the session CommandLock first, so operations
issued concurrently from several tasks run one at a time in arrival order.
"""

import logging
import re
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, List, Optional, Tuple

from sockftp.ftp.commands import Command, TransferType
from sockftp.ftp.connection import (
    Connected,
    ConnectionState,
    ControlChannel,
    Disconnected,
    FTPConnectionConfig,
    SessionState,
    Transferring,
)
from sockftp.ftp.exceptions import (
    FTPAuthenticationError,
    FTPCapabilityError,
    FTPError,
    FTPNotConnectedError,
    FTPParseError,
    FTPProtocolError,
)
from sockftp.ftp.features import FeatureMatrix
from sockftp.ftp.listing import (
    FileInfo,
    FileType,
    parse_listing,
    parse_mlst_entry,
    parse_timestamp,
)
from sockftp.ftp.lock import CommandLock
from sockftp.ftp.passive import DataChannelNegotiator
from sockftp.ftp.replies import Reply, StatusCode, split_lines
from sockftp.ftp.transport import Transport, open_transport, read_all

logger = logging.getLogger("sockftp.client")

# "<path>" with embedded quotes doubled (RFC 959 appendix II)
QUOTED_PATH = re.compile(r'"((?:[^"]|"")+)"')

TRANSFER_STARTING = (StatusCode.DATA_ALREADY_OPEN, StatusCode.FILE_STATUS_OK)


class FTPClient:
    """
    Asynchronous FTP client.

    Usage:
        config = FTPConnectionConfig(host="ftp.example.com", user="me", password="secret")
        async with FTPClient(config) as ftp:
            await ftp.upload("hello.txt", b"hello world")
            names = await ftp.list()
    """

    def __init__(self, config: FTPConnectionConfig, opener=open_transport):
        """
        Initialize the client.

        Args:
            config: Connection configuration
            opener: Coroutine function ``(host, port, ssl_context=None,
                server_hostname=None) -> Transport`` used for every socket
        """
        self._config = config
        self._opener = opener
        self._lock = CommandLock()
        self._session: SessionState = Disconnected()
        self._features = FeatureMatrix()
        self._connecting = False
        self._error_message: Optional[str] = None
        self._welcome: Optional[str] = None
        self._connected_at: Optional[datetime] = None
        self._last_activity: Optional[datetime] = None

    @property
    def config(self) -> FTPConnectionConfig:
        return self._config

    @property
    def state(self) -> ConnectionState:
        """Current connection state."""
        if self._connecting:
            return ConnectionState.CONNECTING
        if isinstance(self._session, Disconnected) and self._error_message:
            return ConnectionState.ERROR
        return self._session.state

    @property
    def is_connected(self) -> bool:
        """True while a control connection is established."""
        return not isinstance(self._session, Disconnected)

    @property
    def features(self) -> FeatureMatrix:
        """Features advertised by the server in reply to FEAT."""
        return self._features

    @property
    def welcome(self) -> Optional[str]:
        """Greeting message sent by the server."""
        return self._welcome

    @property
    def error_message(self) -> Optional[str]:
        """Last connection error, if state is ERROR."""
        return self._error_message

    @property
    def connected_at(self) -> Optional[datetime]:
        return self._connected_at

    @property
    def last_activity(self) -> Optional[datetime]:
        return self._last_activity

    async def __aenter__(self) -> "FTPClient":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _require_control(self, operation: str) -> ControlChannel:
        """Control channel of a connected session. Caller holds the lock."""
        if isinstance(self._session, Disconnected):
            raise FTPNotConnectedError(operation)
        self._last_activity = datetime.now()
        return self._session.control

    # Connection lifecycle

    async def connect(self) -> None:
        """
        Connect, discover features, optionally secure, log in and switch to binary.

        Raises:
            FTPConnectionError: If the server cannot be reached
            FTPProtocolError: If a handshake step gets an unexpected reply
            FTPAuthenticationError: If login is rejected
        """
        async with self._lock:
            if not isinstance(self._session, Disconnected):
                raise RuntimeError("Connection already established")

            self._connecting = True
            self._error_message = None
            control = None
            try:
                logger.info("Connecting to %s:%d", self._config.host, self._config.port)
                control = ControlChannel(
                    await self._opener(self._config.host, self._config.port),
                    self._config.encoding,
                )
                await self._greet(control)
                if self._config.secure:
                    await self._request_tls(control)
                    control = await control.upgrade(self._config.get_ssl_context(), self._config.host)
                    await self._protect_data(control)
                await self._login(control)
                control.expect(
                    await control.command(Command.TYPE, TransferType.BINARY.value),
                    StatusCode.OK,
                )
            except Exception as e:
                self._error_message = str(e)
                if control is not None:
                    await control.close()
                logger.warning("Connection to %s failed: %s", self._config.host, e)
                raise
            finally:
                self._connecting = False

            self._session = Connected(control)
            self._connected_at = datetime.now()
            self._last_activity = self._connected_at
            logger.info("Connected to %s as %s", self._config.host, self._config.user)

    async def _greet(self, control: ControlChannel) -> None:
        """Check the greeting and discover features."""
        greeting = control.expect(await control.read_reply(), StatusCode.READY)
        self._welcome = greeting.message

        reply = await control.command(Command.FEAT)
        if reply.code == StatusCode.SYSTEM_STATUS:
            self._features = FeatureMatrix.from_lines(reply.lines)
        else:
            logger.info("Server does not support FEAT (%d)", reply.code)
            self._features = FeatureMatrix()

    async def _request_tls(self, control: ControlChannel) -> None:
        auth = self._features.AUTH
        if not auth or "TLS" not in (token.upper() for token in auth):
            logger.warning("Server does not advertise AUTH TLS yet it was requested, attempting anyway")
        control.expect(await control.command(Command.AUTH, "TLS"), StatusCode.AUTH_PROCEED)

    async def _protect_data(self, control: ControlChannel) -> None:
        """Ask for TLS on data channels (RFC 4217 PBSZ/PROT)."""
        if not self._features.PROT:
            logger.warning("Server does not advertise PROT yet TLS data channels were requested, attempting anyway")
        if self._features.PBSZ:
            control.expect(await control.command(Command.PBSZ, "0"), StatusCode.OK)
        control.expect(await control.command(Command.PROT, "P"), StatusCode.OK)

    async def _login(self, control: ControlChannel) -> None:
        user = self._config.user
        reply = await control.command(Command.USER, user)
        if reply.code == StatusCode.LOGGED_IN:
            return
        if reply.code != StatusCode.NEED_PASSWORD:
            raise FTPAuthenticationError(user, reply, StatusCode.NEED_PASSWORD)

        reply = await control.command(Command.PASS, self._config.password)
        if reply.code != StatusCode.LOGGED_IN:
            raise FTPAuthenticationError(user, reply, StatusCode.LOGGED_IN)

    async def close(self) -> None:
        """Tear down the data and control connections. Safe when never connected."""
        async with self._lock:
            await self._teardown()

    async def quit(self) -> None:
        """Send QUIT, then close the connection."""
        async with self._lock:
            control = self._require_control("QUIT")
            try:
                control.expect(await control.command(Command.QUIT), StatusCode.CLOSING)
            finally:
                await self._teardown()

    async def _teardown(self) -> None:
        session, self._session = self._session, Disconnected()
        if isinstance(session, Transferring):
            await session.data.close()
        if not isinstance(session, Disconnected):
            await session.control.close()
            logger.info("Disconnected from %s", self._config.host)
        self._connected_at = None

    # Simple commands

    async def _exchange(self, command: Command, argument: Optional[str], *expected: int) -> Reply:
        async with self._lock:
            control = self._require_control(command.value)
            return control.expect(await control.command(command, argument), *expected)

    async def cwd(self) -> str:
        """
        Current working directory (PWD).

        Raises:
            FTPParseError: If the reply does not contain a quoted path
        """
        reply = await self._exchange(Command.PWD, None, StatusCode.PATH_CREATED)
        match = QUOTED_PATH.search(reply.message)
        if match is None:
            raise FTPParseError(reply.message, "PWD reply")
        return match.group(1).replace('""', '"')

    async def chdir(self, path: str) -> None:
        """Change the working directory."""
        await self._exchange(Command.CWD, path, StatusCode.ACTION_OK)

    async def cdup(self) -> None:
        """Change to the parent directory."""
        await self._exchange(Command.CDUP, None, StatusCode.ACTION_OK)

    async def rename(self, source: str, target: str) -> None:
        """Rename ``source`` to ``target`` (RNFR + RNTO)."""
        async with self._lock:
            control = self._require_control("Rename")
            control.expect(await control.command(Command.RNFR, source), StatusCode.PENDING_FURTHER_INFO)
            control.expect(await control.command(Command.RNTO, target), StatusCode.ACTION_OK)

    async def rm(self, name: str) -> None:
        """Delete a file."""
        await self._exchange(Command.DELE, name, StatusCode.ACTION_OK)

    async def rmdir(self, name: str) -> None:
        """Remove a directory."""
        await self._exchange(Command.RMD, name, StatusCode.ACTION_OK)

    async def mkdir(self, name: str) -> None:
        """Create a directory."""
        await self._exchange(Command.MKD, name, StatusCode.PATH_CREATED)

    async def noop(self) -> None:
        """Keep the control connection alive."""
        await self._exchange(Command.NOOP, None, StatusCode.OK)

    # Metadata

    async def size(self, name: str) -> int:
        """Size of a file in bytes (SIZE)."""
        reply = await self._exchange(Command.SIZE, name, StatusCode.FILE_STATUS)
        try:
            return int(reply.message.strip())
        except ValueError as e:
            raise FTPParseError(reply.message, "SIZE reply") from e

    async def modified(self, name: str) -> datetime:
        """
        Modification time of a file (MDTM).

        Raises:
            FTPCapabilityError: If the server did not advertise MDTM
        """
        async with self._lock:
            control = self._require_control("MDTM")
            if not self._features.MDTM:
                raise FTPCapabilityError("MDTM")
            reply = control.expect(await control.command(Command.MDTM, name), StatusCode.FILE_STATUS)
        return parse_timestamp(reply.message)

    async def stat(self, name: str) -> FileInfo:
        """
        Metadata of a single entry.

        Uses MLST when available. Otherwise SIZE decides between file and
        directory: only a 550 reply marks the entry as a directory.
        """
        if self._features.supports("MLST"):
            reply = await self._exchange(Command.MLST, name, StatusCode.ACTION_OK)
            lines = reply.lines
            if len(lines) < 2:
                raise FTPParseError(reply.message, "MLST reply")
            entry = lines[1][1:] if lines[1].startswith(" ") else lines[1]
            return parse_mlst_entry(entry)[1]

        info = FileInfo()
        try:
            info.size = await self.size(name)
            info.type = FileType.FILE
        except FTPProtocolError as e:
            if e.code != StatusCode.FILE_UNAVAILABLE:
                raise
            info.type = FileType.DIRECTORY

        if info.is_file and self._features.MDTM:
            info.mtime = await self.modified(name)
        return info

    # Data transfers

    async def _open_data_stream(
        self,
        command: Command,
        argument: Optional[str],
        allocate: Optional[int] = None,
    ) -> Tuple[ControlChannel, Transport]:
        """Negotiate a data channel and start ``command``. Caller holds the lock."""
        control = self._require_control(command.value)
        negotiator = DataChannelNegotiator(control, self._features, self._config, self._opener)
        data = await negotiator.open()
        started = False
        try:
            if allocate is not None:
                control.expect(
                    await control.command(Command.ALLO, str(allocate)),
                    StatusCode.OK,
                    StatusCode.NOT_IMPLEMENTED_OK,
                )
            control.expect(await control.command(command, argument), *TRANSFER_STARTING)
            started = True
            data = await negotiator.protect(data)
        except BaseException:
            if started:
                await self._drop_transfer(control, data)
            else:
                await data.close()
            raise
        self._session = Transferring(control, data)
        return control, data

    async def _start_stream(self, command: Command, name: str, allocate: Optional[int] = None) -> Transport:
        await self._lock.acquire()
        try:
            _, data = await self._open_data_stream(command, name, allocate)
        except BaseException:
            self._lock.release()
            raise
        return data

    async def download_readable(self, name: str) -> Transport:
        """
        Start downloading ``name`` and return the live data stream.

        The session stays locked until finalize_stream() is called.
        """
        return await self._start_stream(Command.RETR, name)

    async def upload_writable(self, name: str, allocate: Optional[int] = None) -> Transport:
        """
        Start uploading to ``name`` and return the live data stream.

        Args:
            name: Remote file name
            allocate: Bytes to reserve with ALLO first; some servers require it

        The session stays locked until finalize_stream() is called.
        """
        return await self._start_stream(Command.STOR, name, allocate)

    async def finalize_stream(self) -> None:
        """
        Close the data stream, check the closing reply and unlock the session.

        Raises:
            RuntimeError: If no stream is open
            FTPProtocolError: If the transfer did not end with 226
        """
        session = self._session
        if not isinstance(session, Transferring):
            raise RuntimeError("No data stream to finalize")

        self._session = Connected(session.control)
        try:
            await session.data.close()
            session.control.expect(await session.control.read_reply(), StatusCode.DATA_CLOSE)
        finally:
            self._lock.release()

    async def _abort_stream(self) -> None:
        """Drop a failed stream, consuming the server's closing reply."""
        session = self._session
        if not isinstance(session, Transferring):
            return
        try:
            await self._drop_transfer(session.control, session.data)
        finally:
            self._lock.release()

    async def _drop_transfer(self, control: ControlChannel, data: Transport) -> None:
        """Close a failed data channel and read the reply that ends the transfer."""
        self._session = Connected(control)
        await data.close()
        try:
            reply = await control.read_reply()
            logger.info("Transfer aborted, server replied %s", reply)
        except FTPError as e:
            logger.warning("Error while aborting transfer: %s", e)

    @asynccontextmanager
    async def open_download(self, name: str) -> AsyncIterator[Transport]:
        """Download stream that is finalized when the block exits."""
        stream = await self.download_readable(name)
        try:
            yield stream
        except BaseException:
            await self._abort_stream()
            raise
        await self.finalize_stream()

    @asynccontextmanager
    async def open_upload(self, name: str, allocate: Optional[int] = None) -> AsyncIterator[Transport]:
        """Upload stream that is finalized when the block exits."""
        stream = await self.upload_writable(name, allocate)
        try:
            yield stream
        except BaseException:
            await self._abort_stream()
            raise
        await self.finalize_stream()

    async def download(self, name: str) -> bytes:
        """Download a whole file into memory."""
        async with self.open_download(name) as stream:
            return await read_all(stream)

    async def upload(self, name: str, data: bytes) -> None:
        """Upload ``data`` as ``name``."""
        async with self.open_upload(name, allocate=len(data)) as stream:
            await stream.write(data)

    # Listings

    async def _listing(self, command: Command, directory: Optional[str]) -> str:
        async with self._lock:
            control, data = await self._open_data_stream(command, directory)
            try:
                payload = await read_all(data)
            except BaseException:
                await self._drop_transfer(control, data)
                raise
            self._session = Connected(control)
            await data.close()
            control.expect(await control.read_reply(), StatusCode.DATA_CLOSE)
        return payload.decode(self._config.encoding, errors="replace")

    async def list(self, directory: Optional[str] = None) -> List[str]:
        """Names in ``directory`` (NLST), default the working directory."""
        return split_lines(await self._listing(Command.NLST, directory))

    async def extended_list(self, directory: Optional[str] = None) -> List[Tuple[str, FileInfo]]:
        """Entries of ``directory`` with their facts (MLSD)."""
        return parse_listing(await self._listing(Command.MLSD, directory))
