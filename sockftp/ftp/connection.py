"""FTP connection management for sockftp.

Provides the FTPConnectionConfig dataclass, the ConnectionState enum,
the session state variants, and ControlChannel, which sends commands
and reads replies over the control transport.
"""

import codecs
import logging
import ssl
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

from sockftp.ftp.commands import Command, format_command
from sockftp.ftp.exceptions import FTPProtocolError
from sockftp.ftp.replies import Reply, ReplyReader
from sockftp.ftp.transport import Transport
from sockftp.utils.validators import validate_host, validate_port

logger = logging.getLogger("sockftp.connection")


class ConnectionState(Enum):
    """FTP connection state."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    TRANSFERRING = "transferring"
    ERROR = "error"


@dataclass
class FTPConnectionConfig:
    """FTP connection configuration.

    active_port, active_ip and active_ipv6 are reserved: active mode
    (PORT/EPRT) is not implemented and they have no effect.
    """
    host: str
    port: int = 21
    user: str = "anonymous"
    password: str = field(default="anonymous", repr=False)
    secure: bool = False
    active_port: int = 20
    active_ip: str = "127.0.0.1"
    active_ipv6: bool = False
    ssl_context: Optional[ssl.SSLContext] = field(default=None, repr=False, compare=False)
    encoding: str = "utf-8"
    trust_pasv_address: bool = True

    def __post_init__(self):
        """Validate configuration after initialization."""
        is_valid, error = validate_host(self.host)
        if not is_valid:
            raise ValueError(error)
        is_valid, error = validate_port(self.port)
        if not is_valid:
            raise ValueError(error)
        try:
            codecs.lookup(self.encoding)
        except LookupError:
            raise ValueError(f"Unknown encoding: {self.encoding}")

    def get_ssl_context(self) -> ssl.SSLContext:
        """Context used for the control upgrade and data channels."""
        if self.ssl_context is None:
            self.ssl_context = ssl.create_default_context()
        return self.ssl_context


class ControlChannel:
    """Command/reply exchange over the control transport.

    Callers must hold the session CommandLock.
    """

    def __init__(self, transport: Transport, encoding: str = "utf-8"):
        self._transport = transport
        self._encoding = encoding
        self._replies = ReplyReader(transport, encoding)

    @property
    def transport(self) -> Transport:
        return self._transport

    @property
    def secure(self) -> bool:
        """True once the control connection runs over TLS."""
        return self._transport.secure

    async def send(self, command: Command, argument: Optional[str] = None) -> None:
        """Write one command line."""
        if command is Command.PASS:
            logger.debug("→ PASS ****")
        else:
            logger.debug("→ %s", format_command(command, argument).rstrip())
        await self._transport.write(format_command(command, argument).encode(self._encoding))

    async def read_reply(self) -> Reply:
        """Read the next reply from the server."""
        return await self._replies.read_reply()

    async def command(self, command: Command, argument: Optional[str] = None) -> Reply:
        """Send a command and return its reply."""
        await self.send(command, argument)
        return await self.read_reply()

    @staticmethod
    def expect(reply: Reply, *codes: int) -> Reply:
        """
        Check a reply code.

        Args:
            reply: Reply to check
            *codes: Acceptable codes

        Returns:
            The reply, unchanged

        Raises:
            FTPProtocolError: If the code is not one of ``codes``
        """
        if reply.code not in codes:
            raise FTPProtocolError(reply, codes)
        return reply

    async def upgrade(self, ssl_context: ssl.SSLContext, server_hostname: str) -> "ControlChannel":
        """
        Switch to TLS after a successful AUTH TLS.

        Returns:
            New ControlChannel over the secured transport; this one must
            not be used afterwards
        """
        secured = await self._transport.start_tls(ssl_context, server_hostname)
        logger.info("Control connection secured with TLS")
        return ControlChannel(secured, self._encoding)

    async def close(self) -> None:
        await self._transport.close()


@dataclass(frozen=True)
class Disconnected:
    """No control connection."""

    @property
    def state(self) -> ConnectionState:
        return ConnectionState.DISCONNECTED


@dataclass(frozen=True)
class Connected:
    """Logged in and idle."""
    control: ControlChannel

    @property
    def state(self) -> ConnectionState:
        return ConnectionState.CONNECTED


@dataclass(frozen=True)
class Transferring:
    """A data channel is open and owned by the lock holder."""
    control: ControlChannel
    data: Transport

    @property
    def state(self) -> ConnectionState:
        return ConnectionState.TRANSFERRING


SessionState = Union[Disconnected, Connected, Transferring]
