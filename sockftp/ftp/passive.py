"""Passive data channel negotiation (PASV / EPSV).

Asks the server to listen for a data connection, decodes the address
from the reply, and opens the data transport. On a secured session the
data transport is upgraded to TLS only after the server has answered the
transfer command with 125 or 150.
"""

import logging
import re
from typing import TYPE_CHECKING, Optional, Tuple

from sockftp.ftp.commands import Command
from sockftp.ftp.exceptions import FTPParseError, FTPProtocolError
from sockftp.ftp.replies import Reply, StatusCode
from sockftp.ftp.transport import Transport, open_transport

if TYPE_CHECKING:
    from sockftp.ftp.connection import ControlChannel, FTPConnectionConfig
    from sockftp.ftp.features import FeatureMatrix

logger = logging.getLogger("sockftp.passive")

# (<d><af><d><host><d><port><d>), <d> being any printable character
EXTENDED_PORT = re.compile(
    r"\((?P<delim>[\x21-\x7e])(?P<family>\d*)(?P=delim)"
    r"(?P<host>[\d.:A-Fa-f]*)(?P=delim)(?P<port>\d+)(?P=delim)\)"
)
PASSIVE_PORT = re.compile(r"(\d+),(\d+),(\d+),(\d+),(\d+),(\d+)")


def parse_epsv_reply(message: str) -> Tuple[Optional[str], int]:
    """
    Decode an extended passive reply such as ``(|||51210|)``.

    Returns:
        Tuple of (host or None when omitted, port)

    Raises:
        FTPParseError: If the message does not contain the tuple
    """
    match = EXTENDED_PORT.search(message)
    if match is None:
        raise FTPParseError(message, "EPSV reply")
    port = int(match.group("port"))
    if not 0 < port < 65536:
        raise FTPParseError(message, "EPSV reply")
    return match.group("host") or None, port


def parse_pasv_reply(message: str) -> Tuple[str, int]:
    """
    Decode a passive reply such as ``(192,168,1,1,200,10)``.

    Returns:
        Tuple of (dotted IPv4 host, port)

    Raises:
        FTPParseError: If six numbers in range cannot be found
    """
    match = PASSIVE_PORT.search(message)
    if match is None:
        raise FTPParseError(message, "PASV reply")
    numbers = [int(n) for n in match.groups()]
    if any(n > 255 for n in numbers):
        raise FTPParseError(message, "PASV reply")
    host = ".".join(str(n) for n in numbers[:4])
    port = numbers[4] * 256 + numbers[5]
    return host, port


class DataChannelNegotiator:
    """Opens the data connection for the next transfer."""

    def __init__(
        self,
        control: "ControlChannel",
        features: "FeatureMatrix",
        config: "FTPConnectionConfig",
        opener=open_transport,
    ):
        """
        Initialize the negotiator.

        Args:
            control: Control channel of the session (lock already held)
            features: Server feature matrix
            config: Connection configuration
            opener: Coroutine function opening a Transport
        """
        self._control = control
        self._features = features
        self._config = config
        self._opener = opener

    async def open(self) -> Transport:
        """
        Negotiate passive mode and connect the data channel.

        Returns:
            Connected data transport

        Raises:
            FTPProtocolError: If the server refuses passive mode
            FTPParseError: If the address in the reply cannot be decoded
        """
        if self._features.EPSV:
            reply = await self._control.command(Command.EPSV)
            self._control.expect(reply, StatusCode.EXTENDED_PASSIVE)
        else:
            reply = await self._control.command(Command.PASV)

        # Some servers answer PASV with an extended passive reply
        if reply.code == StatusCode.EXTENDED_PASSIVE:
            host, port = self._extended_address(reply)
        elif reply.code == StatusCode.PASSIVE:
            host, port = self._passive_address(reply)
        else:
            raise FTPProtocolError(reply, (StatusCode.PASSIVE, StatusCode.EXTENDED_PASSIVE))

        return await self._connect(host, port)

    def _extended_address(self, reply: Reply) -> Tuple[str, int]:
        _, port = parse_epsv_reply(reply.message)
        return self._config.host, port

    def _passive_address(self, reply: Reply) -> Tuple[str, int]:
        host, port = parse_pasv_reply(reply.message)
        if not self._config.trust_pasv_address:
            host = self._config.host
        return host, port

    async def _connect(self, host: str, port: int) -> Transport:
        logger.debug("Opening data connection to %s:%d", host, port)
        return await self._opener(host, port)

    async def protect(self, data: Transport) -> Transport:
        """
        TLS-wrap the data transport when the session is secured.

        Call after the preliminary reply to RETR, STOR, NLST or MLSD. Servers
        such as vsftpd and ProFTPD only start the handshake once they have
        seen the transfer command.

        Returns:
            ``data`` itself on a plain session, else the secured transport
        """
        if not self._control.secure:
            return data
        logger.debug("Securing data connection")
        return await data.start_tls(self._config.get_ssl_context(), self._config.host)
