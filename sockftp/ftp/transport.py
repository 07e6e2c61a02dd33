"""Raw duplex byte streams used for the control and data channels.

A Transport wraps an asyncio reader/writer pair. Upgrading a plain
transport to TLS hands back a new SecureTransport and invalidates the
old object, so the plaintext handle can never be used after the upgrade.
"""

import asyncio
import logging
import ssl
from typing import AsyncIterator, Optional

from sockftp.ftp.exceptions import FTPConnectionError, FTPTransportError

logger = logging.getLogger("sockftp.transport")

CHUNK_SIZE = 64 * 1024


class Transport:
    """Byte stream over a TCP connection."""

    secure = False

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        self._reader: Optional[asyncio.StreamReader] = reader
        self._writer: Optional[asyncio.StreamWriter] = writer

    @property
    def closed(self) -> bool:
        """True once closed or replaced by a TLS upgrade."""
        return self._writer is None

    @property
    def peer(self) -> Optional[tuple]:
        """Remote (host, port) of the connection."""
        if self._writer is None:
            return None
        return self._writer.get_extra_info("peername")

    def _require_open(self) -> asyncio.StreamWriter:
        if self._writer is None:
            raise FTPTransportError("Transport is closed")
        return self._writer

    async def read(self, size: int = CHUNK_SIZE) -> bytes:
        """Read up to ``size`` bytes; returns b"" at end of stream."""
        self._require_open()
        try:
            return await self._reader.read(size)
        except OSError as e:
            raise FTPTransportError("Read failed", e) from e

    async def write(self, data: bytes) -> None:
        """Write ``data`` and wait until the buffer drains."""
        writer = self._require_open()
        try:
            writer.write(data)
            await writer.drain()
        except OSError as e:
            raise FTPTransportError("Write failed", e) from e

    async def close(self) -> None:
        """Close the connection. Safe to call more than once."""
        writer, self._writer, self._reader = self._writer, None, None
        if writer is None:
            return
        writer.close()
        try:
            await writer.wait_closed()
        except OSError as e:
            # Peer may already have dropped the connection
            logger.debug("Error while closing transport: %s", e)

    async def start_tls(self, ssl_context: ssl.SSLContext, server_hostname: str) -> "SecureTransport":
        """
        Upgrade this connection to TLS in place.

        Args:
            ssl_context: Context used for the handshake
            server_hostname: Name checked against the server certificate

        Returns:
            New SecureTransport; this object is closed afterwards

        Raises:
            FTPTransportError: If the handshake fails
        """
        writer = self._require_open()
        try:
            await writer.start_tls(ssl_context, server_hostname=server_hostname)
        except OSError as e:
            raise FTPTransportError("TLS handshake failed", e) from e

        upgraded = SecureTransport(self._reader, writer)
        self._reader = None
        self._writer = None
        return upgraded

    async def __aiter__(self) -> AsyncIterator[bytes]:
        while True:
            chunk = await self.read()
            if not chunk:
                return
            yield chunk


class PlainTransport(Transport):
    """Unencrypted transport."""


class SecureTransport(Transport):
    """TLS-protected transport."""

    secure = True

    async def start_tls(self, ssl_context, server_hostname):
        raise FTPTransportError("Transport is already secured")


async def open_transport(
    host: str,
    port: int,
    ssl_context: Optional[ssl.SSLContext] = None,
    server_hostname: Optional[str] = None,
) -> Transport:
    """
    Open a TCP connection, optionally TLS-wrapped from the first byte.

    Args:
        host: Host to connect to
        port: TCP port
        ssl_context: If given, negotiate TLS immediately
        server_hostname: Name checked against the certificate (defaults to host)

    Returns:
        PlainTransport or SecureTransport

    Raises:
        FTPConnectionError: If the connection cannot be established
    """
    try:
        if ssl_context is not None:
            reader, writer = await asyncio.open_connection(
                host,
                port,
                ssl=ssl_context,
                server_hostname=server_hostname or host,
            )
            return SecureTransport(reader, writer)
        reader, writer = await asyncio.open_connection(host, port)
        return PlainTransport(reader, writer)
    except OSError as e:
        raise FTPConnectionError(host, port, e) from e


async def read_all(stream: Transport) -> bytes:
    """Drain a stream into a single bytes object."""
    chunks = []
    while True:
        chunk = await stream.read(CHUNK_SIZE)
        if not chunk:
            break
        chunks.append(chunk)
    return b"".join(chunks)
