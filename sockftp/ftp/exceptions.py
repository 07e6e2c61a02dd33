"""FTP-specific exceptions for sockftp.

Every error raised by the client is an FTPError carrying an ErrorKind,
so callers can either catch a concrete subclass or branch on ``kind``.
"""

from enum import Enum
from typing import TYPE_CHECKING, Optional, Sequence, Union

if TYPE_CHECKING:
    from sockftp.ftp.replies import Reply


class ErrorKind(Enum):
    """Category of an FTPError."""
    NOT_INITIALIZED = "not_initialized"
    PROTOCOL = "protocol"
    PARSE = "parse"
    CAPABILITY = "capability"
    TRANSPORT = "transport"


class FTPError(Exception):
    """Base exception for all FTP-related errors."""

    kind: ErrorKind = ErrorKind.PROTOCOL

    def __init__(self, message: str, original_error: Exception = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error

    def __str__(self) -> str:
        if self.original_error:
            return f"{self.message}: {self.original_error}"
        return self.message


class FTPNotConnectedError(FTPError):
    """Operation attempted without an active control connection."""

    kind = ErrorKind.NOT_INITIALIZED

    def __init__(self, operation: str = "Operation"):
        self.operation = operation
        message = f"{operation} requires an active FTP connection"
        super().__init__(message)


class FTPProtocolError(FTPError):
    """Server replied with a code other than the one expected."""

    kind = ErrorKind.PROTOCOL

    def __init__(
        self,
        reply: "Reply",
        expected: Union[int, Sequence[int], None] = None,
        message: Optional[str] = None,
    ):
        self.reply = reply
        if expected is None:
            self.expected: tuple = ()
        elif isinstance(expected, int):
            self.expected = (expected,)
        else:
            self.expected = tuple(expected)
        if message is None:
            wanted = "/".join(str(int(code)) for code in self.expected) or "?"
            message = f"Expected reply {wanted}, got {reply.code} {reply.message}"
        super().__init__(message)

    @property
    def code(self) -> int:
        """Reply code actually received."""
        return self.reply.code


class FTPAuthenticationError(FTPProtocolError):
    """Login (USER/PASS) was rejected."""

    def __init__(self, username: str, reply: "Reply", expected=None):
        self.username = username
        message = (
            f"Authentication failed for user '{username}': "
            f"{reply.code} {reply.message}"
        )
        super().__init__(reply, expected, message)


class FTPInvalidReplyError(FTPError):
    """Server sent a reply that does not start with a numeric status code."""

    kind = ErrorKind.PROTOCOL

    def __init__(self, text: str):
        self.text = text
        super().__init__(f"Invalid reply from server: {text!r}")


class FTPParseError(FTPError):
    """A reply body did not match its expected grammar."""

    kind = ErrorKind.PARSE

    def __init__(self, text: str, what: str = "server response"):
        self.text = text
        self.what = what
        super().__init__(f"Could not parse {what}: {text!r}")


class FTPCapabilityError(FTPError):
    """Operation needs a feature the server did not advertise in FEAT."""

    kind = ErrorKind.CAPABILITY

    def __init__(self, feature: str):
        self.feature = feature
        message = f"Feature {feature} is not implemented by the FTP server"
        super().__init__(message)


class FTPTransportError(FTPError):
    """Underlying socket or TLS failure."""

    kind = ErrorKind.TRANSPORT


class FTPConnectionError(FTPTransportError):
    """Failed to establish the control connection."""

    def __init__(self, host: str, port: int, original_error: Exception = None):
        self.host = host
        self.port = port
        message = f"Failed to connect to {host}:{port}"
        super().__init__(message, original_error)


class FTPTransferError(FTPError):
    """A file transfer failed part way."""

    def __init__(self, filename: str, remote_path: str, original_error: Exception = None):
        self.filename = filename
        self.remote_path = remote_path
        if isinstance(original_error, FTPError):
            self.kind = original_error.kind
        else:
            self.kind = ErrorKind.TRANSPORT
        message = f"Transfer of {filename} ({remote_path}) failed"
        super().__init__(message, original_error)


class FTPTransferCancelledError(FTPTransferError):
    """A file transfer was cancelled by the caller."""

    def __init__(self, filename: str, remote_path: str):
        super().__init__(filename, remote_path)
        self.message = f"Transfer of {filename} ({remote_path}) cancelled"
        self.args = (self.message,)
