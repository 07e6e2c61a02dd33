"""Control channel reply framing and parsing.

A reply is a three digit status code followed by a message. Multi-line
replies start with ``CCC-`` and run until a line starting with the same
three characters arrives; they may be spread over several socket reads.
"""

import codecs
import logging
import re
from dataclasses import dataclass
from enum import IntEnum
from typing import List, Optional, Tuple

from sockftp.ftp.exceptions import FTPInvalidReplyError, FTPTransportError

logger = logging.getLogger("sockftp.replies")

LINE_BREAK = re.compile(r"\r\n|\n|\r")
REPLY_CODE = re.compile(r"[0-9]{3}")


class StatusCode(IntEnum):
    """Reply codes referenced by the client."""
    RESTART_MARKER = 110
    NOT_READY = 120
    DATA_ALREADY_OPEN = 125
    FILE_STATUS_OK = 150

    OK = 200
    NOT_IMPLEMENTED_OK = 202
    SYSTEM_STATUS = 211
    DIRECTORY_STATUS = 212
    FILE_STATUS = 213
    HELP_MESSAGE = 214
    SYSTEM_TYPE = 215
    READY = 220
    CLOSING = 221
    DATA_OPEN = 225
    DATA_CLOSE = 226
    PASSIVE = 227
    EXTENDED_PASSIVE = 229
    LOGGED_IN = 230
    AUTH_PROCEED = 234
    ACTION_OK = 250
    PATH_CREATED = 257

    NEED_PASSWORD = 331
    NEED_ACCOUNT = 332
    PENDING_FURTHER_INFO = 350

    UNAVAILABLE = 421
    DATA_FAILED = 425
    DATA_CLOSED = 426
    FILE_BUSY = 450
    LOCAL_ERROR = 451
    NO_SPACE = 452

    SYNTAX_ERROR = 500
    ARGUMENT_ERROR = 501
    NOT_IMPLEMENTED = 502
    BAD_SEQUENCE = 503
    PARAMETER_NOT_IMPLEMENTED = 504
    NOT_LOGGED_IN = 530
    ACCOUNT_NEEDED_TO_STORE = 532
    FILE_UNAVAILABLE = 550
    STORAGE_EXCEEDED = 552
    FILE_NAME_NOT_ALLOWED = 553


@dataclass(frozen=True)
class Reply:
    """A parsed server reply."""
    code: int
    message: str

    @property
    def lines(self) -> List[str]:
        """Message split into its individual lines."""
        return self.message.split("\r\n")

    @property
    def is_multiline(self) -> bool:
        """True if the server sent more than one line."""
        return "\r\n" in self.message

    def __str__(self) -> str:
        return f"{self.code} {self.message}"


def split_lines(text: str) -> List[str]:
    """Split on any newline convention, dropping one trailing empty segment."""
    lines = LINE_BREAK.split(text)
    if lines and lines[-1] == "":
        lines.pop()
    return lines


def parse_reply(text: str) -> Reply:
    """
    Parse the complete text of one reply.

    Args:
        text: Raw reply text, with or without a trailing newline

    Returns:
        Reply with the numeric code and the message (status prefix removed)

    Raises:
        FTPInvalidReplyError: If the first line does not start with a 3-digit code
    """
    lines = split_lines(text)
    if not lines or not REPLY_CODE.match(lines[0]):
        raise FTPInvalidReplyError(text)

    code = int(lines[0][:3])
    if len(lines) > 1:
        lines[-1] = lines[-1][4:]

    return Reply(code=code, message="\r\n".join(lines)[4:])


def take_reply(buffer: str) -> Optional[Tuple[str, str]]:
    """
    Cut the first complete reply off the front of ``buffer``.

    Returns:
        Tuple of (reply_text, remainder), or None if more data is needed
    """
    lines: List[str] = []
    start = 0
    for match in LINE_BREAK.finditer(buffer):
        # A lone trailing CR may be the first half of a CRLF
        if match.group() == "\r" and match.end() == len(buffer):
            break
        lines.append(buffer[start:match.start()])
        start = match.end()
        if len(lines) == 1:
            if lines[0][3:4] != "-":
                return buffer[:start], buffer[start:]
        elif lines[-1][:3] == lines[0][:3]:
            return buffer[:start], buffer[start:]
    return None


def _is_unterminated_line(text: str) -> bool:
    return len(text) > 3 and text[3] != "-" and LINE_BREAK.search(text) is None


class ReplyReader:
    """Reads replies off a control stream, keeping any surplus bytes."""

    CHUNK_SIZE = 8192

    def __init__(self, stream, encoding: str = "utf-8"):
        """
        Initialize the reader.

        Args:
            stream: Object with an awaitable ``read(size)`` returning bytes
            encoding: Text encoding of the control channel
        """
        self._stream = stream
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._buffer = ""

    @property
    def pending(self) -> str:
        """Text received but not yet consumed as a reply."""
        return self._buffer

    async def read_reply(self) -> Reply:
        """
        Read exactly one reply.

        Raises:
            FTPTransportError: If the server closes the connection mid-reply
            FTPInvalidReplyError: If the reply has no valid status code
        """
        while True:
            self._buffer = self._buffer.lstrip("\r\n")
            taken = take_reply(self._buffer)
            if taken is not None:
                text, self._buffer = taken
                break

            chunk = await self._stream.read(self.CHUNK_SIZE)
            if chunk:
                starts_reply = not self._buffer
                self._buffer += self._decoder.decode(chunk)
                # A chunk holding one unterminated single line is taken as the reply
                if starts_reply and _is_unterminated_line(self._buffer) and not self._decoder.getstate()[0]:
                    text, self._buffer = self._buffer, ""
                    break
                continue

            self._buffer += self._decoder.decode(b"", final=True)
            # A single line without a trailing newline is still a reply
            if self._buffer and self._buffer[3:4] != "-":
                text, self._buffer = self._buffer, ""
                break
            raise FTPTransportError("Connection closed by server before a complete reply")

        reply = parse_reply(text)
        logger.debug("← %s", reply)
        return reply
