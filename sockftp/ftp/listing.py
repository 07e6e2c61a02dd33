"""Machine-readable listing support (RFC 3659 MLST/MLSD facts).

Provides FileType enum, FileInfo dataclass, and parsers for the
``YYYYMMDDhhmmss[.fff]`` timestamp grammar and MLST fact lines.
"""

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Tuple

from sockftp.ftp.exceptions import FTPParseError
from sockftp.ftp.replies import split_lines

TIMESTAMP = re.compile(
    r"(?P<year>\d{4})(?P<month>\d{2})(?P<day>\d{2})"
    r"(?P<hour>\d{2})(?P<minute>\d{2})(?P<second>\d{2})"
    r"(?P<fraction>\.\d+)?"
)

DIRECTORY_TYPES = ("dir", "cdir", "pdir")


class FileType(Enum):
    """Kind of a remote entry."""
    FILE = "file"
    DIRECTORY = "directory"
    SYMLINK = "symlink"


@dataclass
class FileInfo:
    """Metadata of a remote entry. Facts the server did not send are None."""
    type: Optional[FileType] = None
    ftp_type: Optional[str] = None
    size: Optional[int] = None
    mtime: Optional[datetime] = None
    ctime: Optional[datetime] = None
    perm: Optional[str] = None
    media_type: Optional[str] = None
    charset: Optional[str] = None
    lang: Optional[str] = None
    unique: Optional[str] = None
    mode: Optional[int] = None
    uid: Optional[int] = None
    gid: Optional[int] = None

    @property
    def is_file(self) -> bool:
        return self.type is FileType.FILE

    @property
    def is_directory(self) -> bool:
        return self.type is FileType.DIRECTORY

    @property
    def is_symlink(self) -> bool:
        return self.type is FileType.SYMLINK


def parse_timestamp(value: str) -> datetime:
    """
    Parse an FTP ``time-val`` such as ``20240101120000.5``.

    RFC 3659 timestamps are expressed in UTC.

    Args:
        value: Timestamp text (MDTM reply body or modify/create fact)

    Returns:
        Timezone-aware datetime in UTC

    Raises:
        FTPParseError: If the value does not match the grammar or is not a valid date
    """
    match = TIMESTAMP.match(value.strip())
    if match is None:
        raise FTPParseError(value, "timestamp")

    parts = match.groupdict()
    microsecond = 0
    if parts["fraction"] is not None:
        microsecond = round(float(parts["fraction"]) * 1_000_000)
        microsecond = min(microsecond, 999_999)

    try:
        return datetime(
            int(parts["year"]),
            int(parts["month"]),
            int(parts["day"]),
            int(parts["hour"]),
            int(parts["minute"]),
            int(parts["second"]),
            microsecond,
            tzinfo=timezone.utc,
        )
    except ValueError as e:
        raise FTPParseError(value, "timestamp") from e


def _parse_int(value: str, fact: str) -> int:
    try:
        return int(value)
    except ValueError as e:
        raise FTPParseError(value, f"{fact} fact") from e


def parse_facts(facts: str) -> Dict[str, str]:
    """Split ``key=value;key=value;`` into a dict with lowercased keys."""
    result = {}
    for fact in facts.split(";"):
        if not fact:
            continue
        key, sep, value = fact.partition("=")
        if not sep:
            raise FTPParseError(facts, "MLST facts")
        result[key.strip().lower()] = value
    return result


def parse_mlst_entry(line: str) -> Tuple[str, FileInfo]:
    """
    Parse one MLST/MLSD entry.

    Args:
        line: ``fact=value;...; name``

    Returns:
        Tuple of (name, FileInfo)

    Raises:
        FTPParseError: If a fact or timestamp is malformed
    """
    # Facts never contain spaces, so the name starts after the first one
    facts_text, _, name = line.rstrip("\r\n").partition(" ")
    facts = parse_facts(facts_text)
    info = FileInfo()

    ftp_type = facts.get("type")
    if ftp_type:
        info.ftp_type = ftp_type
        if ftp_type.lower() == "file":
            info.type = FileType.FILE
        elif ftp_type.lower() in DIRECTORY_TYPES:
            info.type = FileType.DIRECTORY

    if facts.get("modify"):
        info.mtime = parse_timestamp(facts["modify"])
    if facts.get("create"):
        info.ctime = parse_timestamp(facts["create"])
    if facts.get("perm"):
        # TODO: decode into RFC 3659 section 7.5.5 permission flags
        info.perm = facts["perm"]

    size = facts.get("size", "")
    if size.isdigit() and int(size) > 0:
        info.size = int(size)

    if facts.get("media-type"):
        info.media_type = facts["media-type"]
    if facts.get("charset"):
        info.charset = facts["charset"]
    if facts.get("lang"):
        info.lang = facts["lang"]
    if facts.get("unique"):
        info.unique = facts["unique"]

    if facts.get("unix.mode"):
        info.mode = _parse_int(facts["unix.mode"], "unix.mode")
    if facts.get("unix.uid"):
        info.uid = _parse_int(facts["unix.uid"], "unix.uid")
    if facts.get("unix.gid"):
        info.gid = _parse_int(facts["unix.gid"], "unix.gid")

    return name, info


def parse_listing(text: str) -> List[Tuple[str, FileInfo]]:
    """Parse a full MLSD body, one entry per line."""
    return [parse_mlst_entry(line) for line in split_lines(text) if line]
