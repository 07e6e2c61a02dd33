"""FTP command verbs and their wire encoding."""

from enum import Enum
from typing import Optional


class Command(str, Enum):
    """FTP verbs issued by the client."""
    USER = "USER"
    PASS = "PASS"
    CWD = "CWD"
    CDUP = "CDUP"
    PWD = "PWD"
    TYPE = "TYPE"
    RETR = "RETR"
    STOR = "STOR"
    ALLO = "ALLO"
    RNFR = "RNFR"
    RNTO = "RNTO"
    DELE = "DELE"
    RMD = "RMD"
    MKD = "MKD"
    NLST = "NLST"
    MLSD = "MLSD"
    MLST = "MLST"
    AUTH = "AUTH"
    PBSZ = "PBSZ"
    PROT = "PROT"
    SIZE = "SIZE"
    MDTM = "MDTM"
    FEAT = "FEAT"
    PASV = "PASV"
    EPSV = "EPSV"
    NOOP = "NOOP"
    QUIT = "QUIT"


class TransferType(str, Enum):
    """Representation types accepted by TYPE."""
    ASCII = "A"
    EBCDIC = "E"
    BINARY = "I"


END_OF_LINE = "\r\n"


def format_command(command: Command, argument: Optional[str] = None) -> str:
    """
    Build the wire text for a command.

    Args:
        command: Verb to send
        argument: Optional argument, omitted when None or empty

    Returns:
        Command line terminated by CRLF
    """
    if argument:
        return f"{command.value} {argument}{END_OF_LINE}"
    return f"{command.value}{END_OF_LINE}"
