"""Command-line entry point for sockftp.

Parses arguments, builds the connection from options and saved settings,
runs one sub-command over a fresh session and maps errors to exit codes.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from sockftp import __version__
from sockftp.config.credentials import CredentialManager
from sockftp.config.paths import get_log_file_path
from sockftp.config.settings import AppSettings, SettingsManager
from sockftp.ftp.client import FTPClient
from sockftp.ftp.connection import FTPConnectionConfig
from sockftp.ftp.exceptions import FTPError
from sockftp.ftp.listing import FileInfo
from sockftp.ftp.transfers import FileTransfer, TransferProgress
from sockftp.utils.logging import setup_logging
from sockftp.utils.validators import validate_file_path

logger = logging.getLogger("sockftp.main")

EXIT_OK = 0
EXIT_FTP_ERROR = 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="sockftp", description="Asynchronous FTP/FTPS client")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--host", help="server host (default: last used)")
    parser.add_argument("--port", type=int, help="control port (default: last used or 21)")
    parser.add_argument("--user", help="user name (default: last used or anonymous)")
    parser.add_argument("--password", help="password (default: keyring, then anonymous)")
    parser.add_argument("--secure", action="store_true", default=None, help="use explicit FTPS (AUTH TLS)")
    parser.add_argument("--save-password", action="store_true", help="store the password in the system keyring")
    parser.add_argument("--forget-password", action="store_true", help="remove the stored password from the keyring")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="log progress; twice for the protocol trace")

    commands = parser.add_subparsers(dest="command", required=True)

    ls = commands.add_parser("ls", help="list a directory")
    ls.add_argument("--long", "-l", action="store_true", help="show type, size and modification time")
    ls.add_argument("directory", nargs="?")

    get = commands.add_parser("get", help="download a file")
    get.add_argument("remote")
    get.add_argument("local", nargs="?")

    put = commands.add_parser("put", help="upload a file")
    put.add_argument("local")
    put.add_argument("remote", nargs="?")

    for name, help_text in (("rm", "delete a file"), ("mkdir", "create a directory"), ("rmdir", "remove a directory")):
        sub = commands.add_parser(name, help=help_text)
        sub.add_argument("path")

    mv = commands.add_parser("mv", help="rename a file or directory")
    mv.add_argument("source")
    mv.add_argument("target")

    stat = commands.add_parser("stat", help="show metadata of an entry")
    stat.add_argument("path")

    commands.add_parser("pwd", help="print the working directory")
    return parser


def build_config(
    args: argparse.Namespace,
    settings: AppSettings,
    credentials: CredentialManager,
) -> FTPConnectionConfig:
    """
    Merge command-line options with saved settings.

    Raises:
        ValueError: If no host is known or a value is invalid
    """
    host = args.host or settings.last_host
    if not host:
        raise ValueError("No host given and none saved, use --host")
    user = args.user or settings.last_username or "anonymous"
    password = args.password
    if password is None:
        password = credentials.get_password(host, user) or "anonymous"
    secure = settings.secure if args.secure is None else args.secure

    return FTPConnectionConfig(
        host=host,
        port=args.port or settings.last_port,
        user=user,
        password=password,
        secure=secure,
        encoding=settings.encoding,
    )


def format_entry(name: str, info: FileInfo) -> str:
    """One line of ``ls --long`` output."""
    kind = "d" if info.is_directory else "-"
    size = "" if info.size is None else str(info.size)
    mtime = info.mtime.strftime("%Y-%m-%d %H:%M") if info.mtime else ""
    return f"{kind} {size:>12} {mtime:16} {name}"


def format_info(path: str, info: FileInfo) -> List[str]:
    """Lines printed by ``stat``."""
    lines = [f"name: {path}", f"type: {info.type.value if info.type else 'unknown'}"]
    for field_name in ("size", "mtime", "ctime", "perm", "unique", "media_type", "charset", "lang", "uid", "gid"):
        value = getattr(info, field_name)
        if value is not None:
            lines.append(f"{field_name}: {value}")
    if info.mode is not None:
        lines.append(f"mode: {info.mode}")
    return lines


def _print_progress(progress: TransferProgress) -> None:
    if progress.bytes_total:
        sys.stderr.write(f"\r{progress.file_name}: {progress.percent:5.1f}%")
    else:
        sys.stderr.write(f"\r{progress.file_name}: {progress.bytes_done} bytes")
    sys.stderr.flush()


async def run_command(client: FTPClient, args: argparse.Namespace) -> None:
    """Execute the selected sub-command on a connected client."""
    command = args.command
    progress = _print_progress if args.verbose else None

    if command == "ls":
        if args.long and client.features.MLSD:
            for name, info in await client.extended_list(args.directory):
                print(format_entry(name, info))
        else:
            for name in await client.list(args.directory):
                print(name)
    elif command == "get":
        await FileTransfer(client).download_file(args.remote, args.local, progress)
        if progress:
            sys.stderr.write("\n")
    elif command == "put":
        await FileTransfer(client).upload_file(args.local, args.remote, progress)
        if progress:
            sys.stderr.write("\n")
    elif command == "rm":
        await client.rm(args.path)
    elif command == "mkdir":
        await client.mkdir(args.path)
    elif command == "rmdir":
        await client.rmdir(args.path)
    elif command == "mv":
        await client.rename(args.source, args.target)
    elif command == "stat":
        for line in format_info(args.path, await client.stat(args.path)):
            print(line)
    elif command == "pwd":
        print(await client.cwd())


async def run(config: FTPConnectionConfig, args: argparse.Namespace) -> None:
    async with FTPClient(config) as client:
        await run_command(client, args)
        await client.quit()


def main(argv: Optional[List[str]] = None) -> int:
    """
    Run the command line client.

    Returns:
        Process exit status
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    level = logging.WARNING
    if args.verbose == 1:
        level = logging.INFO
    elif args.verbose > 1:
        level = logging.DEBUG
    setup_logging(level=level, log_file=get_log_file_path())

    settings_manager = SettingsManager()
    settings = settings_manager.load()
    credentials = CredentialManager()

    if args.command == "put":
        is_valid, error = validate_file_path(Path(args.local))
        if not is_valid:
            parser.error(error)
    elif args.command == "get" and not args.local and settings.download_path:
        args.local = settings.download_path

    try:
        config = build_config(args, settings, credentials)
    except ValueError as e:
        parser.error(str(e))

    try:
        asyncio.run(run(config, args))
    except FTPError as e:
        logger.debug("Command failed", exc_info=True)
        print(f"sockftp: {e}", file=sys.stderr)
        return EXIT_FTP_ERROR
    except KeyboardInterrupt:
        return EXIT_FTP_ERROR

    settings_manager.remember_connection(config)
    if args.forget_password:
        credentials.delete_password(config.host, config.user)
    elif args.save_password and args.password:
        credentials.save_password(config.host, config.user, args.password)

    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
