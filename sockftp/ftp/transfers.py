"""File transfers for sockftp.

Moves local files to and from the server over an FTPClient session,
reporting progress per block and supporting cooperative cancellation.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Union

from sockftp.ftp.client import FTPClient
from sockftp.ftp.exceptions import (
    FTPError,
    FTPNotConnectedError,
    FTPTransferCancelledError,
    FTPTransferError,
)

logger = logging.getLogger("sockftp.transfers")


@dataclass
class TransferProgress:
    """Progress information for a transfer."""
    remote_path: str
    file_name: str
    bytes_done: int
    bytes_total: Optional[int]

    @property
    def percent(self) -> float:
        """Progress as percentage (0-100); 0 when the total is unknown."""
        if not self.bytes_total:
            return 0.0
        return (self.bytes_done / self.bytes_total) * 100.0


@dataclass
class TransferResult:
    """Result of transferring a single file."""
    remote_path: str
    success: bool
    error_message: Optional[str] = None
    bytes_transferred: int = 0
    duration_seconds: float = 0.0


ProgressCallback = Callable[[TransferProgress], None]


def remote_join(directory: str, name: str) -> str:
    """Join a remote directory and file name with a single slash."""
    if not directory:
        return name
    return f"{directory.rstrip('/')}/{name}"


def _remove_partial(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.warning("Could not remove partial download %s: %s", path, e)
    else:
        logger.info("Removed partial download %s", path)


class FileTransfer:
    """Uploads and downloads local files."""

    # Block size for local file reads
    BLOCK_SIZE = 64 * 1024

    def __init__(self, client: FTPClient):
        """
        Initialize the transfer helper.

        Args:
            client: Connected FTP client
        """
        self._client = client
        self._cancelled = asyncio.Event()

    @property
    def is_cancelled(self) -> bool:
        """True if the current operation was cancelled."""
        return self._cancelled.is_set()

    def cancel(self) -> None:
        """Cancel the running transfer after its current block."""
        self._cancelled.set()

    def reset_cancel(self) -> None:
        """Reset cancellation flag for a new operation."""
        self._cancelled.clear()

    def _check_cancelled(self, file_name: str, remote_path: str) -> None:
        if self._cancelled.is_set():
            raise FTPTransferCancelledError(file_name, remote_path)

    async def upload_file(
        self,
        local_path: Union[str, Path],
        remote_path: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> int:
        """
        Upload a local file.

        Args:
            local_path: File to read
            remote_path: Remote name, defaults to the local file name
            on_progress: Optional callback invoked after every block

        Returns:
            Number of bytes transferred

        Raises:
            FTPNotConnectedError: If the client is not connected
            FTPTransferCancelledError: If cancel() was called
            FTPTransferError: If the transfer fails
        """
        local_path = Path(local_path)
        remote_path = remote_path or local_path.name
        file_name = local_path.name
        file_size = local_path.stat().st_size
        bytes_sent = 0

        try:
            async with self._client.open_upload(remote_path, allocate=file_size) as stream:
                with open(local_path, "rb") as f:
                    while True:
                        self._check_cancelled(file_name, remote_path)
                        block = f.read(self.BLOCK_SIZE)
                        if not block:
                            break
                        await stream.write(block)
                        bytes_sent += len(block)
                        if on_progress:
                            on_progress(TransferProgress(remote_path, file_name, bytes_sent, file_size))
        except (FTPNotConnectedError, FTPTransferCancelledError):
            raise
        except (FTPError, OSError) as e:
            raise FTPTransferError(file_name, remote_path, e) from e

        logger.info("Uploaded %s to %s (%d bytes)", file_name, remote_path, bytes_sent)
        return bytes_sent

    async def download_file(
        self,
        remote_path: str,
        local_path: Union[str, Path, None] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> int:
        """
        Download a remote file to disk.

        The local file is removed again if the download fails or is
        cancelled after it was created.

        Args:
            remote_path: Remote name
            local_path: Destination file or directory, defaults to the
                remote base name in the current directory
            on_progress: Optional callback invoked after every block

        Returns:
            Number of bytes transferred

        Raises:
            FTPNotConnectedError: If the client is not connected
            FTPTransferCancelledError: If cancel() was called
            FTPTransferError: If the transfer fails
        """
        file_name = remote_path.rstrip("/").rsplit("/", 1)[-1]
        local_path = Path(local_path) if local_path else Path(file_name)
        if local_path.is_dir():
            local_path = local_path / file_name

        # SIZE is optional, progress works without a total
        total = None
        if self._client.features.SIZE:
            try:
                total = await self._client.size(remote_path)
            except FTPError as e:
                logger.debug("SIZE failed for %s: %s", remote_path, e)

        bytes_received = 0
        created = False
        completed = False
        try:
            async with self._client.open_download(remote_path) as stream:
                with open(local_path, "wb") as f:
                    created = True
                    async for chunk in stream:
                        self._check_cancelled(file_name, remote_path)
                        f.write(chunk)
                        bytes_received += len(chunk)
                        if on_progress:
                            on_progress(TransferProgress(remote_path, file_name, bytes_received, total))
            completed = True
        except (FTPNotConnectedError, FTPTransferCancelledError):
            raise
        except (FTPError, OSError) as e:
            raise FTPTransferError(file_name, remote_path, e) from e
        finally:
            if created and not completed:
                _remove_partial(local_path)

        logger.info("Downloaded %s to %s (%d bytes)", remote_path, local_path, bytes_received)
        return bytes_received

    async def upload_batch(
        self,
        local_paths: List[Path],
        remote_dir: str = "",
        on_progress: Optional[ProgressCallback] = None,
        on_file_complete: Optional[Callable[[TransferResult], None]] = None,
    ) -> List[TransferResult]:
        """
        Upload several files into one remote directory.

        Continues on individual failures, collects all results.

        Returns:
            List of TransferResult, one per file
        """
        self.reset_cancel()
        results: List[TransferResult] = []

        for local_path in local_paths:
            local_path = Path(local_path)
            remote_path = remote_join(remote_dir, local_path.name)

            if self._cancelled.is_set():
                results.append(TransferResult(
                    remote_path=remote_path,
                    success=False,
                    error_message="Transfer cancelled"
                ))
                continue

            start_time = time.time()
            try:
                sent = await self.upload_file(local_path, remote_path, on_progress)
                result = TransferResult(
                    remote_path=remote_path,
                    success=True,
                    bytes_transferred=sent,
                    duration_seconds=time.time() - start_time
                )
            except (FTPError, OSError) as e:
                logger.warning("Upload of %s failed: %s", local_path, e)
                result = TransferResult(
                    remote_path=remote_path,
                    success=False,
                    error_message=str(e),
                    duration_seconds=time.time() - start_time
                )

            results.append(result)
            if on_file_complete:
                on_file_complete(result)

        return results

    @staticmethod
    def get_batch_summary(results: List[TransferResult]) -> dict:
        """Summary statistics for a batch of transfers."""
        failed = [r for r in results if not r.success]
        return {
            "total": len(results),
            "successful": len(results) - len(failed),
            "failed": len(failed),
            "bytes_transferred": sum(r.bytes_transferred for r in results),
            "duration_seconds": sum(r.duration_seconds for r in results),
            "failures": [(r.remote_path, r.error_message) for r in failed]
        }
