"""Pytest configuration and shared fixtures for sockftp tests."""

import logging
from pathlib import Path

import pytest


@pytest.fixture
def sample_upload_file(tmp_path: Path) -> Path:
    """Create a small local file for upload tests."""
    upload = tmp_path / "upload.bin"
    upload.write_bytes(b"sockftp" * 20000)
    return upload


@pytest.fixture(autouse=True)
def reset_app_logger():
    """Remove handlers installed by setup_logging after each test."""
    yield
    logger = logging.getLogger("sockftp")
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
