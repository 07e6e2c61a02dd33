"""Remembered connection defaults for the sockftp command line.

After a successful run the CLI records the host, port, user, FTPS flag and
control encoding it used, so later runs can leave those options off.
Passwords are never written here; they live in the keyring (credentials.py).
"""

import json
import logging
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional

from sockftp.config.paths import get_settings_path
from sockftp.ftp.connection import FTPConnectionConfig

logger = logging.getLogger("sockftp.settings")


@dataclass
class AppSettings:
    """Defaults for options not given on the command line."""

    last_host: str = ""
    last_port: int = 21
    last_username: str = "anonymous"
    secure: bool = False
    encoding: str = "utf-8"

    # Directory ``get`` writes to when no local path is given
    download_path: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AppSettings":
        """
        Build settings from a decoded settings file.

        Unknown keys are ignored. A value whose JSON type does not match
        the field is dropped on its own, keeping the rest of the file.
        """
        defaults = cls()
        values = {}
        for f in fields(cls):
            if f.name not in data:
                continue
            value = data[f.name]
            # Exact type match, bool must not pass for int
            if type(value) is not type(getattr(defaults, f.name)):
                logger.warning("Ignoring saved %s=%r", f.name, value)
                continue
            values[f.name] = value
        return cls(**values)

    def remember(self, config: FTPConnectionConfig) -> "AppSettings":
        """Copy of these settings carrying the connection details of config."""
        return replace(
            self,
            last_host=config.host,
            last_port=config.port,
            last_username=config.user,
            secure=config.secure,
            encoding=config.encoding,
        )


class SettingsManager:
    """Reads and writes AppSettings as a JSON file."""

    def __init__(self, config_path: Optional[Path] = None):
        self._config_path = config_path or get_settings_path()

    @property
    def config_path(self) -> Path:
        return self._config_path

    def load(self) -> AppSettings:
        """
        Read the settings file.

        Returns:
            Saved settings, or defaults when the file is missing, unreadable
            or does not hold a JSON object
        """
        try:
            text = self._config_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return AppSettings()
        except OSError as e:
            logger.warning("Could not read settings from %s: %s", self._config_path, e)
            return AppSettings()

        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            logger.warning("Ignoring corrupt settings file %s: %s", self._config_path, e)
            return AppSettings()
        if not isinstance(data, dict):
            logger.warning("Ignoring settings file %s: not a JSON object", self._config_path)
            return AppSettings()

        return AppSettings.from_dict(data)

    def save(self, settings: AppSettings) -> None:
        """Write settings, creating the config directory if needed."""
        self._config_path.parent.mkdir(parents=True, exist_ok=True)
        # Atomic replace
        pending = self._config_path.with_name(self._config_path.name + ".tmp")
        pending.write_text(json.dumps(settings.to_dict(), indent=2), encoding="utf-8")
        pending.replace(self._config_path)

    def remember_connection(self, config: FTPConnectionConfig) -> AppSettings:
        """
        Record config as the defaults for the next run.

        Fields the connection does not cover, such as ``download_path``,
        keep their saved values.

        Returns:
            The settings that were written
        """
        settings = self.load().remember(config)
        self.save(settings)
        logger.debug("Remembered connection to %s:%d as %s", config.host, config.port, config.user)
        return settings
