"""Configuration module for sockftp.

This module handles persisted settings and credentials:
- SettingsManager: JSON-based settings persistence
- CredentialManager: Secure credential storage via keyring
- Paths: Application data directories
- AppSettings: Settings dataclass
"""
