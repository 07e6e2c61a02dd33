"""Utility module for sockftp.

This module provides cross-cutting utilities:
- Logging: Configured logging with credential redaction
- Validators: Input validation for hosts, ports, paths
"""
