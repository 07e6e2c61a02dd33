"""Input validators for sockftp.

Provides validation functions for connection settings and local paths
given on the command line or read from the settings file.
"""

import ipaddress
import re
from pathlib import Path
from typing import Optional, Tuple


# IPv4 address pattern
IPV4_PATTERN = re.compile(
    r'^(?:(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)\.){3}'
    r'(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)$'
)

# Hostname pattern (simplified)
HOSTNAME_PATTERN = re.compile(
    r'^(?=.{1,253}$)(?!-)[A-Za-z0-9-]{1,63}(?<!-)(\.[A-Za-z0-9-]{1,63})*$'
)


def validate_ip_address(ip: str) -> Tuple[bool, Optional[str]]:
    """
    Validate an IPv4 or IPv6 address.

    Args:
        ip: IP address string to validate

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not ip or not ip.strip():
        return False, "IP address is required"

    ip = ip.strip()

    if IPV4_PATTERN.match(ip):
        return True, None

    if ":" in ip:
        try:
            ipaddress.IPv6Address(ip)
            return True, None
        except ValueError:
            pass

    return False, f"Invalid IP address format: {ip}"


def validate_hostname(hostname: str) -> Tuple[bool, Optional[str]]:
    """
    Validate a hostname.

    Args:
        hostname: Hostname string to validate

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not hostname or not hostname.strip():
        return False, "Hostname is required"

    hostname = hostname.strip()

    if HOSTNAME_PATTERN.match(hostname):
        return True, None

    return False, f"Invalid hostname format: {hostname}"


def validate_host(host: str) -> Tuple[bool, Optional[str]]:
    """
    Validate a host (IP address or hostname).

    Args:
        host: Host string to validate

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not host or not host.strip():
        return False, "Host is required"

    host = host.strip()

    is_valid_ip, _ = validate_ip_address(host)
    if is_valid_ip:
        return True, None

    is_valid_hostname, _ = validate_hostname(host)
    if is_valid_hostname:
        return True, None

    return False, f"Invalid host: {host}. Must be a valid IP address or hostname."


def validate_port(port: int) -> Tuple[bool, Optional[str]]:
    """
    Validate a port number.

    Args:
        port: Port number to validate

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not isinstance(port, int):
        try:
            port = int(port)
        except (ValueError, TypeError):
            return False, "Port must be a number"

    if port < 1 or port > 65535:
        return False, f"Port must be between 1 and 65535, got {port}"

    return True, None


def validate_file_path(path: Path, must_exist: bool = True) -> Tuple[bool, Optional[str]]:
    """
    Validate a local file path.

    Args:
        path: Path to validate
        must_exist: If True, file must exist

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not path:
        return False, "File path is required"

    if isinstance(path, str):
        path = Path(path)

    if must_exist:
        if not path.exists():
            return False, f"File does not exist: {path}"
        if not path.is_file():
            return False, f"Path is not a file: {path}"

    return True, None
