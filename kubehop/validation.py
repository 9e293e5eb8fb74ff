"""
Input validation for Kubehop.

This module provides validation functions for user inputs and configuration
values: tunnel ports typed at a prompt or passed on the command line, the HTTP
surface bind host, namespace names and numeric environment variables.

Key Functions:
- validate_port: Validates port numbers (1-65535), accepting ints or digit strings
- validate_host: Validates host strings
- validate_namespace: Validates namespace names (DNS label characters)
- port_from_env: Reads a port from an environment variable with a fallback

All validation functions raise ConfigurationError with a descriptive message
when validation fails.

Example:
    ```python
    try:
        local_port = validate_port("3000")
        namespace = validate_namespace("payments")
    except ConfigurationError as e:
        print(f"Validation failed: {e}")
    ```
"""

import logging
import os
import re
from typing import Optional, Union

from .constants import MIN_PORT, MAX_PORT
from .exceptions import ConfigurationError

log = logging.getLogger('kubehop')

_NAMESPACE_RE = re.compile(r'^[A-Za-z0-9]([-A-Za-z0-9]*[A-Za-z0-9])?$')


def validate_port(port: Union[int, str]) -> int:
    """
    Validate a port number for a tunnel or server binding.

    Accepts an integer or a string of digits (as typed at a prompt) and ensures
    it lies within the valid TCP range.

    Args:
        port: Port number or its decimal string form

    Returns:
        int: The validated port number

    Raises:
        ConfigurationError: If port is not numeric or outside 1-65535

    Example:
        ```python
        validate_port("8080")  # Returns 8080
        validate_port(0)  # Raises ConfigurationError
        ```
    """
    if isinstance(port, str):
        text = port.strip()
        if not text.isdigit():
            raise ConfigurationError(f"Port must be a number between {MIN_PORT} and {MAX_PORT}, got: {port!r}")
        port = int(text)
    if isinstance(port, bool) or not isinstance(port, int) or port < MIN_PORT or port > MAX_PORT:
        raise ConfigurationError(f"Port must be an integer between {MIN_PORT} and {MAX_PORT}, got: {port}")
    return port


def validate_host(host: str) -> str:
    """Validate and trim a host string for server binding."""
    if not host or not host.strip():
        raise ConfigurationError("Host cannot be empty")

    host = host.strip()

    if len(host) > 253:  # DNS name length limit
        raise ConfigurationError("Host name too long")

    return host


def validate_namespace(namespace: Optional[str]) -> Optional[str]:
    """
    Validate a namespace name.

    None and blank strings mean "all namespaces" and are returned as None.

    Raises:
        ConfigurationError: If the name is not a DNS-label-shaped name
    """
    if namespace is None or not namespace.strip():
        return None
    namespace = namespace.strip()
    if len(namespace) > 63 or not _NAMESPACE_RE.match(namespace):
        raise ConfigurationError(f"Invalid namespace name: {namespace!r}")
    return namespace


def port_from_env(name: str, default: int) -> int:
    """Read a port from an environment variable, falling back to default when unset or invalid."""
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return validate_port(raw)
    except ConfigurationError:
        log.warning(f"[config] Invalid {name}={raw!r}, using default: {default}")
        return default
