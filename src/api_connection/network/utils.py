"""
Network utilities for api_connection.

This module provides helpers for SSL context setup and for the values
the HTTP/1.1 connector derives from a URL.
"""

import ssl
from typing import Optional, Union

DEFAULT_PORTS = {"http": 80, "https": 443}


def create_ssl_context(
    verify_mode: int = ssl.CERT_REQUIRED,
    check_hostname: bool = True,
    cert_file: Optional[str] = None,
    key_file: Optional[str] = None,
) -> ssl.SSLContext:
    """
    Create an SSL context for HTTP/1.1 over TLS.

    Args:
        verify_mode: SSL verification mode
        check_hostname: Whether to verify hostname
        cert_file: Path to certificate file (for client auth)
        key_file: Path to private key file (for client auth)

    Returns:
        Configured SSL context

    Raises:
        ssl.SSLError: If SSL context creation fails
    """
    context = ssl.create_default_context()
    context.check_hostname = check_hostname
    context.verify_mode = verify_mode

    context.set_alpn_protocols(["http/1.1"])
    context.options |= ssl.OP_NO_COMPRESSION
    context.minimum_version = ssl.TLSVersion.TLSv1_2

    if cert_file and key_file:
        context.load_cert_chain(cert_file, key_file)

    return context


def default_port(scheme: str) -> int:
    """
    Get the default port of a URL scheme.

    Raises:
        ValueError: If the scheme is neither http nor https
    """
    try:
        return DEFAULT_PORTS[scheme.lower()]
    except KeyError:
        raise ValueError(f"Unsupported scheme: {scheme}")


def format_host_header(host: str, port: int, scheme: str) -> str:
    """
    Format host header for HTTP requests.

    The port is omitted when it is the scheme's default; IPv6 literals
    are bracketed.
    """
    if ":" in host and not host.startswith("["):
        host = f"[{host}]"
    if DEFAULT_PORTS.get(scheme.lower()) == port:
        return host
    return f"{host}:{port}"


def validate_port(port: Union[int, str]) -> int:
    """
    Validate and convert port to integer.

    Raises:
        ValueError: If port is invalid
    """
    try:
        port_int = int(port)
    except (ValueError, TypeError):
        raise ValueError(f"Invalid port: {port}")

    if not (1 <= port_int <= 65535):
        raise ValueError(f"Port must be between 1 and 65535, got {port_int}")

    return port_int
