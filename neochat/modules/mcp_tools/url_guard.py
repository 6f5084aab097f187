"""Outbound address policy for user-supplied remote server URLs.

Checked before every request so a stored URL cannot be used to reach the
host itself or the private network it runs in. The check is lexical: it
inspects the URL's host as written and does not resolve DNS names.
"""

import ipaddress
import re
import socket
from typing import Optional, Union
from urllib.parse import urlsplit

from neochat.domain.errors import RemoteURLError

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]

ALLOWED_SCHEMES = ("http", "https")
# inet_aton also accepts shorthand forms such as "127.1" or "0x7f000001"
_NUMERIC_HOST_RE = re.compile(r"[0-9a-fA-FxX.]+")


def _parse_ip(host: str) -> Optional[IPAddress]:
    try:
        return ipaddress.ip_address(host.split("%", 1)[0])
    except ValueError:
        pass
    if _NUMERIC_HOST_RE.fullmatch(host):
        try:
            return ipaddress.IPv4Address(socket.inet_aton(host))
        except OSError:
            return None
    return None


def is_blocked_address(ip: IPAddress) -> bool:
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        ip = ip.ipv4_mapped
    return (
        ip.is_loopback
        or ip.is_private
        or ip.is_link_local
        or ip.is_unspecified
        or ip.is_multicast
    )


def validate_remote_url(url: str) -> str:
    """Return the URL unchanged if it may be contacted, else raise RemoteURLError."""
    if not isinstance(url, str) or not url.strip():
        raise RemoteURLError("Remote server URL is required")

    try:
        parts = urlsplit(url.strip())
        host = parts.hostname
    except ValueError as e:
        raise RemoteURLError(f"Invalid remote server URL: {e}") from e

    if parts.scheme.lower() not in ALLOWED_SCHEMES:
        raise RemoteURLError("Remote server URL must use http or https")
    if not host:
        raise RemoteURLError("Remote server URL has no host")

    host = host.rstrip(".").lower()
    if host == "localhost" or host.endswith(".localhost"):
        raise RemoteURLError("Remote server URL must not point to localhost")

    ip = _parse_ip(host)
    if ip is not None and is_blocked_address(ip):
        raise RemoteURLError(
            f"Remote server URL must not point to a private, loopback or link-local address ({host})"
        )
    return url
