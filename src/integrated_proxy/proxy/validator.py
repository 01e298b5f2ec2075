# Integrated Server Proxy
# Copyright (C) 2025 Phoenix Link (Pty) Ltd. All Rights Reserved.
#
# This file is part of Integrated Server Proxy.
#
# Integrated Server Proxy is dual-licensed:
#
# 1. Open Source: GNU Affero General Public License v3.0 (AGPL-3.0)
#    You may use, modify, and distribute this file under AGPL-3.0.
#    See LICENSE for the full text.
#
# 2. Commercial: Available from Phoenix Link (Pty) Ltd
#    For proprietary use, SaaS deployment, or enterprise licensing.
#    See LICENSE-ENTERPRISE.md or contact info@phoenixlink.co.za
#
# Contributions require a signed CLA. See COPYRIGHT.md and CLA.md.
"""Target URL validation.

Parses the caller-supplied ``url`` query parameter and decides whether
the proxy may forward to it. The blacklist is a deliberately coarse
substring match on the hostname: any host containing ``localhost``,
``127.0.0.1`` or ``0.0.0.0`` is refused. It does not catch other
private ranges, IPv6 loopback or DNS names that resolve internally.

``block_private_networks=True`` adds a second, independent check that
refuses IP-literal hosts in private, loopback, link-local, reserved,
multicast or unspecified ranges. No DNS lookups are made.
"""

from __future__ import annotations

import ipaddress
import logging
from dataclasses import dataclass
from urllib.parse import urlsplit

import httpx

from .errors import BlockedDomain, MalformedUrl, MissingUrl, UnsupportedScheme

logger = logging.getLogger("integrated_proxy.proxy.validator")

ALLOWED_SCHEMES = frozenset({"http", "https"})

BLOCKED_HOST_TOKENS: tuple[str, ...] = ("localhost", "127.0.0.1", "0.0.0.0")

_DEFAULT_PORTS = {"http": 80, "https": 443}


@dataclass(frozen=True)
class ProxyTarget:
    """A validated forwarding target, alive for one request only."""

    scheme: str
    host: str
    port: int | None
    origin: str  # scheme://host[:port]
    path_and_query: str  # replaces the proxy's own route entirely
    raw_url: str  # what the caller asked for, echoed in X-Request-Url

    @property
    def url(self) -> str:
        return self.origin + self.path_and_query


def validate(raw_url: str | None, *, block_private_networks: bool = False) -> ProxyTarget:
    """Validate a target URL and split it into origin and path.

    Args:
        raw_url: The value of the ``url`` query parameter.
        block_private_networks: Also refuse private/reserved IP literals.

    Returns:
        The parsed ProxyTarget.

    Raises:
        MissingUrl: No URL was supplied.
        MalformedUrl: The value is not an absolute URL.
        UnsupportedScheme: The scheme is not http or https.
        BlockedDomain: The host is internal.
    """
    if raw_url is None or not raw_url.strip():
        raise MissingUrl()

    raw_url = raw_url.strip()
    try:
        parts = urlsplit(raw_url)
    except ValueError as exc:
        raise MalformedUrl() from exc

    scheme = parts.scheme.lower()
    if not scheme:
        raise MalformedUrl()
    if scheme not in ALLOWED_SCHEMES:
        raise UnsupportedScheme()

    try:
        host = parts.hostname or ""
        port = parts.port
    except ValueError as exc:
        # Non-numeric or out-of-range port
        raise MalformedUrl() from exc
    if not host or any(ch.isspace() for ch in host):
        raise MalformedUrl()
    if not is_encodable_host(raw_url):
        raise MalformedUrl()

    if is_blocked_host(host):
        logger.warning("Refusing internal target host %r", host)
        raise BlockedDomain()
    if block_private_networks and is_private_address(host):
        logger.warning("Refusing private network target %r", host)
        raise BlockedDomain()

    netloc_host = f"[{host}]" if ":" in host else host
    origin = f"{scheme}://{netloc_host}"
    if port is not None and port != _DEFAULT_PORTS[scheme]:
        origin += f":{port}"

    path_and_query = parts.path or "/"
    if parts.query:
        path_and_query += "?" + parts.query

    return ProxyTarget(
        scheme=scheme,
        host=host,
        port=port,
        origin=origin,
        path_and_query=path_and_query,
        raw_url=raw_url,
    )


def is_blocked_host(hostname: str) -> bool:
    """Substring blacklist check, case-insensitive."""
    hostname = hostname.lower()
    return any(token in hostname for token in BLOCKED_HOST_TOKENS)


def is_encodable_host(raw_url: str) -> bool:
    """True when the HTTP client can parse the URL and IDNA-encode its host.

    Catches hosts such as ``xn--`` that split cleanly but carry an
    invalid A-label.
    """
    try:
        httpx.URL(raw_url).host
    except (httpx.InvalidURL, ValueError):
        # idna.IDNAError is a UnicodeError, itself a ValueError
        return False
    return True


def is_private_address(hostname: str) -> bool:
    """True when ``hostname`` is an IP literal outside the public internet."""
    try:
        ip = ipaddress.ip_address(hostname.strip("[]"))
    except ValueError:
        return False
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        ip = ip.ipv4_mapped
    return (
        ip.is_private
        or ip.is_loopback
        or ip.is_link_local
        or ip.is_reserved
        or ip.is_multicast
        or ip.is_unspecified
    )
