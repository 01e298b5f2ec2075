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
"""Header rewriting applied around every upstream call.

Three pure functions, composed by the forwarder:

  rewrite_outbound_headers  caller --> upstream
  rewrite_inbound_headers   upstream --> caller
  map_upstream_error        network failure --> UpstreamFailure

Headers are handled as ``(name, value)`` pairs so repeated headers
survive the round trip.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from urllib.parse import quote

from .errors import UpstreamFailure

HeaderItems = Iterable[tuple[str, str]]

# RFC 9110 hop-by-hop headers (never forwarded in either direction)
HOP_BY_HOP = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "proxy-connection",
        "te",
        "trailer",
        "trailers",
        "transfer-encoding",
        "upgrade",
    }
)

# Caller credentials must never reach an arbitrary third party
CREDENTIAL_HEADERS = frozenset({"cookie", "cookie2", "authorization"})

# The upstream must not plant cookies in the proxy's origin
SET_COOKIE_HEADERS = frozenset({"set-cookie", "set-cookie2"})

# Recomputed by the HTTP client / server for the relayed body
_OUTBOUND_DROP = HOP_BY_HOP | CREDENTIAL_HEADERS | {"host", "content-length", "user-agent"}

_INBOUND_INJECTED = (
    "x-proxied-by",
    "x-request-url",
    "access-control-allow-origin",
    "access-control-expose-headers",
)

# The relayed body is already decoded, so its length and encoding change
_INBOUND_DROP = (
    HOP_BY_HOP
    | SET_COOKIE_HEADERS
    | {"content-length", "content-encoding"}
    | set(_INBOUND_INJECTED)
)


def _items(headers: HeaderItems | Mapping[str, str]) -> HeaderItems:
    if isinstance(headers, Mapping):
        return headers.items()
    return headers


def rewrite_outbound_headers(
    headers: HeaderItems | Mapping[str, str],
    user_agent: str,
) -> list[tuple[str, str]]:
    """Strip credentials and hop-by-hop headers, stamp the proxy User-Agent."""
    rewritten = [
        (name, value) for name, value in _items(headers) if name.lower() not in _OUTBOUND_DROP
    ]
    rewritten.append(("User-Agent", user_agent))
    return rewritten


def rewrite_inbound_headers(
    headers: HeaderItems | Mapping[str, str],
    request_url: str,
    proxied_by: str,
) -> list[tuple[str, str]]:
    """Strip upstream cookies, add the proxy marker and permissive CORS headers."""
    rewritten = [
        (name, value) for name, value in _items(headers) if name.lower() not in _INBOUND_DROP
    ]
    rewritten.extend(
        [
            ("X-Proxied-By", proxied_by),
            ("X-Request-Url", header_safe(request_url)),
            ("Access-Control-Allow-Origin", "*"),
            ("Access-Control-Expose-Headers", "*"),
        ]
    )
    return rewritten


def map_upstream_error(exc: BaseException) -> UpstreamFailure:
    """Turn a network-level failure into the caller-facing 502 error."""
    details = str(exc).strip() or type(exc).__name__
    return UpstreamFailure(details)


def header_safe(value: str) -> str:
    """Percent-encode anything that cannot travel in a latin-1 header value."""
    return quote(value, safe=":/?#[]@!$&'()*+,;=%~")
