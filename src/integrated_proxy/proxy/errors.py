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
"""Proxy error taxonomy.

Every failure a caller can observe is a ``ProxyError`` carrying an HTTP
status, a stable machine-readable ``error`` tag and a human-readable
``message``. The endpoint handler renders them with ``to_dict()``.
"""

from __future__ import annotations

from typing import Any

USAGE = "/proxy?url=<target-url>"


class ProxyError(Exception):
    """Base class for errors rendered as a JSON response."""

    status_code: int = 500
    error: str = "Internal Server Error"
    message: str = "Proxy error"

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.error, "message": self.message}


# ---------------------------------------------------------------------------
# Client input errors (4xx, never retried by the proxy)
# ---------------------------------------------------------------------------


class ValidationError(ProxyError):
    """The caller-supplied target URL was rejected."""

    status_code = 400
    error = "Bad Request"


class MissingUrl(ValidationError):
    message = f'Missing "url" query parameter. Usage: {USAGE}'


class MalformedUrl(ValidationError):
    message = "Invalid URL provided"


class UnsupportedScheme(ValidationError):
    message = "Only HTTP and HTTPS protocols are supported"


class BlockedDomain(ValidationError):
    status_code = 403
    error = "Forbidden"
    message = "Cannot proxy requests to internal/private URLs"


# ---------------------------------------------------------------------------
# Rate and upstream errors
# ---------------------------------------------------------------------------


class RateLimitExceeded(ProxyError):
    """The caller used up its budget for the current window."""

    status_code = 429
    error = "Too Many Requests"

    def __init__(self, retry_after: int, limit: int = 100, window_seconds: float = 3600) -> None:
        self.retry_after = retry_after
        self.limit = limit
        self.window_seconds = window_seconds
        super().__init__(
            f"Rate limit exceeded. Max {limit} requests per {describe_window(window_seconds)}."
        )

    def to_dict(self) -> dict[str, Any]:
        body = super().to_dict()
        body["retryAfter"] = self.retry_after
        return body


class UpstreamFailure(ProxyError):
    """The target could not be reached (DNS, refused connection, timeout)."""

    status_code = 502
    error = "Bad Gateway"
    message = "Failed to proxy request"

    def __init__(self, details: str) -> None:
        self.details = details
        super().__init__()

    def to_dict(self) -> dict[str, Any]:
        body = super().to_dict()
        body["details"] = self.details
        return body


class ClientDisconnected(Exception):
    """The caller went away before the upstream answered."""


def describe_window(window_seconds: float) -> str:
    """Human wording for a rate-limit window ("hour", "minute", "90 seconds")."""
    if window_seconds == 3600:
        return "hour"
    if window_seconds == 60:
        return "minute"
    if window_seconds % 3600 == 0:
        return f"{int(window_seconds // 3600)} hours"
    if window_seconds % 60 == 0:
        return f"{int(window_seconds // 60)} minutes"
    return f"{window_seconds:g} seconds"
