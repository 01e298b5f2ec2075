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
"""Integrated Server Proxy -- the forwarding core.

Accepts ``/proxy?url=<target>`` calls and relays them to the target on
behalf of browser callers that cannot reach it directly (CORS).

Pipeline per request:
  Caller --> RateLimiter --> validate() --> RequestForwarder --> Upstream

Safety properties:
  - Fixed-window rate limit per client identity (Origin, IP, "unknown")
  - Only http/https targets; internal hostnames are refused
  - Caller credentials (Cookie, Authorization) never reach the upstream
  - Upstream cookies never reach the caller
  - Upstream failures become a 502 JSON body, never a crash
"""

from .errors import (
    BlockedDomain,
    ClientDisconnected,
    MalformedUrl,
    MissingUrl,
    ProxyError,
    RateLimitExceeded,
    UnsupportedScheme,
    UpstreamFailure,
    ValidationError,
)
from .rate_limiter import RateLimiter, RateLimitResult
from .validator import ProxyTarget, validate

__all__ = [
    "BlockedDomain",
    "ClientDisconnected",
    "MalformedUrl",
    "MissingUrl",
    "ProxyError",
    "ProxyTarget",
    "RateLimitExceeded",
    "RateLimitResult",
    "RateLimiter",
    "UnsupportedScheme",
    "UpstreamFailure",
    "ValidationError",
    "validate",
]
