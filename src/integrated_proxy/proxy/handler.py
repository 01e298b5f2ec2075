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
"""Proxy endpoint handler.

Runs the per-request pipeline and turns every failure into a JSON
error response:

  Received --> RateChecked --> Validated --> Forwarded --> Responded

Each of the first three stages can exit early with an error response.

Stage 1 (rate limit) runs before validation, so malformed and blocked
requests still spend the caller's budget.
"""

from __future__ import annotations

import logging
import time

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.responses import Response

from .audit import AuditEntry, AuditLogger
from .errors import (
    ClientDisconnected,
    ProxyError,
    RateLimitExceeded,
    UpstreamFailure,
    ValidationError,
)
from .forwarder import RequestForwarder
from .rate_limiter import RateLimiter
from .validator import validate

logger = logging.getLogger("integrated_proxy.proxy.handler")

UNKNOWN_CLIENT = "unknown"

# Status for a caller that hung up before the upstream answered (never delivered)
_CLIENT_CLOSED_REQUEST = 499


def client_identity(request: Request) -> str:
    """Rate-limit key for a request: Origin header, else remote IP, else "unknown".

    Every caller that sends the same Origin shares one budget, whatever
    its IP. Callers without an Origin are keyed by IP.
    """
    origin = request.headers.get("origin")
    if origin:
        return origin
    if request.client and request.client.host:
        return request.client.host
    return UNKNOWN_CLIENT


def error_response(error: ProxyError) -> JSONResponse:
    """Render a ProxyError as the caller-facing JSON body."""
    headers = None
    if isinstance(error, RateLimitExceeded):
        headers = {"Retry-After": str(error.retry_after)}
    return JSONResponse(status_code=error.status_code, content=error.to_dict(), headers=headers)


class ProxyEndpoint:
    """Orchestrates rate limiting, validation and forwarding for ``/proxy``."""

    def __init__(
        self,
        rate_limiter: RateLimiter,
        forwarder: RequestForwarder,
        audit: AuditLogger | None = None,
        block_private_networks: bool = False,
    ) -> None:
        self._rate_limiter = rate_limiter
        self._forwarder = forwarder
        self._audit = audit or AuditLogger()
        self._block_private_networks = block_private_networks

    @property
    def rate_limiter(self) -> RateLimiter:
        return self._rate_limiter

    @property
    def audit(self) -> AuditLogger:
        return self._audit

    async def handle(self, request: Request) -> Response:
        """Process one inbound proxy call."""
        method = request.method
        raw_url = request.query_params.get("url")
        client_id = client_identity(request)

        # --- 1. Rate limit ---
        rl_result = self._rate_limiter.check(client_id)
        if not rl_result.allowed:
            self._audit.log(AuditEntry.rate_limited(method, raw_url or "", client_id))
            return error_response(
                RateLimitExceeded(
                    rl_result.retry_after,
                    limit=self._rate_limiter.max_requests,
                    window_seconds=self._rate_limiter.window_seconds,
                )
            )

        # --- 2. Validate target ---
        try:
            target = validate(raw_url, block_private_networks=self._block_private_networks)
        except ValidationError as exc:
            logger.info("Rejected %s /proxy from %s: %s", method, client_id, exc.message)
            self._audit.log(
                AuditEntry.blocked(
                    method, raw_url or "", client_id, exc.status_code, type(exc).__name__
                )
            )
            return error_response(exc)

        # --- 3. Forward ---
        body = await request.body()
        start_time = time.monotonic()
        try:
            response = await self._forwarder.forward(
                target,
                method,
                request.headers.items(),
                body,
                is_disconnected=request.is_disconnected,
            )
        except UpstreamFailure as exc:
            self._audit.log(
                AuditEntry.upstream_error(
                    method,
                    target.raw_url,
                    target.host,
                    client_id,
                    exc.details,
                    duration_ms=(time.monotonic() - start_time) * 1000,
                )
            )
            return error_response(exc)
        except ClientDisconnected:
            logger.info("Caller %s left before %s %s completed", client_id, method, target.url)
            self._audit.log(
                AuditEntry.client_disconnected(
                    method,
                    target.raw_url,
                    target.host,
                    client_id,
                    duration_ms=(time.monotonic() - start_time) * 1000,
                )
            )
            return Response(status_code=_CLIENT_CLOSED_REQUEST)

        self._audit.log(
            AuditEntry.forwarded(
                method,
                target.raw_url,
                target.host,
                client_id,
                response.status_code,
                duration_ms=(time.monotonic() - start_time) * 1000,
                response_size=len(response.body),
            )
        )
        return response
