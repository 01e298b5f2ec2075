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
"""
Integrated Server Proxy -- FastAPI application

Builds the app around one set of proxy components: a rate limiter
(with its sweeper thread), an audit logger, a shared upstream
``httpx.AsyncClient`` and the endpoint that ties them together.

Run with: uvicorn integrated_proxy.api.app:app --port 5000
or:       integrated-proxy --port 5000
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI

from integrated_proxy._version import __version__
from integrated_proxy.api.middleware import RequestLoggingMiddleware
from integrated_proxy.api.routes import health, proxy, status
from integrated_proxy.proxy.audit import AuditLogger
from integrated_proxy.proxy.config import ProxyConfig, load_config
from integrated_proxy.proxy.forwarder import RequestForwarder, build_client
from integrated_proxy.proxy.handler import ProxyEndpoint
from integrated_proxy.proxy.rate_limiter import RateLimiter

logger = logging.getLogger("integrated_proxy.api.app")


def create_app(
    config: ProxyConfig | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    rate_limiter: RateLimiter | None = None,
) -> FastAPI:
    """Assemble the proxy application.

    Args:
        config: Proxy settings (defaults to ``load_config()``).
        transport: Optional httpx transport for the upstream client,
            e.g. ``httpx.MockTransport`` in tests.
        rate_limiter: Optional pre-built limiter (e.g. with a fake clock).
    """
    config = config or load_config()
    limiter = rate_limiter or RateLimiter(
        max_requests=config.rate_limit_max_requests,
        window_seconds=config.rate_limit_window_seconds,
    )
    audit = AuditLogger(config.audit_log_path or None)
    client = build_client(timeout=config.upstream_timeout, transport=transport)
    forwarder = RequestForwarder(
        client,
        user_agent=config.user_agent,
        proxied_by=config.proxied_by,
    )
    endpoint = ProxyEndpoint(
        limiter,
        forwarder,
        audit=audit,
        block_private_networks=config.block_private_networks,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        limiter.start_sweeper()
        logger.info(
            "Proxy ready (limit=%d per %.0fs, timeout=%.0fs, audit=%s)",
            limiter.max_requests,
            limiter.window_seconds,
            config.upstream_timeout,
            audit.path or "off",
        )
        try:
            yield
        finally:
            limiter.stop()
            await client.aclose()
            audit.close()
            logger.info("Proxy stopped")

    app = FastAPI(
        title="Integrated Server Proxy",
        description="Outbound HTTP/HTTPS forwarding proxy with per-client rate limiting",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.proxy_endpoint = endpoint

    app.add_middleware(RequestLoggingMiddleware)
    app.include_router(health.router)
    app.include_router(status.router)
    app.include_router(proxy.router)
    return app


app = create_app()
