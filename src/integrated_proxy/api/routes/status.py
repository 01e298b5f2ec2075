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
"""Proxy status API route.

Read-only operator view of the running proxy: active limits, the
per-client counters of the current windows and audit totals.
"""

from __future__ import annotations

from fastapi import APIRouter, Request
from pydantic import BaseModel

router = APIRouter(prefix="/api/proxy", tags=["proxy"])


class ProxyStatusResponse(BaseModel):
    max_requests: int
    window_seconds: float
    sweeper_running: bool
    tracked_clients: int
    rate_limit_stats: dict[str, int]
    block_private_networks: bool
    upstream_timeout: float
    audit_enabled: bool
    audit_entries: int
    audit_stats: dict[str, int]


@router.get("/status", response_model=ProxyStatusResponse)
async def get_proxy_status(request: Request) -> ProxyStatusResponse:
    """Get the current proxy limits, counters and audit stats."""
    endpoint = request.app.state.proxy_endpoint
    config = request.app.state.config
    limiter = endpoint.rate_limiter
    audit = endpoint.audit
    stats = limiter.get_stats()
    return ProxyStatusResponse(
        max_requests=limiter.max_requests,
        window_seconds=limiter.window_seconds,
        sweeper_running=limiter.sweeper_running,
        tracked_clients=len(stats),
        rate_limit_stats=stats,
        block_private_networks=config.block_private_networks,
        upstream_timeout=config.upstream_timeout,
        audit_enabled=audit.enabled,
        audit_entries=audit.entry_count,
        audit_stats=audit.get_stats(),
    )
