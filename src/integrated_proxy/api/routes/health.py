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
"""Integrated Server Proxy -- Health Routes."""

from datetime import datetime, timezone

from fastapi import APIRouter, Request
from pydantic import BaseModel

from integrated_proxy._version import __version__

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    service: str


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request):
    """Health check endpoint (K8s compatible)."""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(timezone.utc).isoformat(),
        service=request.app.state.config.service_name,
    )


@router.get("/ready")
async def readiness_check():
    """Readiness probe."""
    return {"status": "ready", "version": __version__}
