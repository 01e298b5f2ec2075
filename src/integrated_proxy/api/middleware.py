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
Integrated Server Proxy -- API Middleware

Request logging for every HTTP call: method, path, status and latency.
Health probes are skipped to keep the log readable.
"""

import logging
import time

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger("integrated_proxy.api.middleware")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every HTTP request with method, path, status, and latency."""

    _QUIET_PATHS = {"/health", "/ready"}

    async def dispatch(self, request: Request, call_next):
        start = time.time()
        response = await call_next(request)
        latency_ms = int((time.time() - start) * 1000)

        path = request.url.path
        if path not in self._QUIET_PATHS:
            logger.info(
                "%s %s -> %d (%d ms)",
                request.method,
                path,
                response.status_code,
                latency_ms,
            )
        return response
