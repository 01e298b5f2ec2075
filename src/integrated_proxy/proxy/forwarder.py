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
"""Upstream request forwarding.

Sends the caller's request to the validated target with a shared
``httpx.AsyncClient`` and relays the answer. The connection goes to
the target origin itself; the proxy's own host and route never leak
upstream.

One attempt per request, no retries. Network failures surface as
``UpstreamFailure`` (502) and the caller decides whether to retry.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Awaitable, Mapping
from typing import Callable

import httpx
from starlette.responses import Response

from .errors import ClientDisconnected
from .headers import (
    HeaderItems,
    map_upstream_error,
    rewrite_inbound_headers,
    rewrite_outbound_headers,
)
from .validator import ProxyTarget

logger = logging.getLogger("integrated_proxy.proxy.forwarder")

# Timeout for upstream requests (seconds)
DEFAULT_UPSTREAM_TIMEOUT = 30.0

# How often a pending upstream call checks whether the caller is still there
_DISCONNECT_POLL_INTERVAL = 0.1

DisconnectProbe = Callable[[], Awaitable[bool]]


def build_client(
    timeout: float = DEFAULT_UPSTREAM_TIMEOUT,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Create the shared upstream client.

    Redirects are relayed to the caller rather than followed, and
    environment proxy settings are ignored.
    """
    return httpx.AsyncClient(
        timeout=timeout,
        follow_redirects=False,
        trust_env=False,
        transport=transport,
    )


class RequestForwarder:
    """Relays one validated request to its upstream target."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        user_agent: str,
        proxied_by: str,
    ) -> None:
        self._client = client
        self._user_agent = user_agent
        self._proxied_by = proxied_by

    @property
    def client(self) -> httpx.AsyncClient:
        return self._client

    async def forward(
        self,
        target: ProxyTarget,
        method: str,
        headers: HeaderItems | Mapping[str, str],
        body: bytes = b"",
        is_disconnected: DisconnectProbe | None = None,
    ) -> Response:
        """Forward a request upstream and build the caller's response.

        Args:
            target: The validated target.
            method: Inbound HTTP method, preserved as-is.
            headers: Inbound request headers (rewritten before sending).
            body: Inbound request body.
            is_disconnected: Optional probe for the caller's connection. When
                it reports a disconnect the upstream request is cancelled.

        Returns:
            The upstream status and body with rewritten headers.

        Raises:
            UpstreamFailure: The upstream could not be reached.
            ClientDisconnected: The caller went away first.
        """
        start_time = time.monotonic()
        try:
            request = self._client.build_request(
                method,
                target.url,
                headers=_wire_headers(rewrite_outbound_headers(headers, self._user_agent)),
                content=body or None,
            )
            upstream = await self._send(request, is_disconnected)
        except ClientDisconnected:
            logger.info("Caller disconnected, aborted upstream %s %s", method, target.url)
            raise
        except (httpx.HTTPError, httpx.InvalidURL, OSError, ValueError) as exc:
            failure = map_upstream_error(exc)
            logger.error("Upstream request failed: %s %s -- %s", method, target.url, failure.details)
            raise failure from exc

        duration_ms = (time.monotonic() - start_time) * 1000
        logger.debug(
            "Upstream %s %s -> %d (%.0f ms, %d bytes)",
            method,
            target.url,
            upstream.status_code,
            duration_ms,
            len(upstream.content),
        )

        response = Response(content=upstream.content, status_code=upstream.status_code)
        for name, value in rewrite_inbound_headers(
            upstream.headers.multi_items(), target.raw_url, self._proxied_by
        ):
            response.headers.append(name, value)

        # HEAD has no body to measure, so report the length the upstream announced
        upstream_length = upstream.headers.get("content-length")
        if method.upper() == "HEAD" and upstream_length is not None:
            response.headers["content-length"] = upstream_length
        return response

    async def _send(
        self,
        request: httpx.Request,
        is_disconnected: DisconnectProbe | None,
    ) -> httpx.Response:
        """Send the request, racing it against the caller's disconnect probe."""
        if is_disconnected is None:
            return await self._client.send(request)

        send_task = asyncio.ensure_future(self._client.send(request))
        watch_task = asyncio.ensure_future(_wait_for_disconnect(is_disconnected))
        try:
            await asyncio.wait({send_task, watch_task}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            send_task.cancel()
            watch_task.cancel()
            raise

        if send_task.done():
            watch_task.cancel()
            return send_task.result()

        probe_error = watch_task.exception()
        if probe_error is None:
            send_task.cancel()
            with contextlib.suppress(asyncio.CancelledError, httpx.HTTPError):
                await send_task
            raise ClientDisconnected()

        # The probe itself failed; keep waiting for the upstream
        logger.debug("Disconnect probe failed: %s", probe_error)
        return await send_task


def _wire_headers(headers: list[tuple[str, str]]) -> list[tuple[bytes, bytes]]:
    """Re-encode header pairs to the latin-1 bytes the caller sent.

    The ASGI server decodes raw header bytes as latin-1; httpx would
    re-encode ``str`` values as ASCII and reject anything above 0x7f.
    """
    return [(name.encode("latin-1"), value.encode("latin-1")) for name, value in headers]


async def _wait_for_disconnect(is_disconnected: DisconnectProbe) -> None:
    while not await is_disconnected():
        await asyncio.sleep(_DISCONNECT_POLL_INTERVAL)
