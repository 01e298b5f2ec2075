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
"""Proxy CLI entry point.

Starts the forwarding proxy as a standalone process.

Usage:
    integrated-proxy [--config PATH] [--host HOST] [--port PORT] [--audit-log PATH]
    python -m integrated_proxy.server ...
"""

from __future__ import annotations

import argparse
import logging

import uvicorn

from integrated_proxy.api.app import create_app
from integrated_proxy.proxy.config import load_config

logger = logging.getLogger("integrated_proxy.server")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="integrated-proxy",
        description="Integrated Server Proxy -- outbound HTTP/HTTPS forwarding proxy",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to proxy_config.yaml (default: ~/.integrated-proxy/proxy_config.yaml)",
    )
    parser.add_argument("--host", default=None, help="Listen address (overrides config)")
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Listen port (overrides config, default: 5000)",
    )
    parser.add_argument(
        "--audit-log",
        default=None,
        help="Path for the JSON Lines audit log (overrides config)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """Entry point for the proxy server."""
    args = build_parser().parse_args(argv)

    # Configure logging
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # Load configuration
    config = load_config(args.config)

    # Apply CLI overrides
    if args.host is not None:
        config.host = args.host
    if args.port is not None:
        config.port = args.port
    if args.audit_log is not None:
        config.audit_log_path = args.audit_log

    logger.info("=" * 60)
    logger.info("Integrated Server Proxy")
    logger.info("=" * 60)
    logger.info("  Listen: %s:%d", config.host, config.port)
    logger.info(
        "  Rate limit: %d requests / %.0fs per client",
        config.rate_limit_max_requests,
        config.rate_limit_window_seconds,
    )
    logger.info("  Upstream timeout: %.0fs", config.upstream_timeout)
    logger.info("  Private network blocking: %s", config.block_private_networks)
    logger.info("  Audit log: %s", config.audit_log_path or "off")
    logger.info("=" * 60)

    # uvicorn handles SIGINT/SIGTERM and runs the app lifespan
    uvicorn.run(
        create_app(config),
        host=config.host,
        port=config.port,
        log_level=args.log_level.lower(),
    )


if __name__ == "__main__":
    main()
