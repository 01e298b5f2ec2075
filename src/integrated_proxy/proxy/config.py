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
"""Proxy configuration.

Settings live in a YAML file on the host. A missing or broken file is
never fatal: the proxy falls back to the defaults below (100 requests
per client per hour, 30 s upstream timeout, auditing off).

Config location: $INTEGRATED_PROXY_HOME/proxy_config.yaml
(default home: ~/.integrated-proxy)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from integrated_proxy._version import __version__

logger = logging.getLogger("integrated_proxy.proxy.config")

# ---------------------------------------------------------------------------
# Default paths
# ---------------------------------------------------------------------------
_PROXY_HOME = Path(os.environ.get("INTEGRATED_PROXY_HOME", Path.home() / ".integrated-proxy"))
DEFAULT_CONFIG_PATH = _PROXY_HOME / "proxy_config.yaml"

# ---------------------------------------------------------------------------
# Identifiers stamped on proxied traffic
# ---------------------------------------------------------------------------
DEFAULT_PROXIED_BY = "integrated-server-proxy"
DEFAULT_USER_AGENT = f"Integrated-Server-Proxy/{__version__}"
DEFAULT_SERVICE_NAME = "integrated-server"


@dataclass
class ProxyConfig:
    """Runtime settings for the proxy process."""

    # Listen address
    host: str = "0.0.0.0"
    port: int = 5000

    # Fixed-window rate limit per client identity
    rate_limit_max_requests: int = 100
    rate_limit_window_seconds: float = 3600.0

    # Seconds before an upstream request counts as failed
    upstream_timeout: float = 30.0

    user_agent: str = DEFAULT_USER_AGENT
    proxied_by: str = DEFAULT_PROXIED_BY
    service_name: str = DEFAULT_SERVICE_NAME

    # Also refuse private/reserved IP literals (the substring blacklist always applies)
    block_private_networks: bool = False

    # JSON Lines audit trail; empty string disables it
    audit_log_path: str = ""


def load_config(path: Path | str | None = None) -> ProxyConfig:
    """Load proxy configuration from a YAML file.

    If the file does not exist, returns the default config.
    """
    config_path = Path(path) if path else DEFAULT_CONFIG_PATH

    if not config_path.exists():
        logger.info("No proxy config at %s -- using defaults", config_path)
        return ProxyConfig()

    try:
        raw = yaml.safe_load(config_path.read_text(encoding="utf-8"))
        if not isinstance(raw, dict):
            logger.warning("Invalid proxy config (not a mapping) -- using defaults")
            return ProxyConfig()
        return _parse_config(raw)
    except (OSError, yaml.YAMLError, AttributeError, TypeError, ValueError) as exc:
        logger.error("Failed to load proxy config: %s -- using defaults", exc)
        return ProxyConfig()


def save_config(config: ProxyConfig, path: Path | str | None = None) -> None:
    """Save proxy configuration to a YAML file."""
    config_path = Path(path) if path else DEFAULT_CONFIG_PATH
    config_path.parent.mkdir(parents=True, exist_ok=True)

    data: dict[str, Any] = {
        "server": {
            "host": config.host,
            "port": config.port,
        },
        "rate_limit": {
            "max_requests": config.rate_limit_max_requests,
            "window_seconds": config.rate_limit_window_seconds,
        },
        "upstream_timeout": config.upstream_timeout,
        "user_agent": config.user_agent,
        "proxied_by": config.proxied_by,
        "service_name": config.service_name,
        "block_private_networks": config.block_private_networks,
        "audit_log_path": config.audit_log_path,
    }
    config_path.write_text(
        yaml.dump(data, default_flow_style=False, sort_keys=False), encoding="utf-8"
    )
    logger.info("Saved proxy config to %s", config_path)


def _parse_config(raw: dict) -> ProxyConfig:
    """Parse raw YAML dict into ProxyConfig."""
    defaults = ProxyConfig()
    server = raw.get("server") or {}
    rate_limit = raw.get("rate_limit") or {}

    config = ProxyConfig(
        host=str(server.get("host", defaults.host)),
        port=int(server.get("port", defaults.port)),
        rate_limit_max_requests=int(
            rate_limit.get("max_requests", defaults.rate_limit_max_requests)
        ),
        rate_limit_window_seconds=float(
            rate_limit.get("window_seconds", defaults.rate_limit_window_seconds)
        ),
        upstream_timeout=float(raw.get("upstream_timeout", defaults.upstream_timeout)),
        user_agent=str(raw.get("user_agent") or defaults.user_agent),
        proxied_by=str(raw.get("proxied_by") or defaults.proxied_by),
        service_name=str(raw.get("service_name") or defaults.service_name),
        block_private_networks=bool(
            raw.get("block_private_networks", defaults.block_private_networks)
        ),
        audit_log_path=str(raw.get("audit_log_path") or ""),
    )

    if config.rate_limit_max_requests < 1 or config.rate_limit_window_seconds <= 0:
        logger.warning("Invalid rate limit in proxy config -- using defaults")
        config.rate_limit_max_requests = defaults.rate_limit_max_requests
        config.rate_limit_window_seconds = defaults.rate_limit_window_seconds

    return config
