# Integrated Server Proxy
# Copyright (C) 2025 Phoenix Link (Pty) Ltd. All Rights Reserved.
"""Tests for proxy configuration loading and saving."""

import yaml

from integrated_proxy.proxy.config import (
    DEFAULT_PROXIED_BY,
    ProxyConfig,
    load_config,
    save_config,
)


class TestDefaults:
    def test_default_limits(self):
        config = ProxyConfig()
        assert config.rate_limit_max_requests == 100
        assert config.rate_limit_window_seconds == 3600
        assert config.upstream_timeout == 30.0

    def test_default_identifiers(self):
        config = ProxyConfig()
        assert config.proxied_by == DEFAULT_PROXIED_BY == "integrated-server-proxy"
        assert config.user_agent.startswith("Integrated-Server-Proxy/")

    def test_hardening_and_audit_off_by_default(self):
        config = ProxyConfig()
        assert config.block_private_networks is False
        assert config.audit_log_path == ""


class TestLoadConfig:
    def test_missing_file_returns_defaults(self, tmp_path):
        config = load_config(tmp_path / "nope.yaml")
        assert config == ProxyConfig()

    def test_full_file(self, tmp_path):
        path = tmp_path / "proxy_config.yaml"
        path.write_text(
            yaml.dump(
                {
                    "server": {"host": "127.0.0.1", "port": 8080},
                    "rate_limit": {"max_requests": 10, "window_seconds": 60},
                    "upstream_timeout": 5,
                    "user_agent": "Test-Agent/1.0",
                    "proxied_by": "test-proxy",
                    "service_name": "test-service",
                    "block_private_networks": True,
                    "audit_log_path": str(tmp_path / "audit.log"),
                }
            )
        )
        config = load_config(path)
        assert config.host == "127.0.0.1"
        assert config.port == 8080
        assert config.rate_limit_max_requests == 10
        assert config.rate_limit_window_seconds == 60.0
        assert config.upstream_timeout == 5.0
        assert config.user_agent == "Test-Agent/1.0"
        assert config.proxied_by == "test-proxy"
        assert config.service_name == "test-service"
        assert config.block_private_networks is True
        assert config.audit_log_path == str(tmp_path / "audit.log")

    def test_partial_file_keeps_defaults(self, tmp_path):
        path = tmp_path / "proxy_config.yaml"
        path.write_text("rate_limit:\n  max_requests: 5\n")
        config = load_config(path)
        assert config.rate_limit_max_requests == 5
        assert config.rate_limit_window_seconds == 3600.0
        assert config.port == 5000

    def test_non_mapping_returns_defaults(self, tmp_path):
        path = tmp_path / "proxy_config.yaml"
        path.write_text("- just\n- a list\n")
        assert load_config(path) == ProxyConfig()

    def test_invalid_yaml_returns_defaults(self, tmp_path):
        path = tmp_path / "proxy_config.yaml"
        path.write_text("server: [unclosed\n")
        assert load_config(path) == ProxyConfig()

    def test_bad_types_return_defaults(self, tmp_path):
        path = tmp_path / "proxy_config.yaml"
        path.write_text("server:\n  port: not-a-number\n")
        assert load_config(path) == ProxyConfig()

    def test_invalid_rate_limit_falls_back(self, tmp_path):
        path = tmp_path / "proxy_config.yaml"
        path.write_text("rate_limit:\n  max_requests: 0\n  window_seconds: -1\n")
        config = load_config(path)
        assert config.rate_limit_max_requests == 100
        assert config.rate_limit_window_seconds == 3600.0


class TestSaveConfig:
    def test_round_trip(self, tmp_path):
        path = tmp_path / "sub" / "proxy_config.yaml"
        original = ProxyConfig(
            port=9000,
            rate_limit_max_requests=25,
            block_private_networks=True,
            audit_log_path="/var/log/proxy.log",
        )
        save_config(original, path)
        assert path.exists()
        assert load_config(path) == original

    def test_saved_layout(self, tmp_path):
        path = tmp_path / "proxy_config.yaml"
        save_config(ProxyConfig(), path)
        raw = yaml.safe_load(path.read_text())
        assert raw["server"] == {"host": "0.0.0.0", "port": 5000}
        assert raw["rate_limit"] == {"max_requests": 100, "window_seconds": 3600.0}
