# Integrated Server Proxy
# Copyright (C) 2025 Phoenix Link (Pty) Ltd. All Rights Reserved.
"""Tests for the proxy CLI entry point."""

from unittest.mock import patch

import yaml

from integrated_proxy import server


class TestCLI:
    def test_defaults(self):
        args = server.build_parser().parse_args([])
        assert args.config is None
        assert args.port is None
        assert args.log_level == "INFO"

    def test_overrides_applied(self, tmp_path):
        config_path = tmp_path / "proxy_config.yaml"
        config_path.write_text(yaml.dump({"server": {"port": 7000}}))

        with patch("integrated_proxy.server.uvicorn.run") as run, patch(
            "integrated_proxy.server.create_app"
        ) as create_app:
            server.main(
                [
                    "--config",
                    str(config_path),
                    "--host",
                    "127.0.0.1",
                    "--port",
                    "7100",
                    "--audit-log",
                    str(tmp_path / "audit.log"),
                    "--log-level",
                    "DEBUG",
                ]
            )

        config = create_app.call_args.args[0]
        assert config.host == "127.0.0.1"
        assert config.port == 7100
        assert config.audit_log_path == str(tmp_path / "audit.log")
        run.assert_called_once()
        assert run.call_args.kwargs["port"] == 7100
        assert run.call_args.kwargs["log_level"] == "debug"

    def test_port_from_config(self, tmp_path):
        config_path = tmp_path / "proxy_config.yaml"
        config_path.write_text(yaml.dump({"server": {"port": 7000}}))

        with patch("integrated_proxy.server.uvicorn.run") as run, patch(
            "integrated_proxy.server.create_app"
        ):
            server.main(["--config", str(config_path)])

        assert run.call_args.kwargs["port"] == 7000
