"""Pytest configuration for integrated-server-proxy tests."""

import sys
from pathlib import Path

# Ensure src/integrated_proxy is importable without installation
src_path = str(Path(__file__).parent.parent / "src")
if src_path not in sys.path:
    sys.path.insert(0, src_path)
