"""
Integrated Server Proxy -- outbound HTTP/HTTPS forwarding proxy.

Forwards caller requests to an arbitrary target URL with per-client
rate limiting, coarse internal-host blocking and credential-safe
header rewriting.
"""

from integrated_proxy._version import __version__

__author__ = "Integrated Server Team"
