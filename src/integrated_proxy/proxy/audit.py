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
"""Proxy audit trail.

Every proxied call -- forwarded, blocked, rate limited or failed -- can
be appended to a JSON Lines file for later review. Auditing is off
unless a log path is configured; the rate-limit table itself is never
persisted.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import TextIO

logger = logging.getLogger("integrated_proxy.proxy.audit")


@dataclass
class AuditEntry:
    """A single proxied call."""

    timestamp: float
    event_type: str  # forwarded, blocked, rate_limited, upstream_error, client_disconnected
    method: str
    url: str  # Target URL as supplied by the caller
    hostname: str = ""
    client_id: str = ""  # Rate-limit identity (Origin, IP or "unknown")
    status_code: int = 0  # Status returned to the caller
    duration_ms: float = 0.0
    response_size: int = 0
    reason: str = ""  # Error tag / detail for rejected calls

    def to_json(self) -> str:
        """Serialize to JSON string."""
        return json.dumps(asdict(self), separators=(",", ":"))

    @classmethod
    def forwarded(
        cls,
        method: str,
        url: str,
        hostname: str,
        client_id: str,
        status_code: int,
        duration_ms: float = 0.0,
        response_size: int = 0,
    ) -> AuditEntry:
        return cls(
            timestamp=time.time(),
            event_type="forwarded",
            method=method,
            url=url,
            hostname=hostname,
            client_id=client_id,
            status_code=status_code,
            duration_ms=duration_ms,
            response_size=response_size,
        )

    @classmethod
    def blocked(
        cls,
        method: str,
        url: str,
        client_id: str,
        status_code: int,
        reason: str,
    ) -> AuditEntry:
        """Create an entry for a request rejected by URL validation."""
        return cls(
            timestamp=time.time(),
            event_type="blocked",
            method=method,
            url=url,
            client_id=client_id,
            status_code=status_code,
            reason=reason,
        )

    @classmethod
    def rate_limited(cls, method: str, url: str, client_id: str) -> AuditEntry:
        return cls(
            timestamp=time.time(),
            event_type="rate_limited",
            method=method,
            url=url,
            client_id=client_id,
            status_code=429,
            reason="Rate limit exceeded",
        )

    @classmethod
    def upstream_error(
        cls,
        method: str,
        url: str,
        hostname: str,
        client_id: str,
        details: str,
        duration_ms: float = 0.0,
    ) -> AuditEntry:
        return cls(
            timestamp=time.time(),
            event_type="upstream_error",
            method=method,
            url=url,
            hostname=hostname,
            client_id=client_id,
            status_code=502,
            duration_ms=duration_ms,
            reason=details,
        )

    @classmethod
    def client_disconnected(
        cls,
        method: str,
        url: str,
        hostname: str,
        client_id: str,
        duration_ms: float = 0.0,
    ) -> AuditEntry:
        """Create an entry for a caller that left before the upstream answered."""
        return cls(
            timestamp=time.time(),
            event_type="client_disconnected",
            method=method,
            url=url,
            hostname=hostname,
            client_id=client_id,
            status_code=499,
            duration_ms=duration_ms,
            reason="Client closed request",
        )


class AuditLogger:
    """Thread-safe JSON Lines audit writer.

    With ``log_path=None`` the logger is disabled: ``log()`` only counts
    entries and nothing touches the filesystem.
    """

    def __init__(self, log_path: str | Path | None = None) -> None:
        self._path = Path(log_path) if log_path else None
        if self._path is not None:
            self._path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._file: TextIO | None = None
        self._entry_count = 0

    @property
    def enabled(self) -> bool:
        return self._path is not None

    @property
    def entry_count(self) -> int:
        """Number of entries logged in this session."""
        return self._entry_count

    @property
    def path(self) -> Path | None:
        return self._path

    def _ensure_open(self) -> TextIO:
        """Lazily open the log file."""
        if self._file is None or self._file.closed:
            self._file = open(self._path, "a", encoding="utf-8")
        return self._file

    def log(self, entry: AuditEntry) -> None:
        """Append an audit entry (thread-safe). Write failures are logged, not raised."""
        with self._lock:
            self._entry_count += 1
            if self._path is None:
                return
            try:
                f = self._ensure_open()
                f.write(entry.to_json() + "\n")
                f.flush()
            except OSError as exc:
                logger.error("Failed to write audit entry: %s", exc)

    def close(self) -> None:
        with self._lock:
            if self._file and not self._file.closed:
                self._file.close()
            self._file = None

    def read_recent(self, n: int = 50) -> list[AuditEntry]:
        """Read the N most recent audit entries."""
        if self._path is None or not self._path.exists():
            return []

        entries: list[AuditEntry] = []
        try:
            lines = self._path.read_text(encoding="utf-8").strip().splitlines()
            for line in lines[-n:]:
                try:
                    entries.append(AuditEntry(**json.loads(line)))
                except (json.JSONDecodeError, TypeError):
                    continue
        except OSError as exc:
            logger.error("Failed to read audit log: %s", exc)

        return entries

    def get_stats(self) -> dict[str, int]:
        """Summary counts over the most recent 1000 entries."""
        entries = self.read_recent(1000)
        counts = {
            "forwarded": 0,
            "blocked": 0,
            "rate_limited": 0,
            "upstream_error": 0,
            "client_disconnected": 0,
        }
        for entry in entries:
            if entry.event_type in counts:
                counts[entry.event_type] += 1
        return {
            "total_requests": len(entries),
            **counts,
            "unique_hosts": len({e.hostname for e in entries if e.hostname}),
        }

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()
