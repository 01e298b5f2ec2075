# Integrated Server Proxy
# Copyright (C) 2025 Phoenix Link (Pty) Ltd. All Rights Reserved.
"""Tests for the proxy audit trail."""

import json

from integrated_proxy.proxy.audit import AuditEntry, AuditLogger


class TestAuditEntry:
    def test_forwarded(self):
        entry = AuditEntry.forwarded(
            "GET", "https://example.com/a", "example.com", "1.2.3.4", 200, 12.5, 42
        )
        assert entry.event_type == "forwarded"
        assert entry.status_code == 200
        assert entry.response_size == 42
        assert entry.timestamp > 0

    def test_blocked(self):
        entry = AuditEntry.blocked("GET", "http://localhost/", "1.2.3.4", 403, "BlockedDomain")
        assert entry.event_type == "blocked"
        assert entry.reason == "BlockedDomain"

    def test_rate_limited(self):
        entry = AuditEntry.rate_limited("GET", "", "https://app.example")
        assert entry.status_code == 429
        assert entry.client_id == "https://app.example"

    def test_upstream_error(self):
        entry = AuditEntry.upstream_error(
            "GET", "https://down.example/", "down.example", "1.2.3.4", "Connection refused"
        )
        assert entry.status_code == 502
        assert entry.reason == "Connection refused"

    def test_to_json(self):
        entry = AuditEntry.rate_limited("POST", "https://x.example/", "c")
        data = json.loads(entry.to_json())
        assert data["event_type"] == "rate_limited"
        assert data["method"] == "POST"


class TestAuditLogger:
    def test_writes_json_lines(self, tmp_path):
        path = tmp_path / "logs" / "audit.log"
        with AuditLogger(path) as audit:
            audit.log(AuditEntry.rate_limited("GET", "", "a"))
            audit.log(AuditEntry.rate_limited("GET", "", "b"))
        lines = path.read_text().strip().splitlines()
        assert [json.loads(line)["client_id"] for line in lines] == ["a", "b"]

    def test_disabled_writes_nothing(self, tmp_path):
        audit = AuditLogger(None)
        audit.log(AuditEntry.rate_limited("GET", "", "a"))
        assert audit.enabled is False
        assert audit.entry_count == 1
        assert audit.read_recent() == []
        assert list(tmp_path.iterdir()) == []

    def test_read_recent_skips_garbage(self, tmp_path):
        path = tmp_path / "audit.log"
        audit = AuditLogger(path)
        audit.log(AuditEntry.rate_limited("GET", "", "a"))
        audit.close()
        with open(path, "a", encoding="utf-8") as f:
            f.write("not json\n")
        entries = AuditLogger(path).read_recent()
        assert len(entries) == 1
        assert entries[0].client_id == "a"

    def test_get_stats(self, tmp_path):
        audit = AuditLogger(tmp_path / "audit.log")
        audit.log(AuditEntry.forwarded("GET", "u", "a.example", "c", 200))
        audit.log(AuditEntry.forwarded("GET", "u", "b.example", "c", 200))
        audit.log(AuditEntry.blocked("GET", "u", "c", 403, "BlockedDomain"))
        audit.log(AuditEntry.rate_limited("GET", "u", "c"))
        audit.log(AuditEntry.client_disconnected("GET", "u", "a.example", "c"))
        stats = audit.get_stats()
        audit.close()
        assert stats["total_requests"] == 5
        assert stats["forwarded"] == 2
        assert stats["blocked"] == 1
        assert stats["rate_limited"] == 1
        assert stats["upstream_error"] == 0
        assert stats["client_disconnected"] == 1
        assert stats["unique_hosts"] == 2

    def test_empty_stats(self):
        stats = AuditLogger(None).get_stats()
        assert stats["total_requests"] == 0
