"""Tests for the Monitor model and URL helpers."""

from __future__ import annotations

import pytest

from sentinel.checks.engine import CheckResult
from sentinel.monitors.models import (
    MAX_HISTORY,
    GlobalSettings,
    Monitor,
    Status,
    derive_name,
    normalize_url,
    parse_url_list,
)


def _up(latency: int = 42) -> CheckResult:
    return CheckResult(status=Status.UP, status_code=200, latency_ms=latency)


def _down() -> CheckResult:
    return CheckResult(status=Status.DOWN, status_code=0, latency_ms=0)


# ── URL helpers ──────────────────────────────────────────────────────────────


class TestURLHelpers:
    def test_adds_https_when_scheme_missing(self) -> None:
        assert normalize_url("example.com") == "https://example.com"

    def test_keeps_existing_scheme(self) -> None:
        assert normalize_url("http://example.com") == "http://example.com"
        assert normalize_url("HTTPS://Example.com/x") == "HTTPS://Example.com/x"

    def test_trims_whitespace(self) -> None:
        assert normalize_url("  example.com/path \t") == "https://example.com/path"

    def test_empty_rejected(self) -> None:
        with pytest.raises(ValueError):
            normalize_url("   ")

    def test_derive_name_is_host(self) -> None:
        assert derive_name("https://example.com") == "example.com"
        assert derive_name("http://api.example.com:8080/health?x=1") == "api.example.com:8080"

    def test_parse_url_list_drops_blank_lines(self) -> None:
        text = "example.com\n\n  https://foo.org  \r\n\t\nbar.net"
        assert parse_url_list(text) == ["example.com", "https://foo.org", "bar.net"]


# ── Monitor ──────────────────────────────────────────────────────────────────


class TestMonitor:
    def test_create_defaults(self) -> None:
        m = Monitor.create("example.com")
        assert m.url == "https://example.com"
        assert m.name == "example.com"
        assert m.status == Status.PENDING
        assert m.status_code is None
        assert m.last_checked is None
        assert m.latency is None
        assert m.history == []
        assert m.interval is None
        assert m.is_paused is False
        assert m.id

    def test_ids_are_unique(self) -> None:
        assert Monitor.create("a.com").id != Monitor.create("a.com").id

    def test_create_rejects_short_interval(self) -> None:
        with pytest.raises(ValueError):
            Monitor.create("example.com", interval=5)

    def test_record_result(self) -> None:
        m = Monitor.create("example.com")
        m.record_result(_up(120), at=1000)
        assert m.status == Status.UP
        assert m.status_code == 200
        assert m.latency == 120
        assert m.last_checked == 1000
        assert [p.to_dict() for p in m.history] == [{"timestamp": 1000, "latency": 120}]

    def test_history_bounded_fifo(self) -> None:
        m = Monitor.create("example.com")
        for i in range(MAX_HISTORY + 12):
            m.record_result(_up(i), at=i)
        assert len(m.history) == MAX_HISTORY
        # Oldest 12 evicted
        assert m.history[0].timestamp == 12
        assert m.history[-1].timestamp == MAX_HISTORY + 11

    def test_record_result_while_paused_keeps_paused(self) -> None:
        m = Monitor.create("example.com")
        m.toggle_pause()
        m.record_result(_down(), at=5)
        assert m.status == Status.PAUSED
        assert m.status_code == 0
        assert len(m.history) == 1

    def test_toggle_twice_returns_to_pending(self) -> None:
        m = Monitor.create("example.com")
        m.record_result(_up(), at=1)
        assert m.status == Status.UP

        m.toggle_pause()
        assert m.is_paused is True
        assert m.status == Status.PAUSED

        m.toggle_pause()
        assert m.is_paused is False
        assert m.status == Status.PENDING

    def test_update_url(self) -> None:
        m = Monitor.create("example.com")
        original_id = m.id
        m.record_result(_up(), at=1)
        m.update_url("status.example.org/ping")
        assert m.url == "https://status.example.org/ping"
        assert m.name == "status.example.org"
        assert m.status == Status.PENDING
        assert m.id == original_id

    def test_mark_pending_ignored_when_paused(self) -> None:
        m = Monitor.create("example.com")
        m.toggle_pause()
        m.mark_pending()
        assert m.status == Status.PAUSED

    def test_to_dict_uses_camel_case(self) -> None:
        m = Monitor.create("example.com", interval=30)
        m.record_result(_up(7), at=99)
        d = m.to_dict()
        assert d["statusCode"] == 200
        assert d["lastChecked"] == 99
        assert d["isPaused"] is False
        assert d["interval"] == 30
        assert d["status"] == "UP"
        assert d["history"] == [{"timestamp": 99, "latency": 7}]

    def test_from_dict_restores_monitor(self) -> None:
        m = Monitor.create("example.com")
        m.record_result(_down(), at=3)
        restored = Monitor.from_dict(m.to_dict())
        assert restored == m

    def test_from_dict_trims_oversized_history(self) -> None:
        data = Monitor.create("example.com").to_dict()
        data["history"] = [{"timestamp": i, "latency": i} for i in range(50)]
        restored = Monitor.from_dict(data)
        assert len(restored.history) == MAX_HISTORY
        assert restored.history[0].timestamp == 20


class TestGlobalSettings:
    def test_default(self) -> None:
        assert GlobalSettings().global_interval == 3600

    def test_lower_bound(self) -> None:
        GlobalSettings(global_interval=10)
        with pytest.raises(ValueError):
            GlobalSettings(global_interval=9)

    def test_dict_form(self) -> None:
        assert GlobalSettings(global_interval=60).to_dict() == {"globalInterval": 60}
        assert GlobalSettings.from_dict({"globalInterval": 45}).global_interval == 45
