"""Unit tests for activity log entries and their storage."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from sheet_gateway.store import MemoryStore
from sheet_gateway.usage_log import (
    LOGS_SET,
    Activity,
    ActivityLog,
    build_log_entry,
    client_ip_from,
    derive_action,
    detect_browser,
    detect_os,
)

CHROME_WIN = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
EDGE_WIN = CHROME_WIN + " Edg/120.0.0.0"
WHALE_WIN = CHROME_WIN.replace("Safari/537.36", "Whale/3.24.223.21 Safari/537.36")
SAFARI_MAC = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_2) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.2 Safari/605.1.15"
)
SAFARI_IPHONE = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_2 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.2 Mobile/15E148 Safari/604.1"
)
FIREFOX_LINUX = "Mozilla/5.0 (X11; Linux x86_64; rv:121.0) Gecko/20100101 Firefox/121.0"
SAMSUNG_ANDROID = (
    "Mozilla/5.0 (Linux; Android 14; SM-S918N) AppleWebKit/537.36 "
    "(KHTML, like Gecko) SamsungBrowser/23.0 Chrome/115.0.0.0 Mobile Safari/537.36"
)


class TestUserAgent:
    @pytest.mark.parametrize("ua, expected", [
        (CHROME_WIN, "Windows"),
        (SAFARI_MAC, "macOS"),
        (SAFARI_IPHONE, "iOS"),
        (FIREFOX_LINUX, "Linux"),
        (SAMSUNG_ANDROID, "Android"),
        ("", "Unknown"),
    ])
    def test_os(self, ua, expected):
        assert detect_os(ua) == expected

    @pytest.mark.parametrize("ua, expected", [
        (CHROME_WIN, "Chrome"),
        (EDGE_WIN, "Edge"),
        (WHALE_WIN, "Whale"),
        (SAFARI_MAC, "Safari"),
        (FIREFOX_LINUX, "Firefox"),
        (SAMSUNG_ANDROID, "Samsung Internet"),
        ("curl/8.4.0", "Unknown"),
    ])
    def test_browser(self, ua, expected):
        assert detect_browser(ua) == expected


class TestClientIp:
    def test_first_forwarded_hop(self):
        assert client_ip_from({"x-forwarded-for": "1.2.3.4, 10.0.0.1"}, "127.0.0.1") == "1.2.3.4"

    def test_real_ip_header(self):
        assert client_ip_from({"x-real-ip": "5.6.7.8"}, "127.0.0.1") == "5.6.7.8"

    def test_peer_then_unknown(self):
        assert client_ip_from({}, "127.0.0.1") == "127.0.0.1"
        assert client_ip_from({}) == "unknown"


class TestDeriveAction:
    @pytest.mark.parametrize("command, expected", [
        ("D열 합계", "sum"),
        ("B열 평균 구해줘", "average"),
        ("A열 내림차순 정렬", "sort"),
        ("영어로 번역", "translate"),
        ("매출 차트 그려줘", "chart"),
        ("A1:C1 병합", "merge"),
        ("hello", "command"),
    ])
    def test_keywords(self, command, expected):
        assert derive_action(command) == expected

    def test_batch_translation(self):
        assert derive_action("번역", "translate_batch") == "batch_translate"


class TestBuildLogEntry:
    def test_fields(self):
        moment = datetime(2025, 3, 1, 15, 30, tzinfo=timezone.utc)
        activity = Activity(client_ip="1.2.3.4", user_agent=EDGE_WIN, origin="https://excel.office.com",
                            model="gpt-x", command="D열 합계")

        entry = build_log_entry(auth_key="WORKS-AAAA1111", email="  ", company="Acme",
                                activity=activity, is_free_user=False, now=moment)
        data = entry.model_dump(by_alias=True)

        assert data["email"] == "anonymous"
        assert data["timestamp"] == "2025-03-01T15:30:00Z"
        # Asia/Seoul is UTC+9
        assert data["localTime"] == "2025. 03. 02. 00:30:00"
        assert data["clientIP"] == "1.2.3.4"
        assert data["os"] == "Windows"
        assert data["browser"] == "Edge"
        assert data["action"] == "sum"
        assert data["isFreeUser"] is False


class TestActivityLog:
    async def test_write_and_recent(self):
        store = MemoryStore()
        log = ActivityLog(store, retention_days=30)
        for day in (1, 3, 2):
            moment = datetime(2025, 3, day, tzinfo=timezone.utc)
            await log.write(build_log_entry(auth_key="Free", email=f"u{day}@x.com", company="Free User",
                                            activity=Activity(), is_free_user=True, now=moment))

        logs, total = await log.recent(limit=2)

        assert total == 3
        assert [entry["email"] for entry in logs] == ["u3@x.com", "u2@x.com"]
        assert logs[0]["isFreeUser"] == "true"
        assert len(await store.smembers(LOGS_SET)) == 3

    async def test_entries_expire(self):
        now = [0.0]
        store = MemoryStore(clock=lambda: now[0])
        log = ActivityLog(store, retention_days=1)
        await log.write(build_log_entry(auth_key="Free", email="a@x.com", company="Free User",
                                        activity=Activity(), is_free_user=True))

        now[0] += 24 * 60 * 60

        assert await log.read_all() == []

    async def test_expired_keys_pruned_from_index(self):
        now = [0.0]
        store = MemoryStore(clock=lambda: now[0])
        log = ActivityLog(store, retention_days=1)
        for i in range(50):
            await log.write(build_log_entry(auth_key="Free", email=f"u{i}@x.com", company="Free User",
                                            activity=Activity(), is_free_user=True))

        now[0] += 10 * 24 * 60 * 60
        fresh = await log.write(build_log_entry(auth_key="Free", email="late@x.com", company="Free User",
                                                activity=Activity(), is_free_user=True))

        logs, total = await log.recent()

        assert total == 1
        assert logs[0]["email"] == "late@x.com"
        assert await store.smembers(LOGS_SET) == {fresh}
