# sheet_gateway/usage_log.py
from __future__ import annotations
import re
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Mapping, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import structlog

from .schemas import BATCH_TRANSLATE, LogEntry
from .store import KeyValueStore

logger = structlog.get_logger()

LOGS_SET = "validation_logs"
FREE_KEY_MARKER = "Free"
FREE_COMPANY = "Free User"
DEMO_COMPANY = "Demo/Test"
ANONYMOUS_EMAIL = "anonymous"


@dataclass
class Activity:
    """Request metadata captured once by the HTTP layer."""

    client_ip: str = "unknown"
    user_agent: str = ""
    origin: str = ""
    model: str = ""
    command: str = ""
    sheet_operation: str = ""


def client_ip_from(headers: Mapping[str, str], peer: Optional[str] = None) -> str:
    forwarded = headers.get("x-forwarded-for") or ""
    if forwarded.strip():
        return forwarded.split(",")[0].strip()
    return headers.get("x-real-ip") or peer or "unknown"


# ---------- User-Agent sniffing ----------
_OS_RULES = [
    (re.compile(r"windows nt", re.I), "Windows"),
    (re.compile(r"iphone|ipad|ipod", re.I), "iOS"),
    (re.compile(r"mac os x|macintosh", re.I), "macOS"),
    (re.compile(r"android", re.I), "Android"),
    (re.compile(r"\bcros\b", re.I), "ChromeOS"),
    (re.compile(r"linux", re.I), "Linux"),
]

# Order matters: Edge, Whale, Samsung and Opera all carry "Chrome" too.
_BROWSER_RULES = [
    (re.compile(r"edg(e|a|ios)?/", re.I), "Edge"),
    (re.compile(r"whale/", re.I), "Whale"),
    (re.compile(r"samsungbrowser/", re.I), "Samsung Internet"),
    (re.compile(r"opr/|opera", re.I), "Opera"),
    (re.compile(r"firefox/|fxios/", re.I), "Firefox"),
    (re.compile(r"chrome/|crios/", re.I), "Chrome"),
    (re.compile(r"safari/", re.I), "Safari"),
]


def detect_os(user_agent: str) -> str:
    for pattern, name in _OS_RULES:
        if pattern.search(user_agent or ""):
            return name
    return "Unknown"


def detect_browser(user_agent: str) -> str:
    for pattern, name in _BROWSER_RULES:
        if pattern.search(user_agent or ""):
            return name
    return "Unknown"


# ---------- Action tag ----------
_ACTION_KEYWORDS = [
    ("translate", ("번역", "translate")),
    ("sum", ("합계", "합산", "sum", "total")),
    ("average", ("평균", "average", "mean")),
    ("count", ("개수", "세기", "count")),
    ("sort", ("정렬", "sort")),
    ("filter", ("필터", "filter")),
    ("chart", ("차트", "그래프", "chart", "graph")),
    ("format", ("서식", "색", "굵게", "format", "color", "bold")),
    ("merge", ("병합", "merge")),
]


def derive_action(command: str, sheet_operation: str = "") -> str:
    if sheet_operation == BATCH_TRANSLATE:
        return "batch_translate"
    if sheet_operation:
        return sheet_operation
    lowered = (command or "").lower()
    for action, words in _ACTION_KEYWORDS:
        if any(w in lowered for w in words):
            return action
    return "command"


def format_local_time(moment: datetime, tz_name: str) -> str:
    try:
        tz = ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        tz = timezone.utc
    return moment.astimezone(tz).strftime("%Y. %m. %d. %H:%M:%S")


def build_log_entry(
    *,
    auth_key: str,
    email: Optional[str],
    company: str,
    activity: Activity,
    is_free_user: bool,
    tz_name: str = "Asia/Seoul",
    now: Optional[datetime] = None,
) -> LogEntry:
    moment = now or datetime.now(timezone.utc)
    return LogEntry(
        auth_key=auth_key,
        email=(email or "").strip() or ANONYMOUS_EMAIL,
        company=company,
        timestamp=moment.astimezone(timezone.utc).isoformat().replace("+00:00", "Z"),
        local_time=format_local_time(moment, tz_name),
        client_ip=activity.client_ip,
        user_agent=activity.user_agent,
        os=detect_os(activity.user_agent),
        browser=detect_browser(activity.user_agent),
        origin=activity.origin,
        model=activity.model,
        command=activity.command,
        action=derive_action(activity.command, activity.sheet_operation),
        sheet_operation=activity.sheet_operation,
        is_free_user=is_free_user,
    )


class ActivityLog:
    """Append-only activity log with automatic expiry."""

    def __init__(self, store: KeyValueStore, retention_days: int = 30):
        self.store = store
        self.retention_seconds = retention_days * 24 * 60 * 60

    async def write(self, entry: LogEntry) -> str:
        millis = int(datetime.now(timezone.utc).timestamp() * 1000)
        log_key = f"validation_log:{millis}:{secrets.token_hex(4)}"
        await self.store.hset(log_key, entry.model_dump(by_alias=True))
        await self.store.expire(log_key, self.retention_seconds)
        await self.store.sadd(LOGS_SET, log_key)
        logger.debug("activity_log.written", log_key=log_key, company=entry.company)
        return log_key

    async def read_all(self) -> List[Dict[str, str]]:
        logs: List[Dict[str, str]] = []
        expired: List[str] = []
        for log_key in await self.store.smembers(LOGS_SET):
            data = await self.store.hgetall(log_key)
            if data:
                logs.append(data)
            else:
                expired.append(log_key)
        if expired:
            # the hash expired but its key is still indexed
            await self.store.srem(LOGS_SET, *expired)
            logger.debug("activity_log.pruned", count=len(expired))
        return logs

    async def recent(self, limit: int = 100) -> tuple[List[Dict[str, str]], int]:
        logs = await self.read_all()
        logs.sort(key=lambda d: d.get("timestamp") or "", reverse=True)
        return logs[:limit], len(logs)
