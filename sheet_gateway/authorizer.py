# sheet_gateway/authorizer.py
from __future__ import annotations
from dataclasses import dataclass
from typing import Iterable, Literal, Optional

import structlog

from .errors import StoreUnavailable
from .registry import AuthKeyRegistry
from .schemas import AuthKeyRecord
from .tasks import DetachedTasks
from .usage_log import (
    DEMO_COMPANY,
    FREE_COMPANY,
    FREE_KEY_MARKER,
    Activity,
    ActivityLog,
    build_log_entry,
)

logger = structlog.get_logger()

Tier = Literal["free", "premium"]


@dataclass
class AuthResult:
    granted: bool
    company: Optional[str] = None
    # "free" | "registry" | "allow_list" | "denied"
    source: str = "denied"
    store_available: bool = True


class RequestAuthorizer:
    """
    Decides whether a request may use the premium tier.

    Only the grant/deny decision is awaited. Usage counting, the last-used stamp
    and the activity log are handed to `DetachedTasks` and never influence the
    result.
    """

    def __init__(
        self,
        registry: AuthKeyRegistry,
        activity_log: ActivityLog,
        tasks: DetachedTasks,
        allow_list: Iterable[str] = (),
        tz_name: str = "Asia/Seoul",
    ):
        self.registry = registry
        self.activity_log = activity_log
        self.tasks = tasks
        self.allow_list = {k.strip() for k in allow_list if k and k.strip()}
        self.tz_name = tz_name

    async def authorize(
        self,
        key: Optional[str],
        email: Optional[str],
        tier: Tier,
        activity: Optional[Activity] = None,
    ) -> AuthResult:
        activity = activity or Activity()

        if tier == "free":
            self._log(FREE_KEY_MARKER, email, FREE_COMPANY, activity, is_free=True)
            return AuthResult(granted=True, company=FREE_COMPANY, source="free")

        key = (key or "").strip()
        if not key:
            logger.info("auth.premium.missing_key")
            return AuthResult(granted=False)

        record: Optional[AuthKeyRecord] = None
        store_available = True
        try:
            record = await self.registry.get(key)
        except StoreUnavailable:
            store_available = False
            logger.warning("auth.premium.store_unavailable", key_prefix=key[:9])

        if record is not None and record.is_active:
            self.tasks.spawn(self.registry.increment_usage(key), "auth.usage_increment")
            self.tasks.spawn(self.registry.touch(key), "auth.last_used")
            self._log(key, email, record.company, activity, is_free=False)
            logger.info("auth.premium.granted", key_prefix=key[:9], company=record.company)
            return AuthResult(granted=True, company=record.company, source="registry")

        if record is not None:
            # explicitly deactivated keys never fall back to the allow-list
            logger.info("auth.premium.inactive", key_prefix=key[:9])
            return AuthResult(granted=False, store_available=store_available)

        if key in self.allow_list:
            self._log(key, email, DEMO_COMPANY, activity, is_free=False)
            logger.info("auth.premium.allow_list", key_prefix=key[:9], store_available=store_available)
            return AuthResult(
                granted=True,
                company=DEMO_COMPANY,
                source="allow_list",
                store_available=store_available,
            )

        logger.info("auth.premium.denied", key_prefix=key[:9], store_available=store_available)
        return AuthResult(granted=False, store_available=store_available)

    def _log(
        self,
        key: str,
        email: Optional[str],
        company: str,
        activity: Activity,
        is_free: bool,
    ) -> None:
        try:
            entry = build_log_entry(
                auth_key=key,
                email=email,
                company=company,
                activity=activity,
                is_free_user=is_free,
                tz_name=self.tz_name,
            )
        except Exception as e:
            logger.warning("auth.log_entry.failed", error=repr(e))
            return
        self.tasks.spawn(self.activity_log.write(entry), "auth.activity_log")
