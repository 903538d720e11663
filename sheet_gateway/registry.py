# sheet_gateway/registry.py
from __future__ import annotations
import secrets
import string
from datetime import datetime, timezone
from typing import Dict, List, Optional

import structlog

from .schemas import AuthKeyRecord
from .store import KeyValueStore, decode_bool

logger = structlog.get_logger()

KEY_PREFIX = "WORKS"
KEYS_SET = "auth_keys"
_RANDOM_LEN = 8
_ALPHABET = string.ascii_uppercase + string.digits


def key_hash_name(key: str) -> str:
    return f"auth_key:{key}"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def generate_key() -> str:
    random_part = "".join(secrets.choice(_ALPHABET) for _ in range(_RANDOM_LEN))
    return f"{KEY_PREFIX}-{random_part}"


def record_from_hash(key: str, data: Dict[str, str]) -> Optional[AuthKeyRecord]:
    """Decode a raw store hash. Returns None for missing or company-less records."""
    if not data or not data.get("company"):
        return None
    try:
        usage = int(data.get("usageCount") or 0)
    except ValueError:
        usage = 0
    return AuthKeyRecord(
        key=key,
        company=data["company"],
        memo=data.get("memo") or "",
        created_at=data.get("createdAt") or "",
        created_by=data.get("createdBy") or "admin",
        is_active=decode_bool(data.get("isActive")),
        usage_count=max(usage, 0),
        last_used=data.get("lastUsed") or None,
    )


class AuthKeyRegistry:
    def __init__(self, store: KeyValueStore):
        self.store = store

    async def create(self, company: str, memo: Optional[str] = None) -> AuthKeyRecord:
        existing = await self.store.smembers(KEYS_SET)
        key = generate_key()
        while key in existing:
            key = generate_key()

        record = AuthKeyRecord(
            key=key,
            company=company,
            memo=memo or "",
            created_at=utc_now_iso(),
            is_active=True,
            usage_count=0,
        )
        await self.store.sadd(KEYS_SET, key)
        await self.store.hset(key_hash_name(key), record.model_dump(by_alias=True, exclude={"key", "last_used"}))
        logger.info("auth_key.created", key_prefix=key[:9], company=company)
        return record

    async def get(self, key: str) -> Optional[AuthKeyRecord]:
        data = await self.store.hgetall(key_hash_name(key))
        return record_from_hash(key, data)

    async def list_keys(self) -> List[AuthKeyRecord]:
        records: List[AuthKeyRecord] = []
        for key in await self.store.smembers(KEYS_SET):
            record = await self.get(key)
            if record is not None:
                records.append(record)
        return sorted(records, key=lambda r: r.created_at, reverse=True)

    async def set_active(self, key: str, active: bool) -> bool:
        if await self.get(key) is None:
            return False
        await self.store.hset(key_hash_name(key), {"isActive": active})
        logger.info("auth_key.active_changed", key_prefix=key[:9], active=active)
        return True

    async def deactivate(self, key: str) -> bool:
        return await self.set_active(key, False)

    async def increment_usage(self, key: str) -> int:
        return await self.store.hincrby(key_hash_name(key), "usageCount", 1)

    async def touch(self, key: str) -> None:
        await self.store.hset(key_hash_name(key), {"lastUsed": utc_now_iso()})
