# sheet_gateway/config.py
from __future__ import annotations
import os
from functools import lru_cache
from typing import List, Optional

from pydantic import BaseModel, Field

# Trusted add-in hosts, matched in addition to the explicit origin list.
TRUSTED_ORIGIN_PATTERNS: List[str] = [
    r"https://.*\.office\.com",
    r"https://.*\.office365\.com",
    r"https://.*\.microsoft\.com",
    r"https://.*\.officeapps\.live\.com",
    r"https://.*\.sharepoint\.com",
    r"https://localhost:\d+",
]

_DEFAULT_ORIGINS = "https://localhost:3000,https://excel.office.com"


def _split_csv(raw: Optional[str]) -> List[str]:
    return [part.strip() for part in (raw or "").split(",") if part.strip()]


class Settings(BaseModel):
    openai_api_key: Optional[str] = None
    openai_base_url: Optional[str] = None
    default_model: str = "gpt-4.1-mini"
    premium_model: str = "gpt-4.1"
    premium_models: List[str] = Field(default_factory=list)
    llm_temperature: float = 0.3
    llm_timeout: float = 60.0

    redis_url: Optional[str] = None
    admin_password: Optional[str] = None
    valid_auth_keys: List[str] = Field(default_factory=list)
    allowed_origins: List[str] = Field(default_factory=list)

    display_timezone: str = "Asia/Seoul"
    log_retention_days: int = 30
    log_level: str = "INFO"

    @property
    def api_key_configured(self) -> bool:
        return bool(self.openai_api_key)

    def is_premium_model(self, model: Optional[str]) -> bool:
        if not model:
            return False
        return model in (self.premium_models or [self.premium_model])

    def origin_regex(self) -> str:
        return "^(" + "|".join(TRUSTED_ORIGIN_PATTERNS) + ")$"


def load_settings() -> Settings:
    premium_model = os.getenv("PREMIUM_MODEL", "gpt-4.1")
    return Settings(
        openai_api_key=os.getenv("OPENAI_API_KEY") or None,
        openai_base_url=os.getenv("OPENAI_BASE_URL") or None,
        default_model=os.getenv("DEFAULT_MODEL", "gpt-4.1-mini"),
        premium_model=premium_model,
        premium_models=_split_csv(os.getenv("PREMIUM_MODELS")) or [premium_model],
        llm_temperature=float(os.getenv("LLM_TEMPERATURE", "0.3")),
        llm_timeout=float(os.getenv("LLM_TIMEOUT", "60")),
        redis_url=os.getenv("REDIS_URL") or None,
        admin_password=os.getenv("ADMIN_PASSWORD") or None,
        valid_auth_keys=_split_csv(os.getenv("VALID_AUTH_KEYS")),
        allowed_origins=_split_csv(os.getenv("ALLOWED_ORIGINS", _DEFAULT_ORIGINS)),
        display_timezone=os.getenv("DISPLAY_TIMEZONE", "Asia/Seoul"),
        log_retention_days=int(os.getenv("LOG_RETENTION_DAYS", "30")),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
    )


@lru_cache
def get_settings() -> Settings:
    return load_settings()
