# sheet_gateway/llm_client.py
from __future__ import annotations
from typing import Any, Callable, Optional

import openai
import structlog
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from .config import Settings
from .errors import RateLimited, ServiceMisconfigured, UpstreamError

logger = structlog.get_logger()

ChatFactory = Callable[[str, int], BaseChatModel]


def make_llm(settings: Settings, model: str, max_tokens: int) -> ChatOpenAI:
    if not settings.openai_api_key:
        raise ServiceMisconfigured()
    return ChatOpenAI(
        model=model,
        base_url=settings.openai_base_url,
        api_key=settings.openai_api_key,
        temperature=settings.llm_temperature,
        max_tokens=max_tokens,
        timeout=settings.llm_timeout,
        # rate limits go back to the caller; no hidden retries
        max_retries=0,
    )


def _provider_message(err: openai.APIError) -> Optional[str]:
    body: Any = getattr(err, "body", None)
    if isinstance(body, dict):
        inner = body.get("error", body)
        if isinstance(inner, dict) and inner.get("message"):
            return str(inner["message"])
    return getattr(err, "message", None) or str(err) or None


class LLMClient:
    def __init__(self, settings: Settings, factory: Optional[ChatFactory] = None):
        self.settings = settings
        self._factory: ChatFactory = factory or (lambda model, max_tokens: make_llm(settings, model, max_tokens))

    async def complete(self, system: str, user: str, model: str, max_tokens: int) -> str:
        llm = self._factory(model, max_tokens)
        messages = [SystemMessage(content=system), HumanMessage(content=user)]
        try:
            resp = await llm.ainvoke(messages)
        except openai.RateLimitError as e:
            logger.warning("llm.rate_limited", model=model)
            raise RateLimited() from e
        except openai.APIError as e:
            message = _provider_message(e)
            logger.warning("llm.upstream_error", model=model, error=message)
            raise UpstreamError.from_provider(message) from e
        content = getattr(resp, "content", "")
        if isinstance(content, list):
            content = "".join(
                part.get("text", "") if isinstance(part, dict) else str(part) for part in content
            )
        return (content or "").strip()
