# sheet_gateway/translation.py
"""
Batch translation with positional alignment.

Every input item is sent as `[N] text` (1-based) and the model answers in the
same numbering, one line per item. The response is read back by number, never by
line order, so a missing, duplicated or extra line can blank a slot but can never
shift the remaining rows: the output always has exactly `len(texts)` entries and
entry i belongs to input i.
"""
from __future__ import annotations
import re
from typing import Dict, List, Literal, Optional, Sequence

import structlog
from pydantic import BaseModel, Field

from .errors import RateLimited, TranslationFailed, UpstreamError
from .llm_client import LLMClient

logger = structlog.get_logger()

EMPTY_MARKER = "[EMPTY]"
TRANSLATION_MAX_TOKENS = 2000

_LINE_RE = re.compile(r"^\s*\[(\d+)\]\s?(.*)$")
# every separator str.splitlines() breaks on
_LINE_BREAK_RE = re.compile(r"\r\n|[\n\r\x0b\x0c\x1c\x1d\x1e\x85\u2028\u2029]")

# Local or shorthand language names -> canonical English name used in the prompt.
LANGUAGE_ALIASES: Dict[str, str] = {
    "한국어": "Korean", "한글": "Korean", "korean": "Korean", "ko": "Korean",
    "영어": "English", "english": "English", "en": "English",
    "일본어": "Japanese", "japanese": "Japanese", "ja": "Japanese", "jp": "Japanese",
    "중국어": "Chinese (Simplified)", "중국어 간체": "Chinese (Simplified)", "간체": "Chinese (Simplified)",
    "chinese": "Chinese (Simplified)", "zh": "Chinese (Simplified)", "zh-cn": "Chinese (Simplified)",
    "중국어 번체": "Chinese (Traditional)", "번체": "Chinese (Traditional)", "zh-tw": "Chinese (Traditional)",
    "스페인어": "Spanish", "spanish": "Spanish", "es": "Spanish",
    "프랑스어": "French", "불어": "French", "french": "French", "fr": "French",
    "독일어": "German", "german": "German", "de": "German",
    "이탈리아어": "Italian", "italian": "Italian", "it": "Italian",
    "포르투갈어": "Portuguese", "portuguese": "Portuguese", "pt": "Portuguese",
    "러시아어": "Russian", "russian": "Russian", "ru": "Russian",
    "베트남어": "Vietnamese", "vietnamese": "Vietnamese", "vi": "Vietnamese",
    "태국어": "Thai", "thai": "Thai", "th": "Thai",
    "인도네시아어": "Indonesian", "indonesian": "Indonesian", "id": "Indonesian",
    "아랍어": "Arabic", "arabic": "Arabic", "ar": "Arabic",
    "힌디어": "Hindi", "hindi": "Hindi", "hi": "Hindi",
}

SYSTEM_PROMPT = (
    "You are a professional translator for spreadsheet data. CRITICAL RULES:\n"
    "1. Each numbered item MUST be translated separately\n"
    "2. Return translations in EXACT same format, one per line: [1] translation1\\n[2] translation2\\n...\n"
    f"3. If an item is empty or untranslatable, return [N] {EMPTY_MARKER} for that number\n"
    "4. Maintain the exact count of items and never merge or split items\n"
    "5. Output nothing except the numbered lines"
)


class BatchTranslation(BaseModel):
    operation: Literal["translate_batch_result"] = "translate_batch_result"
    translations: List[str] = Field(default_factory=list)


def normalize_language(name: Optional[str]) -> str:
    raw = (name or "").strip()
    return LANGUAGE_ALIASES.get(raw.lower(), LANGUAGE_ALIASES.get(raw, raw))


def number_items(texts: Sequence[Optional[str]]) -> str:
    # newlines inside a cell would break the one-item-per-line contract
    return "\n".join(
        f"[{i}] {_LINE_BREAK_RE.sub(' ', text or '')}" for i, text in enumerate(texts, start=1)
    )


def build_user_prompt(texts: Sequence[Optional[str]], target: str, source: Optional[str] = None) -> str:
    direction = f"from {source} to {target}" if source else f"to {target}"
    return f"Translate these {len(texts)} items {direction}:\n\n{number_items(texts)}"


def parse_numbered_lines(text: str, expected: int) -> List[str]:
    found: Dict[int, str] = {}
    for line in (text or "").splitlines():
        m = _LINE_RE.match(line)
        if not m:
            if line.strip():
                logger.debug("translate.line_ignored", line=line[:120])
            continue
        number = int(m.group(1))
        if number < 1 or number > expected:
            logger.debug("translate.number_out_of_range", number=number, expected=expected)
            continue
        if number in found:
            # a repeated number overwrites the earlier line
            logger.debug("translate.duplicate_number", number=number)
        value = m.group(2).strip()
        found[number] = "" if value == EMPTY_MARKER else value
    return [found.get(i, "") for i in range(1, expected + 1)]


class BatchTranslator:
    def __init__(self, llm: LLMClient):
        self.llm = llm

    async def translate_batch(
        self,
        texts: Sequence[Optional[str]],
        target_language: str,
        source_language: Optional[str] = None,
        model: str = "",
    ) -> BatchTranslation:
        if not texts:
            return BatchTranslation(translations=[])

        target = normalize_language(target_language)
        source = normalize_language(source_language) if source_language else None
        logger.info("translate.batch.start", items=len(texts), target=target, source=source, model=model)

        try:
            text = await self.llm.complete(
                system=SYSTEM_PROMPT,
                user=build_user_prompt(texts, target, source),
                model=model,
                max_tokens=TRANSLATION_MAX_TOKENS,
            )
        except RateLimited:
            raise
        except UpstreamError as e:
            logger.warning("translate.batch.failed", error=e.message)
            raise TranslationFailed() from e

        translations = parse_numbered_lines(text, len(texts))
        missing = sum(1 for (src, out) in zip(texts, translations) if (src or "").strip() and not out)
        logger.info("translate.batch.done", items=len(texts), missing=missing)
        return BatchTranslation(translations=translations)
