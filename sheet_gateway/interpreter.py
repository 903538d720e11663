# sheet_gateway/interpreter.py
from __future__ import annotations
import ast, json, re
from typing import Any, Dict, List, Optional, Union

import structlog

from .errors import InvalidRequest, UnparseableResponse
from .llm_client import LLMClient
from .prompts import (
    CHART_DEFAULT_TYPE,
    OPERATIONS,
    SORT_DEFAULT_ORDER,
    build_system_prompt,
    build_user_prompt,
)
from .schemas import Interpretation, OperationBatch, OperationDescriptor, SheetContext
from .translation import BatchTranslation, BatchTranslator

logger = structlog.get_logger()

COMMAND_MAX_TOKENS = 500

_FENCE_RE = re.compile(r"^```[a-zA-Z]*\s*|\s*```$")
_INVISIBLE = ("\u200b", "\ufeff")


# =========================
# Response repair (tolerant of fenced / chatty model output)
# =========================
def _extract_json_block(s: str) -> Optional[str]:
    starts = [i for i in (s.find("{"), s.find("[")) if i != -1]
    if not starts:
        return None
    start = min(starts)
    end = s.rfind("}" if s[start] == "{" else "]")
    if end <= start:
        return None
    return s[start:end + 1]


def coerce_json(text: str) -> Any:
    s = (text or "").strip()
    for ch in _INVISIBLE:
        s = s.replace(ch, "")
    s = _FENCE_RE.sub("", s).strip()
    if not s:
        raise UnparseableResponse()
    try:
        return json.loads(s)
    except ValueError:
        pass
    block = _extract_json_block(s)
    if block is None:
        raise UnparseableResponse()
    try:
        return json.loads(block)
    except ValueError:
        pass
    try:
        maybe = ast.literal_eval(block)
        if isinstance(maybe, (dict, list)):
            return maybe
    except (ValueError, SyntaxError, TypeError):
        pass
    raise UnparseableResponse()


# =========================
# Shape validation
# =========================
def _apply_defaults(operation: str, parameters: Dict[str, Any]) -> Dict[str, Any]:
    params = dict(parameters)
    if operation == "sort":
        order = str(params.get("order") or "").lower()
        params["order"] = order if order in ("ascending", "descending") else SORT_DEFAULT_ORDER
    elif operation == "chart" and not params.get("chartType"):
        params["chartType"] = CHART_DEFAULT_TYPE
    return params


def _descriptor(raw: Any) -> OperationDescriptor:
    if not isinstance(raw, dict) or "operations" in raw:
        raise UnparseableResponse()
    operation = str(raw.get("operation") or "").strip().lower()
    if operation not in OPERATIONS:
        logger.info("command.unsupported_operation", operation=operation)
        raise UnparseableResponse(f"지원하지 않는 작업입니다: {operation or '(없음)'}")

    if "parameters" in raw:
        parameters = raw.get("parameters") or {}
    else:
        # some models flatten parameters next to "operation"
        parameters = {k: v for k, v in raw.items() if k != "operation"}
    if not isinstance(parameters, dict):
        raise UnparseableResponse()
    return OperationDescriptor(operation=operation, parameters=_apply_defaults(operation, parameters))


def validate_interpretation(raw: Any) -> Interpretation:
    """Exactly one of `operation` / `operations`; every operation in the vocabulary."""
    if isinstance(raw, list):
        raw = {"operations": raw}
    if not isinstance(raw, dict):
        raise UnparseableResponse()

    has_single = "operation" in raw
    has_many = "operations" in raw
    if has_single == has_many:
        raise UnparseableResponse()

    if has_single:
        return _descriptor(raw)

    items = raw.get("operations")
    if not isinstance(items, list) or not items:
        raise UnparseableResponse()
    return OperationBatch(operations=[_descriptor(item) for item in items])


# =========================
# Gateway
# =========================
class CommandInterpreter:
    def __init__(self, llm: LLMClient, translator: Optional[BatchTranslator] = None):
        self.llm = llm
        self.translator = translator or BatchTranslator(llm)

    async def interpret(
        self,
        command: Optional[str],
        context: Optional[SheetContext],
        model: str,
        platform: str = "excel",
        allow_multi: bool = True,
    ) -> Union[Interpretation, BatchTranslation]:
        if not (command or "").strip() or context is None:
            raise InvalidRequest()

        if context.is_batch_translation:
            return await self.translator.translate_batch(
                texts=context.texts,
                target_language=context.target_language or "",
                source_language=context.source_language,
                model=model,
            )

        system_prompt = build_system_prompt(context, platform=platform, allow_multi=allow_multi)
        logger.info("command.interpret.start", model=model, platform=platform, chars=len(command))
        text = await self.llm.complete(
            system=system_prompt,
            user=build_user_prompt(command.strip()),
            model=model,
            max_tokens=COMMAND_MAX_TOKENS,
        )

        try:
            result = validate_interpretation(coerce_json(text))
        except UnparseableResponse:
            logger.info("command.interpret.unparseable", model=model, preview=text[:200])
            raise

        ops: List[str] = (
            [result.operation] if isinstance(result, OperationDescriptor)
            else [op.operation for op in result.operations]
        )
        logger.info("command.interpret.done", model=model, operations=ops)
        return result
