# sheet_gateway/controller.py
from __future__ import annotations
from typing import Any, Dict, Optional

import structlog
from fastapi import APIRouter, Body, Depends, Request

from .dependencies import Services, get_services, is_admin
from .errors import AuthInvalid, AuthRequired, InvalidRequest, ServiceMisconfigured
from .registry import utc_now_iso
from .schemas import CommandPayload
from .usage_log import Activity, client_ip_from

logger = structlog.get_logger()

router = APIRouter()


def _activity(request: Request, payload: CommandPayload, model: str) -> Activity:
    headers = request.headers
    context = payload.sheet_context
    return Activity(
        client_ip=client_ip_from(headers, request.client.host if request.client else None),
        user_agent=headers.get("user-agent", ""),
        origin=headers.get("origin", ""),
        model=model,
        command=(payload.command or "")[:500],
        sheet_operation=(context.operation or "") if context else "",
    )


def _select_tier(services: Services, payload: CommandPayload) -> str:
    if payload.auth_key or services.settings.is_premium_model(payload.model):
        return "premium"
    return "free"


# ------------------------------ health ------------------------------
@router.get("/api/openai-proxy")
async def health(services: Services = Depends(get_services)) -> Dict[str, Any]:
    return {
        "status": "ok",
        "message": "Sheet command gateway is running",
        "apiKeyConfigured": services.settings.api_key_configured,
        "storeAvailable": await services.store.ping(),
        "timestamp": utc_now_iso(),
    }


# ------------------------------ command ------------------------------
@router.post("/api/openai-proxy")
async def run_command(
    request: Request,
    payload: CommandPayload = Body(...),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    """
    Natural-language command -> operation descriptor(s).
    Batch translation requests (`sheetContext.operation == "translate_batch"`)
    come back as `{"operation": "translate_batch_result", "translations": [...]}`.
    """
    settings = services.settings
    if not (payload.command or "").strip() or payload.sheet_context is None:
        raise InvalidRequest()
    if not settings.api_key_configured:
        logger.error("command.llm_key_missing")
        raise ServiceMisconfigured()

    tier = _select_tier(services, payload)
    model = payload.model or (settings.premium_model if tier == "premium" else settings.default_model)

    auth = await services.authorizer.authorize(
        payload.auth_key,
        payload.auth_email,
        tier,
        activity=_activity(request, payload, model),
    )
    if not auth.granted:
        debug: Optional[Dict[str, Any]] = None
        if is_admin(settings, request.headers.get("x-admin-password")):
            debug = {
                "tier": tier,
                "model": model,
                "keyProvided": bool(payload.auth_key),
                "storeAvailable": auth.store_available,
            }
        raise (AuthInvalid if payload.auth_key else AuthRequired)(debug=debug)

    result = await services.interpreter.interpret(
        payload.command,
        payload.sheet_context,
        model=model,
        platform=payload.client_type,
    )
    return {"success": True, "data": result.model_dump()}
