# sheet_gateway/admin.py
from __future__ import annotations
from typing import Any, Dict

import structlog
from fastapi import APIRouter, Body, Depends

from .dependencies import Services, get_services, require_admin
from .errors import InvalidRequest, KeyNotFound, StoreUnavailable
from .schemas import CreateKeyPayload, DeleteKeyPayload
from .stats import aggregate, attach_key_info
from .usage_log import ActivityLog

logger = structlog.get_logger()

router = APIRouter(prefix="/api", dependencies=[Depends(require_admin)])

RECENT_LOG_LIMIT = 100


# ------------------------------ auth keys ------------------------------
@router.get("/auth-keys")
async def list_keys(services: Services = Depends(get_services)) -> Dict[str, Any]:
    records = await services.registry.list_keys()
    return {"success": True, "keys": [r.model_dump(by_alias=True) for r in records]}


@router.post("/auth-keys")
async def create_key(
    payload: CreateKeyPayload = Body(...),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    company = (payload.company or "").strip()
    if not company:
        raise InvalidRequest("회사명은 필수입니다.")
    record = await services.registry.create(company, payload.memo)
    return {"success": True, **record.model_dump(by_alias=True)}


@router.delete("/auth-keys")
async def deactivate_key(
    payload: DeleteKeyPayload = Body(...),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    key = (payload.key or "").strip()
    if not key:
        raise InvalidRequest("삭제할 키를 지정해주세요.")
    if not await services.registry.deactivate(key):
        raise KeyNotFound()
    return {"success": True, "message": "인증키가 비활성화되었습니다."}


# ------------------------------ usage ------------------------------
@router.get("/usage-stats")
async def usage_stats(services: Services = Depends(get_services)) -> Dict[str, Any]:
    try:
        logs = await services.activity_log.read_all()
        records = await services.registry.list_keys()
    except StoreUnavailable:
        logger.warning("usage_stats.store_unavailable")
        return {
            "success": True,
            "stats": aggregate([]),
            "message": "저장소를 사용할 수 없어 통계를 제공할 수 없습니다.",
        }
    stats = attach_key_info(aggregate(logs), records)
    return {"success": True, "stats": stats, "message": "회사별 월별 사용자 통계"}


@router.get("/validation-logs")
async def validation_logs(services: Services = Depends(get_services)) -> Dict[str, Any]:
    log: ActivityLog = services.activity_log
    try:
        logs, total = await log.recent(RECENT_LOG_LIMIT)
    except StoreUnavailable:
        logger.warning("validation_logs.store_unavailable")
        return {
            "success": True,
            "logs": [],
            "total": 0,
            "message": "저장소를 사용할 수 없어 로그를 제공할 수 없습니다.",
        }
    return {"success": True, "logs": logs, "total": total}
