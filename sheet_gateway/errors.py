# sheet_gateway/errors.py
from __future__ import annotations
from typing import Any, Dict, Optional


class GatewayError(Exception):
    """Base error rendered as `{"success": false, "error": ...}`."""

    status_code: int = 500
    code: str = "internal_error"
    default_message: str = "서버 오류가 발생했습니다."
    retryable: bool = False

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        debug: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message or self.default_message
        self.debug = debug
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"success": False, "error": self.message, "code": self.code}
        if self.retryable:
            body["retryable"] = True
        if self.debug:
            body["debug"] = self.debug
        return body


# ---------- Client errors ----------
class InvalidRequest(GatewayError):
    status_code = 400
    code = "invalid_request"
    default_message = "잘못된 요청입니다."


class AuthRequired(GatewayError):
    status_code = 403
    code = "auth_required"
    default_message = "프리미엄 기능을 사용하려면 인증키가 필요합니다."


class AuthInvalid(GatewayError):
    status_code = 403
    code = "auth_invalid"
    default_message = "유효하지 않거나 비활성화된 인증키입니다."


class AdminRequired(GatewayError):
    status_code = 401
    code = "admin_required"
    default_message = "관리자 인증이 필요합니다."


# ---------- Upstream / interpretation outcomes (HTTP 200, success=false) ----------
class InterpretationError(GatewayError):
    status_code = 200
    code = "interpretation_error"


class RateLimited(InterpretationError):
    code = "rate_limited"
    default_message = "API 요청 한도를 초과했습니다. 잠시 후 다시 시도해주세요."
    retryable = True


class UpstreamError(InterpretationError):
    code = "upstream_error"
    default_message = "API 오류: 알 수 없는 오류"

    @classmethod
    def from_provider(cls, provider_message: Optional[str]) -> "UpstreamError":
        return cls(f"API 오류: {provider_message or '알 수 없는 오류'}")


class TranslationFailed(UpstreamError):
    code = "translation_failed"
    default_message = "번역 중 오류가 발생했습니다."


class UnparseableResponse(InterpretationError):
    code = "unparseable_response"
    default_message = "AI 응답을 해석할 수 없습니다."


# ---------- Server side ----------
class ServiceMisconfigured(GatewayError):
    status_code = 500
    code = "service_misconfigured"
    default_message = "API 키가 설정되지 않았습니다. 서버 설정을 확인해주세요."


class StoreUnavailable(GatewayError):
    """Key/value store unreachable. Callers convert this into fallback behaviour."""

    status_code = 503
    code = "store_unavailable"
    default_message = "저장소 연결 오류가 발생했습니다."


class KeyNotFound(GatewayError):
    status_code = 404
    code = "key_not_found"
    default_message = "존재하지 않는 인증키입니다."
