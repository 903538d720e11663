# sheet_gateway/main.py
from __future__ import annotations
from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .admin import router as admin_router
from .config import Settings, get_settings
from .controller import router as command_router
from .dependencies import Services, build_services
from .errors import GatewayError, InvalidRequest
from .logging_utils import configure_logging

logger = structlog.get_logger()


def create_app(settings: Optional[Settings] = None, services: Optional[Services] = None) -> FastAPI:
    settings = settings or (services.settings if services else get_settings())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.log_level)
        if getattr(app.state, "services", None) is None:
            app.state.services = build_services(settings)
        logger.info(
            "gateway.startup",
            version=__version__,
            store=app.state.services.store.name,
            api_key_configured=settings.api_key_configured,
        )
        yield
        logger.info("gateway.shutdown", pending=app.state.services.tasks.pending)
        await app.state.services.tasks.drain()
        await app.state.services.store.close()

    app = FastAPI(
        title="Sheet Command Gateway",
        version=__version__,
        description="Natural-language spreadsheet commands -> structured operations, with auth keys and usage stats.",
        lifespan=lifespan,
    )
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_origin_regex=settings.origin_regex(),
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "X-Admin-Password"],
        max_age=86400,
    )

    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        logger.info("gateway.invalid_body", path=request.url.path, errors=len(exc.errors()))
        err = InvalidRequest()
        return JSONResponse(status_code=err.status_code, content=err.to_dict())

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception("gateway.unhandled", path=request.url.path, error=repr(exc))
        return JSONResponse(status_code=500, content={"success": False, "error": "서버 오류가 발생했습니다."})

    app.include_router(command_router, tags=["Commands"])
    app.include_router(admin_router, tags=["Admin"])

    @app.get("/")
    async def root():
        return {
            "message": "Sheet command gateway is running!",
            "endpoints": ["/api/openai-proxy", "/api/auth-keys", "/api/usage-stats", "/api/validation-logs"],
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("sheet_gateway.main:app", host="0.0.0.0", port=8000, reload=True)
