import logging
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import JSONResponse

from .achievement_routes import router as achievement_router
from .admin_routes import router as admin_router
from .api_models import ErrorPayload
from .config import Settings, get_settings
from .db.monitoring import get_pool_snapshot
from .db.session import get_engine
from .errors import ProgressError
from .logging_config import configure_logging
from .progress_routes import router as progress_router
from .rate_limit import RateLimiter
from .session_routes import router as session_router


configure_logging()
logger = logging.getLogger(__name__)


def _error_response(status_code: int, message: str, details: Optional[List[Any]] = None) -> JSONResponse:
    payload = ErrorPayload(error=message, details=list(details or []))
    return JSONResponse(status_code=status_code, content=payload.model_dump(by_alias=True))


def _validation_details(exc: RequestValidationError) -> List[Dict[str, Any]]:
    return [
        {"loc": [str(part) for part in error.get("loc", ())], "msg": error.get("msg", ""), "type": error.get("type", "")}
        for error in exc.errors()
    ]


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    application = FastAPI(title="TechEnglish Progress Engine", version="0.1.0")
    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    application.state.rate_limiter = RateLimiter(
        limit=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )

    @application.exception_handler(ProgressError)
    async def _progress_error(request: Request, exc: ProgressError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("Request to %s failed: %s", request.url.path, exc.message)
        return _error_response(exc.status_code, exc.message, exc.details)

    @application.exception_handler(RequestValidationError)
    async def _request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return _error_response(status.HTTP_400_BAD_REQUEST, "Invalid request", _validation_details(exc))

    @application.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return _error_response(exc.status_code, str(exc.detail))

    application.include_router(progress_router)
    application.include_router(session_router)
    application.include_router(achievement_router)
    application.include_router(admin_router)

    @application.get("/healthz")
    def health() -> Dict[str, str]:
        return {"status": "ok"}

    @application.get("/healthz/database")
    def database_health(current: Settings = Depends(get_settings)) -> JSONResponse:
        try:
            engine = get_engine()
            with engine.connect() as connection:
                connection.execute(text("SELECT 1"))
        except (RuntimeError, SQLAlchemyError) as exc:
            logger.warning("Database health check failed: %s", exc)
            return JSONResponse(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                content={"status": "unavailable", "error": str(exc)},
            )
        snapshot = get_pool_snapshot(engine)
        body: Dict[str, Any] = {"status": "ok", "dialect": engine.dialect.name}
        if current.debug_endpoints:
            body["pool"] = snapshot
        else:
            body["pool"] = {key: value for key, value in snapshot.items() if key != "status"}
        return JSONResponse(body)

    return application


settings_snapshot = get_settings()
logger.info("Backend starting with database configured: %s", bool(settings_snapshot.database_url))
app = create_app(settings_snapshot)
