"""FastAPI application entrypoint."""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from lokal.config import Settings, get_settings
from lokal.cqrs.bus import Buses
from lokal.cqrs.container import build_buses
from lokal.db.session import SessionLocal
from lokal.errors import LokalError
from lokal.routers import activity, branches, quality, translations
from lokal.schemas.common import ERROR_RESPONSES, ErrorBody, ErrorResponse

logger = logging.getLogger(__name__)

_HTTP_ERROR_CODES = {401: "unauthorized", 403: "forbidden", 404: "not_found", 405: "method_not_allowed"}


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    logging.getLogger("lokal").setLevel(level.upper())


def _error_response(status_code: int, code: str, message: str, details: dict[str, object] | None = None) -> JSONResponse:
    body = ErrorResponse(error=ErrorBody(code=code, message=message, details=details or None))
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


def create_app(settings: Settings | None = None, *, buses: Buses | None = None) -> FastAPI:
    """Build the API; tests pass prebuilt buses to inject stub collaborators."""

    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        _configure_logging(settings.log_level)
        if getattr(app.state, "buses", None) is None:
            app.state.buses = build_buses(settings)
        logger.info("app.startup app_name=%s", settings.app_name)
        yield

    app = FastAPI(title=settings.app_name, version="0.1.0", lifespan=lifespan)
    app.state.buses = buses
    app.state.session_factory = SessionLocal

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(LokalError)
    async def handle_lokal_error(_: Request, exc: LokalError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("api.error code=%s message=%s", exc.code, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"error": exc.to_payload()})

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(_: Request, exc: RequestValidationError) -> JSONResponse:
        errors = [
            {"loc": [str(part) for part in error.get("loc", ())], "msg": str(error.get("msg", ""))}
            for error in exc.errors()
        ]
        return _error_response(422, "validation_error", "Request validation failed", {"errors": errors})

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(_: Request, exc: StarletteHTTPException) -> JSONResponse:
        code = _HTTP_ERROR_CODES.get(exc.status_code, "http_error")
        return _error_response(exc.status_code, code, str(exc.detail))

    app.include_router(branches.router, tags=["branches"], responses=ERROR_RESPONSES)
    app.include_router(translations.router, tags=["translations"], responses=ERROR_RESPONSES)
    app.include_router(quality.router, tags=["quality"], responses=ERROR_RESPONSES)
    app.include_router(activity.router, tags=["activity"], responses=ERROR_RESPONSES)

    @app.get("/health")
    def health() -> dict[str, str]:
        """Simple health check endpoint."""

        return {"status": "ok"}

    return app


app = create_app()
