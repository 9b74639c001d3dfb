from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from cars import router as cars_router
from core import db, metrics
from core.config import Config, get_config
from core.errors import AppError, error_response
from core.logging import setup_logging
from core.middleware import CorrelationIdMiddleware, RequestLoggingMiddleware
from seeder.scheduler import SeedScheduler
from users import router as users_router


def _validation_messages(exc: RequestValidationError) -> list[str]:
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path"))
        message = error.get("msg", "Invalid value")
        messages.append(f"{location}: {message}" if location else message)
    return messages


def create_app(config: Config | None = None) -> FastAPI:
    config = config or get_config()
    log_settings = config.logging
    setup_logging(
        level=log_settings["level"],
        fmt=log_settings["format"],
        file_enabled=log_settings["file_enabled"],
        file_path=log_settings["file_path"],
        file_max_bytes=log_settings["file_max_bytes"],
        file_backups=log_settings["file_backups"],
    )

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        # One pool per process; the seeding loop needs it, so it starts after.
        await db.init_pool(config)
        scheduler = SeedScheduler(config)
        scheduler.start()
        try:
            yield
        finally:
            await scheduler.stop()
            await db.close_pool()

    application = config.application
    app = FastAPI(
        title=application["name"],
        version=application["version"],
        lifespan=lifespan,
    )
    app.state.config = config

    metrics_settings = config.metrics
    # Added last runs first: correlation id is bound before request logging.
    app.add_middleware(RequestLoggingMiddleware, metrics_path=metrics_settings["path"])
    app.add_middleware(CorrelationIdMiddleware, metrics_path=metrics_settings["path"])

    cors = config.cors
    if cors["enabled"]:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors["origins"],
            allow_credentials=cors["credentials"],
            allow_methods=["*"],
            allow_headers=["*"],
            expose_headers=["X-Correlation-ID"],
        )

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        return error_response(request, exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return error_response(request, 400, _validation_messages(exc))

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return error_response(request, exc.status_code, exc.detail)

    app.include_router(users_router.router, tags=["users"])
    app.include_router(cars_router.router, tags=["cars"])

    if metrics_settings["enabled"]:

        @app.get(metrics_settings["path"], include_in_schema=False)
        async def metrics_endpoint() -> Response:
            db.refresh_pool_metrics()
            body, content_type = metrics.render()
            return Response(content=body, media_type=content_type)

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok"}

    return app


app = create_app()
