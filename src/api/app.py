import logging
import time
import sentry_sdk
from contextlib import asynccontextmanager
from pathlib import Path
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from src.api.error import register_error_handlers
from src.api.routes import credits, gallery, generations
from src.depends import get_job_runner

logger = logging.getLogger(__name__)


def _init_sentry(config) -> None:
    sentry_sdk.init(
        dsn=config.DSN_SENTRY,
        environment=config.SENTRY_ENVIRONMENT,
        traces_sample_rate=0.1,
    )
    logger.info(f"Sentry enabled ({config.SENTRY_ENVIRONMENT})")


def create_app(config) -> FastAPI:
    logging.basicConfig(
        level=getattr(logging, str(config.LOG_LEVEL).upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if config.ENABLE_SENTRY and config.DSN_SENTRY:
        _init_sentry(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting try-on service")
        yield
        # Unfinished generations end as CANCELLED and are refunded
        await get_job_runner().shutdown()
        logger.info("Try-on service stopped")

    app = FastAPI(
        title="Virtual Try-On Service",
        description="Credit-metered virtual try-on and video generation",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=config.CORS_ALLOW_CREDENTIALS,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if config.ENABLE_LOGGING_MIDDLEWARE:
        @app.middleware("http")
        async def log_requests(request: Request, call_next):
            start = time.perf_counter()
            response = await call_next(request)
            elapsed_ms = (time.perf_counter() - start) * 1000
            logger.info(
                f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.1f}ms)"
            )
            return response

    register_error_handlers(app)

    app.include_router(credits.router, prefix=config.API_PREFIX)
    app.include_router(generations.router, prefix=config.API_PREFIX)
    app.include_router(gallery.router, prefix=config.API_PREFIX)

    if config.STORAGE_BACKEND == "local":
        Path(config.LOCAL_STORAGE_PATH).mkdir(parents=True, exist_ok=True)
        app.mount("/files", StaticFiles(directory=config.LOCAL_STORAGE_PATH), name="files")

    @app.get("/health", tags=["Health"])
    async def health():
        return {"status": "ok"}

    return app
