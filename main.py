import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from services.assessment_engine.engine import AssessmentEngine
from src.cache.connection import close_redis
from src.core.config import Settings, get_settings
from src.core.logging_config import setup_logging
from src.middleware.rate_limit import RateLimiter, RateLimitingMiddleware, build_rate_limiter
from src.middleware.security_headers import SecurityHeadersMiddleware
from src.routers import assessment as assessment_router

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, limiter: Optional[RateLimiter] = None) -> FastAPI:
    """
    Builds the API. ``limiter`` replaces the backend chosen by settings,
    which tests use to get a fresh in-memory window per app.
    """
    settings = settings or get_settings()
    setup_logging(settings.log_level)

    # Fail fast on a broken catalog instead of on the first request
    engine = assessment_router.load_engine(settings.catalog_path)
    catalog = engine.catalog

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"{settings.app_name} starting, catalog version {catalog.version}")
        yield
        await close_redis()
        logger.info(f"{settings.app_name} stopped")

    app = FastAPI(title=settings.app_name, version=catalog.version, lifespan=lifespan)

    if limiter is None:
        limiter = build_rate_limiter(
            settings.rate_limit_backend,
            settings.rate_limit_max_requests,
            settings.rate_limit_window_seconds,
        )
    app.add_middleware(
        RateLimitingMiddleware,
        limiter=limiter,
        paths=settings.rate_limit_paths,
        messages={lang: catalog.text_for(lang).rate_limit_error for lang in catalog.languages},
        default_language=catalog.default_language,
    )
    app.add_middleware(SecurityHeadersMiddleware)
    # Added last so it wraps everything, 429s included
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.dependency_overrides[get_settings] = lambda: settings

    app.include_router(assessment_router.router, prefix="/api/v1", tags=["assessment"])

    @app.get("/health", tags=["Health Check"])
    async def health(engine: AssessmentEngine = Depends(assessment_router.get_assessment_engine)):
        """Liveness check that also reports which catalog is loaded."""
        return {"status": "ok", "catalog_version": engine.version}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    # Better to run with `uvicorn main:app --reload` from the project root directory
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
