import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import PlainTextResponse
from fastapi.staticfiles import StaticFiles

from ailearn.core.config import Settings, settings as default_settings
from ailearn.core.handlers import register_exception_handlers
from ailearn.core.log_config import configure_logging
from ailearn.core.middleware import (
    CSRFMiddleware,
    RateLimitMiddleware,
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
)
from ailearn.db.sessions import Database
from ailearn.routes import auth, documents, flashcards, quiz
from ailearn.services.file_storage import FileStorage

logger = logging.getLogger("ailearn")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the API with its own settings, database handle and file storage."""
    settings = settings or default_settings
    configure_logging(settings.LOG_LEVEL)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.storage.ensure_dirs()
        app.state.db.init()
        if settings.AUTO_CREATE_TABLES:
            app.state.db.create_all()
        logger.info(
            "%s v%s starting in %s mode", settings.APP_NAME, settings.APP_VERSION, settings.ENVIRONMENT
        )
        yield
        app.state.db.dispose()
        logger.info("%s stopped", settings.APP_NAME)

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Document upload, quizzes and flashcards for self-study",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.db = Database(settings.DATABASE_URL)
    app.state.storage = FileStorage(
        settings.UPLOAD_DIR,
        max_profile_size=settings.MAX_PROFILE_IMAGE_SIZE,
        max_document_size=settings.MAX_DOCUMENT_SIZE,
        max_files=settings.MAX_UPLOAD_FILES,
    )

    # Last added runs first
    if settings.CSRF_ENABLED:
        app.add_middleware(CSRFMiddleware, auth_cookie_name=settings.AUTH_COOKIE_NAME)
    app.add_middleware(
        RateLimitMiddleware,
        max_requests=settings.RATE_LIMIT_REQUESTS,
        window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(SecurityHeadersMiddleware, hsts=settings.is_production)
    app.add_middleware(RequestLoggingMiddleware)

    register_exception_handlers(app)

    # Register routers
    app.include_router(auth.router)
    app.include_router(documents.router)
    app.include_router(quiz.router)
    app.include_router(flashcards.router)

    # Directory is created on startup
    app.mount("/uploads", StaticFiles(directory=str(settings.UPLOAD_DIR), check_dir=False), name="uploads")

    @app.get("/", response_class=PlainTextResponse, include_in_schema=False)
    def root():
        return "AI Learning Platform API is running..."

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app


app = create_app()
