import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse

from studyforge.core.config import Settings, get_settings
from studyforge.core.errors import StudyForgeError
from studyforge.core.logging import setup_logging
from studyforge.models.content import NotesFormat
from studyforge.routers import files, processing, sessions, system, users
from studyforge.services.extractor import ContentExtractor
from studyforge.services.generation import GenerationClient
from studyforge.services.pipeline import ProcessingOrchestrator
from studyforge.services.store import SessionStore, build_store

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[SessionStore] = None,
    generator: Optional[GenerationClient] = None,
) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings.LOG_LEVEL)

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="API StudyForge : upload de supports de cours, notes et QCM générés",
    )

    # Dépôt + pipeline : une instance par application
    store = store or build_store(settings.STORE_BACKEND, settings.DATABASE_URL)
    store.seed_demo_user(settings.DEMO_USER_ID)
    generator = generator or GenerationClient(settings)

    app.state.settings = settings
    app.state.store = store
    app.state.orchestrator = ProcessingOrchestrator(
        store=store,
        extractor=ContentExtractor(),
        generator=generator,
        upload_dir=settings.UPLOAD_DIR,
        default_notes_format=NotesFormat(settings.DEFAULT_NOTES_FORMAT),
    )

    # Middleware CORS
    origins = [o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins or ["*"],  # fallback si mal configuré
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(StudyForgeError)
    async def studyforge_error_handler(request: Request, exc: StudyForgeError):
        if exc.status_code >= 500:
            logger.error("%s %s -> %s: %s", request.method, request.url.path, type(exc).__name__, exc)
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    # Routers
    app.include_router(system.router)
    app.include_router(users.router)
    app.include_router(sessions.router)
    app.include_router(files.router)
    app.include_router(processing.router)

    # Redirect root → docs
    @app.get("/", include_in_schema=False)
    async def root():
        return RedirectResponse(url="/docs")

    return app
