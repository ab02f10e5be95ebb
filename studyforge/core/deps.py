from fastapi import Depends, Request

from studyforge.core.config import Settings
from studyforge.services.pipeline import ProcessingOrchestrator
from studyforge.services.store import SessionStore
from studyforge.services.uploads import UploadService


def get_settings_dep(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> SessionStore:
    """
    Le dépôt est construit une fois par create_app et partagé par les routes.
    """
    return request.app.state.store


def get_orchestrator(request: Request) -> ProcessingOrchestrator:
    return request.app.state.orchestrator


def get_upload_service(
    store: SessionStore = Depends(get_store),
    settings: Settings = Depends(get_settings_dep),
) -> UploadService:
    """
    Fournit le service d'upload en dépendance (DI).
    """
    return UploadService(store, upload_dir=settings.UPLOAD_DIR, max_upload_mb=settings.MAX_UPLOAD_MB)
