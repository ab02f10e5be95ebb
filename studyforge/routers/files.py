from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, HTTPException, UploadFile
from starlette.status import HTTP_201_CREATED

from studyforge.core.config import Settings
from studyforge.core.deps import get_orchestrator, get_settings_dep, get_store, get_upload_service
from studyforge.models.files import SessionUploadResponse, UploadResponse
from studyforge.models.sessions import DEFAULT_SESSION_TITLE
from studyforge.services.pipeline import ProcessingOrchestrator
from studyforge.services.store import SessionStore
from studyforge.services.uploads import IncomingFile, UploadService

router = APIRouter(prefix="/api", tags=["files"])

UPLOAD_MESSAGE = "Files uploaded successfully"


async def _read_uploads(files: Optional[List[UploadFile]], settings: Settings) -> List[IncomingFile]:
    if not files:
        raise HTTPException(status_code=400, detail="No files uploaded")
    if len(files) > settings.MAX_FILES_PER_UPLOAD:
        raise HTTPException(
            status_code=400,
            detail=f"Too many files (max {settings.MAX_FILES_PER_UPLOAD} per upload)",
        )
    incoming = []
    for f in files:
        data = await f.read()
        incoming.append(
            IncomingFile(
                original_name=f.filename or "upload",
                mime_type=f.content_type or "",
                data=data,
            )
        )
    return incoming


@router.post(
    "/sessions/{session_id}/upload",
    response_model=UploadResponse,
    status_code=HTTP_201_CREATED,
)
async def upload_files(
    session_id: str,
    background_tasks: BackgroundTasks,
    files: Optional[List[UploadFile]] = File(None),
    store: SessionStore = Depends(get_store),
    uploads: UploadService = Depends(get_upload_service),
    orchestrator: ProcessingOrchestrator = Depends(get_orchestrator),
    settings: Settings = Depends(get_settings_dep),
):
    """
    Enregistre les fichiers puis rend la main tout de suite :
    l'extraction tourne en tâche de fond (statuts visibles via GET .../files).
    """
    incoming = await _read_uploads(files, settings)
    if store.get_session(session_id) is None:
        raise HTTPException(status_code=404, detail="Session not found")

    created = await uploads.register(session_id, incoming)
    background_tasks.add_task(orchestrator.process_files, [f.id for f in created])
    return UploadResponse(message=UPLOAD_MESSAGE, files=created)


@router.post("/upload", response_model=SessionUploadResponse, status_code=HTTP_201_CREATED)
async def upload_files_new_session(
    background_tasks: BackgroundTasks,
    files: Optional[List[UploadFile]] = File(None),
    store: SessionStore = Depends(get_store),
    uploads: UploadService = Depends(get_upload_service),
    orchestrator: ProcessingOrchestrator = Depends(get_orchestrator),
    settings: Settings = Depends(get_settings_dep),
):
    """
    Premier upload sans session : la session est créée automatiquement.
    """
    incoming = await _read_uploads(files, settings)
    # valider avant de créer la session pour ne rien laisser derrière un refus
    uploads.validate(incoming)

    session = store.create_session(settings.DEMO_USER_ID, DEFAULT_SESSION_TITLE)
    created = await uploads.register(session.id, incoming)
    background_tasks.add_task(orchestrator.process_files, [f.id for f in created])
    return SessionUploadResponse(message=UPLOAD_MESSAGE, sessionId=session.id, files=created)
