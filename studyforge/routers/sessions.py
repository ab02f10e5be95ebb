from typing import List, Optional

from fastapi import APIRouter, Body, Depends

from studyforge.core.config import Settings
from studyforge.core.deps import get_settings_dep, get_store
from studyforge.models.content import Note, Quiz
from studyforge.models.files import UploadedFile
from studyforge.models.sessions import DEFAULT_SESSION_TITLE, Session, SessionCreate, SessionWithStats
from studyforge.services.store import SessionStore

router = APIRouter(prefix="/api/sessions", tags=["sessions"])


@router.get("", response_model=List[SessionWithStats])
def list_sessions(
    store: SessionStore = Depends(get_store),
    settings: Settings = Depends(get_settings_dep),
):
    return store.get_sessions_with_stats(settings.DEMO_USER_ID)


@router.post("", response_model=Session)
def create_session(
    body: Optional[SessionCreate] = Body(None),
    store: SessionStore = Depends(get_store),
    settings: Settings = Depends(get_settings_dep),
):
    title = (body.title if body else None) or DEFAULT_SESSION_TITLE
    return store.create_session(settings.DEMO_USER_ID, title.strip() or DEFAULT_SESSION_TITLE)


@router.get("/{session_id}/files", response_model=List[UploadedFile])
def list_files(session_id: str, store: SessionStore = Depends(get_store)):
    return store.get_files_by_session(session_id)


@router.get("/{session_id}/notes", response_model=List[Note])
def list_notes(session_id: str, store: SessionStore = Depends(get_store)):
    return store.get_notes_by_session(session_id)


@router.get("/{session_id}/quizzes", response_model=List[Quiz])
def list_quizzes(session_id: str, store: SessionStore = Depends(get_store)):
    return store.get_quizzes_by_session(session_id)
