from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Body, Depends
from starlette.status import HTTP_202_ACCEPTED

from studyforge.core.deps import get_orchestrator
from studyforge.models.content import (
    FileNotesRequest,
    FileQuizRequest,
    NotesResponse,
    ProcessRequest,
    ProcessResponse,
    QuizResponse,
)
from studyforge.services.pipeline import ProcessingOrchestrator

router = APIRouter(prefix="/api/sessions", tags=["processing"])


@router.post("/{session_id}/process", response_model=ProcessResponse, status_code=HTTP_202_ACCEPTED)
async def process_session(
    session_id: str,
    background_tasks: BackgroundTasks,
    body: Optional[ProcessRequest] = Body(None),
    orchestrator: ProcessingOrchestrator = Depends(get_orchestrator),
):
    """
    Lance la génération notes / quiz sur tous les fichiers de la session.
    Répond avant la fin du travail ; le résultat apparaît dans .../notes et .../quizzes.
    """
    body = body or ProcessRequest()
    orchestrator.ensure_session_has_files(session_id)

    background_tasks.add_task(
        orchestrator.process_session_content,
        session_id,
        generate_notes=body.generateNotes,
        generate_quiz=body.generateQuiz,
        notes_format=body.notesFormat,
    )
    return ProcessResponse(message="Processing started", sessionId=session_id)


@router.post("/{session_id}/generate-notes", response_model=NotesResponse)
async def generate_notes(
    session_id: str,
    body: FileNotesRequest,
    orchestrator: ProcessingOrchestrator = Depends(get_orchestrator),
):
    note = await orchestrator.generate_notes_for_file(session_id, body.fileId, body.format)
    return NotesResponse(notes=note)


@router.post("/{session_id}/generate-quiz", response_model=QuizResponse)
async def generate_quiz(
    session_id: str,
    body: FileQuizRequest,
    orchestrator: ProcessingOrchestrator = Depends(get_orchestrator),
):
    quiz = await orchestrator.generate_quiz_for_file(session_id, body.fileId)
    return QuizResponse(quiz=quiz)
