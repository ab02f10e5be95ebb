import asyncio
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from studyforge.core.errors import ExtractionFailed, NotFound, NoFilesInSession, StudyForgeError
from studyforge.models.content import GeneratedNotes, Note, NotesFormat, Quiz
from studyforge.models.files import FileStatus, UploadedFile
from studyforge.services.extractor import ContentExtractor, ExtractedContent
from studyforge.services.generation import GenerationClient, NotesResult
from studyforge.services.store import SessionStore

logger = logging.getLogger(__name__)

SESSION_CONTEXT_LABEL = "Combined Session Content"


def content_delimiter(original_name: str) -> str:
    return f"\n\n=== Content from {original_name} ===\n"


class ProcessingOrchestrator:
    """
    Pipeline de fond : extraction par fichier (suivi de statut)
    et génération notes / quiz par session ou par fichier.

    process_files et process_session_content sont lancées en tâches de fond
    après la réponse HTTP : elles journalisent leurs erreurs et ne lèvent jamais.
    """

    def __init__(
        self,
        store: SessionStore,
        extractor: ContentExtractor,
        generator: GenerationClient,
        upload_dir: str,
        default_notes_format: NotesFormat = NotesFormat.structured,
    ):
        self.store = store
        self.extractor = extractor
        self.generator = generator
        self.upload_dir = Path(upload_dir)
        self.default_notes_format = default_notes_format

    # ---------- extraction ----------

    async def extract_file(self, file: UploadedFile) -> ExtractedContent:
        path = self.upload_dir / file.filename
        try:
            data = await asyncio.to_thread(path.read_bytes)
        except OSError as e:
            raise ExtractionFailed(file.originalName, "file unreadable") from e
        return await asyncio.to_thread(self.extractor.extract, data, file.originalName, file.mimeType)

    async def process_files(self, file_ids: Iterable[str]) -> None:
        """
        uploaded -> processing -> completed | error, fichier par fichier.
        """
        for file_id in file_ids:
            file = self.store.get_file(file_id)
            if file is None:
                logger.warning("Fichier %s disparu avant traitement", file_id)
                continue
            try:
                file = self.store.update_file(file_id, status=FileStatus.processing)
            except StudyForgeError as e:
                logger.warning("Fichier %s non traité : %s", file_id, e)
                continue
            try:
                content = await self.extract_file(file)
            except StudyForgeError as e:
                logger.error("Traitement de %s échoué : %s", file.originalName, e)
                self._mark_error(file_id)
                continue
            except Exception:
                logger.exception("Erreur inattendue sur %s", file.originalName)
                self._mark_error(file_id)
                continue

            self.store.update_file(file_id, status=FileStatus.completed)
            logger.info(
                "Fichier %s traité (%d caractères, unités=%s)",
                file_id, len(content.text), content.unitCount,
            )

    def _mark_error(self, file_id: str) -> None:
        file = self.store.get_file(file_id)
        if file is not None and file.status.can_transition_to(FileStatus.error):
            self.store.update_file(file_id, status=FileStatus.error)

    # ---------- session-level generation ----------

    def ensure_session_has_files(self, session_id: str) -> List[UploadedFile]:
        if self.store.get_session(session_id) is None:
            raise NotFound("Session not found")
        files = self.store.get_files_by_session(session_id)
        if not files:
            raise NoFilesInSession()
        return files

    async def combine_session_text(self, files: Iterable[UploadedFile]) -> str:
        combined = ""
        for file in files:
            try:
                content = await self.extract_file(file)
            except StudyForgeError as e:
                logger.error("Fichier %s ignoré : %s", file.filename, e)
                continue
            combined += content_delimiter(file.originalName) + content.text
        return combined

    async def process_session_content(
        self,
        session_id: str,
        generate_notes: bool = True,
        generate_quiz: bool = True,
        notes_format: Optional[NotesFormat] = None,
    ) -> None:
        files = self.store.get_files_by_session(session_id)
        if not files:
            logger.error("Session %s : aucun fichier à traiter", session_id)
            return

        combined = await self.combine_session_text(files)
        if not combined.strip():
            logger.error("Session %s : aucun contenu extrait", session_id)
            return

        if generate_notes:
            try:
                await self.create_notes(session_id, combined, SESSION_CONTEXT_LABEL, notes_format)
            except StudyForgeError as e:
                logger.error("Session %s : génération des notes échouée : %s", session_id, e)
            except Exception:
                logger.exception("Session %s : erreur inattendue (notes)", session_id)

        if generate_quiz:
            try:
                await self.create_quiz(session_id, combined, SESSION_CONTEXT_LABEL)
            except StudyForgeError as e:
                logger.error("Session %s : génération du quiz échouée : %s", session_id, e)
            except Exception:
                logger.exception("Session %s : erreur inattendue (quiz)", session_id)

    # ---------- single-file generation ----------

    def _session_file(self, session_id: str, file_id: str) -> UploadedFile:
        if self.store.get_session(session_id) is None:
            raise NotFound("Session not found")
        file = self.store.get_file(file_id)
        if file is None or file.sessionId != session_id:
            raise NotFound("File not found")
        return file

    async def generate_notes_for_file(
        self, session_id: str, file_id: str, notes_format: Optional[NotesFormat] = None
    ) -> Note:
        file = self._session_file(session_id, file_id)
        content = await self.extract_file(file)
        return await self.create_notes(
            session_id, content.text, file.originalName, notes_format, extra={"fileId": file.id}
        )

    async def generate_quiz_for_file(self, session_id: str, file_id: str) -> Quiz:
        file = self._session_file(session_id, file_id)
        content = await self.extract_file(file)
        return await self.create_quiz(session_id, content.text, file.originalName)

    # ---------- persistence ----------

    async def create_notes(
        self,
        session_id: str,
        text: str,
        context_label: str,
        notes_format: Optional[NotesFormat] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> Note:
        fmt = notes_format or self.default_notes_format
        result = await self.generator.generate_notes(text, context_label, fmt)
        metadata: Dict[str, Any] = {
            "type": "ai-generated",
            "format": fmt.value,
            "generatedAt": datetime.now(timezone.utc).isoformat(),
            "source": self.generator.engine,
            "model": self.generator.model,
        }
        if extra:
            metadata.update(extra)
        note = self.store.create_note(session_id, serialize_notes(result), metadata)
        logger.info("Session %s : note %s créée (%s)", session_id, note.id, fmt.value)
        return note

    async def create_quiz(self, session_id: str, text: str, context_label: str) -> Quiz:
        generated = await self.generator.generate_quiz(text, context_label)
        quiz = self.store.create_quiz(session_id, generated.title, generated.questions)
        logger.info(
            "Session %s : quiz %s créé (%d questions)", session_id, quiz.id, len(quiz.questions)
        )
        return quiz


def serialize_notes(result: NotesResult) -> str:
    if isinstance(result, GeneratedNotes):
        return json.dumps(result.model_dump(), ensure_ascii=False)
    return result
