import copy
import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, TypeVar

from pydantic import BaseModel

from studyforge.core.errors import InvalidStatusTransition, NotFound
from studyforge.models.content import Note, Quiz, QuizQuestion
from studyforge.models.files import FileStatus, UploadedFile
from studyforge.models.sessions import Session, SessionWithStats, User

logger = logging.getLogger(__name__)

DEMO_USERNAME = "john_doe"
DEMO_EMAIL = "john.doe@university.edu"
DEMO_PASSWORD = "demo-password"

# champs qu'un update_file n'a pas le droit de toucher
_IMMUTABLE_FILE_FIELDS = {"id", "sessionId", "createdAt"}


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


M = TypeVar("M", bound=BaseModel)


def _detached(obj: Optional[M]) -> Optional[M]:
    # copie profonde : metadata et questions restent mutables même sur un modèle figé
    return obj.model_copy(deep=True) if obj is not None else None


class SessionStore(ABC):
    """
    Dépôt des entités user / session / file / note / quiz.

    - create_* attribue toujours un id et un createdAt côté serveur ;
    - les lectures par id renvoient None si l'entité n'existe pas ;
    - seules les écritures sur un id inconnu lèvent NotFound.
    """

    # ---------- users ----------

    @abstractmethod
    def get_user(self, user_id: str) -> Optional[User]: ...

    @abstractmethod
    def get_user_by_username(self, username: str) -> Optional[User]: ...

    @abstractmethod
    def get_user_by_email(self, email: str) -> Optional[User]: ...

    @abstractmethod
    def create_user(
        self, username: str, email: str, password: str, user_id: Optional[str] = None
    ) -> User: ...

    # ---------- sessions ----------

    @abstractmethod
    def get_session(self, session_id: str) -> Optional[Session]: ...

    @abstractmethod
    def get_sessions_by_user(self, user_id: str) -> List[Session]: ...

    @abstractmethod
    def create_session(self, user_id: str, title: str) -> Session: ...

    # ---------- files ----------

    @abstractmethod
    def get_file(self, file_id: str) -> Optional[UploadedFile]: ...

    @abstractmethod
    def get_files_by_session(self, session_id: str) -> List[UploadedFile]: ...

    @abstractmethod
    def create_file(
        self, session_id: str, filename: str, original_name: str, mime_type: str, size: int
    ) -> UploadedFile: ...

    @abstractmethod
    def _save_file(self, file: UploadedFile) -> None: ...

    # ---------- notes ----------

    @abstractmethod
    def get_note(self, note_id: str) -> Optional[Note]: ...

    @abstractmethod
    def get_notes_by_session(self, session_id: str) -> List[Note]: ...

    @abstractmethod
    def create_note(
        self, session_id: str, content: str, metadata: Optional[Dict[str, Any]] = None
    ) -> Note: ...

    # ---------- quizzes ----------

    @abstractmethod
    def get_quiz(self, quiz_id: str) -> Optional[Quiz]: ...

    @abstractmethod
    def get_quizzes_by_session(self, session_id: str) -> List[Quiz]: ...

    @abstractmethod
    def create_quiz(
        self, session_id: str, title: str, questions: Sequence[QuizQuestion | Dict[str, Any]]
    ) -> Quiz: ...

    # ---------- shared behaviour ----------

    def update_file(self, file_id: str, **fields: Any) -> UploadedFile:
        """
        Met à jour un fichier. Les changements de statut suivent
        uploaded -> processing -> completed | error.
        """
        current = self.get_file(file_id)
        if current is None:
            raise NotFound(f"File not found: {file_id}")

        forbidden = _IMMUTABLE_FILE_FIELDS.intersection(fields)
        if forbidden:
            raise ValueError(f"Champs non modifiables : {', '.join(sorted(forbidden))}")
        unknown = set(fields) - set(UploadedFile.model_fields)
        if unknown:
            raise ValueError(f"Champs inconnus : {', '.join(sorted(unknown))}")

        if "status" in fields:
            new_status = FileStatus(fields["status"])
            if new_status != current.status and not current.status.can_transition_to(new_status):
                raise InvalidStatusTransition(
                    f"File {file_id}: {current.status.value} -> {new_status.value} is not allowed"
                )
            fields["status"] = new_status

        # revalidé : model_copy(update=...) ne vérifie pas les types
        updated = UploadedFile.model_validate({**current.model_dump(), **fields})
        self._save_file(updated)
        return updated

    def get_sessions_with_stats(self, user_id: str) -> List[SessionWithStats]:
        """
        Sessions de l'utilisateur, les plus récentes d'abord, avec des
        compteurs recalculés à chaque appel depuis les lignes enfants.
        """
        sessions = sorted(self.get_sessions_by_user(user_id), key=lambda s: s.createdAt, reverse=True)
        result: List[SessionWithStats] = []
        for s in sessions:
            quizzes = self.get_quizzes_by_session(s.id)
            result.append(
                SessionWithStats(
                    **s.model_dump(),
                    filesCount=len(self.get_files_by_session(s.id)),
                    notesCount=len(self.get_notes_by_session(s.id)),
                    quizQuestionsCount=sum(len(q.questions) for q in quizzes),
                )
            )
        return result

    def seed_demo_user(self, user_id: str) -> User:
        user = self.get_user(user_id)
        if user is None:
            user = self.create_user(DEMO_USERNAME, DEMO_EMAIL, DEMO_PASSWORD, user_id=user_id)
            logger.info("Utilisateur de démo créé (%s)", user_id)
        return user

    def _require_session(self, session_id: str) -> None:
        if self.get_session(session_id) is None:
            raise NotFound(f"Session not found: {session_id}")


class MemorySessionStore(SessionStore):
    """
    Backend en mémoire (dicts). Une instance par application,
    une instance neuve par test.
    """

    def __init__(self) -> None:
        self._users: Dict[str, User] = {}
        self._sessions: Dict[str, Session] = {}
        self._files: Dict[str, UploadedFile] = {}
        self._notes: Dict[str, Note] = {}
        self._quizzes: Dict[str, Quiz] = {}

    # ---------- users ----------

    def get_user(self, user_id: str) -> Optional[User]:
        return self._users.get(user_id)

    def get_user_by_username(self, username: str) -> Optional[User]:
        return next((u for u in self._users.values() if u.username == username), None)

    def get_user_by_email(self, email: str) -> Optional[User]:
        return next((u for u in self._users.values() if u.email == email), None)

    def create_user(
        self, username: str, email: str, password: str, user_id: Optional[str] = None
    ) -> User:
        user = User(
            id=user_id or new_id(),
            username=username,
            email=email,
            password=password,
            createdAt=utcnow(),
        )
        self._users[user.id] = user
        return user

    # ---------- sessions ----------

    def get_session(self, session_id: str) -> Optional[Session]:
        return self._sessions.get(session_id)

    def get_sessions_by_user(self, user_id: str) -> List[Session]:
        return [s for s in self._sessions.values() if s.userId == user_id]

    def create_session(self, user_id: str, title: str) -> Session:
        if self.get_user(user_id) is None:
            raise NotFound(f"User not found: {user_id}")
        session = Session(id=new_id(), userId=user_id, title=title, createdAt=utcnow())
        self._sessions[session.id] = session
        return session

    # ---------- files ----------

    def get_file(self, file_id: str) -> Optional[UploadedFile]:
        return self._files.get(file_id)

    def get_files_by_session(self, session_id: str) -> List[UploadedFile]:
        return [f for f in self._files.values() if f.sessionId == session_id]

    def create_file(
        self, session_id: str, filename: str, original_name: str, mime_type: str, size: int
    ) -> UploadedFile:
        self._require_session(session_id)
        file = UploadedFile(
            id=new_id(),
            sessionId=session_id,
            filename=filename,
            originalName=original_name,
            mimeType=mime_type,
            size=size,
            status=FileStatus.uploaded,
            createdAt=utcnow(),
        )
        self._files[file.id] = file
        return file

    def _save_file(self, file: UploadedFile) -> None:
        self._files[file.id] = file

    # ---------- notes ----------

    def get_note(self, note_id: str) -> Optional[Note]:
        return _detached(self._notes.get(note_id))

    def get_notes_by_session(self, session_id: str) -> List[Note]:
        return [_detached(n) for n in self._notes.values() if n.sessionId == session_id]

    def create_note(
        self, session_id: str, content: str, metadata: Optional[Dict[str, Any]] = None
    ) -> Note:
        self._require_session(session_id)
        note = Note(
            id=new_id(),
            sessionId=session_id,
            content=content,
            metadata=copy.deepcopy(metadata) or None,
            createdAt=utcnow(),
        )
        self._notes[note.id] = note
        return _detached(note)

    # ---------- quizzes ----------

    def get_quiz(self, quiz_id: str) -> Optional[Quiz]:
        return _detached(self._quizzes.get(quiz_id))

    def get_quizzes_by_session(self, session_id: str) -> List[Quiz]:
        return [_detached(q) for q in self._quizzes.values() if q.sessionId == session_id]

    def create_quiz(
        self, session_id: str, title: str, questions: Sequence[QuizQuestion | Dict[str, Any]]
    ) -> Quiz:
        self._require_session(session_id)
        quiz = Quiz(
            id=new_id(),
            sessionId=session_id,
            title=title,
            questions=[QuizQuestion.model_validate(q) for q in questions],
            createdAt=utcnow(),
        )
        self._quizzes[quiz.id] = quiz
        return _detached(quiz)


def build_store(backend: str, database_url: str | None = None) -> SessionStore:
    """
    Fabrique le backend choisi par STORE_BACKEND.
    """
    if backend == "memory":
        return MemorySessionStore()
    if backend == "sql":
        from studyforge.services.sql_store import SqlSessionStore

        return SqlSessionStore(database_url or "sqlite:///./studyforge.db")
    raise ValueError(f"STORE_BACKEND inconnu : {backend}")
