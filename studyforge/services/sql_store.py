from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session as DbSession

from studyforge.core.errors import NotFound
from studyforge.db.database import Base, make_engine, make_session_factory
from studyforge.db.models import FileRow, NoteRow, QuizRow, SessionRow, UserRow
from studyforge.models.content import Note, Quiz, QuizQuestion
from studyforge.models.files import FileStatus, UploadedFile
from studyforge.models.sessions import Session, User
from studyforge.services.store import SessionStore, new_id, utcnow

logger = logging.getLogger(__name__)


def _aware(dt: datetime) -> datetime:
    # SQLite rend des datetimes naïfs
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def _user(row: UserRow) -> User:
    return User(
        id=row.id,
        username=row.username,
        email=row.email,
        password=row.password,
        createdAt=_aware(row.created_at),
    )


def _session(row: SessionRow) -> Session:
    return Session(id=row.id, userId=row.user_id, title=row.title, createdAt=_aware(row.created_at))


def _file(row: FileRow) -> UploadedFile:
    return UploadedFile(
        id=row.id,
        sessionId=row.session_id,
        filename=row.filename,
        originalName=row.original_name,
        mimeType=row.mime_type,
        size=row.size,
        status=FileStatus(row.status),
        createdAt=_aware(row.created_at),
    )


def _note(row: NoteRow) -> Note:
    return Note(
        id=row.id,
        sessionId=row.session_id,
        content=row.content,
        metadata=row.metadata_json,
        createdAt=_aware(row.created_at),
    )


def _quiz(row: QuizRow) -> Quiz:
    return Quiz(
        id=row.id,
        sessionId=row.session_id,
        title=row.title,
        questions=[QuizQuestion.model_validate(q) for q in row.questions],
        createdAt=_aware(row.created_at),
    )


class SqlSessionStore(SessionStore):
    """
    Backend SQLAlchemy. Une transaction courte par opération ;
    aucune session DB n'est gardée ouverte entre deux appels.
    """

    def __init__(self, database_url: str) -> None:
        self.engine = make_engine(database_url)
        Base.metadata.create_all(bind=self.engine)
        self._session_factory = make_session_factory(self.engine)
        logger.info("Store SQL prêt (%s)", self.engine.url)

    def _db(self) -> DbSession:
        return self._session_factory()

    def _require_session_row(self, db: DbSession, session_id: str) -> None:
        if db.get(SessionRow, session_id) is None:
            raise NotFound(f"Session not found: {session_id}")

    # ---------- users ----------

    def get_user(self, user_id: str) -> Optional[User]:
        with self._db() as db:
            row = db.get(UserRow, user_id)
            return _user(row) if row else None

    def get_user_by_username(self, username: str) -> Optional[User]:
        with self._db() as db:
            row = db.execute(select(UserRow).where(UserRow.username == username)).scalar_one_or_none()
            return _user(row) if row else None

    def get_user_by_email(self, email: str) -> Optional[User]:
        with self._db() as db:
            row = db.execute(select(UserRow).where(UserRow.email == email)).scalar_one_or_none()
            return _user(row) if row else None

    def create_user(
        self, username: str, email: str, password: str, user_id: Optional[str] = None
    ) -> User:
        row = UserRow(
            id=user_id or new_id(),
            username=username,
            email=email,
            password=password,
            created_at=utcnow(),
        )
        with self._db() as db:
            db.add(row)
            db.commit()
            return _user(row)

    # ---------- sessions ----------

    def get_session(self, session_id: str) -> Optional[Session]:
        with self._db() as db:
            row = db.get(SessionRow, session_id)
            return _session(row) if row else None

    def get_sessions_by_user(self, user_id: str) -> List[Session]:
        with self._db() as db:
            rows = db.execute(select(SessionRow).where(SessionRow.user_id == user_id)).scalars().all()
            return [_session(r) for r in rows]

    def create_session(self, user_id: str, title: str) -> Session:
        with self._db() as db:
            if db.get(UserRow, user_id) is None:
                raise NotFound(f"User not found: {user_id}")
            row = SessionRow(id=new_id(), user_id=user_id, title=title, created_at=utcnow())
            db.add(row)
            db.commit()
            return _session(row)

    # ---------- files ----------

    def get_file(self, file_id: str) -> Optional[UploadedFile]:
        with self._db() as db:
            row = db.get(FileRow, file_id)
            return _file(row) if row else None

    def get_files_by_session(self, session_id: str) -> List[UploadedFile]:
        with self._db() as db:
            rows = (
                db.execute(
                    select(FileRow).where(FileRow.session_id == session_id).order_by(FileRow.created_at)
                )
                .scalars()
                .all()
            )
            return [_file(r) for r in rows]

    def create_file(
        self, session_id: str, filename: str, original_name: str, mime_type: str, size: int
    ) -> UploadedFile:
        with self._db() as db:
            self._require_session_row(db, session_id)
            row = FileRow(
                id=new_id(),
                session_id=session_id,
                filename=filename,
                original_name=original_name,
                mime_type=mime_type,
                size=size,
                status=FileStatus.uploaded.value,
                created_at=utcnow(),
            )
            db.add(row)
            db.commit()
            return _file(row)

    def _save_file(self, file: UploadedFile) -> None:
        with self._db() as db:
            row = db.get(FileRow, file.id)
            if row is None:
                raise NotFound(f"File not found: {file.id}")
            row.filename = file.filename
            row.original_name = file.originalName
            row.mime_type = file.mimeType
            row.size = file.size
            row.status = file.status.value
            db.commit()

    # ---------- notes ----------

    def get_note(self, note_id: str) -> Optional[Note]:
        with self._db() as db:
            row = db.get(NoteRow, note_id)
            return _note(row) if row else None

    def get_notes_by_session(self, session_id: str) -> List[Note]:
        with self._db() as db:
            rows = (
                db.execute(
                    select(NoteRow).where(NoteRow.session_id == session_id).order_by(NoteRow.created_at)
                )
                .scalars()
                .all()
            )
            return [_note(r) for r in rows]

    def create_note(
        self, session_id: str, content: str, metadata: Optional[Dict[str, Any]] = None
    ) -> Note:
        with self._db() as db:
            self._require_session_row(db, session_id)
            row = NoteRow(
                id=new_id(),
                session_id=session_id,
                content=content,
                metadata_json=metadata or None,
                created_at=utcnow(),
            )
            db.add(row)
            db.commit()
            return _note(row)

    # ---------- quizzes ----------

    def get_quiz(self, quiz_id: str) -> Optional[Quiz]:
        with self._db() as db:
            row = db.get(QuizRow, quiz_id)
            return _quiz(row) if row else None

    def get_quizzes_by_session(self, session_id: str) -> List[Quiz]:
        with self._db() as db:
            rows = (
                db.execute(
                    select(QuizRow).where(QuizRow.session_id == session_id).order_by(QuizRow.created_at)
                )
                .scalars()
                .all()
            )
            return [_quiz(r) for r in rows]

    def create_quiz(
        self, session_id: str, title: str, questions: Sequence[QuizQuestion | Dict[str, Any]]
    ) -> Quiz:
        validated = [QuizQuestion.model_validate(q) for q in questions]
        with self._db() as db:
            self._require_session_row(db, session_id)
            row = QuizRow(
                id=new_id(),
                session_id=session_id,
                title=title,
                questions=[q.model_dump() for q in validated],
                created_at=utcnow(),
            )
            db.add(row)
            db.commit()
            return _quiz(row)
