from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

DEFAULT_SESSION_TITLE = "New Learning Session"


class UserPublic(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    username: str
    email: str
    createdAt: datetime


class User(UserPublic):
    password: str


class Session(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    userId: str
    title: str
    createdAt: datetime


class SessionWithStats(Session):
    filesCount: int = 0
    notesCount: int = 0
    quizQuestionsCount: int = 0


class SessionCreate(BaseModel):
    title: Optional[str] = Field(None, description="Titre (défaut : New Learning Session)")
