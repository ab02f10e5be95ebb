from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator


class NotesFormat(str, Enum):
    structured = "structured"
    html = "html"


class NoteSection(BaseModel):
    heading: str = ""
    content: str = ""
    keyPoints: List[str] = Field(default_factory=list)


class GeneratedNotes(BaseModel):
    title: str = "Study Notes"
    sections: List[NoteSection] = Field(default_factory=list)
    summary: str = ""


class QuizQuestion(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    question: str = Field(..., description="Énoncé de la question")
    options: List[str] = Field(..., min_length=2, description="Liste des propositions")
    correctAnswer: int = Field(..., ge=0, description="Index (0-based) de la bonne réponse")
    explanation: str = ""

    @model_validator(mode="after")
    def _correct_answer_in_range(self):
        if self.correctAnswer >= len(self.options):
            raise ValueError(
                f"correctAnswer {self.correctAnswer} hors limites ({len(self.options)} options)"
            )
        return self


class GeneratedQuiz(BaseModel):
    title: str = "Generated Quiz"
    questions: List[QuizQuestion] = Field(default_factory=list)


class Note(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    sessionId: str
    content: str
    metadata: Optional[Dict[str, Any]] = None
    createdAt: datetime


class Quiz(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    sessionId: str
    title: str
    questions: List[QuizQuestion]
    createdAt: datetime


class ProcessRequest(BaseModel):
    generateNotes: bool = True
    generateQuiz: bool = True
    notesFormat: Optional[NotesFormat] = Field(
        None, description="Format des notes. Vide = DEFAULT_NOTES_FORMAT."
    )


class ProcessResponse(BaseModel):
    message: str
    sessionId: str


class FileQuizRequest(BaseModel):
    fileId: str = Field(..., description="ID du fichier de la session")


class FileNotesRequest(FileQuizRequest):
    format: Optional[NotesFormat] = None


class NotesResponse(BaseModel):
    notes: Note


class QuizResponse(BaseModel):
    quiz: Quiz
