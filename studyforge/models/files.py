from datetime import datetime
from enum import Enum
from typing import List
from pydantic import BaseModel, ConfigDict, Field


class FileStatus(str, Enum):
    uploaded = "uploaded"
    processing = "processing"
    completed = "completed"
    error = "error"

    def can_transition_to(self, new: "FileStatus") -> bool:
        return new in _TRANSITIONS[self]


_TRANSITIONS = {
    FileStatus.uploaded: {FileStatus.processing},
    FileStatus.processing: {FileStatus.completed, FileStatus.error},
    FileStatus.completed: set(),
    FileStatus.error: set(),
}


class UploadedFile(BaseModel):
    # figé : les changements passent par SessionStore.update_file
    model_config = ConfigDict(frozen=True)

    id: str
    sessionId: str
    filename: str = Field(..., description="Nom du fichier sur disque")
    originalName: str = Field(..., description="Nom d'origine côté client")
    mimeType: str
    size: int = Field(..., ge=0, description="Taille en octets")
    status: FileStatus = FileStatus.uploaded
    createdAt: datetime


class UploadResponse(BaseModel):
    message: str
    files: List[UploadedFile]


class SessionUploadResponse(UploadResponse):
    sessionId: str
