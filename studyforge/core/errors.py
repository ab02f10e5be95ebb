from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_404_NOT_FOUND,
    HTTP_409_CONFLICT,
    HTTP_413_REQUEST_ENTITY_TOO_LARGE,
    HTTP_415_UNSUPPORTED_MEDIA_TYPE,
    HTTP_422_UNPROCESSABLE_ENTITY,
    HTTP_500_INTERNAL_SERVER_ERROR,
    HTTP_502_BAD_GATEWAY,
    HTTP_503_SERVICE_UNAVAILABLE,
)


class StudyForgeError(Exception):
    """
    Erreur métier. Chaque sous-classe porte le code HTTP renvoyé
    quand elle remonte jusqu'à une route (voir main.create_app).
    """

    status_code: int = HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Internal error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFound(StudyForgeError):
    status_code = HTTP_404_NOT_FOUND
    default_message = "Not found"


class UnsupportedFormat(StudyForgeError):
    status_code = HTTP_415_UNSUPPORTED_MEDIA_TYPE
    default_message = "Invalid file type. Only PDF and PowerPoint files are allowed."


class FileTooLarge(StudyForgeError):
    status_code = HTTP_413_REQUEST_ENTITY_TOO_LARGE
    default_message = "File too large"


class UploadFailed(StudyForgeError):
    default_message = "Failed to upload files"


class ExtractionFailed(StudyForgeError):
    status_code = HTTP_422_UNPROCESSABLE_ENTITY

    def __init__(self, file_name: str, reason: str | None = None):
        self.file_name = file_name
        message = f"Failed to process file: {file_name}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class NoContent(StudyForgeError):
    status_code = HTTP_422_UNPROCESSABLE_ENTITY
    default_message = "No content to generate from"


class NotConfigured(StudyForgeError):
    status_code = HTTP_503_SERVICE_UNAVAILABLE
    default_message = "Generation service is not configured. Set OPENAI_API_KEY."


class InvalidModelResponse(StudyForgeError):
    status_code = HTTP_502_BAD_GATEWAY
    default_message = "Model did not return valid JSON"


class GenerationFailed(StudyForgeError):
    status_code = HTTP_502_BAD_GATEWAY
    default_message = "Content generation failed"


class NoFilesInSession(StudyForgeError):
    status_code = HTTP_400_BAD_REQUEST
    default_message = "No files found for this session"


class InvalidStatusTransition(StudyForgeError):
    status_code = HTTP_409_CONFLICT
    default_message = "Invalid file status transition"
