from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Base
    APP_ENV: str = "dev"  # dev | staging | prod
    APP_NAME: str = "StudyForge API"
    APP_VERSION: str = "0.1.0"

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    # Uploads
    UPLOAD_DIR: str = "./uploads"
    MAX_UPLOAD_MB: int = 50
    MAX_FILES_PER_UPLOAD: int = 10

    # Store
    STORE_BACKEND: str = "memory"  # memory | sql
    DATABASE_URL: str = "sqlite:///./studyforge.db"
    DEMO_USER_ID: str = "demo-user-1"

    # Generation
    OPENAI_API_KEY: str = ""
    OPENAI_MODEL: str = "gpt-4o"
    GENERATION_TIMEOUT_SECONDS: float = 120.0
    MAX_SOURCE_CHARS: int = 60000
    DEFAULT_NOTES_FORMAT: str = "structured"  # structured | html

    # Logging
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = True

    @property
    def max_upload_bytes(self) -> int:
        return self.MAX_UPLOAD_MB * 1024 * 1024


@lru_cache
def get_settings() -> Settings:
    return Settings()
