"""
Focus Backend Configuration
Central configuration loaded from environment variables.
"""

from pathlib import Path
from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    # App
    APP_NAME: str = "Focus Detection"
    FOCUS_ENV: str = "development"
    DEBUG: bool = True
    LOG_FILE: Optional[str] = None

    # Database
    DATABASE_URL: str = "sqlite:///./focus.db"

    # CORS
    CORS_ORIGINS: str = "http://localhost:5173,http://localhost:3000,http://localhost:8000"

    # Static frontend assets (served at / when the directory exists)
    PUBLIC_DIR: str = "public"

    # Sessions
    DEFAULT_CANDIDATE_NAME: str = "Unknown Candidate"

    @property
    def cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",")]

    @property
    def base_dir(self) -> Path:
        return Path(__file__).resolve().parent.parent.parent

    @property
    def public_path(self) -> Optional[Path]:
        p = Path(self.PUBLIC_DIR)
        if not p.is_absolute():
            p = self.base_dir / p
        return p if p.is_dir() else None

    class Config:
        env_file = Path(__file__).resolve().parent.parent.parent / ".env"
        extra = "allow"


settings = Settings()
