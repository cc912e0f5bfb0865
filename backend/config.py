# backend/config.py
from pydantic_settings import BaseSettings
from typing import ClassVar, Optional
from pathlib import Path

# Resolve absolute path to the .env file for reliable loading
env_path = Path(__file__).parent.parent / ".env"

class Settings(BaseSettings):
    APP_TITLE: str = "Stock Card Ledger API"
    DATABASE_URL: str = "sqlite:///./stock_cards.db"

    # Extra CORS origin for a deployed frontend
    FRONTEND_URL: Optional[str] = None

    # Generated PDF / XLSX files land here before being streamed back
    EXPORT_DIR: str = "storage/exports"

    LOG_LEVEL: str = "INFO"

    class Config:
        env_file: ClassVar[str] = str(env_path)
        extra: ClassVar[str] = "ignore"

settings = Settings()
