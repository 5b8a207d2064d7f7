# question_bank/config.py
"""
Application configuration.

Settings load from environment variables (prefixed ``QUESTION_BANK_``) and an
optional ``.env`` file.
"""
import sys
from functools import lru_cache
from typing import List

from loguru import logger
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="QUESTION_BANK_", extra="ignore")

    # ================== Storage ====================
    DB_PATH: str = Field("data/exercises_db.sqlite3", description="SQLite file holding tags and questions")
    EXPORT_DIR: str = Field("exports", description="Directory used by save_as for exported files")

    # ================== Images ====================
    IMAGE_MAX_SIZE: int = Field(1000, description="Longest side in pixels after compression")
    IMAGE_QUALITY: int = Field(80, description="JPEG quality used when re-encoding images")

    # ================== Documents ====================
    FORMULA_ALIGNMENT: str = Field("center", description="Alignment of display formulas: left, center or right")
    DOCUMENT_TITLE: str = Field("练习题", description="Default title of exported exam documents")

    # ================== Server ====================
    CORS_ORIGINS: List[str] = ["http://localhost:5173", "http://127.0.0.1:5173"]
    LOG_LEVEL: str = "INFO"


@lru_cache()
def get_settings() -> Settings:
    return Settings()


def configure_logging(level: str = "INFO") -> None:
    logger.remove()  # Remove default handler
    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>",
        level=level
    )
