from __future__ import annotations

import os
from functools import lru_cache
from typing import List, Optional

from dotenv import load_dotenv


load_dotenv()


def _split_origins(raw: str) -> List[str]:
    origins = [item.strip() for item in raw.split(",") if item.strip()]
    return origins or ["*"]


class Settings:
    """Application settings loaded from environment variables.

    Keep all credentials and config centralized here. The Gemini model and
    its sampling parameters are fixed and live in ``tutor.llm``.
    """

    def __init__(self) -> None:
        self.app_env: str = os.getenv("APP_ENV", "development")
        self.gemini_api_key: Optional[str] = os.getenv("GEMINI_API_KEY") or None
        self.host: str = os.getenv("HOST", "0.0.0.0")
        self.port: int = int(os.getenv("PORT", "3000"))
        self.cors_origins: List[str] = _split_origins(os.getenv("CORS_ORIGINS", "*"))
        self.log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
