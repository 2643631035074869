"""
Configuration management for the MotherDuck gateway.
"""

import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

BASE_DIR: Path = Path(__file__).parent.parent
load_dotenv(os.path.join(BASE_DIR, ".env"))


def _split_csv(value: str) -> List[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


class Settings:
    """API server configuration, read from the environment on construction."""

    # Server
    API_TITLE: str = "Dex Server API"
    API_DESCRIPTION: str = "REST gateway for read-only queries against MotherDuck"
    API_VERSION: str = "1.0.0"

    def __init__(self):
        self.HOST: str = os.getenv("HOST", "0.0.0.0")
        self.PORT: int = int(os.getenv("PORT", "3000"))
        self.ENV: str = os.getenv("APP_ENV", "development")
        self.LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
        self.LOG_FILE: Optional[str] = os.getenv("LOG_FILE") or None

        # CORS
        self.CORS_ORIGINS: List[str] = _split_csv(os.getenv("CORS_ORIGINS", "*"))

        # MotherDuck
        self.MOTHERDUCK_TOKEN: Optional[str] = os.getenv("MOTHERDUCK_TOKEN") or None
        self.MOTHERDUCK_DATABASE: str = os.getenv("MOTHERDUCK_DATABASE") or "md:default"
        self.MOTHERDUCK_ALIAS: str = os.getenv("MOTHERDUCK_ALIAS") or "md_db"

    @property
    def is_production(self) -> bool:
        return self.ENV.lower() == "production"


def get_settings() -> Settings:
    """Build a fresh Settings from the current environment."""
    return Settings()


settings = Settings()
