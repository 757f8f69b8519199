"""
Configuration settings for PauseGraph.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # Application
    APP_NAME: str = "PauseGraph"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = True

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Workflow Engine
    MAX_SUPERSTEPS: int = 100  # Per invoke/resume call

    # Checkpoints
    CHECKPOINT_BACKEND: str = "memory"  # "memory" or "sqlite"
    CHECKPOINT_DB_PATH: str = "checkpoints.db"

    # Flight search workflows
    FLIGHT_DATASET_PATH: Optional[str] = None  # Bundled dataset when unset
    SEARCH_LIMIT: int = 10
    SELECTION_LIMIT: int = 5

    # Logging
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = True


# Global settings instance
settings = Settings()
