"""
Assessment Engine Configuration Settings

Quiz defaults, scoring oracle access and snapshot persistence are all
read from the environment (or a local .env file).
"""
from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Configuration for the assessment engine service."""

    # API Settings
    APP_NAME: str = "Adaptive Assessment Engine"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"
    PORT: int = 5050

    # Quiz defaults
    DEFAULT_QUESTION_COUNT: int = 8
    MAX_QUESTION_COUNT: int = 20
    DEFAULT_DURATION_MINUTES: int = 20
    MIN_DURATION_MINUTES: int = 5
    TOTAL_MARKS: float = 100.0
    DEFAULT_INITIAL_LEVEL: str = "intermediate"

    # Scoring oracle (OpenAI-compatible chat completions)
    SCORING_ORACLE_API_KEY: Optional[str] = None
    SCORING_ORACLE_BASE_URL: str = "https://api.openai.com/v1"
    SCORING_ORACLE_MODEL: str = "gpt-4-turbo"
    SCORING_ORACLE_TIMEOUT_SECONDS: float = 12.0

    # Snapshot persistence (Redis write-behind)
    SNAPSHOT_PERSISTENCE: bool = False
    REDIS_URL: str = "redis://localhost:6379/0"
    SNAPSHOT_TTL_SECONDS: int = 7 * 24 * 3600
    PERSIST_MAX_RETRIES: int = 3

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
