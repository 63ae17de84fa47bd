from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str = Field(..., alias="DATABASE_URL")
    db_echo: bool = Field(False, alias="DB_ECHO")

    log_level: str = Field("INFO", alias="LOG_LEVEL")

    # Recording a match leaves school status alone unless this is enabled.
    promote_on_record_match: bool = Field(False, alias="PROMOTE_ON_RECORD_MATCH")
    min_suggestion_candidates: int = Field(2, alias="MIN_SUGGESTION_CANDIDATES")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
