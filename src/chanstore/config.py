from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    DATABASE_URL: str = Field(
        "sqlite:///data/chanstore.db",
        description="SQLAlchemy URL of the compaction store"
    )
    DB_ECHO: bool = Field(False, description="Echo emitted SQL to the log")
    AUTO_MIGRATE: bool = Field(
        True,
        description="Apply pending schema migrations when init_db runs"
    )
    LOG_LEVEL: str = Field("INFO", description="Root log level")

# Singleton instance
settings = Settings()
