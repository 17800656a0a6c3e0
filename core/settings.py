from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class CustomSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )


class AppSettings(CustomSettings):
    ENVIRONMENT: Literal["local", "dev", "prod", "test"] = Field(default="local")
    HOST: str = Field(default="0.0.0.0")
    PORT: int = Field(default=3001)
    LOG_LEVEL: str = Field(default="INFO")
    JSON_LOGS: bool = Field(default=False)


class DatabaseSettings(CustomSettings):
    """Storage location.

    Set via env vars:
    - DATABASE_URL (any SQLAlchemy async URL, e.g. postgresql+asyncpg://...)
    - DATABASE_AUTO_CREATE
    """

    DATABASE_URL: str = Field(default="sqlite+aiosqlite:///./db.sqlite")
    DATABASE_AUTO_CREATE: bool = Field(default=True)


class LLMSettings(CustomSettings):
    """Configuration for the upstream completion service.

    Set via env vars:
    - LLM_PROVIDER (echo | mock | ollama)
    - LLM_URL
    - OLLAMA_URL
    - OLLAMA_MODEL
    - LLM_TIMEOUT_SECONDS
    - LLM_MAX_ATTEMPTS
    - LLM_BACKOFF_BASE_SECONDS
    """

    LLM_PROVIDER: Literal["echo", "mock", "ollama"] = Field(default="mock")
    LLM_URL: str = Field(default="http://localhost:5001/complete")
    OLLAMA_URL: str = Field(default="http://localhost:11434")
    OLLAMA_MODEL: str = Field(default="llama3")
    LLM_TIMEOUT_SECONDS: float = Field(default=12.0, gt=0)
    LLM_MAX_ATTEMPTS: int = Field(default=3, ge=1)
    LLM_BACKOFF_BASE_SECONDS: float = Field(default=1.0, ge=0)


class LifecycleSettings(CustomSettings):
    PURGE_DELAY_SECONDS: float = Field(default=5.0, ge=0)
    PAGE_SIZE: int = Field(default=20, ge=1)
    MAX_PAGE_SIZE: int = Field(default=100, ge=1)

    @model_validator(mode="after")
    def validate_page_sizes(self):
        if self.PAGE_SIZE > self.MAX_PAGE_SIZE:
            raise ValueError("PAGE_SIZE must not exceed MAX_PAGE_SIZE")
        return self


class Settings(BaseModel):
    APP: AppSettings = Field(default_factory=AppSettings)
    DATABASE: DatabaseSettings = Field(default_factory=DatabaseSettings)
    LLM: LLMSettings = Field(default_factory=LLMSettings)
    LIFECYCLE: LifecycleSettings = Field(default_factory=LifecycleSettings)


@lru_cache
def get_settings() -> Settings:
    return Settings()


SETTINGS = get_settings()
