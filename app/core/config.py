"""
Central configuration. All API keys and settings in one place.
"""

from functools import lru_cache
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- Environment ---
    env: str = Field(default="development", alias="ENV")
    log_level: str = Field(default="info", alias="LOG_LEVEL")

    # --- LLM (decision oracle) ---
    gemini_api_key: str = Field(default="", alias="GEMINI_API_KEY")
    openai_api_key: str = Field(default="", alias="OPENAI_API_KEY")
    openai_base_url: str = Field(default="https://api.openai.com/v1", alias="OPENAI_BASE_URL")
    decision_model: str = Field(default="gemini-2.5-flash", alias="DECISION_MODEL")
    decision_temperature: float = Field(default=0.7, alias="DECISION_TEMPERATURE")
    decision_max_tokens: int = Field(default=2048, alias="DECISION_MAX_TOKENS")

    # --- Product search ---
    search_model: str = Field(default="gemini-2.5-flash", alias="SEARCH_MODEL")
    search_result_count: int = Field(default=4, alias="SEARCH_RESULT_COUNT")

    # --- Virtual try-on ---
    tryon_model: str = Field(default="gemini-2.5-flash-image", alias="TRYON_MODEL")

    # --- Assistant ---
    # "ja" (default, matches the shipped prompt) or "en"
    assistant_locale: str = Field(default="ja", alias="ASSISTANT_LOCALE")

    # --- Redis ---
    redis_url: str = Field(default="redis://localhost:6379/0", alias="REDIS_URL")

    # --- API ---
    api_host: str = Field(default="0.0.0.0", alias="API_HOST")
    api_port: int = Field(default=8000, alias="API_PORT")
    cors_origins: str = Field(default="*", alias="CORS_ORIGINS")


@lru_cache
def get_settings() -> Settings:
    return Settings()
