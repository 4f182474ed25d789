"""
Central feature flags. One file controls every external dependency.

Set via environment variables (prefix FF_) or .env file.
When a flag is OFF, the system uses a local/mock fallback. Nothing crashes.
"""

from functools import lru_cache
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class FeatureFlags(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Cache / Realtime ─────────────────────────────────────────────
    use_redis: bool = Field(default=False, alias="FF_USE_REDIS")
    # ON  → Redis pub/sub for turn + fallback events. Needs REDIS_URL.
    # OFF → Events are only logged. Nothing breaks.

    # ── LLM Provider ─────────────────────────────────────────────────
    llm_provider: str = Field(default="gemini", alias="FF_LLM_PROVIDER")
    # "gemini" → Google Gemini (default). Needs GEMINI_API_KEY.
    # "openai" → Direct OpenAI. Needs OPENAI_API_KEY.

    # ── Product Search ───────────────────────────────────────────────
    use_search_grounding: bool = Field(default=True, alias="FF_USE_SEARCH_GROUNDING")
    # ON  → Gemini + Google Search grounding finds real products.
    # OFF → Search reports a failure, the placeholder catalog is shown.

    # ── Virtual Try-On ───────────────────────────────────────────────
    enable_tryon: bool = Field(default=True, alias="FF_ENABLE_TRYON")
    # ON  → Gemini image model renders the product on the reference photo.
    # OFF → Synthesis reports a failure, the reference photo is shown as-is.


@lru_cache
def get_flags() -> FeatureFlags:
    return FeatureFlags()
