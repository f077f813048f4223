"""
Application configuration via environment variables.
Uses pydantic-settings for validation and type safety.
"""

from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── App ──────────────────────────────────────────────
    app_name: str = "GeminiChatStream"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"

    # ── Gemini ───────────────────────────────────────────
    # Read once per process; an empty key is reported as a configuration error
    gemini_api_key: str = ""
    gemini_pro_model: str = "gemini-2.5-pro-preview-06-05"
    gemini_smart_model: str = "gemini-2.5-flash-preview-05-20"
    gemini_internet_model: str = "gemini-2.0-flash-exp"

    # ── Requests ─────────────────────────────────────────
    max_message_length: int = 100_000

    # ── CORS ─────────────────────────────────────────────
    cors_origins: str = "http://localhost:3000"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
    }

    @property
    def gemini_configured(self) -> bool:
        return bool(self.gemini_api_key and self.gemini_api_key.strip())

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()
