from functools import lru_cache
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_PUBLIC_DIR = Path(__file__).resolve().parents[1] / "public"
_DISABLED_FLAG_VALUES = {"false", "0", "no", "off"}


class Settings(BaseSettings):
    app_name: str = "alt_history"
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"

    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.5-flash"
    gemini_image_model: str = "imagen-4.0-fast-generate-001"
    gemini_enable_images: bool = True
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta/openai"
    upstream_timeout_s: float = 120.0

    public_dir: Path = DEFAULT_PUBLIC_DIR

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @field_validator("gemini_enable_images", mode="before")
    @classmethod
    def _parse_enable_flag(cls, value: object) -> bool:
        if isinstance(value, bool):
            return value
        return str(value).strip().lower() not in _DISABLED_FLAG_VALUES

    @field_validator("gemini_base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
