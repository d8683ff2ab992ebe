from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Loads keys from process env, and also from a local .env file for convenience.
    model_config = SettingsConfigDict(env_prefix="", extra="ignore", env_file=".env", env_file_encoding="utf-8")

    data_dir: str = "data"
    database_url: str | None = None  # defaults to a SQLite file under data_dir
    log_level: str = "INFO"

    # Storage
    public_base_url: str = "http://localhost:8000/files"
    bucket_uploads: str = "uploads"
    bucket_renders: str = "renders"
    bucket_thumbs: str = "thumbs"
    normalize_uploads: bool = True
    thumbnail_size: int = 512

    # Keys
    openai_api_key: str | None = None
    gemini_api_key: str | None = None

    # Models
    openai_image_model: str = "gpt-image-1"
    openai_text_model: str = "gpt-4.1-mini"
    gemini_image_model: str = "gemini-2.5-flash-image"

    # Generation
    image_providers: list[str] = ["openai"]
    image_size: str = "1024x1024"
    require_transparency: bool = True
    provider_timeout_s: float = 120.0
    fetch_timeout_s: float = 30.0

    # Logo integration
    logo_strategy: str = "masked_guide"
    composite_placement: str = "lower-center"
    composite_blend: str = "overlay"

    # Concepts: "curated" samples the built-in list, "model" asks the text model.
    concept_source: str = "curated"

    # Render fan-out
    default_variants: int = 1
    max_variants: int = 4

    # Per-IP limiter
    rate_limit_requests: int = 10
    rate_limit_window_s: int = 60

    def resolved_database_url(self) -> str:
        return self.database_url or f"sqlite:///{self.data_dir}/dumbgoodies.db"


settings = Settings()
