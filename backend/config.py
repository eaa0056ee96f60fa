"""
Configuration management for the MathMaster backend.

Uses Pydantic Settings for environment variable management and validation.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Literal


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Redis (session state, saved solutions, preferences)
    redis_url: str = "redis://localhost:6379/0"
    session_ttl_seconds: int = 60 * 60 * 24

    # API Keys
    openai_api_key: str = ""
    google_api_key: str = ""

    # Application
    environment: Literal["development", "staging", "production"] = "development"
    backend_port: int = 8000
    public_url: str = "https://math-equation-solver-112.created.app/"

    # CORS
    cors_origins: list[str] = ["*"]

    # LLM Providers
    default_provider: Literal["gemini", "gpt"] = "gemini"
    vision_provider: Literal["gemini", "gpt"] = "gpt"
    gemini_model: str = "gemini-2.0-flash"
    gpt_model: str = "gpt-4o"
    vision_model: str = "gpt-4o"  # Gemini: "gemini-2.0-flash"

    # Solver
    history_limit: int = 5

    # Uploads
    upload_dir: str = "uploads"
    upload_base_url: str = ""  # Public origin the vision model can fetch uploads from
    max_upload_bytes: int = 10 * 1024 * 1024

    # Logging
    log_level: str = "INFO"


# Global settings instance
settings = Settings()
