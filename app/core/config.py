"""Application configuration via environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or .env file."""
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Application
    app_name: str = "Checklist Audit"
    debug: bool = False
    log_dir: str = "~/.logs/checklist_audit"

    # Server
    allowed_origins: str = "*"  # Comma-separated origins, or "*" for all

    # Database
    database_url: str = "sqlite:///./checklist_audit.db"

    # Evidence object store (local filesystem)
    evidence_dir: str = "./evidence_store"

    # Auditing
    save_debounce_seconds: float = 1.0  # Quiescence window before an item edit is written
    max_upload_mb: int = 10
    default_user_id: str = "local-auditor"  # Used when no X-User-Id header is sent


settings = Settings()
