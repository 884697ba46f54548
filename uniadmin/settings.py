from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    App settings.

    Notes:
    - Defaults are local and deterministic (SQLite file next to the repo, dev secrets).
    - Every value can be overridden with a `UNIADMIN_` prefixed env var.
    - Access tokens embed the caller's resolved action codes. Changes to the
      identity graph reach a user only on their next login/refresh, so
      `access_token_ttl_seconds` is also the upper bound on permission staleness.
    """

    model_config = SettingsConfigDict(env_prefix="UNIADMIN_", extra="ignore")

    db_url: str | None = None
    log_level: str = "INFO"

    seed_config_path: str | None = None
    seed_on_startup: bool = True

    jwt_access_secret: str = "dev-access-secret-change-me-0123456789"
    jwt_refresh_secret: str = "dev-refresh-secret-change-me-0123456789"
    jwt_algorithm: str = "HS256"
    access_token_ttl_seconds: int = 15 * 60
    refresh_token_ttl_seconds: int = 7 * 24 * 3600
    clock_skew_seconds: int = 30

    # When false, 403 responses omit the missing action code (it is still logged).
    expose_denied_action: bool = True

    visa_reminder_window_days: int = 30
    bcrypt_rounds: int = 12

    def resolved_db_url(self) -> str:
        if self.db_url:
            return self.db_url

        repo_root = Path(__file__).resolve().parents[1]
        db_path = repo_root / "uniadmin.db"
        return f"sqlite:///{db_path}"

    def resolved_seed_config_path(self) -> Path:
        if self.seed_config_path:
            return Path(self.seed_config_path)

        repo_root = Path(__file__).resolve().parents[1]
        return repo_root / "config" / "identity_seed.yaml"


@lru_cache
def get_settings() -> Settings:
    return Settings()
