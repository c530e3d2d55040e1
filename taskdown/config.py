from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
  model_config = SettingsConfigDict(env_file=".env", extra="ignore")

  database_url: str = "sqlite+aiosqlite:///./taskdown.db"
  database_echo: bool = False
  app_version: str = "0.1.0"
  build_sha: str = "dev"
  api_docs_enabled: bool = True

  log_level: str = "INFO"
  log_json: bool = False

  cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173"
  redis_url: str | None = None

  # Upper bound for a single request, storage calls included.
  request_timeout_seconds: float = 30.0
  rate_limit_window_seconds: int = 60

  seed_admin_username: str = "admin"
  seed_admin_email: str = "admin@example.com"
  seed_admin_password: str | None = None

  def cors_origin_list(self) -> list[str]:
    return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


settings = Settings()
