from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = "Wallet Expense API"
    app_env: str = "dev"
    log_level: str = "INFO"
    secret_key: str = "change-me"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24 * 7
    database_url: str = "sqlite+aiosqlite:///./wallet.db"
    offline_queue_url: str = "sqlite+aiosqlite:///./wallet-offline.db"
    cors_allow_origins: str = "http://localhost:3000"
    category_cache_ttl_seconds: int = 300
    sync_interval_seconds: int = 300
    sync_scheduler_enabled: bool = True
    connectivity_probe_url: str | None = None
    connectivity_probe_timeout_seconds: float = 5.0
    llm_provider: str = "mock"
    gemini_api_key: str | None = None
    gemini_model: str = "gemini-2.0-flash"
    media_poll_interval_seconds: float = 2.0
    media_poll_max_attempts: int = 30
    media_poll_deadline_seconds: float = 120.0
    media_max_upload_mb: int = 10

    @property
    def cors_origins(self) -> list[str]:
        return [x.strip() for x in self.cors_allow_origins.split(",") if x.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()
