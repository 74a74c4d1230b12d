from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parents[2]  # backend/
(BASE_DIR / "_data").mkdir(exist_ok=True)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    APP_ENV: str = "dev"
    API_PREFIX: str = "/api"
    DATABASE_URL: str = "sqlite:///./_data/dev.db"
    CORS_ORIGINS: str = "http://localhost:5173,http://127.0.0.1:5173"
    REDIS_URL: str = "redis://localhost:6379/0"
    ADMIN_TOKEN: str = "change-me"
    LOG_LEVEL: str = "INFO"

    CONTENT_DATA_DIR: Path = BASE_DIR / "_data" / "content"
    CONTENT_CACHE_TTL_SECONDS: int = 3600

    LOCK_TTL_SECONDS: float = 30.0
    LOCK_TIMEOUT_SECONDS: float = 5.0
    LOCK_RETRY_INTERVAL_SECONDS: float = 0.1

    WATCHER_ENABLED: bool = True
    WATCHER_DEBOUNCE_SECONDS: float = 5.0

    LABEL_SYNC_ENABLED: bool = True
    LABEL_SYNC_HOUR: int = 3
    LABEL_SYNC_MINUTE: int = 0

    @property
    def cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def is_dev(self) -> bool:
        return self.APP_ENV == "dev"


settings = Settings()
