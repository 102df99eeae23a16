from pydantic_settings import BaseSettings, SettingsConfigDict
class Settings(BaseSettings):
    APP_ENV: str = "dev"
    APP_SECRET: str = "change-me"
    DB_URL: str = "sqlite:///pos.db"
    CLOUD_DB_URL: str = "sqlite:///cloud.db"
    TENANT_ID: str | None = None
    TZ: str = "Asia/Kolkata"
    JWT_ISS: str = "posledger"
    JWT_EXP_MIN: int = 30*24*60
    LOG_LEVEL: str = "INFO"
    # outbox sync
    CLOUD_BASE_URL: str = "http://localhost:8000"
    CLOUD_API_TOKEN: str | None = None
    SYNC_ENABLED: bool = True
    SYNC_INTERVAL_SEC: float = 5*60
    SYNC_STARTUP_DELAY_SEC: float = 15
    SYNC_BATCH_SIZE: int = 50
    SYNC_FETCH_LIMIT: int = 500
    SYNC_HTTP_TIMEOUT_SEC: float = 10
    RETENTION_DAYS: int = 90
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")
settings = Settings()
