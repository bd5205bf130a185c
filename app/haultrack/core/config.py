from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env")

    APP_NAME: str = "HaulTrack"
    SECRET_KEY: str = "change-me"
    ALGORITHM: str = "HS256"
    DATABASE_URL: str = "sqlite+pysqlite:///./haultrack.db"
    METRICS_ENABLED: bool = True
    LOCK_TIMEOUT_SECONDS: float = 10.0
    CONCURRENT_MODIFICATION_RETRIES: int = 1
    DEFAULT_QUANTITY_UNIT: str = "kg"
    CRITICAL_FILL_PERCENT: int = 80
    ACTIVITY_LOG_MAX_PAGE_SIZE: int = 200
    OPS_ENABLE_INTEGRITY_SCAN: bool = True
    SEED_ADMIN_EMAIL: str = "admin@haultrack.local"
    SEED_ADMIN_NAME: str = "Administrator"


settings = Settings()
