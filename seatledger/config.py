from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    APP_NAME: str = "SeatLedger"
    DEBUG: bool = False
    DATABASE_URL: str = "sqlite+aiosqlite:///./seatledger.db"
    SECRET_KEY: str = "replace-me"
    # JWT / auth settings
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    # Seat holds
    HOLD_TTL_SECONDS: int = 300
    MAX_SEATS_PER_HOLD: int = 5
    HOLD_SWEEP_INTERVAL_SECONDS: float = 5.0
    # Durable booking writes after confirmation
    PERSIST_MAX_ATTEMPTS: int = 3
    PERSIST_RETRY_BACKOFF_SECONDS: float = 0.2
    SENTRY_DSN: str = ""


settings = Settings()
