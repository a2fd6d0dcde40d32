from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    APP_NAME: str = "Focus Cockpit API"
    API_V1_PREFIX: str = "/api/v1"
    LOG_LEVEL: str = "INFO"

    # DB
    DATABASE_URL: str = "sqlite:///./data/cockpit.db"
    # context given to legacy task rows by the startup migration
    DEFAULT_CONTEXT: str = "house"

    # Cron entry point; empty disables it
    CRON_SECRET: str = ""

    # Scheduling windows
    RECURRENCE_WINDOW_DAYS: int = 30
    BLOCK_LOOKBACK_DAYS: int = 7
    BLOCK_LOOKAHEAD_DAYS: int = 14
    TODAY_WINDOW_HOURS: int = 24
    TODAY_BLOCK_LIMIT: int = 12
    TODAY_TASK_LIMIT: int = 25
    MIN_BLOCK_MINUTES: int = 15
    # widest from..to span accepted by expand and instance listing
    MAX_EXPAND_DAYS: int = 366

    class Config:
        env_file = ".env"

settings = Settings()
