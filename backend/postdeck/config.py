from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    app_name: str = "postdeck"

    # PostgreSQL database (postgresql+asyncpg://...)
    database_url: str = ""  # Set via DATABASE_URL env var
    database_echo: bool = False

    # LinkedIn API
    linkedin_access_token: str = ""  # Set via LINKEDIN_ACCESS_TOKEN env var
    linkedin_profile_id: str = ""  # Set via LINKEDIN_PROFILE_ID env var
    linkedin_api_version: str = "202401"
    linkedin_timeout: float = 30.0

    # Assets
    font_path: str = "assets/fonts"

    # Auto-publisher
    scheduler_enabled: bool = True
    scheduler_interval_minutes: int = 2
    scheduler_batch_size: int = 3

    cors_origins: list[str] = ["*"]
    log_level: str = "INFO"

    host: str = "0.0.0.0"
    port: int = 8000

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
