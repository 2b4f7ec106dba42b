# prokip_bridge/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional

class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite+aiosqlite:///./prokip_bridge.db"
    SQL_ECHO: bool = False

    # Prokip connector API
    PROKIP_API_URL: str = "https://api.prokip.africa"
    PROKIP_CLIENT_ID: str = "6"
    PROKIP_CLIENT_SECRET: str = ""

    # WooCommerce
    WEBHOOK_URL: Optional[str] = None
    WOO_WEBHOOK_SECRET: str = "prokip_secret"
    ENCRYPTION_KEY: Optional[str] = None

    # Sync behaviour
    SYNC_LOOKBACK_DAYS: int = 7
    HTTP_TIMEOUT: int = 15
    HTTP_MAX_RETRIES: int = 3
    LOW_STOCK_THRESHOLD: int = 10

    LOG_LEVEL: str = "INFO"
    ALLOWED_ORIGINS: List[str] = ["http://localhost:3000"]
    ALLOWED_HOSTS: List[str] = ["*"]

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding='utf-8', extra='ignore')

settings = Settings()
