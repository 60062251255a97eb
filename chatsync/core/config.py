from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_PROJECT_NAME = "ChatSync API"
DEFAULT_API_V1_PREFIX = "/api/v1"
DEFAULT_DATABASE_URL = "sqlite:///./chatsync.db"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file='.env', extra='ignore')

    PROJECT_NAME: str = DEFAULT_PROJECT_NAME
    API_V1_PREFIX: str = DEFAULT_API_V1_PREFIX
    ENV: str = 'development'
    DEBUG: bool = False

    DATABASE_URL: str = DEFAULT_DATABASE_URL
    LOG_LEVEL: str = 'INFO'
    CORS_ORIGINS: list[str] = ['*']

    SECRET_KEY: str = 'change-me'
    ALGORITHM: str = 'HS256'
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7
    AUTO_CREATE_TABLES: bool = False

    ALLOW_REGISTER: bool = True
    ADMIN_EMAIL: Optional[str] = None
    ADMIN_PASSWORD: Optional[str] = None
    ADMIN_USERNAME: str = 'admin'

    # sync client
    REMOTE_BASE_URL: str = 'http://127.0.0.1:8000/api/v1'
    SYNC_GUARD_INTERVAL_MS: int = 2000
    SYNC_SETTLE_DELAY_MS: int = 1000
    SYNC_REQUEST_TIMEOUT: float = 20.0
    LOCAL_STATE_PATH: Optional[str] = None
    CREDENTIALS_PATH: Optional[str] = None

    @field_validator('CORS_ORIGINS', mode='before')
    @classmethod
    def parse_cors_origins(cls, value):  # type: ignore[override]
        if isinstance(value, str):
            value = value.strip()
            if not value:
                return []
            if value == '*':
                return ['*']
            return [item.strip() for item in value.split(',') if item.strip()]
        return value


settings = Settings()
