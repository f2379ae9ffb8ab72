# messaging_service/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppConfig(BaseSettings):
    PROJECT_NAME: str = "Messaging API"
    PROJECT_VERSION: str = "1.0.0"
    PROJECT_DESCRIPTION: str = "Conversations and direct messages for the event platform"
    API_PREFIX: str = "/api"
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    DATABASE_URL: str = "sqlite+aiosqlite:///:memory:"
    MESSAGE_MAX_LENGTH: int = 5000
    MESSAGE_PAGE_SIZE: int = 50
    GROUP_MIN_PARTICIPANTS: int = 3

    model_config = SettingsConfigDict(env_file=".env", extra="allow")
