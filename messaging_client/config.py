# messaging_client/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict


class ClientConfig(BaseSettings):
    API_BASE_URL: str = "http://localhost:8000"
    AUTH_URL: str = "http://localhost:8000/auth"
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    SEND_TIMEOUT_SECONDS: float = 15.0
    REQUEST_TIMEOUT_SECONDS: float = 10.0
    TOKEN_REFRESH_MARGIN_SECONDS: int = 60
    REALTIME_RECONNECT_DELAY_SECONDS: float = 5.0
    KEYRING_SERVICE: str = "rave-messaging"
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env", env_prefix="MESSAGING_", extra="ignore"
    )
