from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    SERVICE_NAME: str = "admin-panel"
    SERVICE_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Hosted backend (REST + auth)
    GATEWAY_URL: str = "http://localhost:54321"
    GATEWAY_API_KEY: str = ""
    GATEWAY_TIMEOUT_SEC: float = 10.0

    # Panel session tokens
    SESSION_SECRET: str = "change-me"
    SESSION_ALG: str = "HS256"
    SESSION_TTL_MINUTES: int = 720
    SESSION_COOKIE_NAME: str = "admin_session"
    SESSION_COOKIE_SECURE: bool = False

    CURRENCY_LABEL: str = "SAR"

    class Config:
        env_file = ".env"


@lru_cache
def get_settings() -> Settings:
    return Settings()
