from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "MDM Admin Console"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Backend
    API_BASE_URL: str = "http://localhost:8080/api"
    REQUEST_TIMEOUT: float = 10.0  # seconds
    DEFAULT_PAGE_LIMIT: int = 100

    # Change lists
    ACTIVE_LABEL: str = "Active"
    INACTIVE_LABEL: str = "Inactive"

    class Config:
        env_file = ".env"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
