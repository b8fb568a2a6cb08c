from pydantic_settings import BaseSettings
from typing import List, Optional
from pathlib import Path

# Find .env file - check app/ directory first, then project root
BASE_DIR = Path(__file__).resolve().parent.parent.parent
APP_ENV = BASE_DIR / "app" / ".env"
ROOT_ENV = BASE_DIR / ".env"

# Use app/.env if it exists, otherwise try root .env
env_file = str(APP_ENV) if APP_ENV.exists() else (str(ROOT_ENV) if ROOT_ENV.exists() else ".env")


class Settings(BaseSettings):
    # Database (provider is picked from the URL scheme)
    DATABASE_URL: str = "sqlite:///./sangam.db"

    # JWT
    SECRET_KEY: str = "change-me-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    JWT_ISSUER: str = "sangam-api"
    JWT_AUDIENCE: str = "sangam-client"

    # SMTP
    SMTP_HOST: Optional[str] = None
    SMTP_PORT: Optional[int] = 587
    SMTP_USER: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    FROM_EMAIL: Optional[str] = None
    FROM_NAME: str = "Phoenix Sangam"
    REPLY_TO_EMAIL: Optional[str] = None

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000"

    # Activity log
    ACTIVITY_QUEUE_SIZE: int = 1000

    # Weekly job
    ENABLE_SCHEDULER: bool = True
    WEEKLY_JOB_DAY_OF_WEEK: str = "mon"
    WEEKLY_JOB_HOUR: int = 8

    # Application
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = env_file
        case_sensitive = True

    @property
    def cors_origins_list(self) -> List[str]:
        """Convert CORS_ORIGINS string to list."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]


settings = Settings()
