from typing import List, cast
from pydantic import AnyHttpUrl, computed_field
from pydantic_core import MultiHostUrl
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    # Application
    PROJECT_NAME: str = "EasyWorkout Planner"
    VERSION: str = "1.0.0"
    API_PREFIX: str = "/api"
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    # Validation
    BACKEND_CORS_ORIGINS: List[AnyHttpUrl] = []

    # Identity provider (Supabase auth + storage)
    IDENTITY_PROVIDER: str = "mock"
    SUPABASE_URL: str | None = None
    SUPABASE_SERVICE_ROLE_KEY: str | None = None
    SUPABASE_JWT_SECRET: str = "dev-only-supabase-jwt-secret"
    SUPABASE_JWT_AUDIENCE: str = "authenticated"
    JWT_ALGORITHM: str = "HS256"
    PASSWORD_RESET_REDIRECT_URL: str | None = None

    # Cloud backup
    BACKUP_BUCKET: str = "backups"
    AUTO_BACKUP_ENABLED: bool = False
    AUTO_BACKUP_DELAY_SECONDS: float = 2.0

    # Payments
    PAYMENT_PROVIDER: str = "mock"
    STRIPE_SECRET_KEY: str | None = None
    STRIPE_SUCCESS_REDIRECT_URL: str = "/"

    # Rate limits
    PASSWORD_RESET_RATE_LIMIT: int = 5
    CHECKOUT_RATE_LIMIT: int = 10
    RATE_LIMIT_WINDOW_SECONDS: int = 60

    # Database
    DATABASE_URL: str | None = None
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "easyworkout"

    @computed_field
    @property
    def SQLALCHEMY_DATABASE_URI(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return str(cast(MultiHostUrl, MultiHostUrl.build(
            scheme="postgresql+asyncpg",
            username=self.POSTGRES_USER,
            password=self.POSTGRES_PASSWORD,
            host=self.POSTGRES_HOST,
            port=self.POSTGRES_PORT,
            path=self.POSTGRES_DB,
        )))

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

settings = Settings()
