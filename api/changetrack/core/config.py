"""Application configuration, read from the environment and `.env`."""
import sys
from pydantic import field_validator
from pydantic_settings import BaseSettings

DEFAULT_SECRET_KEY = "changetrack-dev-secret"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./changetrack.db"

    # JWT
    SECRET_KEY: str = DEFAULT_SECRET_KEY
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 1440

    ENVIRONMENT: str = "development"  # "development" or "production"
    LOG_LEVEL: str = "INFO"

    # Comma-separated list of frontend origins
    CORS_ORIGINS: str = "http://localhost:5173,http://localhost:3000"

    # When false, admins only see change requests touching applications they own
    ADMIN_SEES_ALL_CHANGE_REQUESTS: bool = True

    class Config:
        env_file = ".env"

    @field_validator("LOG_LEVEL")
    @classmethod
    def check_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}")
        return level

    def get_cors_origins(self) -> list[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    def validate_production_settings(self) -> None:
        """Exit if a production deployment still runs with development defaults."""
        if not self.is_production:
            return

        if self.SECRET_KEY == DEFAULT_SECRET_KEY:
            print("FATAL: SECRET_KEY must be set in production.", file=sys.stderr)
            sys.exit(1)

        if self.DATABASE_URL.startswith("sqlite"):
            print("WARNING: SQLite database configured in production.", file=sys.stderr)
        if "*" in self.get_cors_origins():
            print("WARNING: CORS allows any origin in production.", file=sys.stderr)


settings = Settings()
settings.validate_production_settings()
