"""
Configuration management for the HR lifecycle backend

Values come from the environment (or a local .env file). DATABASE_URL and
JWT_SECRET_KEY have no defaults; everything else does.
"""
from pydantic_settings import BaseSettings
from pydantic import Field, field_validator, model_validator
from typing import Optional, List

SUPPORTED_DATABASE_BACKENDS = ("postgresql", "sqlite")


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Store
    DATABASE_URL: str = Field(..., description="PostgreSQL (production) or SQLite (local/tests) URL")
    DB_CONNECT_TIMEOUT: int = Field(default=5, ge=1, description="Seconds to wait for a new DB connection")
    DB_POOL_TIMEOUT: int = Field(default=10, ge=1, description="Seconds to wait for a pooled connection")
    DB_STATEMENT_TIMEOUT_MS: int = Field(
        default=5000,
        ge=100,
        description="Per-statement timeout in milliseconds (PostgreSQL only)",
    )

    # Identity tokens (issued by the external identity provider)
    JWT_SECRET_KEY: str = Field(..., description="Secret used to verify identity tokens")
    JWT_ALGORITHM: str = Field(default="HS256", description="JWT algorithm")
    JWT_EXPIRE_MINUTES: int = Field(default=120, ge=1, description="Lifetime of tokens minted by create_access_token")

    # Runtime
    APP_ENV: str = Field(default="local", description="Application environment: local, staging, prod")
    LOG_LEVEL: str = Field(default="INFO", description="Logging level: DEBUG, INFO, WARNING, ERROR")
    ALLOWED_ORIGINS: str = Field(
        default="*",
        description="Comma-separated list of allowed CORS origins. Use '*' for local only."
    )
    VERSION: Optional[str] = Field(default=None, description="Application version (git SHA or semver)")

    # Leave listing
    DEFAULT_PAGE_SIZE: int = Field(default=10, ge=1, description="Default page size for leave listings")
    MAX_PAGE_SIZE: int = Field(default=100, ge=1, description="Upper bound for page_size")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True

    @field_validator("DATABASE_URL")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        backend = v.split(":", 1)[0].split("+", 1)[0]
        if backend not in SUPPORTED_DATABASE_BACKENDS:
            raise ValueError(f"DATABASE_URL backend must be one of {list(SUPPORTED_DATABASE_BACKENDS)}")
        return v

    @field_validator("APP_ENV")
    @classmethod
    def validate_app_env(cls, v: str) -> str:
        allowed = ["local", "staging", "prod"]
        if v not in allowed:
            raise ValueError(f"APP_ENV must be one of {allowed}")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed:
            raise ValueError(f"LOG_LEVEL must be one of {allowed}")
        return v.upper()

    @model_validator(mode="after")
    def validate_page_sizes(self) -> "Settings":
        if self.DEFAULT_PAGE_SIZE > self.MAX_PAGE_SIZE:
            raise ValueError("DEFAULT_PAGE_SIZE cannot exceed MAX_PAGE_SIZE")
        return self

    @property
    def is_production(self) -> bool:
        return self.APP_ENV == "prod"

    @property
    def database_backend(self) -> str:
        """'postgresql' or 'sqlite', driver suffix stripped"""
        return self.DATABASE_URL.split(":", 1)[0].split("+", 1)[0]

    def validate_production(self) -> None:
        """
        Validate settings for production environment

        Raises:
            ValueError: listing every production requirement that is not met
        """
        if not self.is_production:
            return

        problems = []
        if len(self.JWT_SECRET_KEY) < 32:
            problems.append("JWT_SECRET_KEY must be at least 32 characters in production environment")
        if self.ALLOWED_ORIGINS == "*" or not self.ALLOWED_ORIGINS:
            problems.append("ALLOWED_ORIGINS must be explicitly set (not '*') in production environment")
        if self.database_backend != "postgresql":
            problems.append("DATABASE_URL must point to PostgreSQL in production environment")
        if problems:
            raise ValueError("; ".join(problems))

    def get_allowed_origins_list(self) -> List[str]:
        """
        Get list of allowed CORS origins

        Returns:
            List of allowed origins (or ['*'] for local)
        """
        if self.ALLOWED_ORIGINS == "*":
            return ["*"]
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",") if origin.strip()]


# Create settings instance
settings = Settings()
settings.validate_production()
