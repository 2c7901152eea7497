"""
Application Configuration
Environment variables and settings management
"""

from pydantic_settings import BaseSettings, NoDecode
from pydantic import Field, field_validator
from typing import Annotated, List


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    # Application
    PROJECT_NAME: str = Field(default="RBAC Admin", description="Service display name")
    VERSION: str = Field(default="1.0.0", description="Service version")
    ENVIRONMENT: str = Field(default="development", description="Application environment")
    DEBUG: bool = Field(default=False, description="Debug mode")
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    API_PREFIX: str = Field(default="/api/v1", description="Versioned API prefix")

    # Database
    DATABASE_URL: str = Field(
        default="sqlite+aiosqlite:///./rbac_admin.db",
        description="Database URL (PostgreSQL in production, SQLite for local runs)"
    )
    DB_POOL_SIZE: int = Field(default=10, description="Database connection pool size")
    DB_MAX_OVERFLOW: int = Field(default=20, description="Database max overflow connections")
    DB_POOL_TIMEOUT: int = Field(default=30, description="Database pool timeout in seconds")
    DB_POOL_RECYCLE: int = Field(default=3600, description="Database pool recycle time in seconds")

    # JWT Authentication
    JWT_SECRET_KEY: str = Field(
        default="rbac-admin-development-secret-key-change-me-in-production-32+",
        description="JWT secret key"
    )
    JWT_ALGORITHM: str = Field(default="HS256", description="JWT algorithm")
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default=30, description="JWT access token expiration")
    JWT_REFRESH_TOKEN_EXPIRE_DAYS: int = Field(default=7, description="JWT refresh token expiration")

    # Token issuers
    AUTH_ACTIVE_ISSUER: str = Field(default="local", description="Active token validation strategy")
    AUTH_LOCAL_ISSUER: str = Field(default="rbac-admin-local", description="Issuer claim for local tokens")
    AUTH_TRUSTED_ISSUERS: Annotated[List[str], NoDecode] = Field(default=["rbac-admin-local"], description="Accepted issuer claims")

    # Bootstrap admin credentials
    BOOTSTRAP_ADMIN_EMAIL: str = Field(default="admin@rbac-admin.local", description="Bootstrap admin email")
    BOOTSTRAP_ADMIN_PASSWORD: str = Field(default="ChangeMe123!", description="Bootstrap admin password")
    BOOTSTRAP_ADMIN_FULL_NAME: str = Field(default="RBAC Administrator", description="Bootstrap admin name")
    BOOTSTRAP_ADMIN_ROLE_KEY: str = Field(default="admin", description="Role key granted to the bootstrap admin")

    # Self-registration
    REGISTRATION_ENABLED: bool = Field(default=True, description="Allow public sign-up through /auth/register")

    # Security
    ALLOWED_HOSTS: Annotated[List[str], NoDecode] = Field(default=["*"], description="Allowed hosts for production")
    CORS_ORIGINS: Annotated[List[str], NoDecode] = Field(default=["http://localhost:3000"], description="CORS allowed origins")

    @field_validator("CORS_ORIGINS", "ALLOWED_HOSTS", "AUTH_TRUSTED_ISSUERS", mode="before")
    @classmethod
    def parse_comma_separated(cls, v):
        """Parse comma separated values from string or list"""
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        return v if isinstance(v, list) else []

    @field_validator("ENVIRONMENT")
    @classmethod
    def validate_environment(cls, v):
        """Validate environment value"""
        allowed = ["development", "testing", "staging", "production"]
        if v not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level"""
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed:
            raise ValueError(f"Log level must be one of: {allowed}")
        return v.upper()

    model_config = {
        "env_file": ".env",
        "case_sensitive": True,
        "extra": "ignore",
    }


# Create settings instance
settings = Settings()

# Derived settings
DATABASE_CONFIG = {
    "pool_size": settings.DB_POOL_SIZE,
    "max_overflow": settings.DB_MAX_OVERFLOW,
    "pool_timeout": settings.DB_POOL_TIMEOUT,
    "pool_recycle": settings.DB_POOL_RECYCLE,
    "pool_pre_ping": True,
}
