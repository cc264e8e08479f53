"""
Configuration for Case Access Service
=====================================

Environment variables:
- DATABASE_URL: SQLAlchemy URL (default: sqlite:///./dev.db)
- JWT_SECRET_KEY: HMAC secret for access tokens
- JWT_ALGORITHM: Signing algorithm (default: HS256)
- JWT_ACCESS_TOKEN_EXPIRE_MINUTES: Access token lifetime (default: 60)
- REDIS_URL: Shared store for token revocation (default: redis://localhost:6379/0)
- REDIS_ENABLED: Use Redis for revocation checks (default: false)
- ACCESS_REQUEST_COOLDOWN_HOURS: Wait after a rejected request before re-requesting (default: 24)
- CORS_ALLOW_ORIGINS: Comma separated list of allowed origins
- LOG_LEVEL: Root log level (default: INFO)
- SEED_DEMO_DATA: Create demo users/cases on startup (default: false)
"""

from typing import List
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings from environment variables"""

    # Database
    database_url: str = "sqlite:///./dev.db"
    sql_echo: bool = False
    db_connect_timeout: int = 5

    # JWT
    jwt_secret_key: str = "dev-secret-key-change-in-production"
    jwt_algorithm: str = "HS256"
    jwt_access_token_expire_minutes: int = 60

    # Revocation store
    redis_url: str = "redis://localhost:6379/0"
    redis_enabled: bool = False

    # Access request workflow
    access_request_cooldown_hours: int = 24

    # HTTP
    cors_allow_origins: str = "http://localhost:3000,http://127.0.0.1:3000"

    # Ops
    log_level: str = "INFO"
    seed_demo_data: bool = False

    # Service info
    service_version: str = "1.0.0"

    class Config:
        env_prefix = ""
        case_sensitive = False
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    def cors_origins(self) -> List[str]:
        origins: List[str] = []
        for item in self.cors_allow_origins.split(","):
            origin = item.strip().strip('"').strip("'").rstrip("/")
            if origin:
                origins.append(origin)
        return origins

    def validate_security_config(self) -> List[str]:
        """Validate security configuration, return list of warnings"""
        warnings = []

        if self.jwt_secret_key == "dev-secret-key-change-in-production":
            warnings.append("JWT_SECRET_KEY is the development default")

        if self.jwt_algorithm not in ("HS256", "HS384", "HS512"):
            warnings.append(f"JWT_ALGORITHM={self.jwt_algorithm} is not an HMAC algorithm")

        if self.access_request_cooldown_hours < 0:
            warnings.append("ACCESS_REQUEST_COOLDOWN_HOURS is negative; treated as 0")

        return warnings


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
