from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Database
    database_url: str = Field("sqlite:///./shop.db", alias="DATABASE_URL")
    db_ssl_ca: Optional[str] = Field(None, alias="DB_SSL_CA")
    db_pool_size: int = Field(5, ge=1, alias="DB_POOL_SIZE")
    db_max_overflow: int = Field(5, ge=0, alias="DB_MAX_OVERFLOW")
    db_pool_timeout: float = Field(10.0, gt=0, alias="DB_POOL_TIMEOUT")
    create_schema: bool = Field(True, alias="CREATE_SCHEMA")

    # JWT
    jwt_secret: str = Field("change-me-in-production-use-a-long-random-secret", alias="JWT_SECRET")
    jwt_algorithm: str = Field("HS256", alias="JWT_ALGORITHM")
    jwt_expires_in: int = Field(3600, gt=0, alias="JWT_EXPIRES_IN")

    # Passwords
    bcrypt_rounds: int = Field(10, ge=4, le=31, alias="BCRYPT_ROUNDS")

    # HTTP
    cors_origins: List[str] = Field(default_factory=lambda: ["*"], alias="CORS_ORIGINS")
    port: int = Field(8000, alias="PORT")
    log_level: str = Field("INFO", alias="LOG_LEVEL")


@lru_cache()
def get_settings() -> Settings:
    return Settings()
