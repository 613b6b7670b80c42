from __future__ import annotations

from pydantic import ConfigDict, Field
from pydantic_settings import BaseSettings

DEFAULT_VISION_URL = "https://api.anthropic.com/v1/messages"
DEFAULT_VISION_MODEL = "claude-sonnet-4-5-20250929"
APPSTORE_PRODUCTION_URL = "https://buy.itunes.apple.com/verifyReceipt"
APPSTORE_SANDBOX_URL = "https://sandbox.itunes.apple.com/verifyReceipt"


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    jwt_secret: str = Field("test-jwt-secret-for-local-development", alias="JWT_SECRET")
    jwt_algorithms: list[str] = Field(
        default_factory=lambda: ["HS256"], alias="JWT_ALGORITHMS"
    )
    jwt_audience: str | None = Field(None, alias="JWT_AUDIENCE")
    jwt_verify_signature: bool = Field(True, alias="JWT_VERIFY_SIGNATURE")

    trusted_proxies: list[str] = Field(
        default_factory=lambda: ["127.0.0.1", "testclient"]
    )
    rate_limit_ip_per_min: int = Field(30, alias="RATE_LIMIT_IP_PER_MIN")
    rate_limit_user_per_min: int = Field(120, alias="RATE_LIMIT_USER_PER_MIN")
    cors_allow_origins: list[str] = Field(
        default_factory=lambda: ["*"], alias="CORS_ALLOW_ORIGINS"
    )

    database_url: str = Field(
        "sqlite:////tmp/skininsight_test.db", alias="DATABASE_URL"
    )
    db_create_all: bool = Field(False, alias="DB_CREATE_ALL")
    db_pool_size: int = Field(50, alias="DB_POOL_SIZE")

    redis_url: str = Field("redis://localhost:6379", alias="REDIS_URL")

    quota_timezone: str = Field("UTC", alias="QUOTA_TIMEZONE")
    ignore_duplicate_transactions: bool = Field(
        True,
        alias="IGNORE_DUPLICATE_TRANSACTIONS",
        description="Treat redelivery of the active plan's transaction id as a no-op",
    )

    anthropic_api_key: str | None = Field(None, alias="ANTHROPIC_API_KEY")
    vision_api_url: str = Field(DEFAULT_VISION_URL, alias="VISION_API_URL")
    vision_api_version: str = Field("2023-06-01", alias="VISION_API_VERSION")
    vision_default_model: str = Field(DEFAULT_VISION_MODEL, alias="VISION_MODEL")
    vision_max_tokens: int = Field(2048, alias="VISION_MAX_TOKENS")
    vision_timeout_s: float = Field(60.0, alias="VISION_TIMEOUT_S")
    max_image_base64_bytes: int = Field(
        10 * 1024 * 1024, alias="MAX_IMAGE_BASE64_BYTES"
    )

    appstore_verify_receipts: bool = Field(False, alias="APPSTORE_VERIFY_RECEIPTS")
    appstore_shared_secret: str | None = Field(None, alias="APPSTORE_SHARED_SECRET")
    appstore_production_url: str = Field(
        APPSTORE_PRODUCTION_URL, alias="APPSTORE_PRODUCTION_URL"
    )
    appstore_sandbox_url: str = Field(
        APPSTORE_SANDBOX_URL, alias="APPSTORE_SANDBOX_URL"
    )
    appstore_timeout_s: float = Field(15.0, alias="APPSTORE_TIMEOUT_S")

    model_config = ConfigDict(
        extra="ignore",
        env_file=".env",
        case_sensitive=False,
        populate_by_name=True,
    )
