from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    environment: str = Field(default="development", alias="ENVIRONMENT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: Literal["json", "text"] = Field(default="json", alias="LOG_FORMAT")
    database_url: str = Field(
        default="postgresql+asyncpg://fx:fx@localhost:5432/fx_pipeline", alias="DATABASE_URL"
    )
    redis_url: str = Field(default="redis://localhost:6379/0", alias="REDIS_URL")
    secret_key: str = Field(default="change-me", alias="SECRET_KEY")
    previous_secret_keys: list[str] = Field(default=[], alias="PREVIOUS_SECRET_KEYS")

    jwt_algorithm: str = Field(default="RS256", alias="JWT_ALGORITHM")
    jwt_private_key: str | None = Field(default=None, alias="JWT_PRIVATE_KEY")
    jwt_private_key_path: str | None = Field(default=None, alias="JWT_PRIVATE_KEY_PATH")
    jwt_public_key: str | None = Field(default=None, alias="JWT_PUBLIC_KEY")
    jwt_public_key_path: str | None = Field(default=None, alias="JWT_PUBLIC_KEY_PATH")
    access_token_expire_minutes: int = Field(default=60, alias="ACCESS_TOKEN_EXPIRE_MINUTES")
    session_timeout_minutes: int = Field(default=30, alias="SESSION_TIMEOUT_MINUTES")
    default_password_min_length: int = Field(default=8, alias="DEFAULT_PASSWORD_MIN_LENGTH")

    login_attempt_limit: int = Field(default=5, alias="LOGIN_ATTEMPT_LIMIT")
    login_lockout_minutes: int = Field(default=15, alias="LOGIN_LOCKOUT_MINUTES")

    rate_limit_per_minute: int = Field(default=120, alias="RATE_LIMIT_PER_MINUTE")
    allowed_origins: list[str] = Field(default=["http://localhost:5173"], alias="ALLOWED_ORIGINS")
    enable_hsts: bool = Field(default=False, alias="ENABLE_HSTS")

    # Lifecycle policy
    require_verification_before_decision: bool = Field(
        default=True, alias="REQUIRE_VERIFICATION_BEFORE_DECISION"
    )
    marketing_sees_all: bool = Field(default=False, alias="MARKETING_SEES_ALL")
    default_page_size: int = Field(default=10, alias="DEFAULT_PAGE_SIZE")
    max_page_size: int = Field(default=100, alias="MAX_PAGE_SIZE")

    # Storage
    storage_provider: Literal["local", "gcs"] = Field(default="local", alias="STORAGE_PROVIDER")
    local_upload_dir: str = Field(default="./var/uploads", alias="LOCAL_UPLOAD_DIR")
    public_base_url: str = Field(default="http://localhost:8000", alias="PUBLIC_BASE_URL")
    gcs_bucket: str | None = Field(default=None, alias="GCS_BUCKET")
    signed_url_expiry_seconds: int = Field(default=900, alias="SIGNED_URL_EXPIRY_SECONDS")
    max_upload_size_mb: int = Field(default=20, alias="MAX_UPLOAD_SIZE_MB")

    # Reports
    report_template_keys: list[str] = Field(
        default=[
            "reports/templates/Demand and Rate.xlsx",
            "reports/templates/FX Demand Request Form.xlsx",
            "reports/templates/FX Pipeline Demand.xlsx",
            "reports/macros/FX_Pipeline.xlsm",
            "reports/macros/runMacro.ps1",
        ],
        alias="REPORT_TEMPLATE_KEYS",
    )

    # Notifications
    resend_api_key: str | None = Field(default=None, alias="RESEND_API_KEY")
    resend_api_url: str = Field(default="https://api.resend.com/emails", alias="RESEND_API_URL")
    notification_sender: str = Field(
        default="FX Pipeline <notifications@example.com>", alias="NOTIFICATION_SENDER"
    )
    notification_recipients: list[str] = Field(default=[], alias="NOTIFICATION_RECIPIENTS")

    # Seeding
    seed_admin_email: str = Field(default="admin@example.com", alias="SEED_ADMIN_EMAIL")
    seed_admin_password: str = Field(default="ChangeMe123!", alias="SEED_ADMIN_PASSWORD")
    seed_admin_full_name: str = Field(default="Administrator", alias="SEED_ADMIN_FULL_NAME")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
