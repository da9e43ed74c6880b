"""Application configuration using Pydantic Settings."""
from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # App
    app_name: str = "Disaster Management Training"
    debug: bool = False
    log_level: str = "INFO"
    default_organization: str = "NDMA Training Institute"

    # MongoDB
    mongodb_url: str = "mongodb://localhost:27017"
    mongodb_db_name: str = "ndma_training"

    # JWT
    jwt_secret_key: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"
    jwt_access_token_expire_minutes: int = 60 * 24 * 7
    jwt_refresh_token_expire_days: int = 30

    # AWS S3 (blob store for photos, CSV and PDF documents)
    aws_access_key_id: str = ""
    aws_secret_access_key: str = ""
    aws_region: str = "ap-south-1"
    s3_bucket_uploads: str = "ndma-training-uploads"
    s3_public_bucket: bool = True
    s3_signed_url_expire_minutes: int = 60
    s3_upload_url_expire_minutes: int = 15
    s3_profile_url_expire_minutes: int = 60 * 24 * 7
    max_upload_size_mb: int = 20

    # Attendance
    attendance_default_radius_m: int = 30
    attendance_recent_limit: int = 100
    attendance_session_max_hours: int = 12

    # CORS (comma-separated origins)
    cors_origins: str = "http://localhost:5173"

    @model_validator(mode="after")
    def _validate_production_secrets(self):
        if not self.debug:
            if self.jwt_secret_key in ("change-me-in-production", ""):
                raise ValueError(
                    "JWT_SECRET_KEY must be set to a strong secret when DEBUG is not enabled. "
                    "Generate one with: python -c \"import secrets; print(secrets.token_hex(32))\""
                )
        return self


settings = Settings()
