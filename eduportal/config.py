"""Application configuration using Pydantic Settings."""
from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # App
    app_name: str = "EduPortal Attendance"
    debug: bool = False
    log_level: str = "INFO"

    # MongoDB
    mongodb_url: str = "mongodb://localhost:27017"
    mongodb_db_name: str = "eduportal"

    # JWT
    jwt_secret_key: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"
    jwt_access_token_expire_minutes: int = 60
    jwt_refresh_token_expire_days: int = 30

    # AWS S3 (student <-> staff documents)
    aws_access_key_id: str = ""
    aws_secret_access_key: str = ""
    aws_region: str = "ap-south-1"
    s3_bucket_files: str = "eduportal-files"
    max_upload_bytes: int = 10 * 1024 * 1024

    # Firebase (FCM)
    firebase_credentials_path: str = ""
    fcm_batch_size: int = 500  # multicast hard limit
    max_fcm_tokens_per_user: int = 5

    # First staff account, created on startup when both are set
    seed_staff_email: str = ""
    seed_staff_password: str = ""
    seed_staff_name: str = "EduPortal Staff"

    # CORS (comma-separated origins)
    cors_origins: str = "http://localhost:8081"

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
