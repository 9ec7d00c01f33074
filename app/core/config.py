from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str = Field(..., alias="DATABASE_URL")

    jwt_secret_key: str = Field(..., alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field("HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(15, alias="ACCESS_TOKEN_EXPIRE_MINUTES")

    celery_broker_url: str = Field("redis://localhost:6379/0", alias="CELERY_BROKER_URL")
    celery_result_backend: str = Field("redis://localhost:6379/1", alias="CELERY_RESULT_BACKEND")
    celery_queue_name: str = Field("imports", alias="CELERY_QUEUE_NAME")

    sendgrid_api_key: Optional[str] = Field(None, alias="SENDGRID_API_KEY")
    sendgrid_from_email: Optional[str] = Field(None, alias="SENDGRID_FROM_EMAIL")

    # Bulk user import
    import_chunk_size: int = Field(500, ge=1, alias="IMPORT_CHUNK_SIZE")
    import_max_upload_bytes: int = Field(10 * 1024 * 1024, alias="IMPORT_MAX_UPLOAD_BYTES")
    import_field_max_length: int = Field(255, alias="IMPORT_FIELD_MAX_LENGTH")
    import_temporary_password_length: int = Field(12, ge=8, alias="IMPORT_TEMPORARY_PASSWORD_LENGTH")
    import_conflict_policy: Literal["isolate", "abort"] = Field("isolate", alias="IMPORT_CONFLICT_POLICY")

    log_level: str = Field("INFO", alias="LOG_LEVEL")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
