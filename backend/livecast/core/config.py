"""Application configuration settings.

All configuration values are loaded from environment variables (.env file).
No sensitive values should be hardcoded here.
"""

from typing import Optional
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    PROJECT_NAME: str = "Livecast API"
    VERSION: str = "0.1.0"
    API_V1_PREFIX: str = "/api/v1"
    DEBUG: bool = False

    # Database - REQUIRED
    DATABASE_URL: str

    # Redis - REQUIRED
    REDIS_URL: str

    # Security - REQUIRED (no defaults for sensitive values)
    SECRET_KEY: str
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # Encryption key for broadcast credentials at rest - REQUIRED
    ENCRYPTION_KEY: str

    # CORS
    CORS_ORIGINS: list[str] = []

    # Storage Configuration
    # STORAGE_BACKEND: local, s3, minio
    STORAGE_BACKEND: str = "s3"

    # Local Storage (when STORAGE_BACKEND=local)
    LOCAL_STORAGE_PATH: str = "./storage"

    # S3/MinIO/Compatible Storage (when STORAGE_BACKEND=s3 or minio)
    STORAGE_BUCKET: str = ""
    STORAGE_REGION: str = "us-east-1"
    STORAGE_ACCESS_KEY: str = ""
    STORAGE_SECRET_KEY: str = ""
    STORAGE_ENDPOINT_URL: Optional[str] = None  # Required for MinIO
    STORAGE_USE_SSL: bool = True

    # CDN Configuration (optional, for any backend)
    CDN_DOMAIN: Optional[str] = None
    CDN_ENABLED: bool = False

    # Managed live video channel (static, issued by the video service)
    IVS_ACCOUNT_ID: str = ""
    IVS_CHANNEL_ID: str = ""
    IVS_CHANNEL_ARN: str = ""
    IVS_INGEST_ENDPOINT: str = ""
    IVS_STREAM_KEY: str = ""
    IVS_PLAYBACK_URL: str = ""

    # Recording reconciliation
    RECORDING_ROOT_PREFIX: str = "ivs/v1"
    RECORDING_PUBLIC_BASE_URL: Optional[str] = None
    RECORDING_LIST_PAGE_SIZE: int = 1000
    RECORDING_LIST_MAX_PAGES: int = 50
    RECORDING_RECONCILE_INTERVAL_MINUTES: int = 0  # 0 disables the periodic sweep

    # Celery (falls back to REDIS_URL)
    CELERY_BROKER_URL: str = ""
    CELERY_RESULT_BACKEND: str = ""

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
