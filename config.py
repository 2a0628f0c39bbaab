"""
Runtime configuration for the Agency Portfolio API.

Every option comes from the environment. `load_settings()` is called once when
the app module is imported; a missing admin secret stops the service there.
"""

import logging
import os
import secrets
from typing import List, Optional

from passlib.context import CryptContext
from pydantic import BaseModel, Field

from errors import ConfigError

logger = logging.getLogger(__name__)

# Use pbkdf2_sha256 to avoid external bcrypt dependency issues
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

DEFAULT_MAX_UPLOAD_BYTES = 100 * 1024 * 1024
LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


class Settings(BaseModel):
    database_url: Optional[str] = None
    database_name: Optional[str] = None
    storage_backend: str = Field("mongo", description="mongo | memory")

    admin_password_hash: str
    jwt_secret: str
    jwt_algorithm: str = "HS256"
    token_expire_minutes: int = Field(60 * 12, gt=0)

    cloudinary_cloud_name: Optional[str] = None
    cloudinary_api_key: Optional[str] = None
    cloudinary_api_secret: Optional[str] = None
    cloudinary_folder: Optional[str] = None
    upload_dir: str = "uploads"
    max_upload_bytes: int = Field(DEFAULT_MAX_UPLOAD_BYTES, gt=0)

    sendgrid_api_key: Optional[str] = None
    email_from: Optional[str] = None
    contact_notify_email: Optional[str] = None

    cors_origins: List[str] = Field(default_factory=lambda: ["*"])
    log_level: str = "INFO"
    port: int = 8000

    @property
    def media_host_configured(self) -> bool:
        return bool(self.cloudinary_cloud_name and self.cloudinary_api_key and self.cloudinary_api_secret)

    @property
    def email_configured(self) -> bool:
        return bool(self.sendgrid_api_key and self.email_from and self.contact_notify_email)


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}")


def load_settings() -> Settings:
    password_hash = os.getenv("ADMIN_PASSWORD_HASH")
    if not password_hash:
        password = os.getenv("ADMIN_PASSWORD")
        if not password:
            raise ConfigError("ADMIN_PASSWORD or ADMIN_PASSWORD_HASH must be set")
        password_hash = pwd_context.hash(password)
    elif not pwd_context.identify(password_hash):
        raise ConfigError("ADMIN_PASSWORD_HASH is not a recognized pbkdf2_sha256 hash")

    jwt_secret = os.getenv("JWT_SECRET")
    if not jwt_secret:
        logger.warning("JWT_SECRET not set; using a random key, admin tokens will not survive a restart")
        jwt_secret = secrets.token_urlsafe(32)

    backend = (os.getenv("STORAGE_BACKEND") or "mongo").lower()
    if backend not in ("mongo", "memory"):
        raise ConfigError(f"STORAGE_BACKEND must be 'mongo' or 'memory', got {backend!r}")

    log_level = (os.getenv("LOG_LEVEL") or "INFO").upper()
    if log_level not in LOG_LEVELS:
        raise ConfigError(f"LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}, got {log_level!r}")

    origins = [o.strip() for o in (os.getenv("CORS_ORIGINS") or "*").split(",") if o.strip()]

    max_upload = _int_env("MAX_UPLOAD_BYTES", DEFAULT_MAX_UPLOAD_BYTES)
    if max_upload <= 0:
        raise ConfigError("MAX_UPLOAD_BYTES must be a positive number of bytes")
    expire = _int_env("ADMIN_TOKEN_EXPIRE_MINUTES", 60 * 12)
    if expire <= 0:
        raise ConfigError("ADMIN_TOKEN_EXPIRE_MINUTES must be positive")

    return Settings(
        database_url=os.getenv("DATABASE_URL"),
        database_name=os.getenv("DATABASE_NAME"),
        storage_backend=backend,
        admin_password_hash=password_hash,
        jwt_secret=jwt_secret,
        token_expire_minutes=expire,
        cloudinary_cloud_name=os.getenv("CLOUDINARY_CLOUD_NAME"),
        cloudinary_api_key=os.getenv("CLOUDINARY_API_KEY"),
        cloudinary_api_secret=os.getenv("CLOUDINARY_API_SECRET"),
        cloudinary_folder=os.getenv("CLOUDINARY_FOLDER"),
        upload_dir=os.getenv("UPLOAD_DIR") or "uploads",
        max_upload_bytes=max_upload,
        sendgrid_api_key=os.getenv("SENDGRID_API_KEY"),
        email_from=os.getenv("EMAIL_FROM"),
        contact_notify_email=os.getenv("CONTACT_NOTIFY_EMAIL"),
        cors_origins=origins or ["*"],
        log_level=log_level,
        port=_int_env("PORT", 8000),
    )
