"""
Configuration management for the FastAPI application.
Uses Pydantic Settings for environment variable management.
"""
from pydantic_settings import BaseSettings
from typing import List, Literal


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API Configuration
    API_TITLE: str = "Trust Site API"
    API_VERSION: str = "0.1.0"
    API_DESCRIPTION: str = "Backend API for the trust website galleries, hero slider and home cards"

    LOG_LEVEL: str = "INFO"

    # CORS Configuration
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:8000",
        "http://127.0.0.1:8000",
    ]

    # Cloudinary Configuration
    CLOUDINARY_CLOUD_NAME: str = ""
    CLOUDINARY_API_KEY: str = ""
    CLOUDINARY_API_SECRET: str = ""
    CLOUDINARY_MAX_RETRIES: int = 3

    # Metadata documents
    # "cloudinary" stores the JSON documents as raw files next to the media,
    # "local" keeps them under LOCAL_DATA_DIR (development only)
    DOCUMENT_BACKEND: Literal["cloudinary", "local"] = "cloudinary"
    LOCAL_DATA_DIR: str = "data"
    GALLERY_DOCUMENT: str = "gallery.json"
    CARDS_DOCUMENT: str = "home_cards.json"

    # Uploads
    CONVERT_UPLOADS_TO_WEBP: bool = True
    WEBP_QUALITY: int = 85

    # Admin Password
    # Should be bcrypt hashed password (see generate_password_hash.py)
    ADMIN_PASSWORD_HASH: str = ""

    # JWT Configuration
    # SECRET_KEY should be a long random string (e.g., generated with: openssl rand -hex 32)
    JWT_SECRET_KEY: str = "change-this-in-production-use-openssl-rand-hex-32"
    JWT_EXPIRE_MINUTES: int = 60

    RATE_LIMIT_ENABLED: bool = True

    # Contact form email
    SMTP_HOST: str = ""
    SMTP_PORT: int = 587
    SMTP_USERNAME: str = ""
    SMTP_PASSWORD: str = ""
    CONTACT_RECIPIENT: str = ""

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignore extra fields in .env that aren't defined in Settings


# Global settings instance
settings = Settings()
