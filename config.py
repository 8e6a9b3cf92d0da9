"""Application configuration.

This module provides environment-specific configuration settings for the application.
"""

import os


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


class Config:
    """Base configuration with settings common to all environments."""

    # Security
    SECRET_KEY: str = os.getenv("SECRET_KEY", "dev-key-change-in-production")

    # Flask settings
    DEBUG: bool = _env_bool("DEBUG", "false")
    TESTING: bool = False

    # Application settings
    APP_NAME: str = os.getenv("APP_NAME", "expense-ocr")

    # File upload settings
    MAX_CONTENT_LENGTH: int = 10 * 1024 * 1024  # 10MB max request size

    # OCR pipeline
    OCR_ENABLED: bool = _env_bool("OCR_ENABLED", "true")
    # hybrid: engine chosen from the user's plan; local/remote: forced for every plan
    OCR_PROVIDER: str = os.getenv("OCR_PROVIDER", "hybrid")
    OCR_LANGUAGES: str = os.getenv("OCR_LANGUAGES", "fra+eng")
    # Tesseract configurations tried in turn, separated by ";"
    OCR_TESSERACT_CONFIGS: str = os.getenv("OCR_TESSERACT_CONFIGS", "--oem 3 --psm 6")
    OCR_TESSERACT_TIMEOUT: float = float(os.getenv("OCR_TESSERACT_TIMEOUT", "0"))
    TESSERACT_CMD: str | None = os.getenv("TESSERACT_CMD")
    OCR_MAX_FILE_SIZE: int = int(os.getenv("OCR_MAX_FILE_SIZE", str(10 * 1024 * 1024)))
    OCR_MAX_IMAGE_DIMENSION: int = int(os.getenv("OCR_MAX_IMAGE_DIMENSION", "2000"))
    OCR_CONTRAST_FACTOR: float = float(os.getenv("OCR_CONTRAST_FACTOR", "1.5"))

    # Hosted OCR endpoint used by the remote engine
    OCR_REMOTE_URL: str | None = os.getenv("OCR_REMOTE_URL")
    OCR_REMOTE_API_KEY: str | None = os.getenv("OCR_REMOTE_API_KEY")
    OCR_REMOTE_TIMEOUT: float = float(os.getenv("OCR_REMOTE_TIMEOUT", "30"))

    # Google Cloud Vision (server side of the hosted endpoint)
    GOOGLE_CLOUD_VISION_API_KEY: str = os.getenv("GOOGLE_CLOUD_VISION_API_KEY", "")
    GOOGLE_VISION_TIMEOUT: float = float(os.getenv("GOOGLE_VISION_TIMEOUT", "30"))

    # CORS
    CORS_ORIGINS: str = os.getenv("CORS_ORIGINS", "*")


class DevelopmentConfig(Config):
    """Development configuration."""

    DEBUG: bool = True


class UnitTestConfig(Config):  # noqa: D101
    """Testing configuration."""

    TESTING: bool = True
    DEBUG: bool = True
    OCR_ENABLED: bool = True
    OCR_PROVIDER: str = "hybrid"
    OCR_REMOTE_URL: str | None = None
    OCR_REMOTE_API_KEY: str | None = None
    GOOGLE_CLOUD_VISION_API_KEY: str = ""


class ProductionConfig(Config):
    """Production configuration."""

    DEBUG: bool = False
    TESTING: bool = False


def get_config(config_name: str | None = None) -> Config:
    """Get the appropriate configuration based on environment."""
    env = (config_name or os.getenv("FLASK_ENV", "development")).lower()

    configs = {
        "development": DevelopmentConfig,
        "testing": UnitTestConfig,
        "production": ProductionConfig,
    }

    config_class = configs.get(env, DevelopmentConfig)
    return config_class()
