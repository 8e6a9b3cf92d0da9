import logging
import os

from dotenv import load_dotenv
from flask import Flask
from flask_cors import CORS

from config import get_config

# Load environment variables from .env file
load_dotenv()

# Initialize logger
logger = logging.getLogger(__name__)

__all__ = ["create_app"]


def create_app(config_name: str | None = None) -> Flask:
    """Create and configure the Flask application.

    Args:
        config_name: Configuration to load (development, testing, production).
                    Defaults to the FLASK_ENV environment variable.
    Returns:
        Flask: The configured Flask application instance.
    """
    config = get_config(config_name)

    app = Flask(__name__)
    app.config.from_object(config)

    _configure_logging(app)
    _initialize_components(app)

    return app


def _configure_logging(app: Flask) -> None:
    """Configure application logging."""
    log_level = logging.DEBUG if app.debug else logging.INFO
    logger.setLevel(log_level)
    logging.getLogger("expense_ocr.services").setLevel(log_level)

    logger.debug("Application configuration:")
    logger.debug(f"- DEBUG: {app.debug}")
    logger.debug(f"- OCR_ENABLED: {app.config.get('OCR_ENABLED')}")
    logger.debug(f"- OCR_PROVIDER: {app.config.get('OCR_PROVIDER')}")
    logger.debug(f"- OCR_REMOTE_URL: {'Set' if app.config.get('OCR_REMOTE_URL') else 'Not set'}")


def _initialize_components(app: Flask) -> None:
    """Initialize core application components."""
    _register_blueprints(app)

    from .errors import init_app as init_errors

    init_errors(app)
    logger.debug("Registered error handlers")

    _configure_cors(app)


def _register_blueprints(app: Flask) -> None:
    """Register all application blueprints."""
    from .api import bp as api_bp

    app.register_blueprint(api_bp, url_prefix="/api/v1")
    logger.debug(f"Registered blueprint: {api_bp.name} at /api/v1")


def _configure_cors(app: Flask) -> None:
    """Configure CORS settings for the API."""
    cors_origins = app.config.get("CORS_ORIGINS") or "*"
    cors_methods = os.getenv("CORS_METHODS", "GET,POST,OPTIONS").split(",")
    cors_allow_headers = os.getenv("CORS_ALLOW_HEADERS", "Content-Type,X-API-Key,X-Requested-With").split(",")

    CORS(
        app,
        resources={
            r"/api/*": {
                "origins": cors_origins.split(",") if isinstance(cors_origins, str) else cors_origins,
                "methods": cors_methods,
                "allow_headers": cors_allow_headers,
                "supports_credentials": False,
            }
        },
    )
