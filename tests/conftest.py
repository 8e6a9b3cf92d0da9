"""Pytest configuration and fixtures for the test suite."""

from io import BytesIO
import os
from pathlib import Path
import sys
from typing import Generator

from flask import Flask
from flask.testing import FlaskClient
from PIL import Image
import pytest

# Add the project root to the Python path first to avoid import issues
project_root = str(Path(__file__).parent.parent)
sys.path.insert(0, project_root)

# Set test environment variables before the config module is imported
os.environ.update(
    {
        "FLASK_ENV": "testing",
        "SECRET_KEY": "test-secret-key",
        "OCR_PROVIDER": "hybrid",
    }
)
for key in ("OCR_REMOTE_URL", "OCR_REMOTE_API_KEY", "GOOGLE_CLOUD_VISION_API_KEY"):
    os.environ.pop(key, None)

from expense_ocr import create_app  # noqa: E402

RECEIPT_TEXT = "\n".join(
    [
        "BOULANGERIE MARTIN",
        "12 rue de la Paix, 75002 Paris",
        "Date : 12/03/2024",
        "Baguette x2      2,40 €",
        "TOTAL TTC : 45,90 €",
        "TVA : 7,65 €",
        "Merci de votre visite",
    ]
)


@pytest.fixture(scope="function")
def app() -> Generator[Flask, None, None]:
    """Create and configure a new app instance for testing."""
    app = create_app("testing")
    app.config.update(TESTING=True, SECRET_KEY="test-secret-key")

    with app.app_context():
        yield app


@pytest.fixture
def client(app: Flask) -> FlaskClient:
    """A test client for the app."""
    return app.test_client()


@pytest.fixture
def receipt_text() -> str:
    """OCR output of a typical French bakery receipt."""
    return RECEIPT_TEXT


@pytest.fixture
def png_bytes() -> bytes:
    """A small encoded PNG with dark text-like strokes on white paper."""
    img = Image.new("RGB", (120, 60), (255, 255, 255))
    for x in range(10, 110):
        for y in (20, 21, 40, 41):
            img.putpixel((x, y), (20, 20, 20))
    buffer = BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()
