"""Tests for the local and remote recognition engines."""

from unittest.mock import Mock, patch

import pytesseract
import pytest
import requests

from expense_ocr.services.exceptions import LocalEngineError, RemoteEngineError
from expense_ocr.services.ocr_engines import LocalOCREngine, RemoteOCREngine


def _response(payload=None, status_code: int = 200, json_error: bool = False) -> Mock:
    response = Mock()
    response.status_code = status_code
    response.ok = status_code < 400
    if json_error:
        response.json.side_effect = ValueError("not json")
    else:
        response.json.return_value = payload
    return response


class TestLocalOCREngine:
    """Test the Tesseract wrapper."""

    def test_requires_a_configuration(self) -> None:
        """An empty configuration list is rejected."""
        with pytest.raises(ValueError):
            LocalOCREngine(configs=())

    @patch("expense_ocr.services.ocr_engines.pytesseract.image_to_string")
    def test_keeps_longest_text(self, mock_ocr) -> None:
        """The most complete result across configurations is returned."""
        mock_ocr.side_effect = ["short", "a much longer text"]
        engine = LocalOCREngine(configs=("--psm 6", "--psm 4"))

        text = engine.recognize(Mock())

        assert text == "a much longer text"
        assert mock_ocr.call_count == 2

    @patch("expense_ocr.services.ocr_engines.pytesseract.image_to_string")
    def test_passes_language_config_and_timeout(self, mock_ocr) -> None:
        """Tesseract receives the configured language and mode."""
        mock_ocr.return_value = "text"
        image = Mock()

        LocalOCREngine(languages="fra", configs=("--psm 6",), timeout=5).recognize(image)

        mock_ocr.assert_called_once_with(image, lang="fra", config="--psm 6", timeout=5)

    @patch("expense_ocr.services.ocr_engines.pytesseract.image_to_string")
    def test_reports_fractional_progress(self, mock_ocr) -> None:
        """Progress is reported after each configuration."""
        mock_ocr.return_value = "text"
        progress = Mock()

        LocalOCREngine(configs=("a", "b")).recognize(Mock(), progress)

        assert [c.args[0] for c in progress.call_args_list] == [0.5, 1.0]

    @patch("expense_ocr.services.ocr_engines.pytesseract.image_to_string")
    def test_closes_image(self, mock_ocr) -> None:
        """The engine releases the image it was given."""
        mock_ocr.return_value = "text"
        image = Mock()

        LocalOCREngine().recognize(image)

        image.close.assert_called_once()

    @patch("expense_ocr.services.ocr_engines.pytesseract.image_to_string")
    def test_missing_binary(self, mock_ocr) -> None:
        """A missing Tesseract install raises LocalEngineError."""
        mock_ocr.side_effect = pytesseract.TesseractNotFoundError()
        image = Mock()

        with pytest.raises(LocalEngineError):
            LocalOCREngine().recognize(image)

        image.close.assert_called_once()

    @patch("expense_ocr.services.ocr_engines.pytesseract.image_to_string")
    def test_one_failing_configuration_is_tolerated(self, mock_ocr) -> None:
        """A failure in one mode does not discard the others."""
        mock_ocr.side_effect = [pytesseract.TesseractError(1, "bad psm"), "text"]

        assert LocalOCREngine(configs=("a", "b")).recognize(Mock()) == "text"

    @patch("expense_ocr.services.ocr_engines.pytesseract.image_to_string")
    def test_all_configurations_fail(self, mock_ocr) -> None:
        """When every mode fails the error is raised."""
        mock_ocr.side_effect = [pytesseract.TesseractError(1, "bad"), RuntimeError("Tesseract process timeout")]

        with pytest.raises(LocalEngineError):
            LocalOCREngine(configs=("a", "b")).recognize(Mock())

    @patch("expense_ocr.services.ocr_engines.pytesseract.image_to_string")
    def test_blank_result_is_not_an_error(self, mock_ocr) -> None:
        """An image without text returns an empty string."""
        mock_ocr.return_value = ""

        assert LocalOCREngine().recognize(Mock()) == ""

    @patch("expense_ocr.services.ocr_engines.pytesseract.get_tesseract_version")
    def test_is_available(self, mock_version) -> None:
        """Availability reflects whether the binary answers."""
        mock_version.return_value = "5.3.0"
        assert LocalOCREngine().is_available() is True

        mock_version.side_effect = pytesseract.TesseractNotFoundError()
        assert LocalOCREngine().is_available() is False


class TestRemoteOCREngine:
    """Test the hosted engine client."""

    def test_unconfigured_url_requests_fallback(self) -> None:
        """Without an endpoint the caller is told to use the local engine."""
        with pytest.raises(RemoteEngineError) as exc_info:
            RemoteOCREngine(url=None).recognize(b"data")

        assert exc_info.value.fallback_requested is True

    @patch("expense_ocr.services.ocr_engines.requests.post")
    def test_success(self, mock_post) -> None:
        """Recognized text is returned from a successful response."""
        mock_post.return_value = _response({"provider": "remote", "text": "TOTAL 12,00 €", "success": True})
        engine = RemoteOCREngine(url="https://ocr.example.com/process", api_key="secret", timeout=12)

        text = engine.recognize(b"img", "r.png", "image/png", plan="pro")

        assert text == "TOTAL 12,00 €"
        _, kwargs = mock_post.call_args
        assert kwargs["timeout"] == 12
        assert kwargs["headers"]["X-API-Key"] == "secret"
        assert kwargs["files"]["file"] == ("r.png", b"img", "image/png")
        assert kwargs["data"] == {"plan": "pro"}

    @patch("expense_ocr.services.ocr_engines.requests.post")
    def test_network_error(self, mock_post) -> None:
        """Transport failures become RemoteEngineError."""
        mock_post.side_effect = requests.ConnectionError("unreachable")

        with pytest.raises(RemoteEngineError):
            RemoteOCREngine(url="https://ocr.example.com").recognize(b"img")

    @pytest.mark.parametrize(
        "payload",
        [
            {"error": "quota exceeded", "fallback": True},
            {"provider": "local", "message": "use tesseract"},
            {"provider": "tesseract"},
        ],
    )
    @patch("expense_ocr.services.ocr_engines.requests.post")
    def test_fallback_requested_by_endpoint(self, mock_post, payload) -> None:
        """An explicit fallback answer is surfaced as a fallback request."""
        mock_post.return_value = _response(payload)

        with pytest.raises(RemoteEngineError) as exc_info:
            RemoteOCREngine(url="https://ocr.example.com").recognize(b"img")

        assert exc_info.value.fallback_requested is True

    @pytest.mark.parametrize(
        "response",
        [
            _response(json_error=True),
            _response(["not", "a", "dict"]),
            _response({"error": "boom"}, status_code=500),
            _response({"provider": "remote", "text": "   "}),
            _response({"provider": "remote"}),
        ],
    )
    @patch("expense_ocr.services.ocr_engines.requests.post")
    def test_unusable_responses(self, mock_post, response) -> None:
        """Malformed, failed or empty answers raise RemoteEngineError."""
        mock_post.return_value = response

        with pytest.raises(RemoteEngineError):
            RemoteOCREngine(url="https://ocr.example.com").recognize(b"img")
