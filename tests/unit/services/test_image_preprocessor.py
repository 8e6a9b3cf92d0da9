"""Tests for the image preprocessing pipeline."""

from io import BytesIO

import numpy as np
from PIL import Image
import pytest

from expense_ocr.services.exceptions import DecodeError
from expense_ocr.services.image_preprocessor import ImagePreprocessor
from expense_ocr.services.ocr_models import PreprocessOptions


def _encode(img: Image.Image, fmt: str = "PNG") -> bytes:
    buffer = BytesIO()
    img.save(buffer, format=fmt)
    return buffer.getvalue()


class TestLoad:
    """Test decoding of uploaded bytes."""

    def test_corrupt_bytes_raise_decode_error(self) -> None:
        """Bytes that are not an image raise DecodeError."""
        with pytest.raises(DecodeError):
            ImagePreprocessor().load(b"definitely not an image")

    def test_transparent_pixels_become_white(self) -> None:
        """Transparent areas are composited onto white paper."""
        img = Image.new("RGBA", (4, 4), (0, 0, 0, 0))

        loaded = ImagePreprocessor().load(_encode(img))

        assert loaded.mode == "RGB"
        assert loaded.getpixel((0, 0)) == (255, 255, 255)

    def test_grayscale_input_converted_to_rgb(self) -> None:
        """Single-channel images are converted to RGB."""
        loaded = ImagePreprocessor().load(_encode(Image.new("L", (3, 3), 40)))

        assert loaded.mode == "RGB"


class TestResize:
    """Test the dimension cap."""

    def test_downscales_preserving_aspect_ratio(self) -> None:
        """A 4000x2000 image is capped to 2000x1000."""
        resized = ImagePreprocessor().resize(Image.new("RGB", (4000, 2000)))

        assert resized.size == (2000, 1000)

    def test_portrait_is_capped_on_height(self) -> None:
        """The longer side is the one reduced to the cap."""
        resized = ImagePreprocessor(max_dimension=100).resize(Image.new("RGB", (50, 400)))

        assert resized.size == (12, 100)

    def test_never_upscales(self) -> None:
        """Images already within the cap keep their size."""
        img = Image.new("RGB", (300, 200))

        assert ImagePreprocessor().resize(img).size == (300, 200)

    def test_rejects_non_positive_cap(self) -> None:
        """A cap below one pixel is a configuration error."""
        with pytest.raises(ValueError):
            ImagePreprocessor(max_dimension=0)


class TestPreprocess:
    """Test the full pipeline."""

    def test_output_is_binary_and_capped(self) -> None:
        """Default options yield a pure black and white image within the cap."""
        img = Image.new("RGB", (400, 200), (230, 225, 210))
        for x in range(40, 360):
            for y in range(90, 110):
                img.putpixel((x, y), (30, 30, 40))

        result = ImagePreprocessor(max_dimension=200).preprocess(_encode(img))

        assert (result.width, result.height) == (200, 100)
        assert set(np.unique(result.pixels).tolist()) <= {0, 255}

    def test_accepts_decoded_image(self, png_bytes: bytes) -> None:
        """A Pillow image can be passed instead of encoded bytes."""
        img = Image.open(BytesIO(png_bytes))

        result = ImagePreprocessor().preprocess(img)

        assert (result.width, result.height) == (120, 60)

    def test_binarize_disabled_keeps_gray_levels(self) -> None:
        """Without binarization the grayscale output keeps intermediate values."""
        img = Image.new("RGB", (10, 10), (120, 120, 120))
        options = PreprocessOptions(contrast=False, sharpen=False, binarize=False, denoise=False)

        result = ImagePreprocessor().preprocess(_encode(img), options)

        assert int(result.pixels[5, 5, 0]) == 120
        assert np.array_equal(result.pixels[..., 0], result.pixels[..., 1])

    def test_deskew_is_ignored(self, png_bytes: bytes) -> None:
        """Requesting deskew does not fail or change the output."""
        processor = ImagePreprocessor()

        plain = processor.preprocess(png_bytes)
        deskewed = processor.preprocess(png_bytes, PreprocessOptions(deskew=True))

        assert np.array_equal(plain.pixels, deskewed.pixels)

    def test_ocr_image_is_single_channel(self, png_bytes: bytes) -> None:
        """The image handed to Tesseract is an 8-bit grayscale Pillow image."""
        img = ImagePreprocessor().preprocess_image_for_ocr(png_bytes)

        assert img.mode == "L"
        assert img.size == (120, 60)

    def test_corrupt_input_raises_decode_error(self) -> None:
        """Decode failures surface as DecodeError from the pipeline."""
        with pytest.raises(DecodeError):
            ImagePreprocessor().preprocess(b"\x89PNG broken")
