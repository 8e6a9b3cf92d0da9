"""Image preprocessing pipeline that prepares receipt photos for Tesseract."""

from io import BytesIO
import logging
from typing import cast

from PIL import Image, ImageOps, UnidentifiedImageError

from .exceptions import DecodeError
from .image_filters import RawImage, binarize_otsu, median_filter, sharpen, stretch_contrast, to_grayscale
from .ocr_models import PreprocessOptions

logger = logging.getLogger(__name__)

MAX_DIMENSION = 2000
CONTRAST_FACTOR = 1.5


class ImagePreprocessor:
    """Runs the pixel filters in a fixed order with a size cap.

    Order: resize -> contrast -> sharpen -> grayscale -> binarize -> denoise.
    Only the enable flags are configurable; grayscale always runs because the
    later stages read intensity from a single channel.
    """

    def __init__(self, max_dimension: int = MAX_DIMENSION, contrast_factor: float = CONTRAST_FACTOR) -> None:
        if max_dimension < 1:
            raise ValueError("max_dimension must be positive")
        self.max_dimension = max_dimension
        self.contrast_factor = contrast_factor

    def load(self, image_bytes: bytes) -> Image.Image:
        """Decode raw bytes into an RGB Pillow image.

        Raises:
            DecodeError: If the bytes are not a readable image
        """
        try:
            img = Image.open(BytesIO(image_bytes))
            img.load()
            # Phone cameras store rotation in EXIF instead of rotating pixels
            img = cast(Image.Image, ImageOps.exif_transpose(img))
        except (UnidentifiedImageError, OSError, SyntaxError, ValueError, Image.DecompressionBombError) as e:
            logger.error(f"Failed to open image: {e}")
            raise DecodeError(f"Unsupported or corrupt image: {e}") from e

        if img.width == 0 or img.height == 0:
            raise DecodeError("Image has invalid dimensions (width or height is 0)")

        # Transparent areas become white paper rather than black
        if img.mode in ("RGBA", "LA") or (img.mode == "P" and "transparency" in img.info):
            rgba = img.convert("RGBA")
            background = Image.new("RGB", rgba.size, (255, 255, 255))
            background.paste(rgba, mask=rgba.split()[3])
            img = background
        elif img.mode != "RGB":
            img = img.convert("RGB")

        return img

    def resize(self, img: Image.Image) -> Image.Image:
        """Downscale so neither side exceeds the cap, preserving aspect ratio."""
        width, height = img.size
        if width <= self.max_dimension and height <= self.max_dimension:
            return img

        ratio = min(self.max_dimension / width, self.max_dimension / height)
        new_size = (
            min(self.max_dimension, max(1, int(width * ratio))),
            min(self.max_dimension, max(1, int(height * ratio))),
        )
        logger.debug(f"Resizing image from {img.size} to {new_size}")
        return img.resize(new_size, Image.Resampling.LANCZOS)

    def preprocess(
        self, source: bytes | Image.Image, options: PreprocessOptions | None = None
    ) -> RawImage:
        """Run the full pipeline.

        Args:
            source: Encoded image bytes or an already decoded Pillow image
            options: Stage toggles; all enabled by default except deskew

        Returns:
            New RawImage no larger than ``max_dimension`` on either side

        Raises:
            DecodeError: If ``source`` bytes cannot be decoded
        """
        options = options or PreprocessOptions()

        if isinstance(source, Image.Image):
            img = source.convert("RGB")
        else:
            img = self.load(source)

        image = RawImage.from_pil(self.resize(img))

        if options.contrast:
            image = stretch_contrast(image, self.contrast_factor)
        if options.sharpen:
            image = sharpen(image)
        image = to_grayscale(image)
        if options.binarize:
            image = binarize_otsu(image)
        if options.denoise:
            image = median_filter(image)
        if options.deskew:
            logger.debug("Deskew requested but not supported - skipping")

        logger.debug(f"Preprocessed image: {image.width}x{image.height} ({options})")
        return image

    def preprocess_image_for_ocr(
        self, source: bytes | Image.Image, options: PreprocessOptions | None = None
    ) -> Image.Image:
        """Return the preprocessed image as a single-channel Pillow image for Tesseract."""
        return self.preprocess(source, options).to_pil().convert("L")
