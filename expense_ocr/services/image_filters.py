"""Pixel filters used to prepare receipt images for OCR.

Every filter takes a RawImage and returns a new RawImage. Input buffers are
never modified, so a caller can keep using the image it passed in.
"""

from collections.abc import Sequence
from dataclasses import dataclass
import math

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view
from PIL import Image

SHARPEN_KERNEL: tuple[int, ...] = (
    0, -1, 0,
    -1, 5, -1,
    0, -1, 0,
)  # fmt: skip

# ITU-R BT.601 luma weights
LUMA_WEIGHTS = (0.299, 0.587, 0.114)


@dataclass
class RawImage:
    """RGBA pixel buffer of shape (height, width, 4) and dtype uint8."""

    pixels: np.ndarray

    def __post_init__(self) -> None:
        if self.pixels.ndim != 3 or self.pixels.shape[2] != 4:
            raise ValueError(f"Expected an RGBA buffer, got shape {self.pixels.shape}")
        if self.pixels.dtype != np.uint8:
            self.pixels = self.pixels.astype(np.uint8)

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @classmethod
    def from_pil(cls, image: Image.Image) -> "RawImage":
        return cls(np.array(image.convert("RGBA"), dtype=np.uint8))

    def to_pil(self) -> Image.Image:
        return Image.fromarray(self.pixels)

    def copy(self) -> "RawImage":
        return RawImage(self.pixels.copy())


def _to_uint8(values: np.ndarray) -> np.ndarray:
    """Round to the nearest integer and clamp into the 0-255 range."""
    return np.clip(np.rint(values), 0, 255).astype(np.uint8)


def to_grayscale(image: RawImage) -> RawImage:
    """Replace R, G and B with the luma value Y = 0.299R + 0.587G + 0.114B."""
    rgb = image.pixels[..., :3].astype(np.float64)
    luma = rgb[..., 0] * LUMA_WEIGHTS[0] + rgb[..., 1] * LUMA_WEIGHTS[1] + rgb[..., 2] * LUMA_WEIGHTS[2]

    pixels = image.pixels.copy()
    pixels[..., :3] = _to_uint8(luma)[..., np.newaxis]
    return RawImage(pixels)


def stretch_contrast(image: RawImage, factor: float) -> RawImage:
    """Expand contrast linearly around the midpoint 128.

    out = clamp(factor * (in - 128) + 128 + (factor - 1) * 128)
    """
    rgb = image.pixels[..., :3].astype(np.float64)
    stretched = factor * (rgb - 128) + 128 + (factor - 1) * 128

    pixels = image.pixels.copy()
    pixels[..., :3] = _to_uint8(stretched)
    return RawImage(pixels)


def convolve(image: RawImage, kernel: Sequence[float]) -> RawImage:
    """Apply a square convolution kernel to the R, G and B channels.

    Args:
        image: Source image
        kernel: Flat, row-major kernel whose length is a perfect square

    Returns:
        New image. Pixels closer than ``floor(size / 2)`` to an edge are copied
        unchanged; there is no wraparound or edge extrapolation.

    Raises:
        ValueError: If the kernel is empty or not square
    """
    size = math.isqrt(len(kernel))
    if size == 0 or size * size != len(kernel):
        raise ValueError(f"Kernel length {len(kernel)} is not a perfect square")
    half = size // 2

    pixels = image.pixels.copy()
    inner_h = image.height - 2 * half
    inner_w = image.width - 2 * half
    if inner_h <= 0 or inner_w <= 0:
        return RawImage(pixels)

    source = image.pixels[..., :3].astype(np.float64)
    total = np.zeros((inner_h, inner_w, 3), dtype=np.float64)
    for ky in range(size):
        for kx in range(size):
            weight = kernel[ky * size + kx]
            if weight == 0:
                continue
            total += weight * source[ky : ky + inner_h, kx : kx + inner_w]

    pixels[half : half + inner_h, half : half + inner_w, :3] = _to_uint8(total)
    return RawImage(pixels)


def sharpen(image: RawImage) -> RawImage:
    return convolve(image, SHARPEN_KERNEL)


def otsu_threshold(histogram: Sequence[int] | np.ndarray) -> int:
    """Return the gray level that maximizes between-class variance.

    Args:
        histogram: 256-bin grayscale histogram

    Returns:
        Threshold in 0-255. Pixels strictly above it are foreground. A histogram
        with fewer than two occupied bins yields 0.
    """
    counts = np.asarray(histogram, dtype=np.float64)
    if counts.shape != (256,):
        raise ValueError(f"Expected 256 histogram bins, got {counts.shape}")

    total = counts.sum()
    if total == 0 or np.count_nonzero(counts) < 2:
        return 0

    weighted_total = float(np.dot(np.arange(256), counts))
    sum_background = 0.0
    weight_background = 0.0
    max_variance = 0.0
    threshold = 0

    for level in range(256):
        weight_background += counts[level]
        if weight_background == 0:
            continue

        weight_foreground = total - weight_background
        if weight_foreground == 0:
            break

        sum_background += level * counts[level]
        mean_background = sum_background / weight_background
        mean_foreground = (weighted_total - sum_background) / weight_foreground

        variance = weight_background * weight_foreground * (mean_background - mean_foreground) ** 2
        if variance > max_variance:
            max_variance = variance
            threshold = level

    return threshold


def binarize_otsu(image: RawImage) -> RawImage:
    """Map every pixel to pure black or white using Otsu's threshold.

    The histogram is built from the R channel, which holds the intensity once
    the image is grayscale. Alpha is forced to 255 so every channel of the
    result is either 0 or 255. A flat image (one gray level) becomes all white.
    """
    intensity = image.pixels[..., 0]
    histogram = np.bincount(intensity.ravel(), minlength=256)

    if np.count_nonzero(histogram) < 2:
        binary = np.full(intensity.shape, 255, dtype=np.uint8)
    else:
        threshold = otsu_threshold(histogram)
        binary = np.where(intensity > threshold, 255, 0).astype(np.uint8)

    pixels = np.empty_like(image.pixels)
    pixels[..., :3] = binary[..., np.newaxis]
    pixels[..., 3] = 255
    return RawImage(pixels)


def median_filter(image: RawImage, radius: int = 1) -> RawImage:
    """Replace each interior pixel with the median of its neighbourhood.

    Neighbourhood values come from an unmodified copy of the R channel, so the
    order in which pixels are visited does not affect the result.
    """
    pixels = image.pixels.copy()
    if radius < 1:
        return RawImage(pixels)

    window = 2 * radius + 1
    if image.height < window or image.width < window:
        return RawImage(pixels)

    neighbourhoods = sliding_window_view(image.pixels[..., 0], (window, window))
    flat = neighbourhoods.reshape(neighbourhoods.shape[0], neighbourhoods.shape[1], window * window)
    middle = (window * window) // 2
    median = np.partition(flat, middle, axis=-1)[..., middle]

    pixels[radius : image.height - radius, radius : image.width - radius, :3] = median[..., np.newaxis]
    return RawImage(pixels)
