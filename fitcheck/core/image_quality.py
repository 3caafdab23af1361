# Deterministic usability checks for uploaded photos: resolution, brightness, sharpness.
#
# Decode failures never block an upload. If the bytes cannot be judged the
# verdict is "acceptable" and whichever step consumes the image next reports
# the real problem.

import asyncio
import io
import logging
import numpy as np
from PIL import Image, ImageOps
from typing import List, Optional, Union

from fitcheck.core.config import QualityThresholds
from fitcheck.domain.models import EncodedImage, IssueKind, QualityMetrics, QualityVerdict

logger = logging.getLogger("fitcheck.core.image_quality")

ImageInput = Union[EncodedImage, bytes, str]

# Integer modes Pillow uses for 16-bit grayscale PNGs
HIGH_BIT_MODES = ("I;16", "I;16L", "I;16B", "I;16N", "I")

# ITU-R BT.601 weights, used for the sharpness grayscale only
LUMA_WEIGHTS = np.array([0.299, 0.587, 0.114], dtype=np.float64)


def to_encoded_image(image_input: ImageInput) -> EncodedImage:
    """Accepts an EncodedImage, raw bytes or a base64 data URL."""
    if isinstance(image_input, EncodedImage):
        return image_input
    elif isinstance(image_input, (bytes, bytearray, memoryview)):
        return EncodedImage(data=bytes(image_input))
    elif isinstance(image_input, str):
        return EncodedImage.from_data_url(image_input)
    else:
        raise ValueError("Input must be EncodedImage, bytes or a data URL")


def decode_image(image_input: ImageInput) -> Image.Image:
    """
    Decodes the encoded bytes into a fully loaded PIL image.
    EXIF orientation is applied so width/height match what a viewer displays.
    """
    encoded = to_encoded_image(image_input)
    img = Image.open(io.BytesIO(encoded.data))
    # Force the decode now; Image.open only reads the header.
    img.load()
    return ImageOps.exif_transpose(img)


def analysis_size(width: int, height: int, max_edge: int) -> tuple:
    scale = min(1.0, max_edge / max(width, height))
    # Round half up
    return int(width * scale + 0.5), int(height * scale + 0.5)


def to_8bit(img: Image.Image) -> Image.Image:
    """Maps 16/32-bit integer and float grayscale modes onto 0..255."""
    if img.mode in HIGH_BIT_MODES:
        values = np.clip(np.asarray(img).astype(np.int64), 0, 65535) >> 8
        return Image.fromarray(values.astype(np.uint8))
    elif img.mode == "F":
        values = np.clip(np.rint(np.asarray(img)), 0, 255)
        return Image.fromarray(values.astype(np.uint8))
    return img


def to_analysis_raster(img: Image.Image, max_edge: int = 500) -> Optional[np.ndarray]:
    """
    Downsamples so the long edge is at most `max_edge` and returns an RGBA8
    array of shape (h, w, 4). RGB is left unpremultiplied; fully transparent
    pixels read as black.
    Returns None when no sampling surface can be produced (zero-sized target).
    """
    width, height = img.size
    if width <= 0 or height <= 0:
        return None

    target = analysis_size(width, height, max_edge)
    if target[0] == 0 or target[1] == 0:
        return None

    rgba = to_8bit(img).convert("RGBA")
    if rgba.size != target:
        rgba = rgba.resize(target, Image.Resampling.BILINEAR)

    raster = np.array(rgba, dtype=np.uint8)
    raster[raster[:, :, 3] == 0, :3] = 0
    return raster


def average_brightness(raster: np.ndarray) -> float:
    """Mean over all pixels of the plain channel average (R+G+B)/3."""
    rgb = raster[:, :, :3].astype(np.float64)
    return float(np.mean(rgb.sum(axis=2) / 3.0))


def to_grayscale(raster: np.ndarray) -> np.ndarray:
    """Perceptual grayscale stored as 8-bit (rounded, clamped)."""
    gray = raster[:, :, :3].astype(np.float64) @ LUMA_WEIGHTS
    return np.clip(np.rint(gray), 0, 255).astype(np.uint8)


def laplacian_variance(raster: np.ndarray) -> float:
    """
    Variance of the 4-neighbour Laplacian over the full grid.
    Border pixels keep a Laplacian of 0 and still count in the mean and the
    variance denominator (width * height).
    """
    gray = to_grayscale(raster).astype(np.float64)
    height, width = gray.shape
    laplacian = np.zeros((height, width), dtype=np.float64)

    if height > 2 and width > 2:
        laplacian[1:-1, 1:-1] = (
            4 * gray[1:-1, 1:-1]
            - gray[:-2, 1:-1]
            - gray[2:, 1:-1]
            - gray[1:-1, :-2]
            - gray[1:-1, 2:]
        )

    return float(np.var(laplacian))


def measure(img: Image.Image, thresholds: Optional[QualityThresholds] = None) -> QualityMetrics:
    """Computes raw metrics for an already decoded image."""
    thresholds = thresholds or QualityThresholds()
    native_width, native_height = img.size

    raster = to_analysis_raster(img, thresholds.analysis_max_edge)
    if raster is None:
        logger.warning(f"No analysis surface for {native_width}x{native_height} image; resolution check only.")
        return QualityMetrics(native_width, native_height, 0, 0)

    analysis_height, analysis_width = raster.shape[:2]
    return QualityMetrics(
        native_width=native_width,
        native_height=native_height,
        analysis_width=analysis_width,
        analysis_height=analysis_height,
        brightness=average_brightness(raster),
        laplacian_variance=laplacian_variance(raster),
    )


def compute_metrics(image_input: ImageInput, thresholds: Optional[QualityThresholds] = None) -> QualityMetrics:
    """Decodes and measures. Raises on undecodable input."""
    return measure(decode_image(image_input), thresholds)


def evaluate(metrics: QualityMetrics, thresholds: Optional[QualityThresholds] = None) -> QualityVerdict:
    """Applies thresholds in fixed order: resolution, brightness, sharpness."""
    thresholds = thresholds or QualityThresholds()
    issues: List[IssueKind] = []

    # 1. Resolution (native dimensions)
    if metrics.native_width < thresholds.min_width or metrics.native_height < thresholds.min_height:
        issues.append(IssueKind.LOW_RESOLUTION)

    if not metrics.has_analysis:
        return QualityVerdict.from_issues(issues)

    # 2. Brightness
    if metrics.brightness < thresholds.darkness_threshold:
        issues.append(IssueKind.TOO_DARK)

    # 3. Blur
    if metrics.laplacian_variance < thresholds.blur_threshold:
        issues.append(IssueKind.BLURRY)

    return QualityVerdict.from_issues(issues)


def _accept_unjudged(error: Exception) -> QualityVerdict:
    logger.error(f"Failed during image quality check: {error}")
    return QualityVerdict.accept()


def _judge(img: Image.Image, thresholds: Optional[QualityThresholds]) -> QualityVerdict:
    """Measures and evaluates a decoded image; shared by `analyze` and `analyze_async`."""
    try:
        metrics = measure(img, thresholds)
    except Exception as e:
        return _accept_unjudged(e)

    logger.debug(
        f"Quality metrics: native={metrics.native_width}x{metrics.native_height} "
        f"analysis={metrics.analysis_width}x{metrics.analysis_height} "
        f"brightness={metrics.brightness} blur_var={metrics.laplacian_variance}"
    )
    return evaluate(metrics, thresholds)


def analyze(image_input: ImageInput, thresholds: Optional[QualityThresholds] = None) -> QualityVerdict:
    """
    Checks whether an uploaded photo is usable.
    Never raises: undecodable input yields an accepting verdict.
    """
    try:
        img = decode_image(image_input)
    except Exception as e:
        return _accept_unjudged(e)
    return _judge(img, thresholds)


async def analyze_async(image_input: ImageInput, thresholds: Optional[QualityThresholds] = None) -> QualityVerdict:
    """Same as `analyze`, with the decode awaited in a worker thread."""
    try:
        img = await asyncio.to_thread(decode_image, image_input)
    except Exception as e:
        return _accept_unjudged(e)
    return _judge(img, thresholds)
