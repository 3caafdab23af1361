import asyncio
import base64
import io
import logging

import numpy as np
import pytest
from PIL import Image, ImageFilter

from fitcheck.core.config import QualityThresholds
from fitcheck.core.image_quality import (
    analyze, analyze_async, analysis_size, average_brightness, compute_metrics,
    laplacian_variance, to_analysis_raster, to_grayscale,
)
from fitcheck.domain.models import EncodedImage, IssueKind, QualityVerdict


def _png(img: Image.Image) -> bytes:
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def _data_url(img: Image.Image) -> str:
    return "data:image/png;base64," + base64.b64encode(_png(img)).decode("ascii")


def _checkerboard(size: int, cell: int = 1) -> Image.Image:
    yy, xx = np.indices((size, size))
    board = (((yy // cell) + (xx // cell)) % 2 * 255).astype(np.uint8)
    return Image.fromarray(board).convert("RGB")


def _gradient(size: int) -> Image.Image:
    row = np.linspace(90, 230, size)
    arr = np.tile(row, (size, 1)).astype(np.uint8)
    return Image.fromarray(arr).convert("RGB")


def test_small_gray_image_is_low_resolution_and_blurry():
    img = Image.new("RGB", (100, 100), color=(128, 128, 128))
    verdict = analyze(_data_url(img))

    assert verdict.is_acceptable is False
    assert verdict.issues == [IssueKind.LOW_RESOLUTION, IssueKind.BLURRY]


def test_low_resolution_regardless_of_content():
    sharp_but_narrow = _checkerboard(400, cell=4).crop((0, 0, 299, 400))
    verdict = analyze(_png(sharp_but_narrow))

    assert verdict.issues == [IssueKind.LOW_RESOLUTION]


def test_dark_flat_image_is_too_dark_and_blurry():
    img = Image.new("RGB", (400, 400), color=(10, 10, 10))
    verdict = analyze(_png(img))

    assert verdict.issues == [IssueKind.TOO_DARK, IssueKind.BLURRY]
    assert IssueKind.LOW_RESOLUTION not in verdict.issues


def test_checkerboard_passes():
    verdict = analyze(_data_url(_checkerboard(400)))

    assert verdict.is_acceptable is True
    assert verdict.issues == []


def test_large_checkerboard_passes_after_downsampling():
    verdict = analyze(_png(_checkerboard(1000, cell=8)))

    assert verdict == QualityVerdict(is_acceptable=True, issues=[])


def test_analyze_is_deterministic():
    payload = _png(_checkerboard(640, cell=3))
    assert analyze(payload) == analyze(payload)

    gray = _png(Image.new("RGB", (120, 80), color=(40, 40, 40)))
    first, second = analyze(gray), analyze(gray)
    assert first == second
    assert first.issues == [IssueKind.LOW_RESOLUTION, IssueKind.TOO_DARK, IssueKind.BLURRY]


def test_blur_detected_on_native_and_upscaled_images():
    native = _checkerboard(1000, cell=50).filter(ImageFilter.GaussianBlur(radius=8))
    upscaled = _gradient(250).resize((1000, 1000), Image.Resampling.BICUBIC)
    small = _gradient(250)

    assert analyze(_png(native)).issues == [IssueKind.BLURRY]
    assert analyze(_png(upscaled)).issues == [IssueKind.BLURRY]
    assert analyze(_png(small)).issues == [IssueKind.LOW_RESOLUTION, IssueKind.BLURRY]


def test_malformed_input_is_accepted():
    truncated = _png(_checkerboard(400))[:120]
    inputs = [
        b"definitely not an image",
        b"",
        truncated,
        "data:image/png;base64,!!!not-base64!!!",
        "data:image/png;base64,",
        "photo.png",
        EncodedImage(data=b"\x89PNG\r\n\x1a\ngarbage", mime_type="image/png"),
    ]
    for bad in inputs:
        assert analyze(bad) == QualityVerdict.accept()


def test_unsupported_input_type_is_accepted():
    assert analyze(12345).is_acceptable is True


def test_zero_sized_analysis_surface_keeps_resolution_check():
    """A 1x2000 strip downsamples to width 0, so only the native check applies."""
    strip = Image.new("RGB", (1, 2000), color=(0, 0, 0))
    verdict = analyze(_png(strip))

    assert verdict.issues == [IssueKind.LOW_RESOLUTION]
    metrics = compute_metrics(_png(strip))
    assert metrics.has_analysis is False
    assert (metrics.analysis_width, metrics.analysis_height) == (0, 0)


def test_transparent_pixels_read_as_black():
    img = Image.new("RGBA", (400, 400), color=(255, 255, 255, 0))
    verdict = analyze(_png(img))

    assert verdict.issues == [IssueKind.TOO_DARK, IssueKind.BLURRY]


def test_analysis_size_caps_long_edge():
    assert analysis_size(1000, 1000, 500) == (500, 500)
    assert analysis_size(2000, 500, 500) == (500, 125)
    assert analysis_size(300, 200, 500) == (300, 200)
    assert analysis_size(1001, 3, 500) == (500, 1)


def test_metrics_use_native_and_analysis_dimensions():
    img = Image.new("RGB", (1200, 600), color=(200, 200, 200))
    metrics = compute_metrics(_png(img))

    assert (metrics.native_width, metrics.native_height) == (1200, 600)
    assert (metrics.analysis_width, metrics.analysis_height) == (500, 250)
    assert metrics.brightness == pytest.approx(200.0, abs=0.5)
    assert metrics.laplacian_variance < 1.0


def test_brightness_uses_plain_channel_average():
    raster = np.zeros((2, 2, 4), dtype=np.uint8)
    raster[..., 0] = 90   # R only
    raster[..., 3] = 255

    assert average_brightness(raster) == 30.0


def test_grayscale_uses_perceptual_weights():
    raster = np.zeros((1, 3, 4), dtype=np.uint8)
    raster[0, 0, :3] = (255, 0, 0)
    raster[0, 1, :3] = (0, 255, 0)
    raster[0, 2, :3] = (0, 0, 255)

    assert to_grayscale(raster).tolist() == [[76, 150, 29]]


def test_laplacian_variance_counts_border_pixels():
    """Single bright pixel in a 3x3 grid: L=4*255 at the center only, 9 cells in the denominator."""
    raster = np.zeros((3, 3, 4), dtype=np.uint8)
    raster[1, 1, :3] = 255
    raster[..., 3] = 255

    values = np.zeros(9)
    values[4] = 4 * 255
    assert laplacian_variance(raster) == pytest.approx(float(np.var(values)))


def test_laplacian_variance_of_tiny_raster_is_zero():
    raster = np.full((2, 5, 4), 255, dtype=np.uint8)
    raster[0, 0, :3] = 0
    assert laplacian_variance(raster) == 0.0


def test_to_analysis_raster_returns_rgba8():
    raster = to_analysis_raster(Image.new("L", (800, 400), color=128), max_edge=500)

    assert raster.dtype == np.uint8
    assert raster.shape == (250, 500, 4)


def test_custom_thresholds():
    img = Image.new("RGB", (200, 200), color=(100, 100, 100))
    lenient = QualityThresholds(min_width=100, min_height=100, darkness_threshold=50, blur_threshold=-1)
    strict = QualityThresholds(min_width=100, min_height=100, darkness_threshold=150, blur_threshold=-1)

    assert analyze(_png(img), lenient).is_acceptable is True
    assert analyze(_png(img), strict).issues == [IssueKind.TOO_DARK]


def test_analyze_async_matches_sync():
    payload = _png(Image.new("RGB", (100, 100), color=(128, 128, 128)))

    verdict = asyncio.run(analyze_async(payload))
    assert verdict == analyze(payload)
    assert asyncio.run(analyze_async(b"junk")) == QualityVerdict.accept()


def test_file_paths_are_not_opened(tmp_path):
    """Plain strings are not data URLs; the analyzer never reads the file system."""
    path = tmp_path / "small.png"
    path.write_bytes(_png(Image.new("RGB", (100, 100), color=(128, 128, 128))))

    assert analyze(str(path)) == QualityVerdict.accept()


def test_sixteen_bit_grayscale_is_scaled_to_eight_bits():
    dark = Image.fromarray(np.full((400, 400), 10000, dtype=np.uint16))
    metrics = compute_metrics(_png(dark))

    assert metrics.brightness == pytest.approx(10000 >> 8)
    assert analyze(_png(dark)).issues == [IssueKind.TOO_DARK, IssueKind.BLURRY]


def test_sixteen_bit_texture_keeps_its_contrast():
    yy, xx = np.indices((400, 400))
    board = np.where((yy + xx) % 2 == 0, 20000, 50000).astype(np.uint16)
    verdict = analyze(_png(Image.fromarray(board)))

    assert verdict.is_acceptable is True


def test_partial_alpha_keeps_pixel_colour():
    yy, xx = np.indices((400, 400))
    rgba = np.zeros((400, 400, 4), dtype=np.uint8)
    rgba[..., :3] = np.where((yy + xx) % 2 == 0, 200, 255)[..., None]
    rgba[..., 3] = 40
    payload = _png(Image.fromarray(rgba))

    assert compute_metrics(payload).brightness == pytest.approx(227.5)
    assert analyze(payload).is_acceptable is True


def test_analyze_async_logs_metrics(caplog):
    payload = _png(Image.new("RGB", (100, 100), color=(128, 128, 128)))

    with caplog.at_level(logging.DEBUG, logger="fitcheck.core.image_quality"):
        asyncio.run(analyze_async(payload))
    assert "Quality metrics: native=100x100" in caplog.text
