from __future__ import annotations

"""Enhanced previews of the card photo.

Each preview is computed on its own copy of the pixels; the analysed raster
is never modified. Previews are for display only and never feed scoring.

- hdr: contrast/brightness lift followed by Reinhard tone mapping
- sharpened: two passes of 3x3 sharpening kernels
- denoised: bilateral filter
- contrastEnhanced: CLAHE on the lightness channel
- edgeEnhanced: binary Sobel magnitude map (> 50) after a light blur
- colorCorrected: grey-world white balance
"""

import logging
from typing import Callable, Optional

import numpy as np

try:
    import cv2
except ImportError as e:
    raise ImportError(
        "opencv-python is required for image enhancement. "
        "Install with: pip install opencv-python"
    ) from e

from services.grading.photo_quality import analyze_quality
from services.grading.raster import RasterImage
from services.grading.types import EnhancedImages, QualityReport


logger = logging.getLogger(__name__)


HDR_CONTRAST = 0.2
HDR_BRIGHTNESS = 0.1

SHARPEN_KERNELS = (
    np.array([[-1, -1, -1], [-1, 9, -1], [-1, -1, -1]], dtype=np.float32),
    np.array([[0, -1, 0], [-1, 5, -1], [0, -1, 0]], dtype=np.float32),
)

BILATERAL_DIAMETER = 3
BILATERAL_SIGMA_COLOR = 50.0
BILATERAL_SIGMA_SPACE = 1.0

CLAHE_CLIP_LIMIT = 3.0
CLAHE_TILE_GRID = (8, 8)

EDGE_BLUR_KSIZE = (3, 3)
EDGE_MAGNITUDE_THRESHOLD = 50.0


def _rgb(raster: RasterImage) -> np.ndarray:
    return np.ascontiguousarray(raster.rgb)


def _with_alpha(raster: RasterImage, rgb: np.ndarray) -> RasterImage:
    rgb8 = np.clip(rgb, 0, 255).astype(np.uint8)
    return RasterImage(np.concatenate([rgb8, raster.pixels[..., 3:]], axis=2))


def tone_map(values: np.ndarray) -> np.ndarray:
    """Reinhard curve v / (1 + v / 255)."""
    return np.clip(values / (1.0 + values / 255.0), 0, 255)


def apply_hdr(raster: RasterImage) -> RasterImage:
    rgb = _rgb(raster).astype(np.float64)
    factor = (1.0 + HDR_CONTRAST) / (1.0 - HDR_CONTRAST)
    rgb = np.clip(np.floor(factor * (rgb - 127.0) + 127.0), 0, 255)
    rgb = rgb + (255.0 - rgb) * HDR_BRIGHTNESS
    return _with_alpha(raster, tone_map(rgb))


def sharpen(raster: RasterImage) -> RasterImage:
    out = _rgb(raster)
    for kernel in SHARPEN_KERNELS:
        out = cv2.filter2D(out, -1, kernel)
    return _with_alpha(raster, out)


def denoise(raster: RasterImage) -> RasterImage:
    out = cv2.bilateralFilter(_rgb(raster), BILATERAL_DIAMETER, BILATERAL_SIGMA_COLOR, BILATERAL_SIGMA_SPACE)
    return _with_alpha(raster, out)


def enhance_contrast(raster: RasterImage) -> RasterImage:
    lab = cv2.cvtColor(_rgb(raster), cv2.COLOR_RGB2LAB)
    clahe = cv2.createCLAHE(clipLimit=CLAHE_CLIP_LIMIT, tileGridSize=CLAHE_TILE_GRID)
    lab[..., 0] = clahe.apply(np.ascontiguousarray(lab[..., 0]))
    return _with_alpha(raster, cv2.cvtColor(lab, cv2.COLOR_LAB2RGB))


def edge_map(raster: RasterImage) -> RasterImage:
    gray = cv2.GaussianBlur(raster.brightness_map.astype(np.float32), EDGE_BLUR_KSIZE, 1.0)
    gx = cv2.Sobel(gray, cv2.CV_32F, 1, 0, ksize=3)
    gy = cv2.Sobel(gray, cv2.CV_32F, 0, 1, ksize=3)
    edges = np.where(np.hypot(gx, gy) > EDGE_MAGNITUDE_THRESHOLD, 255, 0).astype(np.uint8)
    rgb = np.repeat(edges[..., None], 3, axis=2)
    alpha = np.full(edges.shape + (1,), 255, dtype=np.uint8)
    return RasterImage(np.concatenate([rgb, alpha], axis=2))


def correct_colors(raster: RasterImage) -> RasterImage:
    rgb = _rgb(raster).astype(np.float64)
    means = rgb.reshape(-1, 3).mean(axis=0)
    target = float(means.mean())
    # A channel that is zero everywhere stays zero.
    gains = np.divide(target, means, out=np.ones(3), where=means > 0)
    return _with_alpha(raster, rgb * gains)


ENHANCEMENTS: dict[str, Callable[[RasterImage], RasterImage]] = {
    "hdr": apply_hdr,
    "sharpened": sharpen,
    "denoised": denoise,
    "contrastEnhanced": enhance_contrast,
    "edgeEnhanced": edge_map,
    "colorCorrected": correct_colors,
}


def enhancement_metadata(raster: RasterImage, quality: QualityReport) -> dict[str, object]:
    return {
        "dimensions": {"width": raster.width, "height": raster.height},
        "aspectRatio": raster.width / raster.height,
        "totalPixels": raster.width * raster.height,
        "colorStats": dict(quality.color_stats),
        "textureStats": dict(quality.texture_stats),
        "qualityMetrics": dict(quality.quality_metrics),
    }


def enhance_image(raster: RasterImage, quality: Optional[QualityReport] = None) -> EnhancedImages:
    """Render every preview plus metadata and the quality report."""
    quality = quality if quality is not None else analyze_quality(raster)
    processed = {name: fn(raster) for name, fn in ENHANCEMENTS.items()}
    logger.debug("rendered %d enhancement previews for %r", len(processed), raster)
    return EnhancedImages(
        processed=processed,
        metadata=enhancement_metadata(raster, quality),
        analysis=quality,
    )
