from __future__ import annotations

"""Image artifact detection.

Approach:
1. Compression: 8x8 blocks with brightness variance < 100 count as block
   artifacts (flat blocks are typical of heavy compression).
2. Noise: |centre - mean(4 neighbours)| > 100 is salt-and-pepper, a
   difference in (20, 50) is gaussian noise.
3. Blur: mean |centre - mean(4 neighbours)|.
4. JPEG quantisation: pixels whose r, g and b are all multiples of 8.

Severity labels use raw counts, ratios are reported alongside.

All thresholds are fixed constants for determinism and explainability.
"""

import numpy as np

from services.grading.banding import tier_above
from services.grading.raster import RasterImage
from services.grading.texture import mean_or_zero, neighbour_mean_diff
from services.grading.types import ArtifactCheck, ArtifactsResult


BLOCK_SIZE = 8
BLOCK_FLAT_VARIANCE = 100.0
BLOCK_SEVERITY = ((10, "High"), (5, "Medium"))

SALT_PEPPER_DIFF = 100
GAUSSIAN_DIFF_RANGE = (20, 50)  # exclusive bounds
NOISE_SEVERITY = ((100, "High"), (50, "Medium"))

BLUR_SEVERITY = ((30, "High"), (15, "Medium"))

QUANT_STEP = 8
QUANT_SEVERITY = ((1000, "High"), (500, "Medium"))


def block_variances(bright: np.ndarray, size: int = BLOCK_SIZE) -> np.ndarray:
    """Variance of each full block whose origin lies strictly before the last block row/column."""
    h, w = bright.shape
    nby = len(range(0, h - size, size))
    nbx = len(range(0, w - size, size))
    if nby == 0 or nbx == 0:
        return np.zeros((0, 0))
    blocks = bright[:nby * size, :nbx * size].reshape(nby, size, nbx, size)
    return blocks.var(axis=(1, 3))


def detect_compression(raster: RasterImage) -> ArtifactCheck:
    variances = block_variances(raster.brightness_map)
    flat = int(np.count_nonzero(variances < BLOCK_FLAT_VARIANCE))
    capacity = (raster.width * raster.height) // (BLOCK_SIZE * BLOCK_SIZE)
    return ArtifactCheck(
        detected=flat > 0,
        severity=tier_above(flat, BLOCK_SEVERITY, "Low"),
        details={"blockArtifacts": flat / capacity if capacity else 0.0, "blockCount": flat},
    )


def detect_noise(raster: RasterImage) -> ArtifactCheck:
    diff = neighbour_mean_diff(raster.brightness_map)
    lo, hi = GAUSSIAN_DIFF_RANGE
    salt_pepper = int(np.count_nonzero(diff > SALT_PEPPER_DIFF))
    gaussian = int(np.count_nonzero((diff > lo) & (diff < hi)))
    total = raster.width * raster.height
    return ArtifactCheck(
        detected=salt_pepper > 0 or gaussian > 0,
        severity=tier_above(salt_pepper, NOISE_SEVERITY, "Low"),
        details={"saltAndPepper": salt_pepper / total, "gaussianNoise": gaussian / total},
    )


def detect_blur(raster: RasterImage) -> ArtifactCheck:
    score = mean_or_zero(neighbour_mean_diff(raster.brightness_map))
    severity = tier_above(score, BLUR_SEVERITY, "Low")
    return ArtifactCheck(detected=severity != "Low", severity=severity, details={"score": score})


def detect_jpeg_quantization(raster: RasterImage) -> ArtifactCheck:
    rgb = raster.rgb
    quantized = int(np.count_nonzero(np.all(rgb % QUANT_STEP == 0, axis=-1)))
    return ArtifactCheck(
        detected=quantized > 0,
        severity=tier_above(quantized, QUANT_SEVERITY, "Low"),
        details={"quantizationArtifacts": quantized / (raster.width * raster.height)},
    )


def detect_artifacts(raster: RasterImage) -> ArtifactsResult:
    return ArtifactsResult(
        compression=detect_compression(raster),
        noise=detect_noise(raster),
        blur=detect_blur(raster),
        jpeg=detect_jpeg_quantization(raster),
    )
