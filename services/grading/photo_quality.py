from __future__ import annotations

"""Photo quality and texture analysis.

Measures how good the photograph is, independent of the card's condition.
Results feed informational metadata and the grader's lighting/focus
confidence factors; they never change the condition score.

Approach:
1. Focus: max 4-neighbour brightness difference; mean over pixels where it
   exceeds 20, plus the density of such pixels.
2. Lighting: mean and population variance of brightness; uniformity banded
   at variance 1000/2000, exposure at mean 50/200.
3. Composition: rule-of-thirds region brightness, left/right balance and
   mirror symmetry.
4. Texture statistics, quality metrics and colour statistics over the
   whole image.
5. Artifacts (compression blocks, noise, blur, JPEG quantisation) live in
   services.grading.artifacts.

All thresholds are fixed constants for determinism and explainability.
"""

import math
from typing import Any

import numpy as np

from services.grading.artifacts import detect_artifacts
from services.grading.banding import tier_above, tier_below
from services.grading.raster import RasterImage
from services.grading.texture import (
    laplacian_abs,
    local_variance,
    max_neighbour_diff,
    mean_or_zero,
    neighbour_mean_diff,
)
from services.grading.types import (
    CompositionResult,
    FocusResult,
    LightingResult,
    QualityReport,
)


# Focus
FOCUS_EDGE_THRESHOLD = 20  # max neighbour diff above this counts as an edge
FOCUS_TIERS = ((50, "High"), (25, "Medium"))

# Lighting
UNIFORMITY_TIERS = ((1000, "High"), (2000, "Medium"))
OVEREXPOSED_ABOVE = 200
UNDEREXPOSED_BELOW = 50

# Composition
BALANCE_TIERS = ((0.8, "Good"), (0.6, "Fair"))
SYMMETRY_TIERS = ((0.8, "High"), (0.6, "Medium"))
THIRDS_NAMES = (
    ("topLeft", "topCenter", "topRight"),
    ("centerLeft", "center", "centerRight"),
    ("bottomLeft", "bottomCenter", "bottomRight"),
)

# Texture
TEXTURE_EDGE_THRESHOLD = 30

# Quality score normalisation
SHARPNESS_NORM = 100.0
NOISE_NORM = 1000.0
BLUR_NORM = 50.0
QUALITY_WEIGHTS = (0.4, 0.3, 0.3)  # sharpness, noise, blur

# Colour statistics
DOMINANT_FRACTION = 0.1
DOMINANT_LIMIT = 5


def analyze_focus(raster: RasterImage) -> FocusResult:
    diff = max_neighbour_diff(raster.brightness_map)
    edges = diff[diff > FOCUS_EDGE_THRESHOLD]
    sharpness = mean_or_zero(edges)
    return FocusResult(
        sharpness=sharpness,
        edge_density=float(edges.size) / float(raster.width * raster.height),
        quality=tier_above(sharpness, FOCUS_TIERS, "Low"),
    )


def analyze_lighting(raster: RasterImage) -> LightingResult:
    bright = raster.brightness_map
    mean = float(np.mean(bright))
    variance = float(np.var(bright))
    if mean > OVEREXPOSED_ABOVE:
        exposure = "Overexposed"
    elif mean < UNDEREXPOSED_BELOW:
        exposure = "Underexposed"
    else:
        exposure = "Good"
    return LightingResult(
        average_brightness=mean,
        variance=variance,
        uniformity=tier_below(variance, UNIFORMITY_TIERS, "Low"),
        exposure=exposure,
    )


def _thirds_bounds(length: int) -> list[tuple[int, int]]:
    cuts = [int(round(length * i / 3.0)) for i in range(4)]
    bounds = []
    for i in range(3):
        start = min(cuts[i], length - 1)
        bounds.append((start, max(cuts[i + 1], start + 1)))
    return bounds


def mirror_symmetry(rgb: np.ndarray) -> float:
    """Mean similarity (0..1) between each left-half pixel and its mirror."""
    w = rgb.shape[1]
    half = math.ceil(w / 2)
    left = rgb[:, :half].astype(np.float64)
    right = rgb[:, ::-1][:, :half].astype(np.float64)
    diff = np.abs(left - right).sum(axis=-1)
    return float(np.mean(1.0 - diff / 765.0))


def analyze_composition(raster: RasterImage) -> CompositionResult:
    bright = raster.brightness_map
    rows = _thirds_bounds(raster.height)
    cols = _thirds_bounds(raster.width)

    grid = np.zeros((3, 3))
    regions = []
    for i, (y0, y1) in enumerate(rows):
        for j, (x0, x1) in enumerate(cols):
            grid[i, j] = float(np.mean(bright[y0:y1, x0:x1]))
            regions.append({"name": THIRDS_NAMES[i][j], "averageBrightness": float(grid[i, j])})

    left = float(np.mean(grid[:, 0]))
    right = float(np.mean(grid[:, 2]))
    balance = 1.0 - abs(left - right) / 255.0
    symmetry = mirror_symmetry(raster.rgb)
    return CompositionResult(
        regions=tuple(regions),
        balance=balance,
        balance_label=tier_above(balance, BALANCE_TIERS, "Poor"),
        symmetry=symmetry,
        symmetry_label=tier_above(symmetry, SYMMETRY_TIERS, "Low"),
    )


def texture_stats(raster: RasterImage) -> dict[str, float]:
    bright = raster.brightness_map
    diff = max_neighbour_diff(bright)
    return {
        "textureVariance": mean_or_zero(local_variance(bright)),
        "edgeDensity": float(np.count_nonzero(diff > TEXTURE_EDGE_THRESHOLD)) / diff.size if diff.size else 0.0,
        "smoothness": mean_or_zero(neighbour_mean_diff(bright)),
    }


def quality_score(sharpness: float, noise: float, blur: float) -> float:
    ws, wn, wb = QUALITY_WEIGHTS
    return (
        min(sharpness / SHARPNESS_NORM, 1.0) * ws
        + max(0.0, 1.0 - noise / NOISE_NORM) * wn
        + max(0.0, 1.0 - blur / BLUR_NORM) * wb
    )


def quality_metrics(raster: RasterImage) -> dict[str, float]:
    bright = raster.brightness_map
    sharpness = mean_or_zero(laplacian_abs(bright))
    noise = mean_or_zero(local_variance(bright))
    blur = mean_or_zero(neighbour_mean_diff(bright))
    return {
        "sharpness": sharpness,
        "noise": noise,
        "blur": blur,
        "qualityScore": quality_score(sharpness, noise, blur),
    }


def dominant_colors(rgb: np.ndarray) -> list[dict[str, Any]]:
    """Channel values held by more than 10% of pixels, top 5 by share."""
    total = rgb.shape[0] * rgb.shape[1]
    found = []
    for idx, channel in enumerate("rgb"):
        hist = np.bincount(rgb[..., idx].ravel(), minlength=256)
        for value in np.flatnonzero(hist / total > DOMINANT_FRACTION):
            found.append({"channel": channel, "value": int(value), "percentage": float(hist[value]) / total})
    found.sort(key=lambda d: d["percentage"], reverse=True)
    return found[:DOMINANT_LIMIT]


def color_stats(raster: RasterImage) -> dict[str, Any]:
    return {
        "averageBrightness": float(np.mean(raster.brightness_map)),
        "dominantColors": dominant_colors(raster.rgb),
    }


def analyze_quality(raster: RasterImage) -> QualityReport:
    """Full photo quality report for one raster."""
    return QualityReport(
        focus=analyze_focus(raster),
        lighting=analyze_lighting(raster),
        composition=analyze_composition(raster),
        artifacts=detect_artifacts(raster),
        texture_stats=texture_stats(raster),
        quality_metrics=quality_metrics(raster),
        color_stats=color_stats(raster),
    )
