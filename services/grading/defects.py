from __future__ import annotations

"""Defect scanner family.

Eight detectors, each described by a small descriptor and run by one of two
generic routines:

- Sampled detectors read a per-pixel field (brightness, an edge response, a
  smoothed brightness, or raw RGB) on a fixed stride grid, keep the samples
  matching the detector's predicate and turn each into a stride x stride
  location with a confidence.
- Wear detectors cut fixed crops (corners, side bands) and measure
  inverse brightness over the part of each crop adjacent to the card's
  outer edge. A crop becomes a location only when its wear exceeds 0.5.

Aggregation:
- overall score = mean severity over findings that have locations (0 if none)
- overall confidence = mean location count over the same findings, capped at 1
- impact from (total area * total confidence) / 10000
- recommendations for severity > 0.3, tiered at 0.4 / 0.7

All thresholds are fixed constants for determinism and explainability.
"""

import logging
import math
from dataclasses import dataclass
from typing import Callable

import numpy as np

try:
    import cv2
except ImportError as e:
    raise ImportError(
        "opencv-python is required for defect detection. "
        "Install with: pip install opencv-python"
    ) from e

from domain.types import DefectKind, Impact, Region
from services.grading.banding import tier_above, tier_below
from services.grading.overlays import paint_regions
from services.grading.raster import RasterImage
from services.grading.types import (
    DefectFinding,
    DefectLocation,
    DefectRecommendation,
    DefectReport,
)


logger = logging.getLogger(__name__)


# Sampling strides
STRIDE_COARSE = 10
STRIDE_FINE = 5

# Scratches: 8-neighbour Laplacian response, bright outliers
SCRATCH_EDGE_THRESHOLD = 200
LAPLACIAN_KERNEL = np.array(
    [[-1, -1, -1],
     [-1, 8, -1],
     [-1, -1, -1]],
    dtype=np.float32,
)

# Dents: dark outliers after light smoothing
DENT_DARK_THRESHOLD = 50
DENT_BLUR_KSIZE = (3, 3)
DENT_BLUR_SIGMA = 1.0

# Surface damage: brightness outside the mid band
SURFACE_LOW = 100
SURFACE_HIGH = 200
SURFACE_DENSITY_CELL = 25  # severity = count / (w * h / 25)

# Discoloration: channel divergence
DISCOLOR_CHANNEL_DIFF = 50

# Printing defects: extreme brightness
PRINT_LOW = 30
PRINT_HIGH = 225

# Water damage: all channels near white
WATER_CHANNEL_MIN = 200

# Wear
CORNER_WEAR_FRACTION = 0.15
EDGE_WEAR_FRACTION = 0.10
WEAR_BAND_FRACTION = 0.30
WEAR_REPORT_THRESHOLD = 0.5

# Impact = (total area * total confidence) / IMPACT_DIVISOR
IMPACT_DIVISOR = 10000.0
IMPACT_TIERS = (
    (0.1, Impact.MINIMAL),
    (0.3, Impact.MINOR),
    (0.5, Impact.MODERATE),
    (0.7, Impact.SIGNIFICANT),
)

# Recommendations
RECOMMEND_MIN_SEVERITY = 0.3
RECOMMEND_LEVELS = ((0.7, "high"), (0.4, "medium"))

DISPLAY_MIN_SEVERITY = 0.1

DEFECT_COLORS: dict[DefectKind, tuple[int, int, int]] = {
    DefectKind.SCRATCHES: (255, 0, 0),
    DefectKind.DENTS: (255, 165, 0),
    DefectKind.CORNER_WEAR: (255, 255, 0),
    DefectKind.EDGE_WEAR: (0, 255, 0),
    DefectKind.SURFACE_DAMAGE: (0, 255, 255),
    DefectKind.DISCOLORATION: (128, 0, 255),
    DefectKind.PRINTING_DEFECTS: (255, 0, 255),
    DefectKind.WATER_DAMAGE: (0, 0, 255),
}

RECOMMENDATION_TEXT: dict[DefectKind, dict[str, str]] = {
    DefectKind.SCRATCHES: {
        "low": "Minor surface scratches detected. Consider professional cleaning.",
        "medium": "Moderate scratches may affect grade. Professional restoration recommended.",
        "high": "Significant scratching detected. Will likely impact PSA grade significantly.",
    },
    DefectKind.DENTS: {
        "low": "Minor surface dents detected. May be improved with careful handling.",
        "medium": "Moderate dents present. Professional assessment recommended.",
        "high": "Severe dents detected. Will significantly impact card grade.",
    },
    DefectKind.CORNER_WEAR: {
        "low": "Minor corner wear detected. Common in vintage cards.",
        "medium": "Moderate corner wear. May limit grade to NM-MT or lower.",
        "high": "Significant corner damage. Will limit grade to EX or lower.",
    },
    DefectKind.EDGE_WEAR: {
        "low": "Minor edge wear detected. Normal for circulated cards.",
        "medium": "Moderate edge wear. Will affect grade assessment.",
        "high": "Severe edge wear. Will significantly limit grade potential.",
    },
    DefectKind.SURFACE_DAMAGE: {
        "low": "Minor surface irregularities detected.",
        "medium": "Moderate surface damage. Professional cleaning may help.",
        "high": "Significant surface damage. Will impact grade significantly.",
    },
    DefectKind.DISCOLORATION: {
        "low": "Minor color variations detected.",
        "medium": "Moderate discoloration. May indicate storage issues.",
        "high": "Significant discoloration. Will affect grade and value.",
    },
    DefectKind.PRINTING_DEFECTS: {
        "low": "Minor printing inconsistencies detected.",
        "medium": "Moderate printing defects. May be factory-related.",
        "high": "Significant printing defects. Will impact grade assessment.",
    },
    DefectKind.WATER_DAMAGE: {
        "low": "Minor water damage indicators detected.",
        "medium": "Moderate water damage. Professional assessment recommended.",
        "high": "Severe water damage detected. Will severely limit grade potential.",
    },
}
FALLBACK_RECOMMENDATION = "Defect detected. Professional assessment recommended."


# -----------------------------------------------------------------------------
# Fields
# -----------------------------------------------------------------------------


def _brightness_field(raster: RasterImage) -> np.ndarray:
    return raster.brightness_map


def _rgb_field(raster: RasterImage) -> np.ndarray:
    return raster.rgb.astype(np.float64)


def _edge_field(raster: RasterImage) -> np.ndarray:
    """Laplacian response of the brightness map, clipped to 0..255."""
    gray = raster.brightness_map.astype(np.float32)
    response = cv2.filter2D(gray, -1, LAPLACIAN_KERNEL, borderType=cv2.BORDER_REPLICATE)
    return np.clip(response, 0, 255).astype(np.float64)


def _smoothed_field(raster: RasterImage) -> np.ndarray:
    gray = raster.brightness_map.astype(np.float32)
    return cv2.GaussianBlur(gray, DENT_BLUR_KSIZE, DENT_BLUR_SIGMA).astype(np.float64)


# -----------------------------------------------------------------------------
# Descriptors
# -----------------------------------------------------------------------------


def _mean_confidence(confidences: np.ndarray, raster: RasterImage) -> float:
    if confidences.size == 0:
        return 0.0
    return float(np.mean(confidences))


def _surface_density(confidences: np.ndarray, raster: RasterImage) -> float:
    expected = raster.width * raster.height / SURFACE_DENSITY_CELL
    return float(min(confidences.size / expected, 1.0))


@dataclass(frozen=True)
class SampledDetector:
    kind: DefectKind
    stride: int
    field: Callable[[RasterImage], np.ndarray]
    predicate: Callable[[np.ndarray], np.ndarray]
    confidence: Callable[[np.ndarray], np.ndarray]
    description: str
    severity: Callable[[np.ndarray, RasterImage], float] = _mean_confidence


@dataclass(frozen=True)
class WearDetector:
    kind: DefectKind
    crops: Callable[[int, int], dict[str, tuple[Region, tuple[str, ...]]]]
    description: str
    band_fraction: float = WEAR_BAND_FRACTION
    threshold: float = WEAR_REPORT_THRESHOLD


def corner_wear_crops(width: int, height: int) -> dict[str, tuple[Region, tuple[str, ...]]]:
    cw = max(1, int(width * CORNER_WEAR_FRACTION))
    ch = max(1, int(height * CORNER_WEAR_FRACTION))
    return {
        "topLeft": (Region(0, 0, cw, ch), ("top", "left")),
        "topRight": (Region(width - cw, 0, cw, ch), ("top", "right")),
        "bottomLeft": (Region(0, height - ch, cw, ch), ("bottom", "left")),
        "bottomRight": (Region(width - cw, height - ch, cw, ch), ("bottom", "right")),
    }


def edge_wear_crops(width: int, height: int) -> dict[str, tuple[Region, tuple[str, ...]]]:
    bh = max(1, int(height * EDGE_WEAR_FRACTION))
    bw = max(1, int(width * EDGE_WEAR_FRACTION))
    return {
        "top": (Region(0, 0, width, bh), ("top",)),
        "bottom": (Region(0, height - bh, width, bh), ("bottom",)),
        "left": (Region(0, 0, bw, height), ("left",)),
        "right": (Region(width - bw, 0, bw, height), ("right",)),
    }


def _abs_dev_128(v: np.ndarray) -> np.ndarray:
    return np.abs(v - 128.0) / 128.0


def _channel_divergence(rgb: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    return np.abs(rgb[..., 0] - rgb[..., 1]), np.abs(rgb[..., 1] - rgb[..., 2])


SAMPLED_DETECTORS: tuple[SampledDetector, ...] = (
    SampledDetector(
        kind=DefectKind.SCRATCHES,
        stride=STRIDE_COARSE,
        field=_edge_field,
        predicate=lambda v: v > SCRATCH_EDGE_THRESHOLD,
        confidence=lambda v: v / 255.0,
        description="Linear surface damage detected",
    ),
    SampledDetector(
        kind=DefectKind.DENTS,
        stride=STRIDE_FINE,
        field=_smoothed_field,
        predicate=lambda v: v < DENT_DARK_THRESHOLD,
        confidence=lambda v: (255.0 - v) / 255.0,
        description="Surface depressions detected",
    ),
    SampledDetector(
        kind=DefectKind.SURFACE_DAMAGE,
        stride=STRIDE_FINE,
        field=_brightness_field,
        predicate=lambda v: (v < SURFACE_LOW) | (v > SURFACE_HIGH),
        confidence=_abs_dev_128,
        description="Surface texture irregularities detected",
        severity=_surface_density,
    ),
    SampledDetector(
        kind=DefectKind.DISCOLORATION,
        stride=STRIDE_COARSE,
        field=_rgb_field,
        predicate=lambda rgb: np.logical_or(*(d > DISCOLOR_CHANNEL_DIFF for d in _channel_divergence(rgb))),
        confidence=lambda rgb: np.maximum(*_channel_divergence(rgb)) / 255.0,
        description="Color inconsistencies detected",
    ),
    SampledDetector(
        kind=DefectKind.PRINTING_DEFECTS,
        stride=STRIDE_FINE,
        field=_brightness_field,
        predicate=lambda v: (v < PRINT_LOW) | (v > PRINT_HIGH),
        confidence=_abs_dev_128,
        description="Printing quality issues detected",
    ),
    SampledDetector(
        kind=DefectKind.WATER_DAMAGE,
        stride=STRIDE_COARSE,
        field=_rgb_field,
        predicate=lambda rgb: np.all(rgb > WATER_CHANNEL_MIN, axis=-1),
        confidence=lambda rgb: rgb.sum(axis=-1) / 765.0,
        description="Water damage patterns detected",
    ),
)

WEAR_DETECTORS: tuple[WearDetector, ...] = (
    WearDetector(
        kind=DefectKind.CORNER_WEAR,
        crops=corner_wear_crops,
        description="Corner wear and damage detected",
    ),
    WearDetector(
        kind=DefectKind.EDGE_WEAR,
        crops=edge_wear_crops,
        description="Edge wear and damage detected",
    ),
)

# Reporting order of the eight findings.
DETECTOR_ORDER = (
    DefectKind.SCRATCHES,
    DefectKind.DENTS,
    DefectKind.CORNER_WEAR,
    DefectKind.EDGE_WEAR,
    DefectKind.SURFACE_DAMAGE,
    DefectKind.DISCOLORATION,
    DefectKind.PRINTING_DEFECTS,
    DefectKind.WATER_DAMAGE,
)

_DETECTORS_BY_KIND: dict[DefectKind, SampledDetector | WearDetector] = {
    d.kind: d for d in SAMPLED_DETECTORS + WEAR_DETECTORS
}


# -----------------------------------------------------------------------------
# Generic routines
# -----------------------------------------------------------------------------


def classify_impact(locations: tuple[DefectLocation, ...]) -> Impact:
    if not locations:
        return Impact.NONE
    total_area = sum(loc.region.area for loc in locations)
    total_confidence = sum(loc.confidence for loc in locations)
    return tier_below(total_area * total_confidence / IMPACT_DIVISOR, IMPACT_TIERS, Impact.MAJOR)


def scan_sampled(raster: RasterImage, detector: SampledDetector) -> DefectFinding:
    stride = detector.stride
    samples = detector.field(raster)[::stride, ::stride]
    mask = detector.predicate(samples)
    ys, xs = np.nonzero(mask)
    confidences = detector.confidence(samples)[mask]

    locations = tuple(
        DefectLocation(
            region=Region(int(x) * stride, int(y) * stride, stride, stride).clamp(raster.width, raster.height),
            confidence=float(c),
        )
        for y, x, c in zip(ys, xs, confidences)
    )
    return DefectFinding(
        kind=detector.kind,
        severity=detector.severity(confidences, raster),
        locations=locations,
        description=detector.description,
        impact=classify_impact(locations),
    )


def wear_severity(bright: np.ndarray, sides: tuple[str, ...], band_fraction: float = WEAR_BAND_FRACTION) -> float:
    """Mean inverse brightness (0..1) over the bands of ``bright`` touching ``sides``."""
    h, w = bright.shape
    bh = max(1, math.ceil(h * band_fraction))
    bw = max(1, math.ceil(w * band_fraction))
    mask = np.zeros((h, w), dtype=bool)
    for side in sides:
        if side == "top":
            mask[:bh, :] = True
        elif side == "bottom":
            mask[h - bh:, :] = True
        elif side == "left":
            mask[:, :bw] = True
        elif side == "right":
            mask[:, w - bw:] = True
        else:
            raise ValueError(f"Unknown side: {side}")
    wear = float(np.mean(255.0 - bright[mask])) / 255.0
    return min(wear, 1.0)


def scan_wear(raster: RasterImage, detector: WearDetector) -> DefectFinding:
    bright = raster.brightness_map
    locations = []
    for name, (region, sides) in detector.crops(raster.width, raster.height).items():
        r = region.clamp(raster.width, raster.height)
        patch = bright[r.y:r.y + r.height, r.x:r.x + r.width]
        severity = wear_severity(patch, sides, detector.band_fraction)
        logger.debug("%s %s wear=%.3f", detector.kind.value, name, severity)
        if severity > detector.threshold:
            locations.append(DefectLocation(region=r, confidence=severity))

    locs = tuple(locations)
    mean = sum(loc.confidence for loc in locs) / len(locs) if locs else 0.0
    return DefectFinding(
        kind=detector.kind,
        severity=mean,
        locations=locs,
        description=detector.description,
        impact=classify_impact(locs),
    )


def run_detector(raster: RasterImage, kind: DefectKind) -> DefectFinding:
    detector = _DETECTORS_BY_KIND[kind]
    if isinstance(detector, WearDetector):
        return scan_wear(raster, detector)
    return scan_sampled(raster, detector)


# -----------------------------------------------------------------------------
# Aggregation
# -----------------------------------------------------------------------------


def overall_defect_score(findings: tuple[DefectFinding, ...]) -> tuple[float, float]:
    """(score, confidence) over findings with at least one location."""
    located = [f for f in findings if f.locations]
    if not located:
        return 0.0, 0.0
    score = sum(f.severity for f in located) / len(located)
    confidence = sum(len(f.locations) for f in located) / len(located)
    return score, min(confidence, 1.0)


def recommendation_level(severity: float) -> str:
    return tier_above(severity, RECOMMEND_LEVELS, "low")


def defect_recommendations(findings: tuple[DefectFinding, ...]) -> tuple[DefectRecommendation, ...]:
    recs = []
    for f in findings:
        if f.severity <= RECOMMEND_MIN_SEVERITY:
            continue
        level = recommendation_level(f.severity)
        recs.append(DefectRecommendation(
            kind=f.kind,
            severity=f.severity,
            level=level,
            recommendation=RECOMMENDATION_TEXT.get(f.kind, {}).get(level, FALLBACK_RECOMMENDATION),
            priority=level.capitalize(),
        ))
    recs.sort(key=lambda r: r.severity, reverse=True)
    return tuple(recs)


def render_visualizations(raster: RasterImage, findings: tuple[DefectFinding, ...]) -> dict[str, RasterImage]:
    out: dict[str, RasterImage] = {}
    for f in findings:
        if not f.locations:
            continue
        out[f.kind.value] = paint_regions(raster, (loc.region for loc in f.locations), DEFECT_COLORS[f.kind])
    return out


def displayable_findings(report: DefectReport, min_severity: float = DISPLAY_MIN_SEVERITY) -> tuple[DefectFinding, ...]:
    """Findings worth showing to a user."""
    return tuple(f for f in report.details if f.severity > min_severity)


def detect_defects(raster: RasterImage, visualize: bool = False) -> DefectReport:
    """Run all eight detectors over ``raster`` and aggregate the findings."""
    findings = tuple(run_detector(raster, kind) for kind in DETECTOR_ORDER)
    score, confidence = overall_defect_score(findings)
    logger.info(
        "defect scan %dx%d: score=%.3f confidence=%.2f located=%s",
        raster.width, raster.height, score, confidence,
        [f.kind.value for f in findings if f.locations],
    )
    return DefectReport(
        score=score,
        confidence=confidence,
        details=findings,
        recommendations=defect_recommendations(findings),
        visualizations=render_visualizations(raster, findings) if visualize else {},
    )
