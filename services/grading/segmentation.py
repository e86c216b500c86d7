from __future__ import annotations

"""Card segmentation.

Splits the card photo into fixed geometric segments, analyses each one,
renders a highlight per segment and lists the critical areas.

Segments (m = min(width, height)):
- corners: four 0.15m squares at the image corners
- edges: four 0.05m strips along the sides
- center: a 0.6m square centred in the image
- surface: a 3x3 grid covering the image
- textArea: (0.1w, 0.7h, 0.8w, 0.25h)
- imageArea: (0.1w, 0.1h, 0.8w, 0.6h)
- border: the image inset by 0.02m on every side

Critical areas: corner/edge wear > 0.5, surface texture variance > 1500.

All thresholds are fixed constants for determinism and explainability.
"""

import logging
from typing import Any, Callable

import numpy as np

from domain.types import Region
from services.grading.banding import tier_above
from services.grading.defects import wear_severity
from services.grading.overlays import tint_with_border
from services.grading.raster import RasterImage
from services.grading.texture import laplacian_abs, local_variance, max_neighbour_diff, mean_or_zero
from services.grading.types import CriticalArea, SegmentHighlight, SegmentationReport


logger = logging.getLogger(__name__)


CORNER_FRACTION = 0.15
EDGE_FRACTION = 0.05
CENTER_FRACTION = 0.6
BORDER_FRACTION = 0.02
CORNER_WEAR_BAND = 0.3

WEAR_CONDITION = ((0.7, "Poor"), (0.4, "Fair"))
CENTER_CONDITION = ((200, "Bright"), (100, "Normal"))
SURFACE_CONDITION = ((1000, "Rough"), (500, "Normal"))
TEXT_READABILITY = ((50, "Good"), (25, "Fair"))
IMAGE_SHARPNESS = ((100, "Sharp"), (50, "Normal"))

CRITICAL_WEAR = 0.5
CRITICAL_TEXTURE_VARIANCE = 1500.0
SURFACE_SEVERITY_DIVISOR = 2000.0

SEGMENT_COLORS: dict[str, tuple[int, int, int]] = {
    "corner": (255, 0, 0),
    "edge": (0, 255, 0),
    "center": (0, 0, 255),
    "surface": (255, 255, 0),
    "text": (255, 0, 255),
    "image": (0, 255, 255),
}
DEFAULT_SEGMENT_COLOR = (128, 128, 128)

CORNER_SIDES = {
    "topLeft": ("top", "left"),
    "topRight": ("top", "right"),
    "bottomLeft": ("bottom", "left"),
    "bottomRight": ("bottom", "right"),
}


# -----------------------------------------------------------------------------
# Geometry
# -----------------------------------------------------------------------------


def define_segments(width: int, height: int) -> dict[str, Any]:
    m = min(width, height)
    cs = max(1, int(m * CORNER_FRACTION))
    et = max(1, int(m * EDGE_FRACTION))
    center = max(1, int(m * CENTER_FRACTION))
    inset = int(m * BORDER_FRACTION)

    surface = {}
    for row in range(3):
        for col in range(3):
            x0, y0 = col * width // 3, row * height // 3
            x1, y1 = (col + 1) * width // 3, (row + 1) * height // 3
            surface[f"surface_{row}_{col}"] = Region(x0, y0, max(1, x1 - x0), max(1, y1 - y0))

    return {
        "corners": {
            "topLeft": Region(0, 0, cs, cs),
            "topRight": Region(width - cs, 0, cs, cs),
            "bottomLeft": Region(0, height - cs, cs, cs),
            "bottomRight": Region(width - cs, height - cs, cs, cs),
        },
        "edges": {
            "top": Region(0, 0, width, et),
            "bottom": Region(0, height - et, width, et),
            "left": Region(0, 0, et, height),
            "right": Region(width - et, 0, et, height),
        },
        "center": Region((width - center) // 2, (height - center) // 2, center, center),
        "surface": surface,
        "textArea": Region(int(width * 0.1), int(height * 0.7), max(1, int(width * 0.8)), max(1, int(height * 0.25))),
        "imageArea": Region(int(width * 0.1), int(height * 0.1), max(1, int(width * 0.8)), max(1, int(height * 0.6))),
        "border": Region(inset, inset, max(1, width - 2 * inset), max(1, height - 2 * inset)),
    }


# -----------------------------------------------------------------------------
# Per-segment analyses
# -----------------------------------------------------------------------------


def analyze_corner(bright: np.ndarray, name: str) -> dict[str, Any]:
    severity = wear_severity(bright, CORNER_SIDES[name], CORNER_WEAR_BAND)
    return {
        "corner": name,
        "severity": severity,
        "condition": tier_above(severity, WEAR_CONDITION, "Good"),
        "description": f"Corner {name} analysis completed",
    }


def analyze_edge(bright: np.ndarray, name: str) -> dict[str, Any]:
    severity = wear_severity(bright, (name,), 1.0)
    return {
        "edge": name,
        "severity": severity,
        "condition": tier_above(severity, WEAR_CONDITION, "Good"),
        "description": f"Edge {name} analysis completed",
    }


def analyze_center(bright: np.ndarray, name: str = "main") -> dict[str, Any]:
    mean = float(np.mean(bright))
    return {
        "averageBrightness": mean,
        "condition": tier_above(mean, CENTER_CONDITION, "Dark"),
        "description": "Center area analysis completed",
    }


def analyze_surface(bright: np.ndarray, name: str) -> dict[str, Any]:
    variance = mean_or_zero(local_variance(bright))
    return {
        "segment": name,
        "textureVariance": variance,
        "condition": tier_above(variance, SURFACE_CONDITION, "Smooth"),
        "description": f"Surface segment {name} analysis completed",
    }


def analyze_text_area(bright: np.ndarray, name: str = "main") -> dict[str, Any]:
    contrast = mean_or_zero(max_neighbour_diff(bright))
    return {
        "averageContrast": contrast,
        "readability": tier_above(contrast, TEXT_READABILITY, "Poor"),
        "description": "Text area analysis completed",
    }


def analyze_image_area(bright: np.ndarray, name: str = "main") -> dict[str, Any]:
    sharpness = mean_or_zero(laplacian_abs(bright))
    return {
        "averageSharpness": sharpness,
        "quality": tier_above(sharpness, IMAGE_SHARPNESS, "Blurry"),
        "description": "Image area analysis completed",
    }


# group -> (segment type for colour, analysis function)
_GROUPS: dict[str, tuple[str, Callable[[np.ndarray, str], dict[str, Any]]]] = {
    "corners": ("corner", analyze_corner),
    "edges": ("edge", analyze_edge),
    "center": ("center", analyze_center),
    "surface": ("surface", analyze_surface),
    "textArea": ("text", analyze_text_area),
    "imageArea": ("image", analyze_image_area),
}
_GROUP_ANALYSIS = {kind: fn for kind, fn in _GROUPS.values()}


def _patch(bright: np.ndarray, r: Region) -> np.ndarray:
    return bright[r.y:r.y + r.height, r.x:r.x + r.width]


def _highlight(raster: RasterImage, kind: str, name: str, region: Region, render: bool) -> SegmentHighlight:
    r = region.clamp(raster.width, raster.height)
    analysis = _GROUP_ANALYSIS[kind](_patch(raster.brightness_map, r), name)
    overlay = None
    if render:
        overlay = tint_with_border(raster.crop(r), SEGMENT_COLORS.get(kind, DEFAULT_SEGMENT_COLOR))
    return SegmentHighlight(kind=kind, name=name, segment=r, analysis=analysis, overlay=overlay)


def critical_areas(highlights: dict[str, Any]) -> tuple[CriticalArea, ...]:
    areas = []
    for name, h in highlights["corners"].items():
        severity = h.analysis["severity"]
        if severity > CRITICAL_WEAR:
            areas.append(CriticalArea(
                kind="corner_wear", location=name, segment=h.segment, severity=severity,
                description=f"Critical wear detected in {name} corner",
            ))
    for name, h in highlights["edges"].items():
        severity = h.analysis["severity"]
        if severity > CRITICAL_WEAR:
            areas.append(CriticalArea(
                kind="edge_wear", location=name, segment=h.segment, severity=severity,
                description=f"Critical wear detected on {name} edge",
            ))
    for name, h in highlights["surface"].items():
        variance = h.analysis["textureVariance"]
        if variance > CRITICAL_TEXTURE_VARIANCE:
            areas.append(CriticalArea(
                kind="surface_damage", location=name, segment=h.segment,
                severity=min(1.0, variance / SURFACE_SEVERITY_DIVISOR),
                description=f"Surface damage detected in {name}",
            ))
    return tuple(areas)


def segment_card(raster: RasterImage, render_highlights: bool = True) -> SegmentationReport:
    """Segment ``raster``, analyse every segment and collect critical areas."""
    segments = define_segments(raster.width, raster.height)

    highlights: dict[str, Any] = {}
    for group, (kind, _) in _GROUPS.items():
        value = segments[group]
        if isinstance(value, dict):
            highlights[group] = {
                name: _highlight(raster, kind, name, region, render_highlights)
                for name, region in value.items()
            }
        else:
            highlights[group] = _highlight(raster, kind, "main", value, render_highlights)

    areas = critical_areas(highlights)
    if areas:
        logger.info("segmentation found %d critical areas: %s", len(areas), [a.location for a in areas])

    metadata = {
        "totalSegments": len(segments),
        "segmentTypes": list(segments),
        "imageDimensions": {"width": raster.width, "height": raster.height},
        "aspectRatio": raster.width / raster.height,
        "segmentCounts": {
            "corners": len(segments["corners"]),
            "edges": len(segments["edges"]),
            "surface": len(segments["surface"]),
        },
    }

    return SegmentationReport(
        width=raster.width,
        height=raster.height,
        segments=segments,
        highlights=highlights,
        critical_areas=areas,
        metadata=metadata,
    )
