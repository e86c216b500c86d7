from __future__ import annotations

"""Corner condition score.

Approach:
1. Cut four rectangles of 10% x 10% of the image at each corner.
2. Count damage pixels: brightness > 200 (whitening) or < 30 (dark wear).
3. Per-corner score = max(0, 10 - damage% / 10), one decimal.
4. Average of the four rounded scores; grade from the unrounded average.

All thresholds are fixed constants for determinism and explainability.
"""

import numpy as np

from domain.types import Region
from services.grading.banding import round_half_up, score_to_grade
from services.grading.raster import RasterImage
from services.grading.types import CornersResult, RegionScore


CORNER_FRACTION = 0.10
DAMAGE_BRIGHT = 200  # brightness above this counts as damage
DAMAGE_DARK = 30  # brightness below this counts as damage
DAMAGE_DIVISOR = 10.0  # score = 10 - damage% / DAMAGE_DIVISOR

CORNER_NAMES = ("topLeft", "topRight", "bottomLeft", "bottomRight")


def damage_percentage(bright: np.ndarray, low: float, high: float) -> float:
    """Percentage of samples whose brightness is > high or < low."""
    if bright.size == 0:
        return 0.0
    damaged = np.count_nonzero((bright > high) | (bright < low))
    return float(damaged) / float(bright.size) * 100.0


def region_score(bright: np.ndarray, divisor: float = DAMAGE_DIVISOR) -> RegionScore:
    pct = damage_percentage(bright, DAMAGE_DARK, DAMAGE_BRIGHT)
    return RegionScore(score=round_half_up(max(0.0, 10.0 - pct / divisor), 1), damage_percentage=pct)


def corner_regions(width: int, height: int, fraction: float = CORNER_FRACTION) -> dict[str, Region]:
    cw = max(1, int(width * fraction))
    ch = max(1, int(height * fraction))
    return {
        "topLeft": Region(0, 0, cw, ch),
        "topRight": Region(width - cw, 0, cw, ch),
        "bottomLeft": Region(0, height - ch, cw, ch),
        "bottomRight": Region(width - cw, height - ch, cw, ch),
    }


def _slice(bright: np.ndarray, r: Region) -> np.ndarray:
    return bright[r.y:r.y + r.height, r.x:r.x + r.width]


def score_corners(raster: RasterImage) -> CornersResult:
    bright = raster.brightness_map
    regions = corner_regions(raster.width, raster.height)
    corners = {name: region_score(_slice(bright, regions[name])) for name in CORNER_NAMES}

    average = sum(c.score for c in corners.values()) / len(corners)
    return CornersResult(
        corners=corners,
        average_score=round_half_up(average, 1),
        grade=score_to_grade(average),
    )
