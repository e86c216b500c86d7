from __future__ import annotations

"""Surface condition score.

Approach:
1. Sample the interior 10%..90% of both axes on a grid with stride
   max(1, width // 100).
2. Count damage samples: brightness > 220 or < 20.
3. Score = max(0, 10 - damage% / 5), one decimal. The surface is twice as
   sensitive as corners and edges.

All thresholds are fixed constants for determinism and explainability.
"""

from services.grading.banding import round_half_up, score_to_grade
from services.grading.corners import damage_percentage
from services.grading.raster import RasterImage
from services.grading.types import SurfaceResult


INTERIOR_START = 0.10
INTERIOR_END = 0.90
DAMAGE_BRIGHT = 220
DAMAGE_DARK = 20
DAMAGE_DIVISOR = 5.0


def sample_stride(width: int) -> int:
    return max(1, width // 100)


def score_surface(raster: RasterImage) -> SurfaceResult:
    bright = raster.brightness_map
    h, w = bright.shape
    x0, x1 = int(w * INTERIOR_START), int(w * INTERIOR_END)
    y0, y1 = int(h * INTERIOR_START), int(h * INTERIOR_END)
    stride = sample_stride(w)

    samples = bright[y0:y1:stride, x0:x1:stride]
    if samples.size == 0:
        # Image too small to have an interior; fall back to every pixel.
        samples = bright

    pct = damage_percentage(samples, DAMAGE_DARK, DAMAGE_BRIGHT)
    raw = max(0.0, 10.0 - pct / DAMAGE_DIVISOR)
    return SurfaceResult(
        score=round_half_up(raw, 1),
        damage_percentage=pct,
        grade=score_to_grade(raw),
    )
