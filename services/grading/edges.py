from __future__ import annotations

"""Edge condition score.

Approach:
1. Take four strips along the sides: top/bottom are full-width and 5% of the
   height thick, left/right are full-height and 5% of the width thick.
2. Count damage pixels with the corner thresholds (> 200 or < 30).
3. Per-edge score = max(0, 10 - damage% / 10), one decimal.
4. Average of the four rounded scores; grade from the unrounded average.

Strips overlap the corner rectangles near the image boundary.

All thresholds are fixed constants for determinism and explainability.
"""

from domain.types import Region
from services.grading.banding import round_half_up, score_to_grade
from services.grading.corners import region_score
from services.grading.raster import RasterImage
from services.grading.types import EdgesResult


EDGE_FRACTION = 0.05

EDGE_NAMES = ("top", "bottom", "left", "right")


def edge_regions(width: int, height: int, fraction: float = EDGE_FRACTION) -> dict[str, Region]:
    th = max(1, int(height * fraction))
    tw = max(1, int(width * fraction))
    return {
        "top": Region(0, 0, width, th),
        "bottom": Region(0, height - th, width, th),
        "left": Region(0, 0, tw, height),
        "right": Region(width - tw, 0, tw, height),
    }


def score_edges(raster: RasterImage) -> EdgesResult:
    bright = raster.brightness_map
    regions = edge_regions(raster.width, raster.height)
    edges = {}
    for name in EDGE_NAMES:
        r = regions[name]
        edges[name] = region_score(bright[r.y:r.y + r.height, r.x:r.x + r.width])

    average = sum(e.score for e in edges.values()) / len(edges)
    return EdgesResult(
        edges=edges,
        average_score=round_half_up(average, 1),
        grade=score_to_grade(average),
    )
