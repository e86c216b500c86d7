from __future__ import annotations

"""Border measurement and centering score.

Approach:
1. For each side, take 9 sample lines at 10%..90% of the perpendicular axis.
2. From the image edge walk inward while brightness stays inside the
   border band [50, 200]; the first pixel outside the band is the
   card/background transition. No transition means the full span.
3. Border thickness for a side = mean walk distance.
4. Vertical error = |top - bottom| / height, horizontal = |left - right| / width.
5. Score = max(0, 10 - (vertical + horizontal) * 50), one decimal.

All thresholds are fixed constants for determinism and explainability.
"""

import numpy as np

from services.grading.banding import round_half_up, score_to_grade
from services.grading.raster import RasterImage
from services.grading.types import CenteringResult


BORDER_BAND_LOW = 50  # brightness below this ends the walk
BORDER_BAND_HIGH = 200  # brightness above this ends the walk
SAMPLE_FRACTIONS = tuple(round(0.1 * i, 1) for i in range(1, 10))  # 0.1 .. 0.9
ERROR_WEIGHT = 50.0


def walk_distance(line: np.ndarray) -> int:
    """Number of leading in-band samples along a brightness line.

    ``line`` starts at the image edge and runs inward.
    """
    out_of_band = (line < BORDER_BAND_LOW) | (line > BORDER_BAND_HIGH)
    hits = np.flatnonzero(out_of_band)
    if hits.size == 0:
        return int(line.size)
    return int(hits[0])


def _sample_positions(length: int) -> list[int]:
    return [min(length - 1, int(length * f)) for f in SAMPLE_FRACTIONS]


def measure_border(raster: RasterImage, side: str) -> float:
    """Mean border thickness (pixels) on one side of the image."""
    bright = raster.brightness_map
    h, w = bright.shape

    if side == "top":
        lines = [bright[:, x] for x in _sample_positions(w)]
    elif side == "bottom":
        lines = [bright[::-1, x] for x in _sample_positions(w)]
    elif side == "left":
        lines = [bright[y, :] for y in _sample_positions(h)]
    elif side == "right":
        lines = [bright[y, ::-1] for y in _sample_positions(h)]
    else:
        raise ValueError(f"Unknown side: {side}")

    distances = [walk_distance(line) for line in lines]
    return float(sum(distances)) / len(distances)


def score_centering(top: float, bottom: float, left: float, right: float, width: int, height: int) -> tuple[float, float, float]:
    """Return (unrounded score, vertical error, horizontal error)."""
    vertical = abs(top - bottom) / height
    horizontal = abs(left - right) / width
    score = max(0.0, 10.0 - (vertical + horizontal) * ERROR_WEIGHT)
    return score, vertical, horizontal


def measure_centering(raster: RasterImage) -> CenteringResult:
    """Measure the four borders of ``raster`` and score how centred the card is."""
    borders = {side: measure_border(raster, side) for side in ("top", "bottom", "left", "right")}
    raw, vertical, horizontal = score_centering(
        borders["top"], borders["bottom"], borders["left"], borders["right"],
        raster.width, raster.height,
    )
    return CenteringResult(
        score=round_half_up(raw, 1),
        grade=score_to_grade(raw),
        vertical_error=vertical,
        horizontal_error=horizontal,
        borders=borders,
    )
