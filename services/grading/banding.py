from __future__ import annotations

"""Grade banding and tiering helpers shared by every scorer.

The banding table maps a 0..10 score to a grade label using inclusive
minimums (highest band wins). Each band also carries a nominal [min, max]
range and a description; the probability model and the guidelines endpoint
read those.

All thresholds are fixed constants for determinism and explainability.
"""

import math
from dataclasses import dataclass
from typing import Sequence, TypeVar

from domain.types import GradeLabel


T = TypeVar("T")


@dataclass(frozen=True)
class GradeBand:
    label: GradeLabel
    min_score: float
    max_score: float
    description: str

    @property
    def midpoint(self) -> float:
        return (self.min_score + self.max_score) / 2.0

    @property
    def width(self) -> float:
        return self.max_score - self.min_score

    def to_dict(self) -> dict[str, object]:
        return {"min": self.min_score, "max": self.max_score, "description": self.description}


# Best band first; score_to_grade walks this list top-down.
GRADE_BANDS: tuple[GradeBand, ...] = (
    GradeBand(GradeLabel.GEM_MINT, 9.5, 10.0, "Perfect card with no visible flaws"),
    GradeBand(GradeLabel.MINT, 9.0, 9.4, "Nearly perfect with only minor flaws"),
    GradeBand(GradeLabel.NEAR_MINT_MINT, 8.0, 8.9, "Excellent condition with minor wear"),
    GradeBand(GradeLabel.NEAR_MINT, 7.0, 7.9, "Very good condition with some wear"),
    GradeBand(GradeLabel.EXCELLENT_MINT, 6.0, 6.9, "Good condition with noticeable wear"),
    GradeBand(GradeLabel.EXCELLENT, 5.0, 5.9, "Above average condition"),
    GradeBand(GradeLabel.VERY_GOOD_EXCELLENT, 4.0, 4.9, "Average condition"),
    GradeBand(GradeLabel.VERY_GOOD, 3.0, 3.9, "Below average condition"),
    GradeBand(GradeLabel.GOOD_VERY_GOOD, 2.0, 2.9, "Poor condition"),
    GradeBand(GradeLabel.GOOD, 1.0, 1.9, "Very poor condition"),
    GradeBand(GradeLabel.POOR, 0.0, 0.9, "Severely damaged"),
)

_BANDS_BY_LABEL: dict[GradeLabel, GradeBand] = {b.label: b for b in GRADE_BANDS}


def round_half_up(value: float, ndigits: int = 1) -> float:
    """Round half away from zero for non-negative values (2.25 -> 2.3)."""
    factor = 10 ** ndigits
    return math.floor(float(value) * factor + 0.5) / factor


def score_to_grade(score: float) -> GradeLabel:
    """Map a 0..10 score to its grade label. Below 1.0 is Poor."""
    for band in GRADE_BANDS[:-1]:
        if score >= band.min_score:
            return band.label
    return GradeLabel.POOR


def grade_band(label: GradeLabel) -> GradeBand | None:
    """Nominal band for a label; None for UNKNOWN."""
    return _BANDS_BY_LABEL.get(label)


def grade_description(label: GradeLabel) -> str:
    band = grade_band(label)
    return band.description if band else "Unknown grade"


def grade_range(label: GradeLabel) -> str:
    band = grade_band(label)
    return f"{band.min_score}-{band.max_score}" if band else "Unknown"


def tier_above(value: float, tiers: Sequence[tuple[float, T]], default: T, inclusive: bool = False) -> T:
    """First label whose threshold ``value`` exceeds (or meets, if inclusive).

    ``tiers`` is ordered from the highest threshold down.
    """
    for threshold, label in tiers:
        if value > threshold or (inclusive and value == threshold):
            return label
    return default


def tier_below(value: float, tiers: Sequence[tuple[float, T]], default: T) -> T:
    """First label whose threshold ``value`` is strictly under.

    ``tiers`` is ordered from the lowest threshold up.
    """
    for threshold, label in tiers:
        if value < threshold:
            return label
    return default
