from __future__ import annotations

"""Grade aggregation (rule-based).

Combines the four criterion scores of an Analysis into the final grading:
grade label, probability of that grade, confidence in the analysis,
per-criterion impact, recommendations, a market-value estimate and
submission advice.

This is a heuristic pre-screen, not a calibrated model. Outputs are meant to
be explainable and stable.
"""

import math
import statistics
from typing import Any, Optional

from domain.types import GradeLabel
from services.grading.banding import GRADE_BANDS, grade_band, grade_description, grade_range, score_to_grade
from services.grading.recommendations import (
    CRITERIA_DESCRIPTIONS,
    CRITERION_WEIGHT,
    criterion_impact,
    criterion_recommendations,
    submission_advice,
)
from services.grading.types import Analysis, CriterionBreakdown, Grading, QualityReport
from services.rarity import RarityLookup, default_rarity_lookup


PROBABILITY_FLOOR = 0.1  # base probability never drops below this
PROBABILITY_MIN = 0.05
PROBABILITY_MAX = 0.95
CONSISTENCY_WEIGHT = 0.1

MIN_RESOLUTION = 500
OCR_CONFIDENCE_OK = 50.0
RESOLUTION_PENALTY = 0.5
OCR_PENALTY = 0.7
LIGHTING_PENALTY = 0.8
FOCUS_PENALTY = 0.8

BASE_MARKET_VALUE: dict[GradeLabel, int] = {
    GradeLabel.GEM_MINT: 1000,
    GradeLabel.MINT: 500,
    GradeLabel.NEAR_MINT_MINT: 250,
    GradeLabel.NEAR_MINT: 150,
    GradeLabel.EXCELLENT_MINT: 100,
    GradeLabel.EXCELLENT: 75,
    GradeLabel.VERY_GOOD_EXCELLENT: 50,
    GradeLabel.VERY_GOOD: 30,
    GradeLabel.GOOD_VERY_GOOD: 20,
    GradeLabel.GOOD: 10,
    GradeLabel.POOR: 5,
}
DEFAULT_MARKET_VALUE = 25


def _clamp(x: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, float(x)))


def criterion_scores(analysis: Analysis) -> dict[str, float]:
    return {
        "centering": analysis.centering.score,
        "corners": analysis.corners.average_score,
        "edges": analysis.edges.average_score,
        "surface": analysis.surface.score,
    }


def consistency_bonus(scores: list[float]) -> float:
    """Up to +0.1 when the four criterion scores agree (population stddev)."""
    stddev = statistics.pstdev(scores)
    return max(0.0, (1.0 - stddev / 10.0) * CONSISTENCY_WEIGHT)


def grade_probability(overall_score: float, scores: list[float]) -> float:
    """Probability that ``overall_score`` lands in its band, in [0.05, 0.95].

    Scores outside 0..10 are clamped before banding.
    """
    score = _clamp(overall_score, 0.0, 10.0)
    band = grade_band(score_to_grade(score))
    if band is None:
        raise ValueError(f"no grade band for score {score}")
    base = max(PROBABILITY_FLOOR, 1.0 - abs(score - band.midpoint) / band.width)
    return _clamp(base + consistency_bonus(scores), PROBABILITY_MIN, PROBABILITY_MAX)


def analysis_confidence(analysis: Analysis, quality: Optional[QualityReport] = None) -> float:
    """Mean of four factors: resolution, OCR confidence, lighting, focus.

    Without a quality report lighting and focus are taken as satisfactory.
    """
    lighting_ok = quality.lighting_ok if quality is not None else True
    focus_ok = quality.focus_ok if quality is not None else True
    factors = [
        1.0 if analysis.width >= MIN_RESOLUTION and analysis.height >= MIN_RESOLUTION else RESOLUTION_PENALTY,
        1.0 if analysis.text.confidence > OCR_CONFIDENCE_OK else OCR_PENALTY,
        1.0 if lighting_ok else LIGHTING_PENALTY,
        1.0 if focus_ok else FOCUS_PENALTY,
    ]
    return sum(factors) / len(factors)


def estimate_market_value(grade: GradeLabel, overall_score: float, multiplier: float) -> int:
    base = BASE_MARKET_VALUE.get(grade, DEFAULT_MARKET_VALUE)
    return int(math.floor(base * multiplier * (overall_score / 10.0) + 0.5))


def grade_analysis(
    analysis: Analysis,
    quality: Optional[QualityReport] = None,
    rarity: Optional[RarityLookup] = None,
) -> Grading:
    """Aggregate an Analysis into the final Grading."""
    rarity = rarity if rarity is not None else default_rarity_lookup()
    scores = criterion_scores(analysis)
    overall = analysis.overall_condition.score
    grade = score_to_grade(_clamp(overall, 0.0, 10.0))

    breakdown = {
        "centering": CriterionBreakdown(
            scores["centering"], analysis.centering.grade, criterion_impact(scores["centering"])),
        "corners": CriterionBreakdown(
            scores["corners"], analysis.corners.grade, criterion_impact(scores["corners"])),
        "edges": CriterionBreakdown(
            scores["edges"], analysis.edges.grade, criterion_impact(scores["edges"])),
        "surface": CriterionBreakdown(
            scores["surface"], analysis.surface.grade, criterion_impact(scores["surface"])),
    }

    return Grading(
        overall_grade=grade,
        overall_score=overall,
        probability=grade_probability(overall, list(scores.values())),
        confidence=analysis_confidence(analysis, quality),
        breakdown=breakdown,
        recommendations=criterion_recommendations(scores, overall),
        market_value=estimate_market_value(grade, overall, rarity.multiplier(analysis.text.text)),
        submission_advice=submission_advice(overall, scores["centering"], scores["corners"]),
        grade_range=grade_range(grade),
        grade_description=grade_description(grade),
    )


def get_guidelines() -> dict[str, Any]:
    """Grade bands and criteria weights, as served by the guidelines endpoint."""
    return {
        "grades": {band.label.value: band.to_dict() for band in GRADE_BANDS},
        "criteria": {
            name: {"weight": CRITERION_WEIGHT, "description": description}
            for name, description in CRITERIA_DESCRIPTIONS.items()
        },
    }
