from __future__ import annotations

"""Human-readable recommendations from criterion scores.

Converts the four criterion scores and the overall score into:
- an impact label per criterion (weighted contribution to the overall score)
- recommendations for criteria scoring below 7 and a positive note at 9+
- submission advice

All score mappings use fixed thresholds for determinism and explainability.
"""

from services.grading.banding import tier_above
from services.grading.types import Recommendation, SubmissionAdvice


CRITERION_WEIGHT = 0.25

CRITERIA_DESCRIPTIONS = {
    "centering": "How well the card image is centered within the borders",
    "corners": "Condition of the four corners of the card",
    "edges": "Condition of the card edges",
    "surface": "Surface condition including scratches, print defects, and wear",
}

# Weighted contribution (score * weight) -> impact label, inclusive minimums
IMPACT_TIERS = (
    (2.4, "High Positive"),
    (2.0, "Positive"),
    (1.5, "Neutral"),
    (1.0, "Negative"),
)

RECOMMEND_BELOW = 7.0
HIGH_GRADE_POTENTIAL = 9.0

ADVICE_POSITIVE_AT = 8.5
ADVICE_WARNING_BELOW = 6.0
ADVICE_CAUTION_BELOW = 6.0

_CRITERION_RECOMMENDATIONS = {
    "centering": Recommendation(
        category="Centering",
        issue="Poor centering detected",
        suggestion="Consider if the centering issue significantly affects the card's appeal",
        impact="High",
    ),
    "corners": Recommendation(
        category="Corners",
        issue="Corner damage detected",
        suggestion="Examine corners under magnification for wear or damage",
        impact="High",
    ),
    "edges": Recommendation(
        category="Edges",
        issue="Edge wear detected",
        suggestion="Check for edge whitening, chipping, or other damage",
        impact="Medium",
    ),
    "surface": Recommendation(
        category="Surface",
        issue="Surface issues detected",
        suggestion="Look for scratches, print defects, or surface wear under good lighting",
        impact="High",
    ),
}

_HIGH_GRADE_NOTE = Recommendation(
    category="Overall",
    issue="High-grade potential",
    suggestion="Card shows excellent condition - consider professional grading",
    impact="Positive",
)


def criterion_impact(score: float, weight: float = CRITERION_WEIGHT) -> str:
    return tier_above(score * weight, IMPACT_TIERS, "High Negative", inclusive=True)


def criterion_recommendations(scores: dict[str, float], overall: float) -> tuple[Recommendation, ...]:
    """Recommendations for weak criteria, in centering/corners/edges/surface order."""
    out = [
        _CRITERION_RECOMMENDATIONS[name]
        for name in ("centering", "corners", "edges", "surface")
        if scores[name] < RECOMMEND_BELOW
    ]
    if overall >= HIGH_GRADE_POTENTIAL:
        out.append(_HIGH_GRADE_NOTE)
    return tuple(out)


def submission_advice(overall: float, centering: float, corners: float) -> tuple[SubmissionAdvice, ...]:
    advice = []
    if overall >= ADVICE_POSITIVE_AT:
        advice.append(SubmissionAdvice(
            kind="Positive",
            message="This card appears to be in excellent condition and may be worth professional grading.",
            priority="High",
        ))
    if overall < ADVICE_WARNING_BELOW:
        advice.append(SubmissionAdvice(
            kind="Warning",
            message="This card shows significant wear and may not benefit from professional grading.",
            priority="Medium",
        ))
    if centering < ADVICE_CAUTION_BELOW or corners < ADVICE_CAUTION_BELOW:
        advice.append(SubmissionAdvice(
            kind="Caution",
            message="Major condition issues detected. Consider if the card is worth grading.",
            priority="High",
        ))
    return tuple(advice)
