from __future__ import annotations

"""Per-image condition analysis.

Runs the four primary scorers (centering, corners, edges, surface) and the
text extractor over one raster and combines their scores into the overall
condition. Any stage that raises is logged and replaced by a neutral
default (score 5, grade Unknown; empty text for OCR) so one failing stage
never aborts the analysis.
"""

import logging
from typing import Callable, TypeVar

from domain.types import GradeLabel, TextExtraction
from services.grading.banding import round_half_up, score_to_grade
from services.grading.centering import measure_centering
from services.grading.corners import score_corners
from services.grading.edges import score_edges
from services.grading.raster import RasterImage
from services.grading.surface import score_surface
from services.grading.types import (
    Analysis,
    CenteringResult,
    CornersResult,
    EdgesResult,
    OverallCondition,
    SurfaceResult,
)
from services.text_extraction import extract_text


logger = logging.getLogger(__name__)

T = TypeVar("T")

CARD_TYPE = "Pokemon"
NEUTRAL_SCORE = 5.0
CRITERION_WEIGHTS = {"centering": 0.25, "corners": 0.25, "edges": 0.25, "surface": 0.25}

TextExtractor = Callable[[RasterImage], TextExtraction]


def degraded_centering() -> CenteringResult:
    return CenteringResult(
        score=NEUTRAL_SCORE, grade=GradeLabel.UNKNOWN,
        vertical_error=0.0, horizontal_error=0.0, borders={}, degraded=True,
    )


def degraded_corners() -> CornersResult:
    return CornersResult(corners={}, average_score=NEUTRAL_SCORE, grade=GradeLabel.UNKNOWN, degraded=True)


def degraded_edges() -> EdgesResult:
    return EdgesResult(edges={}, average_score=NEUTRAL_SCORE, grade=GradeLabel.UNKNOWN, degraded=True)


def degraded_surface() -> SurfaceResult:
    return SurfaceResult(score=NEUTRAL_SCORE, damage_percentage=0.0, grade=GradeLabel.UNKNOWN, degraded=True)


def run_stage(name: str, fn: Callable[[], T], fallback: Callable[[], T], degraded: list[str]) -> T:
    """Run one analysis stage, substituting ``fallback()`` if it raises."""
    try:
        return fn()
    except Exception:
        logger.warning("analysis stage %r failed, using neutral default", name, exc_info=True)
        degraded.append(name)
        return fallback()


def weighted_score(centering: float, corners: float, edges: float, surface: float) -> float:
    """Unrounded overall condition score."""
    w = CRITERION_WEIGHTS
    return (
        centering * w["centering"]
        + corners * w["corners"]
        + edges * w["edges"]
        + surface * w["surface"]
    )


def overall_condition(
    centering: CenteringResult,
    corners: CornersResult,
    edges: EdgesResult,
    surface: SurfaceResult,
) -> OverallCondition:
    raw = weighted_score(centering.score, corners.average_score, edges.average_score, surface.score)
    return OverallCondition(
        score=round_half_up(raw, 1),
        grade=score_to_grade(raw),
        breakdown={
            "centering": centering.score,
            "corners": corners.average_score,
            "edges": edges.average_score,
            "surface": surface.score,
        },
    )


def analyze_card(raster: RasterImage, text_extractor: TextExtractor = extract_text) -> Analysis:
    """Score one card image."""
    degraded: list[str] = []

    centering = run_stage("centering", lambda: measure_centering(raster), degraded_centering, degraded)
    corners = run_stage("corners", lambda: score_corners(raster), degraded_corners, degraded)
    edges = run_stage("edges", lambda: score_edges(raster), degraded_edges, degraded)
    surface = run_stage("surface", lambda: score_surface(raster), degraded_surface, degraded)
    text = run_stage("text", lambda: text_extractor(raster), TextExtraction, degraded)

    condition = overall_condition(centering, corners, edges, surface)
    logger.info(
        "analysed %dx%d card: centering=%.1f corners=%.1f edges=%.1f surface=%.1f overall=%.1f (%s)",
        raster.width, raster.height, centering.score, corners.average_score,
        edges.average_score, surface.score, condition.score, condition.grade.value,
    )

    return Analysis(
        card_type=CARD_TYPE,
        width=raster.width,
        height=raster.height,
        centering=centering,
        corners=corners,
        edges=edges,
        surface=surface,
        text=text,
        overall_condition=condition,
        degraded_stages=tuple(degraded),
    )
