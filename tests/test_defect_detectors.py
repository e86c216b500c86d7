"""Tests for the defect scanner family.

These tests verify:
1. Determinism: same input -> same output
2. Clean (uniform grey) cards produce no findings and a zero score
3. Each detector descriptor fires on the synthetic pattern it targets
4. Aggregation: impact tiers, recommendation levels and ordering
"""

import numpy as np
import pytest

from domain.types import DefectKind, Impact, Region
from services.grading.defects import (
    DETECTOR_ORDER,
    RECOMMENDATION_TEXT,
    classify_impact,
    defect_recommendations,
    detect_defects,
    displayable_findings,
    overall_defect_score,
    run_detector,
    wear_severity,
)
from services.grading.raster import RasterImage
from services.grading.types import DefectFinding, DefectLocation


# ---------------------------------------------------------------------------
# Test fixtures: synthetic images
# ---------------------------------------------------------------------------


def _uniform(width: int = 400, height: int = 560, color=(128, 128, 128)) -> RasterImage:
    arr = np.zeros((height, width, 3), dtype=np.uint8)
    arr[...] = color
    return RasterImage(arr)


def _with_spike(width: int = 100, height: int = 100, x: int = 50, y: int = 50) -> RasterImage:
    arr = np.full((height, width, 3), 128, dtype=np.uint8)
    arr[y, x] = 255
    return RasterImage(arr)


def _finding(kind: DefectKind, severity: float, n_locations: int = 1) -> DefectFinding:
    locs = tuple(DefectLocation(Region(0, 0, 10, 10), severity) for _ in range(n_locations))
    return DefectFinding(kind=kind, severity=severity, locations=locs, description="", impact=Impact.MINIMAL)


# ---------------------------------------------------------------------------
# Clean card
# ---------------------------------------------------------------------------


class TestCleanCard:
    def test_uniform_grey_has_no_findings(self):
        report = detect_defects(_uniform())
        assert [f.kind for f in report.details] == list(DETECTOR_ORDER)
        assert all(f.locations == () for f in report.details)
        assert all(f.impact == Impact.NONE for f in report.details)
        assert report.score == 0.0
        assert report.confidence == 0.0
        assert report.recommendations == ()
        assert report.visualizations == {}

    def test_deterministic(self):
        raster = _uniform(120, 160, (90, 140, 60))
        assert detect_defects(raster).to_dict() == detect_defects(raster).to_dict()

    def test_to_dict_shape(self):
        d = detect_defects(_uniform()).to_dict()
        assert d["overall"] == {"score": 0.0, "confidence": 0.0}
        assert len(d["details"]) == 8
        assert d["details"][0]["type"] == "scratches"


# ---------------------------------------------------------------------------
# Individual detectors
# ---------------------------------------------------------------------------


class TestSampledDetectors:
    def test_scratch_on_isolated_spike(self):
        finding = run_detector(_with_spike(), DefectKind.SCRATCHES)
        assert len(finding.locations) == 1
        loc = finding.locations[0]
        assert loc.region == Region(50, 50, 10, 10)
        assert loc.confidence == pytest.approx(1.0)

    def test_dents_on_dark_card(self):
        finding = run_detector(_uniform(100, 100, (20, 20, 20)), DefectKind.DENTS)
        assert len(finding.locations) == 20 * 20
        assert finding.severity == pytest.approx(235 / 255)

    def test_surface_damage_density(self):
        finding = run_detector(_uniform(100, 100, (20, 20, 20)), DefectKind.SURFACE_DAMAGE)
        # 400 samples against an expected 100 * 100 / 25
        assert finding.severity == pytest.approx(1.0)

    def test_discoloration_on_red_card(self):
        finding = run_detector(_uniform(100, 100, (200, 0, 0)), DefectKind.DISCOLORATION)
        assert len(finding.locations) == 10 * 10
        assert finding.severity == pytest.approx(200 / 255)

    def test_printing_defects_on_extremes(self):
        finding = run_detector(_uniform(50, 50, (250, 250, 250)), DefectKind.PRINTING_DEFECTS)
        assert finding.locations
        assert finding.severity == pytest.approx(122 / 128)

    def test_water_damage_on_near_white(self):
        finding = run_detector(_uniform(50, 50, (230, 230, 230)), DefectKind.WATER_DAMAGE)
        assert len(finding.locations) == 5 * 5
        assert finding.severity == pytest.approx(690 / 765)

    def test_locations_stay_inside_image(self):
        raster = _uniform(33, 27, (250, 250, 250))
        finding = run_detector(raster, DefectKind.PRINTING_DEFECTS)
        for loc in finding.locations:
            r = loc.region
            assert r.x + r.width <= 33
            assert r.y + r.height <= 27


class TestWearDetectors:
    def test_wear_severity(self):
        dark_top = np.full((10, 10), 255.0)
        dark_top[:5, :] = 0.0
        assert wear_severity(dark_top, ("top",), 0.5) == pytest.approx(1.0)
        assert wear_severity(dark_top, ("bottom",), 0.5) == pytest.approx(0.0)
        assert wear_severity(dark_top, ("top", "bottom"), 0.5) == pytest.approx(0.5)

    def test_wear_severity_unknown_side(self):
        with pytest.raises(ValueError):
            wear_severity(np.zeros((4, 4)), ("middle",))

    def test_uniform_grey_is_below_report_threshold(self):
        # (255 - 128) / 255 is just under 0.5
        finding = run_detector(_uniform(), DefectKind.CORNER_WEAR)
        assert finding.locations == ()
        assert finding.severity == 0.0

    def test_dark_card_wears_every_corner_and_edge(self):
        raster = _uniform(100, 100, (20, 20, 20))
        corners = run_detector(raster, DefectKind.CORNER_WEAR)
        edges = run_detector(raster, DefectKind.EDGE_WEAR)
        assert len(corners.locations) == 4
        assert len(edges.locations) == 4
        assert corners.severity == pytest.approx(235 / 255)
        assert corners.locations[0].region == Region(0, 0, 15, 15)


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------


class TestAggregation:
    def test_impact_tiers(self):
        loc = lambda c: (DefectLocation(Region(0, 0, 100, 100), c),)
        assert classify_impact(()) == Impact.NONE
        assert classify_impact(loc(0.05)) == Impact.MINIMAL
        assert classify_impact(loc(0.2)) == Impact.MINOR
        assert classify_impact(loc(0.4)) == Impact.MODERATE
        assert classify_impact(loc(0.6)) == Impact.SIGNIFICANT
        assert classify_impact(loc(1.0)) == Impact.MAJOR

    def test_overall_score_ignores_empty_findings(self):
        findings = (
            _finding(DefectKind.DENTS, 0.8, 3),
            _finding(DefectKind.SCRATCHES, 0.4, 1),
            DefectFinding(DefectKind.WATER_DAMAGE, 0.0, (), "", Impact.NONE),
        )
        score, confidence = overall_defect_score(findings)
        assert score == pytest.approx(0.6)
        assert confidence == 1.0

    def test_recommendations_levels_and_order(self):
        findings = (
            _finding(DefectKind.SCRATCHES, 0.35),
            _finding(DefectKind.DENTS, 0.9),
            _finding(DefectKind.EDGE_WEAR, 0.5),
            _finding(DefectKind.DISCOLORATION, 0.3),
        )
        recs = defect_recommendations(findings)
        assert [r.kind for r in recs] == [DefectKind.DENTS, DefectKind.EDGE_WEAR, DefectKind.SCRATCHES]
        assert [r.level for r in recs] == ["high", "medium", "low"]
        assert recs[0].priority == "High"
        assert recs[0].recommendation == RECOMMENDATION_TEXT[DefectKind.DENTS]["high"]

    def test_dark_card_report(self):
        report = detect_defects(_uniform(100, 100, (20, 20, 20)), visualize=True)
        assert report.score > 0.5
        assert report.confidence == 1.0
        severities = [r.severity for r in report.recommendations]
        assert severities == sorted(severities, reverse=True)
        overlay = report.visualizations["corner_wear"]
        assert overlay.pixel_at(0, 0) == (255, 255, 0, 255)
        assert (overlay.width, overlay.height) == (100, 100)

    def test_visualizations_leave_source_untouched(self):
        raster = _uniform(100, 100, (20, 20, 20))
        detect_defects(raster, visualize=True)
        assert raster.pixel_at(0, 0) == (20, 20, 20, 255)

    def test_displayable_findings(self):
        report = detect_defects(_uniform(100, 100, (20, 20, 20)))
        shown = displayable_findings(report)
        assert DefectKind.DENTS in [f.kind for f in shown]
        assert DefectKind.WATER_DAMAGE not in [f.kind for f in shown]
