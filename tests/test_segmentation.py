"""Tests for card segmentation: geometry, per-segment analysis, critical areas."""

import numpy as np
import pytest

from domain.types import Region
from services.grading.raster import RasterImage
from services.grading.segmentation import define_segments, segment_card


def _uniform(width: int = 200, height: int = 280, value: int = 128) -> RasterImage:
    return RasterImage(np.full((height, width, 3), value, dtype=np.uint8))


def _checkerboard(size: int = 90) -> RasterImage:
    yy, xx = np.mgrid[0:size, 0:size]
    plane = np.where((xx + yy) % 2 == 0, 0, 255).astype(np.uint8)
    return RasterImage(np.repeat(plane[..., None], 3, axis=2))


class TestGeometry:
    def test_segment_rectangles(self):
        segments = define_segments(200, 280)
        assert segments["corners"]["topLeft"] == Region(0, 0, 30, 30)
        assert segments["corners"]["bottomRight"] == Region(170, 250, 30, 30)
        assert segments["edges"]["top"] == Region(0, 0, 200, 10)
        assert segments["edges"]["right"] == Region(190, 0, 10, 280)
        assert segments["center"] == Region(40, 80, 120, 120)
        assert segments["border"] == Region(4, 4, 192, 272)
        assert len(segments["surface"]) == 9
        assert segments["surface"]["surface_0_0"] == Region(0, 0, 66, 93)

    def test_surface_grid_covers_image(self):
        segments = define_segments(200, 280)
        area = sum(r.area for r in segments["surface"].values())
        assert area == 200 * 280


class TestSegmentCard:
    def test_uniform_grey(self):
        report = segment_card(_uniform())
        corners = report.highlights["corners"]
        assert set(corners) == {"topLeft", "topRight", "bottomLeft", "bottomRight"}
        assert corners["topLeft"].analysis["severity"] == pytest.approx(127 / 255)
        assert corners["topLeft"].analysis["condition"] == "Fair"
        assert report.highlights["center"].analysis["condition"] == "Normal"
        assert report.highlights["surface"]["surface_1_1"].analysis["condition"] == "Smooth"
        assert report.highlights["textArea"].analysis["readability"] == "Poor"
        assert report.highlights["imageArea"].analysis["quality"] == "Blurry"
        assert report.critical_areas == ()

    def test_metadata(self):
        report = segment_card(_uniform())
        meta = report.metadata
        assert meta["totalSegments"] == 7
        assert meta["segmentCounts"] == {"corners": 4, "edges": 4, "surface": 9}
        assert meta["imageDimensions"] == {"width": 200, "height": 280}
        assert meta["aspectRatio"] == pytest.approx(200 / 280)

    def test_dark_card_has_critical_wear(self):
        report = segment_card(_uniform(value=20), render_highlights=False)
        kinds = [a.kind for a in report.critical_areas]
        assert kinds.count("corner_wear") == 4
        assert kinds.count("edge_wear") == 4
        top_left = report.critical_areas[0]
        assert top_left.location == "topLeft"
        assert top_left.description == "Critical wear detected in topLeft corner"

    def test_rough_surface_is_critical(self):
        report = segment_card(_checkerboard(), render_highlights=False)
        damage = [a for a in report.critical_areas if a.kind == "surface_damage"]
        assert len(damage) == 9
        assert all(a.severity == 1.0 for a in damage)
        assert damage[0].description == "Surface damage detected in surface_0_0"

    def test_highlight_overlay(self):
        raster = _uniform()
        report = segment_card(raster)
        overlay = report.highlights["corners"]["topLeft"].overlay
        assert (overlay.width, overlay.height) == (30, 30)
        # 3px red border, 50% red tint inside
        assert overlay.pixel_at(0, 0) == (255, 0, 0, 255)
        assert overlay.pixel_at(15, 15) == (192, 64, 64, 255)
        assert raster.pixel_at(0, 0) == (128, 128, 128, 255)

    def test_no_highlights_when_disabled(self):
        report = segment_card(_uniform(), render_highlights=False)
        assert report.highlights["center"].overlay is None

    def test_to_dict(self):
        d = segment_card(_uniform(), render_highlights=False).to_dict()
        assert d["dimensions"] == {"width": 200, "height": 280}
        assert d["segments"]["center"] == {"x": 40, "y": 80, "width": 120, "height": 120}
        assert d["highlights"]["corners"]["topLeft"]["segment"]["width"] == 30
        assert d["criticalAreas"] == []
