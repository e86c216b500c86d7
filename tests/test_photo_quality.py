"""Tests for photo quality, artifact detection and enhancement previews."""

import numpy as np
import pytest

from services.grading.artifacts import (
    block_variances,
    detect_artifacts,
    detect_blur,
    detect_compression,
    detect_jpeg_quantization,
    detect_noise,
)
from services.grading.enhance import ENHANCEMENTS, correct_colors, edge_map, enhance_image, tone_map
from services.grading.photo_quality import (
    analyze_composition,
    analyze_focus,
    analyze_lighting,
    analyze_quality,
    dominant_colors,
    quality_metrics,
    quality_score,
)
from services.grading.raster import RasterImage
from services.grading.texture import laplacian_abs, local_variance, max_neighbour_diff, neighbour_mean_diff


def _uniform(width: int = 100, height: int = 100, value: int = 128) -> RasterImage:
    return RasterImage(np.full((height, width, 3), value, dtype=np.uint8))


def _checkerboard(width: int = 100, height: int = 100) -> RasterImage:
    yy, xx = np.mgrid[0:height, 0:width]
    plane = np.where((xx + yy) % 2 == 0, 0, 255).astype(np.uint8)
    return RasterImage(np.repeat(plane[..., None], 3, axis=2))


def _split(width: int = 100, height: int = 100) -> RasterImage:
    """Black left half, white right half."""
    arr = np.zeros((height, width, 3), dtype=np.uint8)
    arr[:, width // 2:] = 255
    return RasterImage(arr)


# ---------------------------------------------------------------------------
# Texture kernels
# ---------------------------------------------------------------------------


class TestTextureKernels:
    def test_interior_only(self):
        plane = np.zeros((5, 6))
        assert max_neighbour_diff(plane).shape == (3, 4)

    def test_too_small_has_no_interior(self):
        plane = np.zeros((2, 10))
        for fn in (max_neighbour_diff, local_variance, laplacian_abs, neighbour_mean_diff):
            assert fn(plane).size == 0

    def test_single_spike(self):
        plane = np.zeros((3, 3))
        plane[1, 1] = 8.0
        assert max_neighbour_diff(plane)[0, 0] == 8.0
        assert local_variance(plane)[0, 0] == 64.0
        assert laplacian_abs(plane)[0, 0] == 32.0
        assert neighbour_mean_diff(plane)[0, 0] == 8.0

    def test_laplacian_is_four_neighbour_kernel(self):
        plane = np.random.default_rng(7).integers(0, 256, size=(9, 12)).astype(np.float64)
        c = plane[1:-1, 1:-1]
        expected = np.abs(4 * c - plane[1:-1, :-2] - plane[1:-1, 2:] - plane[:-2, 1:-1] - plane[2:, 1:-1])
        np.testing.assert_allclose(laplacian_abs(plane), expected)

    def test_laplacian_accepts_strided_views(self):
        plane = np.zeros((10, 10))
        plane[4, 4] = 8.0
        patch = plane[2:8, 2:8]
        assert laplacian_abs(patch)[1, 1] == 32.0


# ---------------------------------------------------------------------------
# Focus, lighting, composition
# ---------------------------------------------------------------------------


class TestFocus:
    def test_flat_image_is_low(self):
        focus = analyze_focus(_uniform())
        assert focus.sharpness == 0.0
        assert focus.edge_density == 0.0
        assert focus.quality == "Low"

    def test_checkerboard_is_high(self):
        focus = analyze_focus(_checkerboard())
        assert focus.sharpness == 255.0
        assert focus.edge_density == pytest.approx(98 * 98 / 10000)
        assert focus.quality == "High"


class TestLighting:
    def test_mid_grey_is_good(self):
        lighting = analyze_lighting(_uniform())
        assert lighting.average_brightness == 128.0
        assert lighting.variance == 0.0
        assert lighting.uniformity == "High"
        assert lighting.exposure == "Good"

    def test_exposure_extremes(self):
        assert analyze_lighting(_uniform(value=20)).exposure == "Underexposed"
        assert analyze_lighting(_uniform(value=230)).exposure == "Overexposed"

    def test_split_is_not_uniform(self):
        assert analyze_lighting(_split()).uniformity == "Low"


class TestComposition:
    def test_uniform_is_balanced_and_symmetric(self):
        comp = analyze_composition(_uniform())
        assert len(comp.regions) == 9
        assert comp.balance == 1.0
        assert comp.balance_label == "Good"
        assert comp.symmetry == pytest.approx(1.0)
        assert comp.symmetry_label == "High"

    def test_split_is_unbalanced(self):
        comp = analyze_composition(_split())
        assert comp.balance == pytest.approx(0.0)
        assert comp.balance_label == "Poor"
        assert comp.symmetry == pytest.approx(0.0)
        assert comp.symmetry_label == "Low"


# ---------------------------------------------------------------------------
# Metrics and statistics
# ---------------------------------------------------------------------------


class TestMetrics:
    def test_quality_score_bounds(self):
        assert quality_score(0.0, 0.0, 0.0) == pytest.approx(0.6)
        assert quality_score(500.0, 0.0, 0.0) == pytest.approx(1.0)
        assert quality_score(0.0, 5000.0, 500.0) == 0.0

    def test_flat_metrics(self):
        metrics = quality_metrics(_uniform())
        assert metrics["sharpness"] == 0.0
        assert metrics["qualityScore"] == pytest.approx(0.6)

    def test_dominant_colors(self):
        rgb = np.zeros((10, 10, 3), dtype=np.uint8)
        rgb[:5] = (200, 100, 50)
        found = dominant_colors(rgb)
        assert len(found) == 5
        assert all(d["percentage"] == 0.5 for d in found)

    def test_report_flags(self):
        report = analyze_quality(_uniform())
        assert report.lighting_ok is True
        assert report.focus_ok is False
        d = report.to_dict()
        assert set(d) >= {"focus", "lighting", "composition", "artifacts", "textureStats", "qualityMetrics", "colorStats"}


# ---------------------------------------------------------------------------
# Artifacts
# ---------------------------------------------------------------------------


class TestArtifacts:
    def test_block_variances_grid(self):
        # range(0, 92, 8) has 12 origins per axis
        assert block_variances(np.zeros((100, 100))).shape == (12, 12)
        assert block_variances(np.zeros((8, 8))).size == 0

    def test_flat_image_looks_compressed_and_quantised(self):
        raster = _uniform()
        compression = detect_compression(raster)
        assert compression.detected is True
        assert compression.severity == "High"
        jpeg = detect_jpeg_quantization(raster)
        assert jpeg.severity == "High"
        assert jpeg.details["quantizationArtifacts"] == 1.0

    def test_flat_image_has_no_noise_or_blur(self):
        raster = _uniform()
        assert detect_noise(raster).detected is False
        blur = detect_blur(raster)
        assert blur.detected is False
        assert blur.severity == "Low"

    def test_checkerboard_is_salt_and_pepper(self):
        noise = detect_noise(_checkerboard())
        assert noise.detected is True
        assert noise.severity == "High"

    def test_detect_artifacts_bundle(self):
        d = detect_artifacts(_uniform(value=129)).to_dict()
        assert set(d) == {"compression", "noise", "blur", "jpeg"}
        assert d["jpeg"]["detected"] is False


# ---------------------------------------------------------------------------
# Enhancement previews
# ---------------------------------------------------------------------------


class TestEnhance:
    def test_all_previews_rendered(self):
        raster = _uniform(64, 48)
        enhanced = enhance_image(raster)
        assert set(enhanced.processed) == set(ENHANCEMENTS)
        for img in enhanced.processed.values():
            assert (img.width, img.height) == (64, 48)
        assert enhanced.metadata["dimensions"] == {"width": 64, "height": 48}
        assert enhanced.metadata["totalPixels"] == 64 * 48

    def test_source_is_untouched(self):
        raster = _split(40, 40)
        before = raster.to_array()
        enhance_image(raster)
        assert np.array_equal(raster.pixels, before)

    def test_alpha_is_preserved(self):
        arr = np.full((20, 20, 4), 128, dtype=np.uint8)
        arr[..., 3] = 77
        out = ENHANCEMENTS["hdr"](RasterImage(arr))
        assert int(out.pixels[0, 0, 3]) == 77

    def test_tone_map_is_bounded(self):
        values = np.array([0.0, 255.0, 1000.0])
        mapped = tone_map(values)
        assert mapped[0] == 0.0
        assert mapped[1] == pytest.approx(127.5)
        assert mapped.max() <= 255.0

    def test_grey_world_balances_channels(self):
        arr = np.zeros((10, 10, 3), dtype=np.uint8)
        arr[...] = (200, 100, 50)
        r, g, b, _ = correct_colors(RasterImage(arr)).pixel_at(5, 5)
        assert max(r, g, b) - min(r, g, b) <= 1

    def test_edge_map(self):
        assert int(edge_map(_uniform(30, 30)).pixels[..., 0].max()) == 0
        assert int(edge_map(_split(30, 30)).pixels[..., 0].max()) == 255
