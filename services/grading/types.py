from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from domain.types import DefectKind, GradeLabel, Impact, Region, TextExtraction
from services.grading.raster import RasterImage


# -----------------------------------------------------------------------------
# Primary scorers
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class CenteringResult:
    score: float  # 0..10, one decimal
    grade: GradeLabel
    vertical_error: float  # |top - bottom| / height
    horizontal_error: float  # |left - right| / width
    borders: dict[str, float]  # top/bottom/left/right mean walk distance
    degraded: bool = False

    def to_dict(self) -> dict[str, Any]:
        if self.degraded:
            return {"score": float(self.score), "grade": self.grade.value}
        return {
            "score": float(self.score),
            "grade": self.grade.value,
            "verticalCentering": round(self.vertical_error, 2),
            "horizontalCentering": round(self.horizontal_error, 2),
            "topBorder": float(self.borders["top"]),
            "bottomBorder": float(self.borders["bottom"]),
            "leftBorder": float(self.borders["left"]),
            "rightBorder": float(self.borders["right"]),
        }


@dataclass(frozen=True)
class RegionScore:
    score: float
    damage_percentage: float

    def to_dict(self) -> dict[str, float]:
        return {"score": float(self.score), "damagePercentage": round(float(self.damage_percentage), 2)}


@dataclass(frozen=True)
class CornersResult:
    corners: dict[str, RegionScore]  # topLeft, topRight, bottomLeft, bottomRight
    average_score: float
    grade: GradeLabel
    degraded: bool = False

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"averageScore": float(self.average_score), "grade": self.grade.value}
        if not self.degraded:
            out["corners"] = {name: r.to_dict() for name, r in self.corners.items()}
        return out


@dataclass(frozen=True)
class EdgesResult:
    edges: dict[str, RegionScore]  # top, bottom, left, right
    average_score: float
    grade: GradeLabel
    degraded: bool = False

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"averageScore": float(self.average_score), "grade": self.grade.value}
        if not self.degraded:
            out["edges"] = {name: r.to_dict() for name, r in self.edges.items()}
        return out


@dataclass(frozen=True)
class SurfaceResult:
    score: float
    damage_percentage: float
    grade: GradeLabel
    degraded: bool = False

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"score": float(self.score), "grade": self.grade.value}
        if not self.degraded:
            out["damagePercentage"] = round(float(self.damage_percentage), 2)
        return out


@dataclass(frozen=True)
class OverallCondition:
    score: float  # one decimal
    grade: GradeLabel  # banded from the unrounded weighted score
    breakdown: dict[str, float]

    def to_dict(self) -> dict[str, Any]:
        return {"score": float(self.score), "grade": self.grade.value, "breakdown": dict(self.breakdown)}


@dataclass(frozen=True)
class Analysis:
    card_type: str
    width: int
    height: int
    centering: CenteringResult
    corners: CornersResult
    edges: EdgesResult
    surface: SurfaceResult
    text: TextExtraction
    overall_condition: OverallCondition
    degraded_stages: tuple[str, ...] = ()

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height

    def to_dict(self) -> dict[str, Any]:
        return {
            "cardType": self.card_type,
            "dimensions": {"width": self.width, "height": self.height, "aspectRatio": self.aspect_ratio},
            "centering": self.centering.to_dict(),
            "corners": self.corners.to_dict(),
            "edges": self.edges.to_dict(),
            "surface": self.surface.to_dict(),
            "text": self.text.to_dict(),
            "overallCondition": self.overall_condition.to_dict(),
            "degradedStages": list(self.degraded_stages),
        }


# -----------------------------------------------------------------------------
# Defects
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class DefectLocation:
    region: Region
    confidence: float  # 0..1

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = self.region.to_dict()
        out["confidence"] = float(self.confidence)
        return out


@dataclass(frozen=True)
class DefectFinding:
    kind: DefectKind
    severity: float  # 0..1
    locations: tuple[DefectLocation, ...]
    description: str
    impact: Impact

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.kind.value,
            "severity": float(self.severity),
            "locations": [loc.to_dict() for loc in self.locations],
            "description": self.description,
            "impact": self.impact.value,
        }


@dataclass(frozen=True)
class DefectRecommendation:
    kind: DefectKind
    severity: float
    level: str  # low / medium / high
    recommendation: str
    priority: str  # Low / Medium / High

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.kind.value,
            "severity": float(self.severity),
            "level": self.level,
            "recommendation": self.recommendation,
            "priority": self.priority,
        }


@dataclass(frozen=True)
class DefectReport:
    score: float
    confidence: float
    details: tuple[DefectFinding, ...]
    recommendations: tuple[DefectRecommendation, ...]
    # In-memory overlays keyed by defect kind; the API layer decides storage.
    visualizations: dict[str, RasterImage] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "overall": {"score": float(self.score), "confidence": float(self.confidence)},
            "details": [d.to_dict() for d in self.details],
            "recommendations": [r.to_dict() for r in self.recommendations],
        }


# -----------------------------------------------------------------------------
# Quality and texture
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class FocusResult:
    sharpness: float
    edge_density: float
    quality: str  # High / Medium / Low

    def to_dict(self) -> dict[str, Any]:
        return {"sharpness": self.sharpness, "edgeDensity": self.edge_density, "quality": self.quality}


@dataclass(frozen=True)
class LightingResult:
    average_brightness: float
    variance: float
    uniformity: str  # High / Medium / Low
    exposure: str  # Overexposed / Underexposed / Good

    def to_dict(self) -> dict[str, Any]:
        return {
            "averageBrightness": self.average_brightness,
            "variance": self.variance,
            "uniformity": self.uniformity,
            "exposure": self.exposure,
        }


@dataclass(frozen=True)
class CompositionResult:
    regions: tuple[dict[str, Any], ...]  # 3x3 thirds grid, row-major
    balance: float
    balance_label: str
    symmetry: float
    symmetry_label: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "ruleOfThirds": {"regions": list(self.regions)},
            "balance": {"score": self.balance, "balance": self.balance_label},
            "symmetry": {"score": self.symmetry, "symmetry": self.symmetry_label},
        }


@dataclass(frozen=True)
class ArtifactCheck:
    detected: bool
    severity: str  # High / Medium / Low
    details: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        out = {"detected": self.detected, "severity": self.severity}
        out.update(self.details)
        return out


@dataclass(frozen=True)
class ArtifactsResult:
    compression: ArtifactCheck
    noise: ArtifactCheck
    blur: ArtifactCheck
    jpeg: ArtifactCheck

    def to_dict(self) -> dict[str, Any]:
        return {
            "compression": self.compression.to_dict(),
            "noise": self.noise.to_dict(),
            "blur": self.blur.to_dict(),
            "jpeg": self.jpeg.to_dict(),
        }


@dataclass(frozen=True)
class QualityReport:
    focus: FocusResult
    lighting: LightingResult
    composition: CompositionResult
    artifacts: ArtifactsResult
    texture_stats: dict[str, float]
    quality_metrics: dict[str, float]
    color_stats: dict[str, Any]

    @property
    def lighting_ok(self) -> bool:
        return self.lighting.exposure == "Good" and self.lighting.uniformity != "Low"

    @property
    def focus_ok(self) -> bool:
        return self.focus.quality != "Low"

    def to_dict(self) -> dict[str, Any]:
        return {
            "focus": self.focus.to_dict(),
            "lighting": self.lighting.to_dict(),
            "composition": self.composition.to_dict(),
            "artifacts": self.artifacts.to_dict(),
            "textureStats": dict(self.texture_stats),
            "qualityMetrics": dict(self.quality_metrics),
            "colorStats": dict(self.color_stats),
        }


@dataclass(frozen=True)
class EnhancedImages:
    # hdr, sharpened, denoised, contrast, edges, colorCorrected
    processed: dict[str, RasterImage]
    metadata: dict[str, Any]
    analysis: QualityReport

    def to_dict(self) -> dict[str, Any]:
        return {
            "processed": sorted(self.processed),
            "metadata": dict(self.metadata),
            "analysis": self.analysis.to_dict(),
        }


# -----------------------------------------------------------------------------
# Segmentation
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class SegmentHighlight:
    kind: str  # corner / edge / center / surface / text / image
    name: str
    segment: Region
    analysis: dict[str, Any]
    overlay: Optional[RasterImage] = None

    def to_dict(self) -> dict[str, Any]:
        return {"segment": self.segment.to_dict(), "analysis": dict(self.analysis)}


@dataclass(frozen=True)
class CriticalArea:
    kind: str  # corner_wear / edge_wear / surface_damage
    location: str
    segment: Region
    severity: float
    description: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.kind,
            "location": self.location,
            "segment": self.segment.to_dict(),
            "severity": float(self.severity),
            "description": self.description,
        }


@dataclass(frozen=True)
class SegmentationReport:
    width: int
    height: int
    segments: dict[str, Any]  # group -> Region or {name: Region}
    highlights: dict[str, Any]  # group -> SegmentHighlight or {name: SegmentHighlight}
    critical_areas: tuple[CriticalArea, ...]
    metadata: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        def _dump(value: Any) -> Any:
            if isinstance(value, dict):
                return {k: _dump(v) for k, v in value.items()}
            return value.to_dict()

        return {
            "dimensions": {"width": self.width, "height": self.height},
            "segments": _dump(self.segments),
            "highlights": _dump(self.highlights),
            "criticalAreas": [c.to_dict() for c in self.critical_areas],
            "metadata": dict(self.metadata),
        }


# -----------------------------------------------------------------------------
# Grading
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class CriterionBreakdown:
    score: float
    grade: GradeLabel
    impact: str  # High Positive / Positive / Neutral / Negative / High Negative

    def to_dict(self) -> dict[str, Any]:
        return {"score": float(self.score), "grade": self.grade.value, "impact": self.impact}


@dataclass(frozen=True)
class Recommendation:
    category: str
    issue: str
    suggestion: str
    impact: str

    def to_dict(self) -> dict[str, str]:
        return {"category": self.category, "issue": self.issue, "suggestion": self.suggestion, "impact": self.impact}


@dataclass(frozen=True)
class SubmissionAdvice:
    kind: str  # Positive / Warning / Caution
    message: str
    priority: str

    def to_dict(self) -> dict[str, str]:
        return {"type": self.kind, "message": self.message, "priority": self.priority}


@dataclass(frozen=True)
class Grading:
    overall_grade: GradeLabel
    overall_score: float
    probability: float
    confidence: float
    breakdown: dict[str, CriterionBreakdown]
    recommendations: tuple[Recommendation, ...]
    market_value: int
    submission_advice: tuple[SubmissionAdvice, ...]
    grade_range: str  # nominal band, e.g. "9.0-9.4"
    grade_description: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "overallGrade": self.overall_grade.value,
            "overallScore": float(self.overall_score),
            "gradeRange": self.grade_range,
            "gradeDescription": self.grade_description,
            "probability": float(self.probability),
            "confidence": float(self.confidence),
            "breakdown": {k: v.to_dict() for k, v in self.breakdown.items()},
            "recommendations": [r.to_dict() for r in self.recommendations],
            "marketValue": int(self.market_value),
            "submissionAdvice": [a.to_dict() for a in self.submission_advice],
        }


@dataclass(frozen=True)
class CardReport:
    analysis: Analysis
    grading: Grading
    quality: Optional[QualityReport] = None
    defects: Optional[DefectReport] = None
    enhanced: Optional[EnhancedImages] = None
    segmentation: Optional[SegmentationReport] = None
    back_analysis: Optional[Analysis] = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "analysis": self.analysis.to_dict(),
            "grading": self.grading.to_dict(),
        }
        if self.quality is not None:
            out["quality"] = self.quality.to_dict()
        if self.defects is not None:
            out["defects"] = self.defects.to_dict()
        if self.enhanced is not None:
            out["enhanced"] = self.enhanced.to_dict()
        if self.segmentation is not None:
            out["segmentation"] = self.segmentation.to_dict()
        if self.back_analysis is not None:
            out["backAnalysis"] = self.back_analysis.to_dict()
        return out
