"""
Card Pre-Grader Core Domain Types

Shared vocabulary used by every analysis stage: grade labels, defect kinds,
impact levels, rectangular regions and the text-extraction contract.

Field names emitted by ``to_dict`` are the camelCase names of the public
output record. Scores are advisory estimates, not an authoritative grade.
"""

from dataclasses import dataclass, field
from typing import Any
from enum import Enum


class GradeLabel(str, Enum):
    """
    Condition grade labels, best first.

    UNKNOWN is only produced when an analysis stage failed and a neutral
    default was substituted.
    """
    GEM_MINT = "Gem Mint"
    MINT = "Mint"
    NEAR_MINT_MINT = "Near Mint-Mint"
    NEAR_MINT = "Near Mint"
    EXCELLENT_MINT = "Excellent-Mint"
    EXCELLENT = "Excellent"
    VERY_GOOD_EXCELLENT = "Very Good-Excellent"
    VERY_GOOD = "Very Good"
    GOOD_VERY_GOOD = "Good-Very Good"
    GOOD = "Good"
    POOR = "Poor"
    UNKNOWN = "Unknown"


class DefectKind(str, Enum):
    """The eight defect detectors, in reporting order."""
    SCRATCHES = "scratches"
    DENTS = "dents"
    CORNER_WEAR = "corner_wear"
    EDGE_WEAR = "edge_wear"
    SURFACE_DAMAGE = "surface_damage"
    DISCOLORATION = "discoloration"
    PRINTING_DEFECTS = "printing_defects"
    WATER_DAMAGE = "water_damage"


class Impact(str, Enum):
    """Impact of a defect finding on the grade."""
    NONE = "None"
    MINIMAL = "Minimal"
    MINOR = "Minor"
    MODERATE = "Moderate"
    SIGNIFICANT = "Significant"
    MAJOR = "Major"


@dataclass(frozen=True)
class Region:
    """
    Axis-aligned rectangle in image pixel coordinates.

    Regions may overlap; producers keep them inside the source image.
    """

    x: int
    y: int
    width: int
    height: int

    @property
    def area(self) -> int:
        return self.width * self.height

    def clamp(self, image_width: int, image_height: int) -> "Region":
        """Return the part of this region that lies inside a width x height image."""
        x0 = min(max(self.x, 0), image_width)
        y0 = min(max(self.y, 0), image_height)
        x1 = min(max(self.x + self.width, 0), image_width)
        y1 = min(max(self.y + self.height, 0), image_height)
        return Region(x=x0, y=y0, width=max(0, x1 - x0), height=max(0, y1 - y0))

    def to_dict(self) -> dict[str, int]:
        return {"x": int(self.x), "y": int(self.y), "width": int(self.width), "height": int(self.height)}


@dataclass(frozen=True)
class TextExtraction:
    """
    Result of the text-extraction collaborator.

    An extractor that fails or is disabled returns the empty value:
    empty text, zero confidence, no words.
    """

    text: str = ""
    """Extracted text, stripped."""

    confidence: float = 0.0
    """Mean word confidence on a 0..100 scale."""

    words: tuple[str, ...] = field(default_factory=tuple)
    """Individual recognised words."""

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "confidence": float(self.confidence),
            "words": list(self.words),
        }
