from __future__ import annotations

"""End-to-end grading run for one card.

Approach:
1. Fan out the independent stages over a thread pool: front analysis,
   photo quality, defect detection, segmentation and (optionally) the back
   analysis. Every stage reads the same read-only raster.
2. Enhancement waits for photo quality, since its metadata embeds it.
3. Join at the grader: grade_analysis(front analysis, quality, rarity).

Optional stages (quality, defects, enhancement, segmentation, back) that
raise are logged and left out of the report; the grade is still produced.
"""

import logging
import os
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Optional

from services.grading.analysis import TextExtractor, analyze_card
from services.grading.defects import detect_defects
from services.grading.enhance import enhance_image
from services.grading.errors import InputError
from services.grading.grade import grade_analysis
from services.grading.photo_quality import analyze_quality
from services.grading.raster import RasterImage
from services.grading.segmentation import segment_card
from services.grading.types import CardReport
from services.rarity import RarityLookup
from services.text_extraction import extract_text


logger = logging.getLogger(__name__)


DEFAULT_MAX_WORKERS = 4

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name, "").strip().lower()
    if raw in _TRUTHY:
        return True
    if raw in _FALSY:
        return False
    return default


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("ignoring non-integer %s=%r", name, raw)
        return default
    return max(1, value)


@dataclass(frozen=True)
class PipelineOptions:
    defects: bool = True
    enhance: bool = True
    segment: bool = True
    visualize: bool = False
    max_workers: int = DEFAULT_MAX_WORKERS

    @classmethod
    def from_env(cls) -> "PipelineOptions":
        return cls(
            defects=_env_flag("PREGRADER_DEFECTS", True),
            enhance=_env_flag("PREGRADER_ENHANCE", True),
            segment=_env_flag("PREGRADER_SEGMENT", True),
            visualize=_env_flag("PREGRADER_VISUALIZE", False),
            max_workers=_env_int("PREGRADER_MAX_WORKERS", DEFAULT_MAX_WORKERS),
        )

    def with_overrides(self, overrides: dict[str, Any]) -> "PipelineOptions":
        """Copy with the recognised boolean keys of ``overrides`` applied."""
        values = {
            "defects": self.defects,
            "enhance": self.enhance,
            "segment": self.segment,
            "visualize": self.visualize,
            "max_workers": self.max_workers,
        }
        for key in ("defects", "enhance", "segment", "visualize"):
            if key in overrides:
                values[key] = _option_flag(key, overrides[key])
        return PipelineOptions(**values)


def _option_flag(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        raw = value.strip().lower()
        if raw in _TRUTHY:
            return True
        if raw in _FALSY:
            return False
    raise InputError(
        f"options.{key} must be a boolean, got {value!r}.",
        code="INVALID_FIELD_VALUE", field=f"options.{key}",
    )


def _optional(name: str, future: Optional[Future]) -> Any:
    if future is None:
        return None
    try:
        return future.result()
    except Exception:
        logger.warning("optional stage %s failed; omitted from report", name, exc_info=True)
        return None


def run_pipeline(
    front: RasterImage,
    back: Optional[RasterImage] = None,
    options: Optional[PipelineOptions] = None,
    text_extractor: TextExtractor = extract_text,
    rarity: Optional[RarityLookup] = None,
) -> CardReport:
    """Analyse, grade and annotate one card."""
    options = options if options is not None else PipelineOptions.from_env()

    with ThreadPoolExecutor(max_workers=options.max_workers) as pool:
        analysis_f = pool.submit(analyze_card, front, text_extractor)
        quality_f = pool.submit(analyze_quality, front)
        defects_f = pool.submit(detect_defects, front, options.visualize) if options.defects else None
        segment_f = pool.submit(segment_card, front, options.visualize) if options.segment else None
        back_f = pool.submit(analyze_card, back, text_extractor) if back is not None else None

        quality = _optional("quality", quality_f)
        enhance_f = pool.submit(enhance_image, front, quality) if options.enhance and quality is not None else None

        analysis = analysis_f.result()
        defects = _optional("defects", defects_f)
        segmentation = _optional("segmentation", segment_f)
        back_analysis = _optional("back", back_f)
        enhanced = _optional("enhance", enhance_f)

    grading = grade_analysis(analysis, quality, rarity)
    logger.info(
        "graded card %s (%.1f, p=%.2f, confidence=%.2f)",
        grading.overall_grade.value, grading.overall_score, grading.probability, grading.confidence,
    )

    return CardReport(
        analysis=analysis,
        grading=grading,
        quality=quality,
        defects=defects,
        enhanced=enhanced,
        segmentation=segmentation,
        back_analysis=back_analysis,
    )
