"""
Text Extraction Service

OCR over the whole card face using Tesseract. The recognised text feeds the
grader's confidence estimate (mean word confidence) and the rarity lookup.
Failures never abort an analysis: any OCR error yields an empty extraction.
"""

import logging
import os

import pytesseract

from domain.types import TextExtraction
from services.grading.raster import RasterImage


logger = logging.getLogger(__name__)

TESSERACT_LANG = 'eng'
TESSERACT_CONFIG = "--psm 3 --oem 1"


def ocr_disabled() -> bool:
    """True when OCR is switched off by config or when running under pytest.

    Keeps unit tests fast and avoids a hard dependency on the tesseract binary.
    """
    skip_ocr = os.environ.get("PREGRADER_SKIP_OCR", "").strip().lower() in {"1", "true", "yes"}
    return skip_ocr or bool(os.environ.get("PYTEST_CURRENT_TEST"))


def _words_and_confidence(data: dict) -> tuple[tuple[str, ...], float]:
    words: list[str] = []
    confidences: list[float] = []
    for text, conf in zip(data.get("text", []), data.get("conf", [])):
        word = str(text).strip()
        try:
            value = float(conf)
        except (TypeError, ValueError):
            continue
        # Tesseract reports -1 for layout rows without a word.
        if not word or value < 0:
            continue
        words.append(word)
        confidences.append(value)
    mean = sum(confidences) / len(confidences) if confidences else 0.0
    return tuple(words), mean


def extract_text(raster: RasterImage) -> TextExtraction:
    """Extract card text. Returns the empty extraction on any OCR failure."""
    if ocr_disabled():
        return TextExtraction()

    image = raster.to_pil().convert('RGB')
    try:
        text = pytesseract.image_to_string(image, lang=TESSERACT_LANG, config=TESSERACT_CONFIG)
        data = pytesseract.image_to_data(
            image, lang=TESSERACT_LANG, config=TESSERACT_CONFIG, output_type=pytesseract.Output.DICT,
        )
    except (pytesseract.TesseractError, pytesseract.TesseractNotFoundError, OSError, RuntimeError) as e:
        logger.warning("text extraction failed, continuing without text: %s", e)
        return TextExtraction()

    words, confidence = _words_and_confidence(data)
    return TextExtraction(text=text.strip(), confidence=confidence, words=words)
