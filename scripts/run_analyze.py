#!/usr/bin/env python3
"""Grade a card image from the command line.

Usage:
  python scripts/run_analyze.py path/to/front.jpg [--back path/to/back.jpg]
      [--no-defects] [--no-enhance] [--no-segment] [--visualize] [--save-previews]

Prints the CardReport as stable JSON on stdout and a short summary (grade,
plus defects with severity above 0.1) on stderr. Exits with status 2 when an image
cannot be decoded.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from dataclasses import replace
from pathlib import Path

# Ensure repo root is importable when run as `python scripts/run_analyze.py`.
REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
if REPO_ROOT not in sys.path:
    sys.path.insert(0, REPO_ROOT)

from api.http import content_hash_bytes, stable_json_dumps  # noqa: E402
from api.image_store import save_previews  # noqa: E402
from services.grading.defects import displayable_findings  # noqa: E402
from services.grading.errors import ImageDecodeError  # noqa: E402
from services.grading.pipeline import PipelineOptions, run_pipeline  # noqa: E402
from services.grading.raster import RasterImage  # noqa: E402


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Pre-grade a trading card photo")
    parser.add_argument("front", help="Path to front image file")
    parser.add_argument("--back", default=None, help="Optional path to back image file")
    parser.add_argument("--no-defects", action="store_true", help="Skip the defect detectors")
    parser.add_argument("--no-enhance", action="store_true", help="Skip enhanced previews")
    parser.add_argument("--no-segment", action="store_true", help="Skip segmentation")
    parser.add_argument("--visualize", action="store_true", help="Render defect and segment overlays")
    parser.add_argument("--save-previews", action="store_true", help="Write previews under PREGRADER_EXPORT_DIR")
    parser.add_argument("--workers", type=int, default=None, help="Thread pool size")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    log = logging.getLogger("run_analyze")

    front_path = Path(args.front)
    if not front_path.exists():
        raise SystemExit(f"Front image not found: {front_path}")
    back_path = Path(args.back) if args.back else None
    if back_path is not None and not back_path.exists():
        raise SystemExit(f"Back image not found: {back_path}")

    options = PipelineOptions.from_env()
    options = replace(
        options,
        defects=options.defects and not args.no_defects,
        enhance=options.enhance and not args.no_enhance,
        segment=options.segment and not args.no_segment,
        visualize=options.visualize or args.visualize,
        max_workers=max(1, args.workers) if args.workers else options.max_workers,
    )

    try:
        front = RasterImage.open(front_path)
        back = RasterImage.open(back_path) if back_path is not None else None
    except ImageDecodeError as e:
        log.error("%s", e)
        return 2

    report = run_pipeline(front, back, options)
    out = report.to_dict()

    grading = report.grading
    log.info(
        "grade: %s %.1f (%s, range %s)",
        grading.overall_grade.value, grading.overall_score, grading.grade_description, grading.grade_range,
    )
    if report.defects is not None:
        for finding in displayable_findings(report.defects):
            log.info("defect: %s severity=%.2f %s", finding.kind.value, finding.severity, finding.description)

    if args.save_previews:
        request_id = content_hash_bytes(front_path.read_bytes())[:24]
        out["previews"] = save_previews(report, request_id)

    print(stable_json_dumps(out))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
