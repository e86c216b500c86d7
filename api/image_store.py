from __future__ import annotations

"""Very small, local image store for API responses.

In Lambda, you would replace this with S3 presigned URLs, etc.
For local/dev we write PNGs under PREGRADER_EXPORT_DIR (default
./exports/analyze) and hand the paths back to the caller.
"""

import os
from typing import Optional

from services.grading.raster import RasterImage


def export_dir() -> str:
    configured = os.environ.get("PREGRADER_EXPORT_DIR", "").strip()
    return configured or os.path.join(os.getcwd(), "exports", "analyze")


def save_png(raster: RasterImage, request_id: str, name: str, out_dir: Optional[str] = None) -> str:
    out_dir = out_dir or export_dir()
    os.makedirs(out_dir, exist_ok=True)
    safe = "".join(ch for ch in name if ch.isalnum() or ch in {"_", "-"}).strip() or "img"
    path = os.path.join(out_dir, f"{request_id}__{safe}.png")
    raster.to_pil().save(path, format="PNG")
    return path


def save_previews(report, request_id: str) -> dict[str, dict[str, str]]:
    """Write every in-memory preview on a CardReport and return {group: {name: path}}."""
    previews: dict[str, dict[str, str]] = {}
    if report.defects is not None and report.defects.visualizations:
        previews["defects"] = {
            kind: save_png(img, request_id, f"defect_{kind}")
            for kind, img in sorted(report.defects.visualizations.items())
        }
    if report.enhanced is not None:
        previews["enhanced"] = {
            name: save_png(img, request_id, f"enhanced_{name}")
            for name, img in sorted(report.enhanced.processed.items())
        }
    if report.segmentation is not None:
        highlights = {}
        for group, value in report.segmentation.highlights.items():
            items = value.items() if isinstance(value, dict) else [(value.name, value)]
            for name, h in items:
                if h.overlay is not None:
                    key = f"{group}_{name}"
                    highlights[key] = save_png(h.overlay, request_id, f"segment_{key}")
        if highlights:
            previews["segments"] = highlights
    return previews
