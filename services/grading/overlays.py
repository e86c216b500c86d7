from __future__ import annotations

"""Explanation overlays rendered on private copies of the analysed raster.

The source raster is never modified: every function converts to a fresh PIL
image (or array copy), draws, and wraps the result in a new RasterImage.
"""

from typing import Iterable

import numpy as np
from PIL import Image, ImageDraw

from domain.types import Region
from services.grading.raster import RasterImage


RGB = tuple[int, int, int]

HIGHLIGHT_BORDER_PX = 3


def paint_regions(raster: RasterImage, regions: Iterable[Region], color: RGB) -> RasterImage:
    """Fill each region with a solid colour. Regions are clipped to the image."""
    out = raster.to_pil()
    draw = ImageDraw.Draw(out)
    for region in regions:
        r = region.clamp(raster.width, raster.height)
        if r.width == 0 or r.height == 0:
            continue
        draw.rectangle([r.x, r.y, r.x + r.width - 1, r.y + r.height - 1], fill=color + (255,))
    return RasterImage.from_pil(out)


def tint_with_border(raster: RasterImage, color: RGB, border: int = HIGHLIGHT_BORDER_PX) -> RasterImage:
    """Blend every pixel 50/50 with ``color`` and draw a solid border around the image."""
    arr = raster.to_array()
    rgb = arr[..., :3].astype(np.float64)
    tint = np.asarray(color, dtype=np.float64)
    # Half-up rounding of the channel mean.
    arr[..., :3] = np.floor((rgb + tint) / 2.0 + 0.5).astype(np.uint8)

    out = Image.fromarray(arr)
    draw = ImageDraw.Draw(out)
    w, h = out.size
    draw.rectangle([0, 0, w - 1, h - 1], outline=color + (255,), width=min(border, w, h))
    return RasterImage.from_pil(out)
