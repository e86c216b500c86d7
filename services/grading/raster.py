from __future__ import annotations

"""Read-only RGBA raster used by every analysis stage.

Wraps an HxWx4 uint8 numpy array whose write flag is cleared, so stages can
share one decoded image without copying. Anything that needs to paint (tone
mapping, highlights, defect overlays) asks for ``to_array()`` or ``clone()``
and works on its own buffer.

Brightness is the unweighted channel mean ``(r + g + b) / 3``; alpha is
ignored everywhere.
"""

import io
import logging
import os
from functools import cached_property

import numpy as np
from PIL import Image, UnidentifiedImageError

from domain.types import Region
from services.grading.errors import ImageDecodeError, ImageTooLargeError, OutOfBoundsError


logger = logging.getLogger(__name__)


def brightness_of(rgb: np.ndarray) -> np.ndarray:
    """Per-pixel brightness of an (..., >=3) array as float64."""
    return rgb[..., :3].astype(np.float64).sum(axis=-1) / 3.0


class RasterImage:
    """Immutable width x height grid of RGBA pixels."""

    def __init__(self, pixels: np.ndarray):
        arr = np.asarray(pixels)
        if arr.ndim != 3 or arr.shape[2] not in (3, 4):
            raise ValueError(f"expected an HxWx3 or HxWx4 array, got shape {arr.shape}")
        if arr.shape[0] == 0 or arr.shape[1] == 0:
            raise ValueError("image must have positive width and height")
        if arr.shape[2] == 3:
            alpha = np.full(arr.shape[:2] + (1,), 255, dtype=np.uint8)
            arr = np.concatenate([arr.astype(np.uint8), alpha], axis=2)
        arr = np.array(arr, dtype=np.uint8, copy=True)
        arr.setflags(write=False)
        self._pixels = arr

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_pil(cls, image: Image.Image) -> "RasterImage":
        return cls(np.array(image.convert("RGBA"), dtype=np.uint8))

    @classmethod
    def decode(cls, data: bytes) -> "RasterImage":
        """Decode encoded image bytes (PNG, JPEG, WebP, ...)."""
        try:
            image = Image.open(io.BytesIO(data))
            image.load()
        except Image.DecompressionBombError as e:
            raise ImageTooLargeError(f"image has too many pixels to decode: {e}") from e
        except (UnidentifiedImageError, OSError, ValueError) as e:
            raise ImageDecodeError(f"could not decode image: {e}") from e
        if image.width == 0 or image.height == 0:
            raise ImageDecodeError("decoded image is empty")
        logger.debug("decoded %s image %dx%d", image.format, image.width, image.height)
        return cls.from_pil(image)

    @classmethod
    def open(cls, path: str | os.PathLike[str]) -> "RasterImage":
        try:
            with open(path, "rb") as f:
                data = f.read()
        except OSError as e:
            raise ImageDecodeError(f"could not read image file {path}: {e}") from e
        return cls.decode(data)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def width(self) -> int:
        return int(self._pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self._pixels.shape[0])

    @property
    def pixels(self) -> np.ndarray:
        """Read-only HxWx4 view."""
        return self._pixels

    @property
    def rgb(self) -> np.ndarray:
        """Read-only HxWx3 view."""
        return self._pixels[..., :3]

    @cached_property
    def brightness_map(self) -> np.ndarray:
        """HxW float64 brightness, computed once per raster."""
        out = brightness_of(self._pixels)
        out.setflags(write=False)
        return out

    def pixel_at(self, x: int, y: int) -> tuple[int, int, int, int]:
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise OutOfBoundsError(f"pixel ({x}, {y}) outside {self.width}x{self.height} image")
        r, g, b, a = self._pixels[y, x]
        return int(r), int(g), int(b), int(a)

    def brightness(self, x: int, y: int) -> float:
        r, g, b, _ = self.pixel_at(x, y)
        return (r + g + b) / 3.0

    # ------------------------------------------------------------------
    # Derivation
    # ------------------------------------------------------------------

    def crop(self, region: Region) -> "RasterImage":
        """Pixel-exact crop. The region is clamped to the image first."""
        r = region.clamp(self.width, self.height)
        if r.width == 0 or r.height == 0:
            raise ValueError(f"crop region {region} does not intersect the image")
        return RasterImage(self._pixels[r.y:r.y + r.height, r.x:r.x + r.width])

    def clone(self) -> "RasterImage":
        return RasterImage(self._pixels)

    def to_array(self) -> np.ndarray:
        """Writable HxWx4 copy."""
        return np.array(self._pixels, copy=True)

    def to_pil(self) -> Image.Image:
        return Image.fromarray(self.to_array())

    def __repr__(self) -> str:
        return f"RasterImage({self.width}x{self.height})"
