from __future__ import annotations

"""Error taxonomy for the analysis pipeline.

- InputError: the submission itself is unacceptable (missing, wrong type,
  too large). Raised before any pixel work starts.
- ImageDecodeError: the bytes could not be decoded into a raster (or declare
  more pixels than Pillow will decode: ImageTooLargeError). Fatal for
  the run.
- OutOfBoundsError: a pixel lookup outside the image. Programming error.

Failures inside an individual analysis stage are not represented here: they
are logged and replaced with a neutral default by the stage runner.
"""


class PregraderError(Exception):
    """Base class for errors raised by the analysis pipeline."""


class InputError(PregraderError, ValueError):
    """Rejected submission. ``code`` is a machine-readable reason."""

    def __init__(self, message: str, code: str = "INVALID_FIELD_VALUE", field: str | None = None):
        super().__init__(message)
        self.code = code
        self.field = field


class ImageDecodeError(PregraderError):
    """Image bytes could not be decoded."""


class OutOfBoundsError(PregraderError, IndexError):
    """Pixel coordinates outside the image."""


class ImageTooLargeError(ImageDecodeError):
    """Decoded pixel count exceeds Pillow's decompression-bomb limit."""
