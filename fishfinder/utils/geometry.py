"""Geometry and bounding box utilities.

Three coordinate spaces meet here: normalized detector space (fractions of
the frame), the displayed frame (the oriented, viewport-sized image) and the
source raster. Nothing in this module touches pixels.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Tuple

from ..core.entities import NormalizedBox, Orientation, PixelBox


@dataclass(frozen=True, slots=True)
class AffineTransform:
    """2D affine map in canvas ``transform(a, b, c, d, e, f)`` order.

    A source point (x, y) lands on (a*x + c*y + e, b*x + d*y + f).
    """
    a: float = 1.0
    b: float = 0.0
    c: float = 0.0
    d: float = 1.0
    e: float = 0.0
    f: float = 0.0

    def apply(self, x: float, y: float) -> Tuple[float, float]:
        return (self.a * x + self.c * y + self.e, self.b * x + self.d * y + self.f)

    def as_matrix(self) -> Tuple[Tuple[float, float, float], Tuple[float, float, float]]:
        """2x3 matrix as expected by ``cv2.warpAffine``."""
        return ((self.a, self.c, self.e), (self.b, self.d, self.f))

    @property
    def is_identity(self) -> bool:
        return self == IDENTITY


IDENTITY = AffineTransform()


@dataclass(frozen=True, slots=True)
class CanvasOrientation:
    width: int
    height: int
    transform: AffineTransform


def normalized_to_pixel(box: NormalizedBox, frame_width: float, frame_height: float) -> PixelBox:
    """Convert a normalized (top, left, bottom, right) box into frame pixels.

    Width and height are not clamped: a degenerate box comes back with a
    non-positive size and it is up to the caller to drop it.
    """
    left = box.left * frame_width
    top = box.top * frame_height
    right = box.right * frame_width
    bottom = box.bottom * frame_height
    return PixelBox(x=left, y=top, width=right - left, height=bottom - top)


def fit_to_viewport(natural_width: int, natural_height: int, max_width: int) -> Tuple[int, int]:
    """Scale (width, height) down so the width fits ``max_width``.

    Images already narrow enough are returned unchanged; there is no upscaling.
    """
    if natural_width <= 0 or natural_height <= 0:
        raise ValueError(f"Image dimensions must be positive, got {natural_width}x{natural_height}")
    if max_width <= 0:
        raise ValueError(f"max_width must be positive, got {max_width}")

    if natural_width <= max_width:
        return (natural_width, natural_height)

    ratio = natural_width / natural_height
    return (max_width, max(1, int(round(max_width / ratio))))


def oriented_canvas_size(width: int, height: int, orientation) -> CanvasOrientation:
    """Canvas size and drawing transform that undo an EXIF orientation.

    Orientations 5-8 rotate by 90/270 degrees, so the canvas swaps width and
    height. Unknown codes are treated as NORMAL.
    """
    orientation = Orientation.from_exif(orientation)
    w, h = width, height

    if orientation == Orientation.MIRROR_HORIZONTAL:
        transform = AffineTransform(-1, 0, 0, 1, w, 0)
    elif orientation == Orientation.ROTATE_180:
        transform = AffineTransform(-1, 0, 0, -1, w, h)
    elif orientation == Orientation.MIRROR_VERTICAL:
        transform = AffineTransform(1, 0, 0, -1, 0, h)
    elif orientation == Orientation.TRANSPOSE:
        transform = AffineTransform(0, 1, 1, 0, 0, 0)
    elif orientation == Orientation.ROTATE_90_CW:
        transform = AffineTransform(0, 1, -1, 0, h, 0)
    elif orientation == Orientation.TRANSVERSE:
        transform = AffineTransform(0, -1, -1, 0, h, w)
    elif orientation == Orientation.ROTATE_90_CCW:
        transform = AffineTransform(0, -1, 1, 0, 0, w)
    else:
        transform = IDENTITY

    if orientation.swaps_dimensions:
        return CanvasOrientation(width=h, height=w, transform=transform)
    return CanvasOrientation(width=w, height=h, transform=transform)


def ensure_dirs(*dirs):
    """Create directories if they don't exist."""
    for d in dirs:
        if d:
            os.makedirs(d, exist_ok=True)
