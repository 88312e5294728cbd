"""Utility functions package."""

from .geometry import (
    AffineTransform, CanvasOrientation, normalized_to_pixel, fit_to_viewport,
    oriented_canvas_size, ensure_dirs
)
from .image_utils import decode_image, apply_orientation, resize_image, annotate_image, save_image

__all__ = [
    "AffineTransform", "CanvasOrientation", "normalized_to_pixel", "fit_to_viewport",
    "oriented_canvas_size", "ensure_dirs",
    "decode_image", "apply_orientation", "resize_image", "annotate_image", "save_image",
]
