"""Crop extraction for detected boxes."""
from __future__ import annotations

from typing import List, Sequence

import numpy as np

from ..core.entities import PixelBox


class RegionExtractor:
    """Copies the pixels under each box into a new raster of the same size.

    The copy is 1:1 (never rescaled). Parts of a box that fall outside the
    surface come back zero-filled, so the region always has exactly the
    box's size. The source surface is only read.
    """

    def extract(self, surface: np.ndarray, box: PixelBox) -> np.ndarray:
        if not box.has_positive_area:
            raise ValueError(f"Cannot extract a region with non-positive area: {box}")

        x, y, width, height = box.to_pixel_rect()
        width = max(1, width)
        height = max(1, height)
        surface_h, surface_w = surface.shape[:2]

        region = np.zeros((height, width) + surface.shape[2:], dtype=surface.dtype)

        src_x0, src_y0 = max(0, x), max(0, y)
        src_x1, src_y1 = min(surface_w, x + width), min(surface_h, y + height)
        if src_x1 > src_x0 and src_y1 > src_y0:
            dst_x0, dst_y0 = src_x0 - x, src_y0 - y
            region[dst_y0:dst_y0 + (src_y1 - src_y0), dst_x0:dst_x0 + (src_x1 - src_x0)] = \
                surface[src_y0:src_y1, src_x0:src_x1]
        return region

    def extract_all(self, surface: np.ndarray, boxes: Sequence[PixelBox]) -> List[np.ndarray]:
        """One region per box, in box order."""
        return [self.extract(surface, box) for box in boxes]
