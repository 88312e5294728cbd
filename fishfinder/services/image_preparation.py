"""Upload preparation: decode, undo EXIF orientation, fit to the viewport."""
from __future__ import annotations

import logging

import numpy as np

from ..core.entities import Orientation, PreparedImage, SourceImage
from ..core.exceptions import ImagePreparationError
from ..utils.geometry import fit_to_viewport, oriented_canvas_size
from ..utils.image_utils import ImageFile, apply_orientation, decode_image, resize_image

logger = logging.getLogger(__name__)


class ImagePreparer:
    """Turns an uploaded file or raster into the surface a run works on."""

    def __init__(self, max_viewport_width: int):
        self.max_viewport_width = max_viewport_width

    def prepare(self, file: ImageFile) -> PreparedImage:
        """Decode ``file`` and prepare it."""
        return self.prepare_source(decode_image(file))

    def prepare_array(self, pixels: np.ndarray, orientation=Orientation.NORMAL) -> PreparedImage:
        """Prepare an in-memory RGB raster."""
        if pixels.ndim == 2:
            pixels = np.stack([pixels] * 3, axis=-1)
        if pixels.ndim != 3 or pixels.shape[2] not in (3, 4):
            raise ImagePreparationError(f"Expected an H x W x 3 raster, got shape {pixels.shape}")
        if pixels.shape[2] == 4:
            pixels = pixels[:, :, :3]
        return self.prepare_source(SourceImage(pixels=pixels.astype(np.uint8, copy=False),
                                               orientation=Orientation.from_exif(orientation)))

    def prepare_source(self, source: SourceImage) -> PreparedImage:
        if source.width == 0 or source.height == 0:
            raise ImagePreparationError("Image has no pixels")

        canvas = oriented_canvas_size(source.width, source.height, source.orientation)
        oriented = apply_orientation(source.pixels, source.orientation)

        width, height = fit_to_viewport(canvas.width, canvas.height, self.max_viewport_width)
        if (width, height) != (canvas.width, canvas.height):
            oriented = resize_image(oriented, width, height)

        logger.info(f"Prepared image {source.width}x{source.height} "
                    f"({source.orientation.name}) -> {width}x{height}")
        return PreparedImage(pixels=oriented, orientation=source.orientation)
