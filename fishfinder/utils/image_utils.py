"""Image processing utilities."""

import io
import logging
import os
from typing import BinaryIO, Iterable, Union

import cv2
import numpy as np
from PIL import Image, UnidentifiedImageError

from ..core.entities import ClassifiedRegion, Orientation, SourceImage
from ..core.exceptions import ImagePreparationError

logger = logging.getLogger(__name__)

ImageFile = Union[str, os.PathLike, bytes, BinaryIO]

EXIF_ORIENTATION_TAG = 0x0112
BOX_COLOR = (0, 200, 0)  # RGB
LABEL_OFFSET = 20


def decode_image(file: ImageFile) -> SourceImage:
    """Decode an uploaded image into an RGB raster plus its EXIF orientation.

    Args:
        file: Path, raw bytes or a binary file object

    Raises:
        ImagePreparationError: the data is not a decodable image
    """
    if isinstance(file, (bytes, bytearray)):
        file = io.BytesIO(file)
    try:
        with Image.open(file) as img:
            orientation = Orientation.from_exif(img.getexif().get(EXIF_ORIENTATION_TAG, 1))
            pixels = np.asarray(img.convert("RGB"), dtype=np.uint8)
    except (UnidentifiedImageError, OSError) as e:
        raise ImagePreparationError(f"Could not decode image: {e}") from e
    except ImportError as e:
        # ultralytics wraps Image.open and imports an optional HEIF plugin when it fails
        raise ImagePreparationError(f"Could not decode image (no decoder available): {e}") from e

    logger.debug(f"Decoded image {pixels.shape[1]}x{pixels.shape[0]}, orientation={orientation.name}")
    return SourceImage(pixels=pixels, orientation=orientation)


def apply_orientation(pixels: np.ndarray, orientation) -> np.ndarray:
    """Rotate/flip ``pixels`` so they display upright.

    Realizes the transform returned by ``geometry.oriented_canvas_size`` on
    whole pixels.
    """
    orientation = Orientation.from_exif(orientation)
    if orientation == Orientation.MIRROR_HORIZONTAL:
        out = cv2.flip(pixels, 1)
    elif orientation == Orientation.ROTATE_180:
        out = cv2.rotate(pixels, cv2.ROTATE_180)
    elif orientation == Orientation.MIRROR_VERTICAL:
        out = cv2.flip(pixels, 0)
    elif orientation == Orientation.TRANSPOSE:
        out = cv2.transpose(pixels)
    elif orientation == Orientation.ROTATE_90_CW:
        out = cv2.rotate(pixels, cv2.ROTATE_90_CLOCKWISE)
    elif orientation == Orientation.TRANSVERSE:
        out = cv2.rotate(cv2.transpose(pixels), cv2.ROTATE_180)
    elif orientation == Orientation.ROTATE_90_CCW:
        out = cv2.rotate(pixels, cv2.ROTATE_90_COUNTERCLOCKWISE)
    else:
        out = pixels.copy()
    return np.ascontiguousarray(out)


def resize_image(image: np.ndarray, width: int, height: int) -> np.ndarray:
    """Resize to exactly ``width`` x ``height``."""
    h, w = image.shape[:2]
    if (w, h) == (width, height):
        return image.copy()

    interpolation = cv2.INTER_AREA if width < w else cv2.INTER_LINEAR
    return cv2.resize(image, (width, height), interpolation=interpolation)


def annotate_image(image: np.ndarray, regions: Iterable[ClassifiedRegion],
                   line_width: int = 2) -> np.ndarray:
    """Draw each region's box and ``label score%`` onto a copy of ``image``."""
    canvas = np.ascontiguousarray(image.copy())
    for region in regions:
        x, y, w, h = region.box.to_pixel_rect()
        cv2.rectangle(canvas, (x, y), (x + w, y + h), BOX_COLOR, line_width)

        label = f"{region.label} {region.display_score}%"
        cv2.putText(canvas, label, (x + LABEL_OFFSET, y + LABEL_OFFSET),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.6, BOX_COLOR, 2)
    return canvas


def save_image(image: np.ndarray, path: Union[str, os.PathLike]) -> None:
    """Write an RGB raster to disk; the format follows the file extension."""
    directory = os.path.dirname(os.fspath(path))
    if directory:
        os.makedirs(directory, exist_ok=True)
    Image.fromarray(image).save(path)
