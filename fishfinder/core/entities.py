"""Domain entities (data-only structures) used across services."""
from __future__ import annotations
from dataclasses import dataclass
from enum import IntEnum
from typing import Tuple

import numpy as np

PixelRect = Tuple[int, int, int, int]  # (x, y, width, height)


class Orientation(IntEnum):
    """EXIF orientation tag values (0x0112)."""
    NORMAL = 1
    MIRROR_HORIZONTAL = 2
    ROTATE_180 = 3
    MIRROR_VERTICAL = 4
    TRANSPOSE = 5
    ROTATE_90_CW = 6
    TRANSVERSE = 7
    ROTATE_90_CCW = 8

    @property
    def swaps_dimensions(self) -> bool:
        """True for the four codes that imply a 90/270 degree rotation."""
        return self.value >= 5

    @classmethod
    def from_exif(cls, value) -> "Orientation":
        """Map a raw tag value to an Orientation, defaulting to NORMAL."""
        try:
            return cls(int(value))
        except (TypeError, ValueError):
            return cls.NORMAL


def _readonly(pixels: np.ndarray) -> np.ndarray:
    if pixels.flags.writeable:
        pixels = pixels.copy()
        pixels.flags.writeable = False
    return pixels


@dataclass(frozen=True, slots=True, eq=False)
class SourceImage:
    """Decoded RGB raster plus the orientation it was captured with."""
    pixels: np.ndarray  # H x W x 3 uint8
    orientation: Orientation = Orientation.NORMAL

    def __post_init__(self):
        object.__setattr__(self, "pixels", _readonly(self.pixels))

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])


@dataclass(frozen=True, slots=True, eq=False)
class PreparedImage:
    """Oriented, viewport-sized surface that a detection run works on."""
    pixels: np.ndarray  # H x W x 3 uint8
    orientation: Orientation = Orientation.NORMAL

    def __post_init__(self):
        object.__setattr__(self, "pixels", _readonly(self.pixels))

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def frame_size(self) -> Tuple[int, int]:
        return (self.width, self.height)


@dataclass(frozen=True, slots=True)
class NormalizedBox:
    top: float
    left: float
    bottom: float
    right: float


@dataclass(frozen=True, slots=True)
class ScoredBox:
    box: NormalizedBox
    score: float


@dataclass(frozen=True, slots=True)
class PixelBox:
    x: float
    y: float
    width: float
    height: float

    @property
    def has_positive_area(self) -> bool:
        return self.width > 0 and self.height > 0

    def to_pixel_rect(self) -> PixelRect:
        """Integer (x, y, width, height) used to address raster pixels."""
        return (
            int(round(self.x)),
            int(round(self.y)),
            int(round(self.width)),
            int(round(self.height)),
        )


@dataclass(frozen=True, slots=True)
class DetectionCandidate:
    box: PixelBox
    score: float  # detector confidence


@dataclass(frozen=True, slots=True)
class ClassifiedRegion:
    candidate: DetectionCandidate
    label: str
    label_index: int
    score: float  # classifier score for ``label``

    @property
    def box(self) -> PixelBox:
        return self.candidate.box

    @property
    def detection_score(self) -> float:
        return self.candidate.score

    @property
    def percentage(self) -> float:
        return round(self.score * 100.0, 2)

    @property
    def display_score(self) -> str:
        return f"{self.score * 100.0:.2f}"

    def to_dict(self) -> dict:
        box = self.candidate.box
        return {
            "label": self.label,
            "label_index": self.label_index,
            "score": self.score,
            "percentage": self.percentage,
            "detection_score": self.candidate.score,
            "box": {"x": box.x, "y": box.y, "width": box.width, "height": box.height},
        }


@dataclass(frozen=True, slots=True, eq=False)
class DetectorOutput:
    """Backend independent detector result.

    ``boxes`` is a flat buffer holding 4 values per detection ordered
    top, left, bottom, right; ``scores`` is parallel to it. Both buffers may
    be padded beyond ``num_detections``.
    """
    num_detections: int
    boxes: np.ndarray
    scores: np.ndarray


@dataclass(frozen=True, slots=True)
class DetectionReport:
    """Terminal artifact of one detection run."""
    regions: Tuple[ClassifiedRegion, ...]
    frame_size: Tuple[int, int]  # (width, height)
    latency_ms: int = 0

    @property
    def is_empty(self) -> bool:
        return len(self.regions) == 0

    def to_dict(self) -> dict:
        return {
            "frame": {"width": self.frame_size[0], "height": self.frame_size[1]},
            "latency_ms": self.latency_ms,
            "regions": [region.to_dict() for region in self.regions],
        }
