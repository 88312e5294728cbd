"""Region classification against an ordered label list."""
from __future__ import annotations

import logging
from typing import Sequence, Tuple

import cv2
import numpy as np

from ..backends.base_backend import ClassificationBackend
from ..core.exceptions import ClassificationExecutionFailure

logger = logging.getLogger(__name__)

CLASSIFIER_INPUT_SIZE = 224
PIXEL_OFFSET = 127.5


def normalize_region(region: np.ndarray, input_size: int = CLASSIFIER_INPUT_SIZE) -> np.ndarray:
    """Resize to ``input_size`` squared (bilinear) and rescale to [-1, 1].

    Returns a float32 batch of one, ``1 x S x S x C``.
    """
    resized = cv2.resize(region.astype(np.float32), (input_size, input_size),
                         interpolation=cv2.INTER_LINEAR)
    if resized.ndim == 2:
        resized = resized[:, :, np.newaxis]
    normalized = (resized - PIXEL_OFFSET) / PIXEL_OFFSET
    return normalized[np.newaxis, ...].astype(np.float32)


def arg_max(scores: Sequence[float]) -> int:
    """Index of the highest score; ties go to the lowest index."""
    return int(np.argmax(np.asarray(scores)))


class Classifier:
    """Scores a cropped region and picks the best label."""

    def __init__(self, backend: ClassificationBackend, labels: Sequence[str],
                 input_size: int = CLASSIFIER_INPUT_SIZE):
        if not labels:
            raise ValueError("Classifier needs at least one label")
        self.backend = backend
        self.labels = list(labels)
        self.input_size = input_size

    def label_for(self, index: int) -> str:
        return self.labels[index]

    def classify(self, region: np.ndarray) -> Tuple[int, float]:
        """Return ``(label_index, score)`` for the winning label.

        Raises:
            ClassificationExecutionFailure: the backend raised, or returned a
                score vector that does not line up with the labels
        """
        batch = normalize_region(region, self.input_size)
        try:
            scores = np.asarray(self.backend.predict(batch), dtype=np.float64).reshape(-1)
        except Exception as e:
            raise ClassificationExecutionFailure(f"Classification backend failed: {e}") from e

        if len(scores) != len(self.labels):
            raise ClassificationExecutionFailure(
                f"Classifier returned {len(scores)} scores for {len(self.labels)} labels"
            )

        index = arg_max(scores)
        logger.debug(f"Classified region {region.shape[1]}x{region.shape[0]} as "
                     f"'{self.labels[index]}' ({scores[index]:.3f})")
        return index, float(scores[index])
