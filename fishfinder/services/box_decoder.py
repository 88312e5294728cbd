"""Decoding of raw detector output into scored, normalized boxes."""
from __future__ import annotations

import logging
from typing import List, Optional

import numpy as np

from ..core.entities import DetectorOutput, NormalizedBox, ScoredBox

logger = logging.getLogger(__name__)

DEFAULT_SCORE_THRESHOLD = 0.4


class BoxDecoder:
    """Filters detector output by confidence, preserving detector order.

    Only the first ``num_detections`` entries are read; the backing buffers
    may be padded. A detection is kept when its score is strictly greater
    than the threshold. A non-finite score, or a non-finite coordinate on a
    kept detection, makes the whole output malformed.
    """

    def __init__(self, score_threshold: float = DEFAULT_SCORE_THRESHOLD):
        self.score_threshold = score_threshold

    def decode(self, output: DetectorOutput, score_threshold: Optional[float] = None) -> List[ScoredBox]:
        threshold = self.score_threshold if score_threshold is None else score_threshold
        count = int(output.num_detections)
        boxes = np.asarray(output.boxes, dtype=np.float64).reshape(-1)
        scores = np.asarray(output.scores, dtype=np.float64).reshape(-1)

        if count < 0:
            raise ValueError(f"Detector reported a negative detection count: {count}")
        if count > len(scores) or count * 4 > len(boxes):
            raise ValueError(
                f"Detector reported {count} detections but returned "
                f"{len(scores)} scores and {len(boxes)} box values"
            )

        decoded: List[ScoredBox] = []
        for i in range(count):
            score = float(scores[i])
            if not np.isfinite(score):
                raise ValueError(f"Detection {i} has a non-finite score: {score}")
            if score <= threshold:
                continue
            coords = boxes[i * 4:i * 4 + 4]
            if not np.isfinite(coords).all():
                raise ValueError(f"Detection {i} has non-finite box coordinates: {coords.tolist()}")
            top, left, bottom, right = (float(v) for v in coords)
            decoded.append(ScoredBox(NormalizedBox(top, left, bottom, right), score))

        logger.debug(f"Decoded {len(decoded)} of {count} detections above threshold {threshold}")
        return decoded
