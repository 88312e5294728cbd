"""Loading of the detector/classifier pair with combined download progress."""
from __future__ import annotations

import logging
from typing import Callable, Optional

from ..backends.base_backend import ClassificationBackend, DetectionBackend
from ..core.exceptions import ModelLoadFailure

logger = logging.getLogger(__name__)


class ModelLoader:
    """Loads the detector, then the classifier, reporting one progress value.

    Progress is ``w * detector + (1 - w) * classifier`` where ``w`` is the
    detector weight (0.6 by default: the detector is the larger download).
    Reported values never decrease.
    """

    def __init__(self, detection_backend: DetectionBackend,
                 classification_backend: ClassificationBackend,
                 detector_weight: float = 0.6):
        self.detection_backend = detection_backend
        self.classification_backend = classification_backend
        self.detector_weight = detector_weight
        self._detector_progress = 0.0
        self._classifier_progress = 0.0
        self._reported = 0.0
        self._has_reported = False
        self._progress_callback: Optional[Callable[[float], None]] = None

    @property
    def progress(self) -> float:
        return (self.detector_weight * self._detector_progress
                + (1.0 - self.detector_weight) * self._classifier_progress)

    @property
    def models_loaded(self) -> bool:
        return self.detection_backend.is_model_loaded() and self.classification_backend.is_model_loaded()

    def load(self, detector_source: str, classifier_source: str,
             progress_callback: Optional[Callable[[float], None]] = None) -> None:
        """Load both models. Raises ModelLoadFailure; there is no retry."""
        self._detector_progress = 0.0
        self._classifier_progress = 0.0
        self._reported = 0.0
        self._has_reported = False
        self._progress_callback = progress_callback

        logger.info(f"Loading detector from {detector_source}")
        self._load_one(self.detection_backend, detector_source, self._on_detector_progress)
        logger.info(f"Loading classifier from {classifier_source}")
        self._load_one(self.classification_backend, classifier_source, self._on_classifier_progress)
        logger.info("Models loaded")

    def _load_one(self, backend, source: str, on_progress: Callable[[float], None]) -> None:
        try:
            backend.load_model(source, progress_callback=on_progress)
        except ModelLoadFailure:
            logger.error(f"Model load failed for {source}", exc_info=True)
            raise
        except Exception as e:
            logger.error(f"Model load failed for {source}: {e}", exc_info=True)
            raise ModelLoadFailure(source, str(e)) from e
        on_progress(1.0)

    def _on_detector_progress(self, value: float) -> None:
        self._detector_progress = value
        self._emit()

    def _on_classifier_progress(self, value: float) -> None:
        self._classifier_progress = value
        self._emit()

    def _emit(self) -> None:
        value = self.progress
        if value < self._reported or (value == self._reported and self._has_reported):
            return
        self._reported = value
        self._has_reported = True
        if self._progress_callback is not None:
            self._progress_callback(value)
