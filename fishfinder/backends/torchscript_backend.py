"""TorchScript backends for the detector and the classifier."""
import logging
from typing import Any, Dict, List, Optional

import numpy as np
import torch

from ..core.entities import DetectorOutput
from ..core.exceptions import ModelError, ModelLoadFailure
from .base_backend import ClassificationBackend, DetectionBackend, ProgressCallback
from .model_source import resolve_model_source

logger = logging.getLogger(__name__)

DETECTOR_OUTPUT_KEYS = ("detection_boxes", "detection_scores", "num_detections")


class TorchScriptModelMixin:
    """Loading and tensor conversion shared by the TorchScript backends."""

    model_type = "torchscript"

    def _init_torchscript(self, config: Dict[str, Any]) -> None:
        self.model = None
        self.model_path = None
        self.device = torch.device(config.get("device", "cpu"))
        self.input_layout = config.get("input_layout", "nhwc")

    def load_model(self, source: str, progress_callback: Optional[ProgressCallback] = None) -> None:
        path = resolve_model_source(
            source,
            self.config.get("models_dir", "data/models"),
            progress_callback,
            timeout=self.config.get("download_timeout", 60),
        )
        try:
            model = torch.jit.load(str(path), map_location=self.device)
        except (RuntimeError, ValueError, OSError) as e:
            self.is_loaded = False
            raise ModelLoadFailure(source, f"not a TorchScript model: {e}") from e

        model.eval()
        self.model = model
        self.model_path = str(path)
        self.is_loaded = True
        self.model_info = {
            'backend': 'torch',
            'model_type': self.model_type,
            'model_path': str(path),
            'device': str(self.device),
            'input_layout': self.input_layout,
        }
        logger.info(f"Loaded {self.model_type} model from {path}")

    def get_model_info(self) -> Dict[str, Any]:
        if not self.is_loaded:
            return {'status': 'not_loaded'}
        return self.model_info.copy()

    def get_supported_formats(self) -> List[str]:
        return ['.pt', '.pth', '.torchscript', '.ts']

    def unload_model(self) -> None:
        self.model = None
        self.model_path = None
        self.is_loaded = False
        self.model_info = {}

    def _forward(self, batch: np.ndarray):
        if not self.is_loaded or self.model is None:
            raise ModelError("No model loaded")

        tensor = torch.from_numpy(np.ascontiguousarray(batch, dtype=np.float32))
        if self.input_layout == "nchw":
            tensor = tensor.permute(0, 3, 1, 2).contiguous()
        with torch.no_grad():
            return self.model(tensor.to(self.device))


def _to_numpy(value) -> np.ndarray:
    if isinstance(value, torch.Tensor):
        return value.detach().cpu().numpy()
    return np.asarray(value)


class TorchScriptDetectionBackend(TorchScriptModelMixin, DetectionBackend):
    """SSD-style detector exported to TorchScript.

    The model must return ``(boxes, scores, num_detections)`` either as a
    tuple in that order or as a dict keyed by ``detection_boxes``,
    ``detection_scores`` and ``num_detections``. Boxes are normalized
    ``(top, left, bottom, right)``.
    """

    model_type = "torchscript-detector"

    def __init__(self, config: Dict[str, Any]):
        super().__init__(config)
        self._init_torchscript(config)

    def predict(self, batch: np.ndarray) -> DetectorOutput:
        outputs = self._forward(batch)
        try:
            if isinstance(outputs, dict):
                boxes, scores, count = (outputs[key] for key in DETECTOR_OUTPUT_KEYS)
            else:
                boxes, scores, count = outputs[:3]
        except (KeyError, TypeError, ValueError) as e:
            raise ModelError(f"Unexpected detector output structure: {e}") from e

        boxes = _to_numpy(boxes).astype(np.float32).reshape(-1)
        scores = _to_numpy(scores).astype(np.float32).reshape(-1)
        num_detections = int(_to_numpy(count).reshape(-1)[0])
        return DetectorOutput(num_detections=num_detections, boxes=boxes, scores=scores)


class TorchScriptClassificationBackend(TorchScriptModelMixin, ClassificationBackend):
    """Image classifier exported to TorchScript, one score row per batch item."""

    model_type = "torchscript-classifier"

    def __init__(self, config: Dict[str, Any]):
        super().__init__(config)
        self._init_torchscript(config)
        self.apply_softmax = bool(config.get("classifier_apply_softmax", False))

    def predict(self, batch: np.ndarray) -> np.ndarray:
        outputs = self._forward(batch)
        if isinstance(outputs, (tuple, list)):
            outputs = outputs[0]
        if self.apply_softmax:
            outputs = torch.softmax(outputs, dim=-1)
        scores = _to_numpy(outputs).astype(np.float32)
        return scores.reshape(scores.shape[0], -1)[0] if scores.ndim > 1 else scores
