"""YOLO detection backend using Ultralytics."""
import logging
from typing import Any, Dict, List, Optional

import cv2
import numpy as np
from ultralytics import YOLO

from ..core.entities import DetectorOutput
from ..core.exceptions import ModelError, ModelLoadFailure
from .base_backend import DetectionBackend, ProgressCallback
from .model_source import resolve_model_source

logger = logging.getLogger(__name__)


class YoloBackend(DetectionBackend):
    """YOLO detector adapted to the normalized (top, left, bottom, right) contract.

    Ultralytics applies its own confidence floor; it is set to 0 here so the
    score threshold stays a pipeline setting applied by the box decoder.
    """

    def __init__(self, config: Dict[str, Any]):
        super().__init__(config)
        self.model = None
        self.model_path = None
        self.device = config.get("device", "cpu")
        self.iou_threshold = config.get("detection_iou_threshold", 0.45)
        self.max_detections = config.get("max_detections", 100)

    def load_model(self, source: str, progress_callback: Optional[ProgressCallback] = None) -> None:
        """Load YOLO weights from a local path or URL."""
        path = resolve_model_source(
            source,
            self.config.get("models_dir", "data/models"),
            progress_callback,
            timeout=self.config.get("download_timeout", 60),
        )
        try:
            self.model = YOLO(str(path))
        except Exception as e:
            self.is_loaded = False
            raise ModelLoadFailure(source, f"not a YOLO model: {e}") from e

        self.model_path = str(path)
        self.is_loaded = True
        self.model_info = {
            'backend': 'ultralytics',
            'model_type': 'YOLO',
            'model_path': str(path),
            'device': self.device,
        }
        logger.info(f"Loaded YOLO model from {path}")

    def predict(self, batch: np.ndarray) -> DetectorOutput:
        """Run YOLO on a 1 x H x W x 3 RGB batch."""
        if not self.is_loaded or self.model is None:
            raise ModelError("No model loaded")

        image = np.clip(batch[0], 0, 255).astype(np.uint8)
        # Ultralytics treats numpy input as BGR
        image = cv2.cvtColor(image, cv2.COLOR_RGB2BGR)

        try:
            results = self.model(
                image,
                conf=0.0,
                iou=self.iou_threshold,
                max_det=self.max_detections,
                device=self.device,
                verbose=False,
            )
        except Exception as e:
            raise ModelError(f"YOLO prediction failed: {e}") from e

        boxes = np.zeros((0, 4), dtype=np.float32)
        scores = np.zeros((0,), dtype=np.float32)
        if results and results[0].boxes is not None and len(results[0].boxes) > 0:
            result_boxes = results[0].boxes
            xyxyn = result_boxes.xyxyn.cpu().numpy().astype(np.float32)
            # (x1, y1, x2, y2) -> (top, left, bottom, right)
            boxes = xyxyn[:, [1, 0, 3, 2]]
            scores = result_boxes.conf.cpu().numpy().astype(np.float32)

        return DetectorOutput(
            num_detections=int(len(scores)),
            boxes=boxes.reshape(-1),
            scores=scores,
        )

    def get_model_info(self) -> Dict[str, Any]:
        """Get information about the loaded YOLO model."""
        if not self.is_loaded:
            return {'status': 'not_loaded'}

        info = self.model_info.copy()
        if self.model is not None and hasattr(self.model, 'names'):
            info['num_classes'] = len(self.model.names)
            info['class_names'] = self.model.names
        return info

    def get_supported_formats(self) -> List[str]:
        """Get list of supported YOLO model formats."""
        return ['.pt', '.onnx', '.torchscript', '.engine']

    def unload_model(self) -> None:
        """Unload the current YOLO model."""
        if self.model is not None:
            del self.model
            self.model = None

        super().unload_model()
        self.model_path = None
