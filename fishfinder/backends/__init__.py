"""Backend implementations for different model types."""

from typing import Any, Dict

from .base_backend import BaseBackend, DetectionBackend, ClassificationBackend
from .torchscript_backend import TorchScriptDetectionBackend, TorchScriptClassificationBackend


def create_detection_backend(config: Dict[str, Any]) -> DetectionBackend:
    """Build the detection backend named by ``config['detector_backend']``."""
    name = config.get("detector_backend", "torchscript")
    if name == "yolo":
        from .yolo_backend import YoloBackend
        return YoloBackend(config)
    return TorchScriptDetectionBackend(config)


def create_classification_backend(config: Dict[str, Any]) -> ClassificationBackend:
    return TorchScriptClassificationBackend(config)


__all__ = [
    "BaseBackend", "DetectionBackend", "ClassificationBackend",
    "TorchScriptDetectionBackend", "TorchScriptClassificationBackend",
    "create_detection_backend", "create_classification_backend",
]
