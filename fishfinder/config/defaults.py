"""Default configuration values."""

from typing import Any, Dict

DEFAULT_CONFIG: Dict[str, Any] = {
    # Model sources (local path or http(s) URL)
    "detector_model_source": "data/models/fish_detector.torchscript",
    "classifier_model_source": "data/models/fish_classifier.torchscript",
    "detector_backend": "torchscript",  # torchscript | yolo
    "models_dir": "data/models",  # download cache for URL sources
    "download_timeout": 60,
    "device": "cpu",

    # Detection
    "detection_score_threshold": 0.4,  # strict: score must exceed it
    "warmup_input_shape": [1, 300, 300, 3],
    "detection_iou_threshold": 0.45,  # yolo backend NMS
    "max_detections": 100,

    # Classification
    "classification_labels": ["fish", "shark", "ray"],
    "classifier_input_size": 224,
    "classifier_apply_softmax": False,
    "input_layout": "nhwc",  # nhwc | nchw, layout the TorchScript models expect
    "max_concurrent_classifications": 4,

    # Image preparation
    "max_viewport_width": 1024,
    "sample_photo_path": "",

    # Model download progress split between the two models
    "detector_progress_weight": 0.6,

    # Debug and Logging Settings
    "log_level": "INFO",
    "log_dir": "logs",
    "enable_file_logging": False,
    "structured_logging": False,
}

SUPPORTED_DETECTOR_BACKENDS = ("torchscript", "yolo")
SUPPORTED_INPUT_LAYOUTS = ("nhwc", "nchw")
