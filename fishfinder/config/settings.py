"""Configuration dataclass and loading utilities.

Provides a strongly-typed configuration object that is injected into the
pipeline and backends instead of a global module-level dictionary.

Resolution order (later wins):
- ``DEFAULT_CONFIG``
- values from the JSON config file
- ``FISHFINDER_*`` environment variables
"""
from __future__ import annotations
from dataclasses import dataclass, field, asdict, fields
from typing import Any, Dict, List, Optional
import json, os, logging
from .defaults import DEFAULT_CONFIG, SUPPORTED_DETECTOR_BACKENDS, SUPPORTED_INPUT_LAYOUTS
from ..core.exceptions import ConfigError

logger = logging.getLogger(__name__)

ENV_PREFIX = "FISHFINDER_"

# env var suffix -> (config key, parser)
_ENV_OVERRIDES = {
    "DETECTOR_MODEL": ("detector_model_source", str),
    "CLASSIFIER_MODEL": ("classifier_model_source", str),
    "DETECTOR_BACKEND": ("detector_backend", lambda v: v.strip().lower()),
    "SCORE_THRESHOLD": ("detection_score_threshold", float),
    "LABELS": ("classification_labels", lambda v: [s.strip() for s in v.split(",") if s.strip()]),
    "DEVICE": ("device", str),
    "LOG_LEVEL": ("log_level", lambda v: v.strip().upper()),
}


@dataclass(slots=True)
class Config:
    detector_model_source: str = DEFAULT_CONFIG["detector_model_source"]
    classifier_model_source: str = DEFAULT_CONFIG["classifier_model_source"]
    detector_backend: str = DEFAULT_CONFIG["detector_backend"]
    models_dir: str = DEFAULT_CONFIG["models_dir"]
    download_timeout: int = DEFAULT_CONFIG["download_timeout"]
    device: str = DEFAULT_CONFIG["device"]

    detection_score_threshold: float = DEFAULT_CONFIG["detection_score_threshold"]
    warmup_input_shape: List[int] = field(default_factory=lambda: list(DEFAULT_CONFIG["warmup_input_shape"]))
    detection_iou_threshold: float = DEFAULT_CONFIG["detection_iou_threshold"]
    max_detections: int = DEFAULT_CONFIG["max_detections"]

    classification_labels: List[str] = field(default_factory=lambda: list(DEFAULT_CONFIG["classification_labels"]))
    classifier_input_size: int = DEFAULT_CONFIG["classifier_input_size"]
    classifier_apply_softmax: bool = DEFAULT_CONFIG["classifier_apply_softmax"]
    input_layout: str = DEFAULT_CONFIG["input_layout"]
    max_concurrent_classifications: int = DEFAULT_CONFIG["max_concurrent_classifications"]

    max_viewport_width: int = DEFAULT_CONFIG["max_viewport_width"]
    sample_photo_path: str = DEFAULT_CONFIG["sample_photo_path"]

    detector_progress_weight: float = DEFAULT_CONFIG["detector_progress_weight"]

    log_level: str = DEFAULT_CONFIG["log_level"]
    log_dir: str = DEFAULT_CONFIG["log_dir"]
    enable_file_logging: bool = DEFAULT_CONFIG["enable_file_logging"]
    structured_logging: bool = DEFAULT_CONFIG["structured_logging"]

    # Arbitrary extra values retained for forward compatibility
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        # merge extra keys at top-level for saving
        extra = d.pop("extra", {})
        d.update(extra)
        return d

    def get(self, key: str, default: Any = None) -> Any:
        if key in _CONFIG_KEYS:
            return getattr(self, key)
        return self.extra.get(key, default)

    def validate(self) -> None:
        """Raise ConfigError if any value is out of range."""
        validate_config_values(self.to_dict())


_CONFIG_KEYS = tuple(f.name for f in fields(Config) if f.name != "extra")


def validate_config_values(values: Dict[str, Any]) -> None:
    """Validate configuration values, raising ConfigError on the first problem."""
    threshold = values["detection_score_threshold"]
    if not isinstance(threshold, (int, float)) or not 0.0 <= threshold <= 1.0:
        raise ConfigError(f"detection_score_threshold must be within [0, 1], got {threshold!r}")

    weight = values["detector_progress_weight"]
    if not isinstance(weight, (int, float)) or not 0.0 <= weight <= 1.0:
        raise ConfigError(f"detector_progress_weight must be within [0, 1], got {weight!r}")

    labels = values["classification_labels"]
    if not isinstance(labels, list) or not labels or not all(isinstance(l, str) and l for l in labels):
        raise ConfigError("classification_labels must be a non-empty list of strings")

    for key in ("classifier_input_size", "max_viewport_width", "max_concurrent_classifications", "download_timeout"):
        value = values[key]
        if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
            raise ConfigError(f"{key} must be a positive integer, got {value!r}")

    shape = values["warmup_input_shape"]
    if (not isinstance(shape, (list, tuple)) or len(shape) != 4
            or not all(isinstance(dim, int) and dim > 0 for dim in shape)):
        raise ConfigError(f"warmup_input_shape must be 4 positive integers, got {shape!r}")

    if values["detector_backend"] not in SUPPORTED_DETECTOR_BACKENDS:
        raise ConfigError(
            f"detector_backend must be one of {SUPPORTED_DETECTOR_BACKENDS}, got {values['detector_backend']!r}"
        )

    if values["input_layout"] not in SUPPORTED_INPUT_LAYOUTS:
        raise ConfigError(
            f"input_layout must be one of {SUPPORTED_INPUT_LAYOUTS}, got {values['input_layout']!r}"
        )


def _apply_environment_overrides(merged: Dict[str, Any], environ: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    environ = os.environ if environ is None else environ
    result = dict(merged)
    for suffix, (key, parser) in _ENV_OVERRIDES.items():
        raw = environ.get(ENV_PREFIX + suffix)
        if raw is None or raw == "":
            continue
        try:
            result[key] = parser(raw)
            logger.info(f"Configuration '{key}' overridden from {ENV_PREFIX + suffix}")
        except ValueError as e:
            raise ConfigError(f"Invalid value for {ENV_PREFIX + suffix}: {e}") from e
    return result


def _read_config_file(path: str) -> Dict[str, Any]:
    if not os.path.isfile(path):
        logger.info(f"Configuration file '{path}' does not exist. Using defaults.")
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            loaded_data = json.load(f)
    except json.JSONDecodeError as e:
        logger.error(f"Failed to parse JSON configuration file '{path}': {e}. Using defaults.")
        return {}
    except OSError as e:
        logger.error(f"Could not read configuration file '{path}': {e}. Using defaults.")
        return {}

    if loaded_data is None:
        logger.warning(f"Configuration file '{path}' is empty, using defaults")
        return {}
    if not isinstance(loaded_data, dict):
        logger.error(f"Configuration file '{path}' does not contain a JSON object, using defaults")
        return {}

    logger.info(f"Successfully loaded configuration from '{path}'")
    return loaded_data


def load_config(path: str = "config.json", environ: Optional[Dict[str, str]] = None) -> Config:
    """Load configuration from a JSON file, then apply environment overrides.

    Args:
        path: Path to config.json file
        environ: Environment mapping (defaults to ``os.environ``)

    Returns:
        Config: Loaded and validated configuration

    Raises:
        ConfigError: a value from the file or the environment is invalid
    """
    data = _read_config_file(path)
    merged = {**DEFAULT_CONFIG, **data}
    merged = _apply_environment_overrides(merged, environ)

    if isinstance(merged.get("warmup_input_shape"), tuple):
        merged["warmup_input_shape"] = list(merged["warmup_input_shape"])
    validate_config_values(merged)

    # capture unknown keys
    extra = {k: v for k, v in merged.items() if k not in _CONFIG_KEYS}
    if extra:
        logger.info(f"Found extra configuration keys: {list(extra.keys())}")

    return Config(**{k: merged[k] for k in _CONFIG_KEYS}, extra=extra)


def save_config(cfg: Config, path: str = "config.json") -> None:
    """Save configuration to a JSON file."""
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    try:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(cfg.to_dict(), f, indent=2)
    except OSError as e:
        raise ConfigError(f"Failed to save configuration to '{path}': {e}") from e
    logger.info(f"Configuration saved to '{path}'")
