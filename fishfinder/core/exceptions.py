"""Custom exceptions for the application."""
from typing import Optional


class ApplicationError(Exception):
    """Base application error."""
    pass

class ConfigError(ApplicationError):
    """Configuration-related errors."""
    pass

class ImagePreparationError(ApplicationError):
    """Image decoding, orientation or resizing errors."""
    pass

class PipelineStateError(ApplicationError):
    """Operation requested in a pipeline state that does not allow it."""
    pass

class ModelError(ApplicationError):
    """Model loading/inference errors."""
    pass

class ModelLoadFailure(ModelError):
    """Fetching or parsing a model failed. Not retried."""

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"Failed to load model from {source}: {reason}")

class DetectionError(ApplicationError):
    """Base exception for detection-related errors."""
    pass

class DetectionExecutionFailure(DetectionError):
    """The detection backend raised or returned malformed output."""
    pass

class ClassificationExecutionFailure(DetectionError):
    """The classification backend raised while scoring a region."""

    def __init__(self, message: str, region_index: Optional[int] = None):
        self.region_index = region_index
        super().__init__(message)
