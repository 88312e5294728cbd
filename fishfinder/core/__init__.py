"""Core domain entities, state machine and exceptions."""

from .entities import (
    Orientation, SourceImage, PreparedImage, NormalizedBox, ScoredBox, PixelBox,
    DetectionCandidate, ClassifiedRegion, DetectorOutput, DetectionReport, PixelRect
)
from .exceptions import (
    ApplicationError, ConfigError, ImagePreparationError, PipelineStateError,
    ModelError, ModelLoadFailure, DetectionError, DetectionExecutionFailure,
    ClassificationExecutionFailure
)
from .pipeline_state import PipelineState, PipelineStateMachine

__all__ = [
    "Orientation", "SourceImage", "PreparedImage", "NormalizedBox", "ScoredBox",
    "PixelBox", "DetectionCandidate", "ClassifiedRegion", "DetectorOutput",
    "DetectionReport", "PixelRect",
    "ApplicationError", "ConfigError", "ImagePreparationError", "PipelineStateError",
    "ModelError", "ModelLoadFailure", "DetectionError", "DetectionExecutionFailure",
    "ClassificationExecutionFailure",
    "PipelineState", "PipelineStateMachine",
]
