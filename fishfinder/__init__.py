"""
Fish detection and classification pipeline.
"""

__version__ = "1.0.0"

from .config.settings import Config, load_config, save_config
from .core.entities import ClassifiedRegion, DetectionReport, PixelBox
from .core.pipeline_state import PipelineState
from .services.inference_pipeline import InferencePipeline

__all__ = [
    "Config", "load_config", "save_config",
    "ClassifiedRegion", "DetectionReport", "PixelBox",
    "PipelineState", "InferencePipeline",
]
