"""Services package for the detection pipeline."""

from .box_decoder import BoxDecoder
from .classifier import Classifier, arg_max, normalize_region
from .image_preparation import ImagePreparer
from .inference_pipeline import InferencePipeline
from .model_loader import ModelLoader
from .region_extractor import RegionExtractor

__all__ = [
    "BoxDecoder", "Classifier", "arg_max", "normalize_region",
    "ImagePreparer", "InferencePipeline", "ModelLoader", "RegionExtractor",
]
