"""Pytest configuration and shared fixtures for the fish detection pipeline.

Provides fake detection/classification backends, sample rasters and encoded
photos, and a small pipeline configuration so service tests never need real
model weights.
"""
import io
import logging
import os
import sys
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np
import pytest
from PIL import Image

# Add the project root to Python path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from fishfinder.backends.base_backend import ClassificationBackend, DetectionBackend
from fishfinder.config.settings import Config
from fishfinder.core.entities import DetectorOutput
from fishfinder.services.inference_pipeline import InferencePipeline

# Disable some verbose loggers during testing
logging.getLogger('PIL').setLevel(logging.WARNING)


Detection = Tuple[Tuple[float, float, float, float], float]


def make_detector_output(detections: Sequence[Detection], padding: int = 0) -> DetectorOutput:
    """Build a DetectorOutput from ``((top, left, bottom, right), score)`` pairs.

    ``padding`` appends that many zero entries past ``num_detections``, the way
    fixed-size SSD exports do.
    """
    boxes = [coord for box, _ in detections for coord in box] + [0.0] * (4 * padding)
    scores = [score for _, score in detections] + [0.0] * padding
    return DetectorOutput(
        num_detections=len(detections),
        boxes=np.asarray(boxes, dtype=np.float32),
        scores=np.asarray(scores, dtype=np.float32),
    )


class FakeDetectionBackend(DetectionBackend):
    """Detection backend returning a canned DetectorOutput."""

    def __init__(self, output: Optional[DetectorOutput] = None, error: Optional[Exception] = None,
                 config: Optional[dict] = None):
        super().__init__(config or {})
        self.output = output if output is not None else make_detector_output([])
        self.error = error
        self.load_error: Optional[Exception] = None
        self.loaded_from: Optional[str] = None
        self.batches: List[np.ndarray] = []

    def load_model(self, source, progress_callback=None):
        if self.load_error is not None:
            raise self.load_error
        if progress_callback is not None:
            progress_callback(0.5)
            progress_callback(1.0)
        self.loaded_from = source
        self.is_loaded = True

    def predict(self, batch):
        self.batches.append(batch)
        if self.error is not None:
            raise self.error
        return self.output

    def get_model_info(self):
        return {'backend': 'fake', 'loaded_from': self.loaded_from}

    def get_supported_formats(self):
        return ['.fake']


class FakeClassificationBackend(ClassificationBackend):
    """Classification backend scoring regions with fixed scores or a function."""

    def __init__(self, scores=None, error: Optional[Exception] = None,
                 config: Optional[dict] = None):
        super().__init__(config or {})
        self.scores = scores if scores is not None else [0.2, 0.8]
        self.error = error
        self.loaded_from: Optional[str] = None
        self.batches: List[np.ndarray] = []

    def load_model(self, source, progress_callback=None):
        if progress_callback is not None:
            progress_callback(1.0)
        self.loaded_from = source
        self.is_loaded = True

    def predict(self, batch):
        self.batches.append(batch)
        if self.error is not None:
            raise self.error
        if callable(self.scores):
            return np.asarray(self.scores(batch), dtype=np.float32)
        return np.asarray(self.scores, dtype=np.float32)

    def get_model_info(self):
        return {'backend': 'fake', 'loaded_from': self.loaded_from}

    def get_supported_formats(self):
        return ['.fake']


def encode_image(pixels: np.ndarray, fmt: str = "PNG", orientation: Optional[int] = None) -> bytes:
    """Encode an RGB raster, optionally tagging it with an EXIF orientation."""
    image = Image.fromarray(pixels)
    buffer = io.BytesIO()
    kwargs = {}
    if orientation is not None:
        exif = Image.Exif()
        exif[0x0112] = orientation
        kwargs["exif"] = exif.tobytes()
    image.save(buffer, format=fmt, **kwargs)
    return buffer.getvalue()


@pytest.fixture(scope="session")
def project_root():
    """Provide project root directory path."""
    return PROJECT_ROOT


@pytest.fixture
def pipeline_config():
    """Small configuration used by pipeline tests."""
    return Config(
        classification_labels=["a", "b"],
        detection_score_threshold=0.4,
        max_viewport_width=1000,
        warmup_input_shape=[1, 8, 8, 3],
        max_concurrent_classifications=2,
    )


@pytest.fixture
def fake_detector():
    return FakeDetectionBackend()


@pytest.fixture
def fake_classifier():
    return FakeClassificationBackend()


@pytest.fixture
def pipeline(fake_detector, fake_classifier, pipeline_config):
    """Pipeline wired to the fake backends, not yet loaded."""
    instance = InferencePipeline(fake_detector, fake_classifier, config=pipeline_config)
    yield instance
    instance.close()


@pytest.fixture
def detector_factory():
    """Provide the FakeDetectionBackend class for custom set-ups."""
    return FakeDetectionBackend


@pytest.fixture
def classifier_factory():
    """Provide the FakeClassificationBackend class for custom set-ups."""
    return FakeClassificationBackend


@pytest.fixture
def detector_output_factory() -> Callable[..., DetectorOutput]:
    return make_detector_output


@pytest.fixture
def image_encoder() -> Callable[..., bytes]:
    return encode_image


@pytest.fixture
def sample_image():
    """Provide a 100x80 RGB raster with distinct quadrants."""
    image = np.zeros((80, 100, 3), dtype=np.uint8)
    image[:40, :50] = [255, 0, 0]
    image[:40, 50:] = [0, 255, 0]
    image[40:, :50] = [0, 0, 255]
    image[40:, 50:] = [255, 255, 255]
    return image


@pytest.fixture
def frame_1000x800():
    """Provide a 1000 wide, 800 tall mid-grey raster."""
    return np.full((800, 1000, 3), 128, dtype=np.uint8)


# Test markers and utilities
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "slow: mark test as slow running")
    config.addinivalue_line("markers", "integration: mark test as integration test")
    config.addinivalue_line("markers", "unit: mark test as unit test")
    config.addinivalue_line("markers", "external: mark test as requiring network access")


def pytest_collection_modifyitems(config, items):
    """Add markers based on test file location and skip external tests."""
    for item in items:
        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)

        if item.get_closest_marker("external") and not os.getenv("RUN_EXTERNAL_TESTS"):
            item.add_marker(pytest.mark.skip(reason="External tests disabled"))
