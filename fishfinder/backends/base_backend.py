"""Base backend interface for model implementations."""
from abc import ABC, abstractmethod
import os
from typing import Any, Callable, Dict, List, Optional, Tuple

import numpy as np

from ..core.entities import DetectorOutput

ProgressCallback = Callable[[float], None]


class BaseBackend(ABC):
    """Abstract base class for model backends.

    A backend owns one loaded model and executes it synchronously; the
    pipeline moves calls off the event loop.
    """

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.is_loaded = False
        self.model_info = {}

    @abstractmethod
    def load_model(self, source: str, progress_callback: Optional[ProgressCallback] = None) -> None:
        """Load a model from a local path or URL.

        ``progress_callback`` receives fractions in [0, 1] while the model is
        fetched. Raises ModelLoadFailure.
        """
        pass

    @abstractmethod
    def predict(self, batch: np.ndarray) -> Any:
        """Run inference on a batch of one."""
        pass

    @abstractmethod
    def get_model_info(self) -> Dict[str, Any]:
        """Get information about the loaded model."""
        pass

    @abstractmethod
    def get_supported_formats(self) -> List[str]:
        """Get list of supported model formats."""
        pass

    @property
    def input_shape(self) -> Optional[Tuple[int, ...]]:
        """Expected input shape when the model fixes one, else None."""
        return None

    def is_model_loaded(self) -> bool:
        """Check if a model is currently loaded."""
        return self.is_loaded

    def unload_model(self) -> None:
        """Unload the current model to free memory."""
        self.is_loaded = False
        self.model_info = {}

    def validate_model(self, model_path: str) -> bool:
        """Check extension and readability of a local model file."""
        _, ext = os.path.splitext(model_path.lower())
        if ext not in self.get_supported_formats():
            return False
        return os.path.isfile(model_path) and os.access(model_path, os.R_OK)


class DetectionBackend(BaseBackend):
    """Backend whose model finds candidate boxes in a 1 x H x W x 3 image batch."""

    @abstractmethod
    def predict(self, batch: np.ndarray) -> DetectorOutput:
        pass


class ClassificationBackend(BaseBackend):
    """Backend whose model scores a 1 x S x S x 3 region against known labels."""

    @abstractmethod
    def predict(self, batch: np.ndarray) -> np.ndarray:
        """Return a 1-D array of per-label scores."""
        pass
