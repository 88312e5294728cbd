"""Unit tests for the Ultralytics YOLO backend (model patched out)."""
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import numpy as np
import pytest
import torch

from fishfinder.backends.yolo_backend import YoloBackend
from fishfinder.core.exceptions import ModelError, ModelLoadFailure


class FakeBoxes:
    def __init__(self, xyxyn, conf):
        self.xyxyn = torch.tensor(xyxyn, dtype=torch.float32)
        self.conf = torch.tensor(conf, dtype=torch.float32)

    def __len__(self):
        return len(self.conf)


@pytest.fixture
def weights(tmp_path):
    path = tmp_path / "fish.pt"
    path.write_bytes(b"weights")
    return str(path)


@pytest.fixture
def yolo_config(tmp_path):
    return {"device": "cpu", "detection_iou_threshold": 0.5, "max_detections": 10,
            "models_dir": str(tmp_path / "cache")}


class TestYoloBackend:
    """Test suite for YoloBackend."""

    @patch("fishfinder.backends.yolo_backend.YOLO")
    def test_reorders_boxes_to_top_left_bottom_right(self, mock_yolo, weights, yolo_config):
        model = MagicMock()
        model.return_value = [SimpleNamespace(boxes=FakeBoxes([[0.2, 0.1, 0.4, 0.3]], [0.85]))]
        mock_yolo.return_value = model
        backend = YoloBackend(yolo_config)
        backend.load_model(weights)

        output = backend.predict(np.zeros((1, 16, 16, 3), dtype=np.float32))

        assert output.num_detections == 1
        np.testing.assert_allclose(output.boxes, [0.1, 0.2, 0.3, 0.4], rtol=1e-6)
        np.testing.assert_allclose(output.scores, [0.85], rtol=1e-6)

    @patch("fishfinder.backends.yolo_backend.YOLO")
    def test_disables_model_confidence_floor(self, mock_yolo, weights, yolo_config):
        model = MagicMock()
        model.return_value = [SimpleNamespace(boxes=None)]
        mock_yolo.return_value = model
        backend = YoloBackend(yolo_config)
        backend.load_model(weights)
        batch = np.zeros((1, 4, 4, 3), dtype=np.float32)
        batch[0, 0, 0] = [255, 0, 0]

        output = backend.predict(batch)

        assert output.num_detections == 0
        args, kwargs = model.call_args
        assert kwargs["conf"] == 0.0
        assert kwargs["iou"] == 0.5
        assert kwargs["max_det"] == 10
        image = args[0]
        assert image.dtype == np.uint8
        # RGB in, BGR handed to ultralytics
        assert list(image[0, 0]) == [0, 0, 255]

    @patch("fishfinder.backends.yolo_backend.YOLO")
    def test_model_failure_wrapped(self, mock_yolo, weights, yolo_config):
        model = MagicMock(side_effect=RuntimeError("cuda error"))
        mock_yolo.return_value = model
        backend = YoloBackend(yolo_config)
        backend.load_model(weights)

        with pytest.raises(ModelError):
            backend.predict(np.zeros((1, 4, 4, 3), dtype=np.float32))

    @patch("fishfinder.backends.yolo_backend.YOLO")
    def test_load_failure(self, mock_yolo, weights, yolo_config):
        mock_yolo.side_effect = RuntimeError("bad weights")
        backend = YoloBackend(yolo_config)

        with pytest.raises(ModelLoadFailure):
            backend.load_model(weights)
        assert not backend.is_model_loaded()

    @patch("fishfinder.backends.yolo_backend.YOLO")
    def test_model_info_and_unload(self, mock_yolo, weights, yolo_config):
        model = MagicMock()
        model.names = {0: "fish"}
        mock_yolo.return_value = model
        backend = YoloBackend(yolo_config)
        backend.load_model(weights)

        info = backend.get_model_info()
        assert info["backend"] == "ultralytics"
        assert info["num_classes"] == 1

        backend.unload_model()
        assert not backend.is_model_loaded()
        assert backend.model is None

    def test_predict_without_model(self, yolo_config):
        with pytest.raises(ModelError):
            YoloBackend(yolo_config).predict(np.zeros((1, 4, 4, 3), dtype=np.float32))
