"""Unit tests for ModelLoader progress weighting and failure handling."""
import pytest

from fishfinder.core.exceptions import ModelLoadFailure
from fishfinder.services.model_loader import ModelLoader


class TestModelLoader:
    """Test suite for ModelLoader."""

    def test_loads_both_models(self, fake_detector, fake_classifier):
        loader = ModelLoader(fake_detector, fake_classifier)

        loader.load("det.pt", "cls.pt")

        assert loader.models_loaded
        assert fake_detector.loaded_from == "det.pt"
        assert fake_classifier.loaded_from == "cls.pt"

    def test_progress_is_weighted_and_monotonic(self, fake_detector, fake_classifier):
        reported = []
        loader = ModelLoader(fake_detector, fake_classifier, detector_weight=0.6)

        loader.load("det.pt", "cls.pt", progress_callback=reported.append)

        assert reported == pytest.approx([0.3, 0.6, 1.0])
        assert reported == sorted(reported)
        assert loader.progress == pytest.approx(1.0)

    def test_progress_reaches_one_without_backend_reports(self, detector_factory, classifier_factory):
        class SilentDetector(detector_factory):
            def load_model(self, source, progress_callback=None):
                self.is_loaded = True

        reported = []
        loader = ModelLoader(SilentDetector(), classifier_factory(), detector_weight=0.6)

        loader.load("det.pt", "cls.pt", progress_callback=reported.append)

        assert reported == pytest.approx([0.6, 1.0])

    def test_backwards_progress_is_not_reported(self, detector_factory, classifier_factory):
        class JitteryDetector(detector_factory):
            def load_model(self, source, progress_callback=None):
                for value in (0.5, 0.4, 0.5, 0.9):
                    progress_callback(value)
                self.is_loaded = True

        reported = []
        loader = ModelLoader(JitteryDetector(), classifier_factory(), detector_weight=1.0)

        loader.load("det.pt", "cls.pt", progress_callback=reported.append)

        assert reported == pytest.approx([0.5, 0.9, 1.0])

    def test_detector_failure_stops_loading(self, fake_detector, fake_classifier):
        fake_detector.load_error = ModelLoadFailure("det.pt", "model file not found")
        loader = ModelLoader(fake_detector, fake_classifier)

        with pytest.raises(ModelLoadFailure):
            loader.load("det.pt", "cls.pt")

        assert fake_classifier.loaded_from is None
        assert not loader.models_loaded

    def test_unexpected_errors_become_load_failures(self, fake_detector, fake_classifier):
        fake_detector.load_error = RuntimeError("corrupt archive")
        loader = ModelLoader(fake_detector, fake_classifier)

        with pytest.raises(ModelLoadFailure) as exc_info:
            loader.load("det.pt", "cls.pt")

        assert exc_info.value.source == "det.pt"
        assert "corrupt archive" in exc_info.value.reason
        assert isinstance(exc_info.value.__cause__, RuntimeError)
