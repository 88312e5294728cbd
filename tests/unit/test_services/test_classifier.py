"""Unit tests for region normalization and classification."""
import numpy as np
import pytest

from fishfinder.core.exceptions import ClassificationExecutionFailure
from fishfinder.services.classifier import Classifier, arg_max, normalize_region


class TestNormalizeRegion:
    """Test suite for normalize_region."""

    def test_output_shape_and_dtype(self):
        region = np.zeros((37, 91, 3), dtype=np.uint8)

        batch = normalize_region(region)

        assert batch.shape == (1, 224, 224, 3)
        assert batch.dtype == np.float32

    @pytest.mark.parametrize("value,expected", [(0, -1.0), (255, 1.0), (127.5, 0.0)])
    def test_rescales_to_unit_range(self, value, expected):
        region = np.full((10, 10, 3), value, dtype=np.float32)

        batch = normalize_region(region)

        assert batch.min() == pytest.approx(expected)
        assert batch.max() == pytest.approx(expected)

    def test_custom_input_size(self):
        assert normalize_region(np.zeros((5, 5, 3), dtype=np.uint8), 32).shape == (1, 32, 32, 3)


class TestArgMax:
    """Test suite for arg_max."""

    def test_picks_highest(self):
        assert arg_max([0.1, 0.7, 0.2]) == 1

    def test_ties_go_to_lowest_index(self):
        assert arg_max([0.3, 0.3, 0.1]) == 0


class TestClassifier:
    """Test suite for Classifier."""

    def test_returns_best_label(self, classifier_factory):
        classifier = Classifier(classifier_factory(scores=[0.2, 0.8]), ["a", "b"])

        index, score = classifier.classify(np.zeros((10, 10, 3), dtype=np.uint8))

        assert index == 1
        assert score == pytest.approx(0.8)
        assert classifier.label_for(index) == "b"

    def test_backend_receives_normalized_batch(self, classifier_factory):
        backend = classifier_factory(scores=[1.0, 0.0])
        classifier = Classifier(backend, ["a", "b"])

        classifier.classify(np.full((12, 20, 3), 255, dtype=np.uint8))

        batch = backend.batches[0]
        assert batch.shape == (1, 224, 224, 3)
        assert batch.max() == pytest.approx(1.0)

    def test_backend_error_is_wrapped(self, classifier_factory):
        classifier = Classifier(classifier_factory(error=RuntimeError("gpu gone")), ["a", "b"])

        with pytest.raises(ClassificationExecutionFailure) as exc_info:
            classifier.classify(np.zeros((4, 4, 3), dtype=np.uint8))

        assert isinstance(exc_info.value.__cause__, RuntimeError)

    def test_score_count_must_match_labels(self, classifier_factory):
        classifier = Classifier(classifier_factory(scores=[0.1, 0.2, 0.7]), ["a", "b"])

        with pytest.raises(ClassificationExecutionFailure):
            classifier.classify(np.zeros((4, 4, 3), dtype=np.uint8))

    def test_requires_labels(self, classifier_factory):
        with pytest.raises(ValueError):
            Classifier(classifier_factory(), [])
