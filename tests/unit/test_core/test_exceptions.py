"""Unit tests for the exception hierarchy."""
import pytest

from fishfinder.core.exceptions import (
    ApplicationError, ClassificationExecutionFailure, DetectionError, ModelError, ModelLoadFailure
)


class TestExceptions:
    """Test suite for exception attributes and hierarchy."""

    def test_region_index_defaults_to_none(self):
        error = ClassificationExecutionFailure("backend crashed")

        assert error.region_index is None
        assert str(error) == "backend crashed"

    def test_region_index_recorded(self):
        error = ClassificationExecutionFailure("bad region", region_index=2)

        assert error.region_index == 2
        assert isinstance(error, DetectionError)

    def test_load_failure_message(self):
        error = ModelLoadFailure("https://host/det.pt", "HTTP 404")

        assert error.source == "https://host/det.pt"
        assert error.reason == "HTTP 404"
        assert "HTTP 404" in str(error)
        assert isinstance(error, ModelError)

    @pytest.mark.parametrize("error_type", [DetectionError, ModelError])
    def test_all_errors_are_application_errors(self, error_type):
        assert issubclass(error_type, ApplicationError)
