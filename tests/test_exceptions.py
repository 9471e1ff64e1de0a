"""Tests for exception hierarchy."""

from devtrack.exceptions import (
    ConfigError,
    DevTrackError,
    NotFoundError,
    PersistenceError,
    StoreError,
    ValidationError,
)


class TestDevTrackError:
    """Tests for base DevTrackError."""

    def test_basic_error(self):
        """Test basic error creation."""
        err = DevTrackError("Something went wrong")
        assert err.message == "Something went wrong"
        assert err.details == {}
        assert str(err) == "Something went wrong"

    def test_error_with_details(self):
        """Test error with details dict."""
        err = DevTrackError("Error occurred", {"code": 500})
        assert err.details == {"code": 500}
        assert str(err) == "Error occurred | Details: {'code': 500}"


class TestStoreErrors:
    """Tests for store errors."""

    def test_not_found_error(self):
        """NotFoundError names the entity and id."""
        err = NotFoundError("Session", 42)
        assert isinstance(err, StoreError)
        assert isinstance(err, DevTrackError)
        assert err.message == "Session with id 42 not found"
        assert err.entity == "Session"
        assert err.entity_id == 42
        assert err.details == {"entity": "Session", "id": 42}

    def test_validation_error_details(self):
        """Field and value end up in details only when given."""
        err = ValidationError("Bad value", field="status", value="done")
        assert err.details == {"field": "status", "value": "done"}
        assert ValidationError("Bad").details == {}
        assert isinstance(err, DevTrackError)


class TestPersistenceAndConfigErrors:
    """Tests for persistence and config errors."""

    def test_persistence_error(self):
        """Test PersistenceError keeps path and reason."""
        err = PersistenceError("Failed to load x.json", path="/data/x.json", reason="missing")
        assert err.path == "/data/x.json"
        assert err.reason == "missing"
        assert "missing" in str(err)

    def test_config_error(self):
        """Test ConfigError inherits from DevTrackError."""
        assert isinstance(ConfigError("Bad config"), DevTrackError)
