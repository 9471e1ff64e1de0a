"""
DevTrack - Exception Hierarchy

All DevTrack-specific exceptions inherit from DevTrackError.
"""

from typing import Any


class DevTrackError(Exception):
    """Base exception for all DevTrack errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# Configuration Errors
class ConfigError(DevTrackError):
    """Raised when configuration is invalid or missing."""

    pass


# Store Errors
class StoreError(DevTrackError):
    """Base exception for entity store errors."""

    pass


class NotFoundError(StoreError):
    """Raised when an update targets an entity id that does not exist."""

    def __init__(self, entity: str, entity_id: int):
        super().__init__(
            f"{entity} with id {entity_id} not found",
            {"entity": entity, "id": entity_id},
        )
        self.entity = entity
        self.entity_id = entity_id


class ValidationError(DevTrackError):
    """Raised when a payload or snapshot has a malformed or missing field."""

    def __init__(self, message: str, field: str | None = None, value: Any = None):
        details: dict[str, Any] = {}
        if field is not None:
            details["field"] = field
        if value is not None:
            details["value"] = value
        super().__init__(message, details)
        self.field = field
        self.value = value


# Persistence Errors
class PersistenceError(DevTrackError):
    """Raised when a backup, restore or export file operation fails."""

    def __init__(self, message: str, path: str | None = None, reason: str | None = None):
        details: dict[str, Any] = {}
        if path is not None:
            details["path"] = path
        if reason is not None:
            details["reason"] = reason
        super().__init__(message, details)
        self.path = path
        self.reason = reason
