"""
Custom exceptions for the entity sync application.
"""

class EntitySyncException(Exception):
    """Base exception for all application-specific errors."""
    pass

class ConfigurationError(EntitySyncException):
    """Error related to sync configuration (rate limits, schedules, registration)."""
    pass

class UnsupportedEntityKindError(ConfigurationError):
    """Raised when an entity of a kind that cannot be synced reaches a serializer."""

    def __init__(self, entity_ref: str, kind: str):
        self.entity_ref = entity_ref
        self.kind = kind
        super().__init__(
            "Only Components, APIs, Systems, and Resources are allowed to be synced, "
            f"and {entity_ref} is not a component, api, system, or resource."
        )

class ExecutionError(EntitySyncException):
    """Error that aborts a whole sync run."""
    pass

class FetchError(ExecutionError):
    """The source catalog could not be read or rejected the filter."""
    pass

class PreloadError(ExecutionError):
    """The per-run preload hook failed."""
    pass

class TransformationError(EntitySyncException):
    """Error during entity serialization."""
    pass

class InvalidEventPayload(EntitySyncException):
    """An inbound sync event did not carry a usable entity filter."""
    pass

class ConnectorError(EntitySyncException):
    """Error related to a connector."""
    pass

# Specific API error classes for connectors
class DatadogAPIError(ConnectorError):
    """Exception raised for Datadog API errors."""

    def __init__(self, message: str, status_code: int = None):
        self.status_code = status_code
        super().__init__(message)

class BackstageAPIError(ConnectorError):
    """Exception raised for Backstage catalog API errors."""

    def __init__(self, message: str, status_code: int = None):
        self.status_code = status_code
        super().__init__(message)
