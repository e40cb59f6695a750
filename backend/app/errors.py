"""Pipeline exception taxonomy.

Every error raised out of the itinerary pipeline derives from PipelineError so
the HTTP layer can map the whole family in one place.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from backend.app.models.itinerary import Itinerary


class PipelineError(Exception):
    """Base class for itinerary pipeline failures."""

    pass


class ConfigurationError(PipelineError):
    """Missing or invalid credentials for a required provider."""

    pass


class ProviderError(PipelineError):
    """An external provider call failed (narrative, places, photos, catalog)."""

    pass


class ProviderTimeoutError(ProviderError):
    """Provider call exceeded its hard timeout on every attempt."""

    pass


class ProviderCircuitOpenError(ProviderError):
    """Circuit breaker is open for this provider."""

    pass


class ProviderCallError(ProviderError):
    """Provider call raised on every attempt."""

    pass


class ProviderCancelledError(PipelineError):
    """Provider call was cancelled through the run's cancel token."""

    pass


class DegenerateBudgetError(PipelineError):
    """Activity prices sum to zero, so no scale factor exists."""

    pass


class PersistenceError(PipelineError):
    """Session store read or write failed.

    When raised by the save step of a generation run, ``itinerary`` carries the
    document that was computed before the write failed.
    """

    def __init__(self, message: str, itinerary: "Itinerary | None" = None) -> None:
        super().__init__(message)
        self.itinerary = itinerary


class NotFoundError(PipelineError):
    """Unknown or expired itinerary id."""

    pass


class ValidationError(PipelineError):
    """Request rejected before any external call was made."""

    pass


class InvalidTransitionError(PipelineError):
    """Requested lifecycle transition is not allowed from the current state."""

    pass


class ConflictError(PipelineError):
    """Stored document changed since it was read (version stamp mismatch)."""

    pass


class PipelineTimeoutError(PipelineError):
    """The run did not finish within the overall pipeline deadline."""

    pass
