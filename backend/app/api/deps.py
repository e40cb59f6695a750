"""Request dependencies shared by the itinerary routes."""

from fastapi import HTTPException, status

from backend.app.config import get_settings
from backend.app.errors import ConfigurationError
from backend.app.orchestration.pipeline import ItineraryPipeline, build_pipeline

_pipeline: ItineraryPipeline | None = None


def get_pipeline() -> ItineraryPipeline:
    """Get the process-wide pipeline, built on first use.

    Raises:
        HTTPException: 500 when provider credentials are not configured
    """
    global _pipeline
    if _pipeline is None:
        try:
            _pipeline = build_pipeline(get_settings())
        except ConfigurationError as e:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e)
            ) from e
    return _pipeline


def reset_pipeline() -> None:
    """Drop the cached pipeline (settings changed, tests)."""
    global _pipeline
    _pipeline = None
