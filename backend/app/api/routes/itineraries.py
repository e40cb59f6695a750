"""Itinerary endpoints - thin wrappers over the pipeline entry points."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse

from backend.app.api.deps import get_pipeline
from backend.app.errors import (
    ConfigurationError,
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    PersistenceError,
    PipelineError,
    PipelineTimeoutError,
    ProviderError,
    ValidationError,
)
from backend.app.models.common import CamelModel
from backend.app.models.itinerary import GenerateRequest, Itinerary
from backend.app.models.location import AlternativesResponse
from backend.app.orchestration.pipeline import ItineraryPipeline

router = APIRouter(prefix="/itineraries", tags=["itineraries"])
logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: tuple[tuple[type[PipelineError], int], ...] = (
    (ValidationError, status.HTTP_422_UNPROCESSABLE_CONTENT),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (InvalidTransitionError, status.HTTP_409_CONFLICT),
    (ConflictError, status.HTTP_409_CONFLICT),
    (ConfigurationError, status.HTTP_500_INTERNAL_SERVER_ERROR),
    (PersistenceError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (PipelineTimeoutError, status.HTTP_504_GATEWAY_TIMEOUT),
    (ProviderError, status.HTTP_502_BAD_GATEWAY),
)


class UnlockRequest(CamelModel):
    """Optional body for POST /itineraries/{id}/unlock."""

    payment_confirmed: bool = False


def status_for(error: PipelineError) -> int:
    for error_type, code in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def to_http_error(error: PipelineError) -> HTTPException:
    code = status_for(error)
    if code >= 500:
        logger.error(f"Pipeline error ({type(error).__name__}): {error}")
    return HTTPException(status_code=code, detail=str(error))


Pipeline = Annotated[ItineraryPipeline, Depends(get_pipeline)]


@router.post(
    "",
    response_model=Itinerary,
    status_code=status.HTTP_201_CREATED,
    responses={503: {"description": "Generated but not persisted; body carries the itinerary"}},
)
async def create_itinerary(request: GenerateRequest, pipeline: Pipeline) -> Itinerary | JSONResponse:
    """Generate an itinerary.

    Previews are persisted and returned with their id; full generations are
    returned only.
    """
    try:
        return await pipeline.generate(request)
    except PersistenceError as e:
        logger.error(f"Generated itinerary could not be persisted: {e}")
        body: dict[str, object] = {"detail": str(e)}
        if e.itinerary is not None:
            body["itinerary"] = e.itinerary.model_dump(mode="json", by_alias=True)
        return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=body)
    except PipelineError as e:
        raise to_http_error(e) from e


@router.get("/alternatives", response_model=AlternativesResponse)
async def get_alternatives(
    pipeline: Pipeline,
    category: str = "",
    city: str = "",
    current_place_name: Annotated[str | None, Query(alias="currentPlaceName")] = None,
    current_address: Annotated[str | None, Query(alias="currentAddress")] = None,
) -> AlternativesResponse:
    """Places that could replace a rendered location."""
    try:
        alternatives = await pipeline.alternatives(
            category, city, current_place_name, current_address
        )
    except PipelineError as e:
        raise to_http_error(e) from e
    return AlternativesResponse(alternatives=alternatives)


@router.get("/{itinerary_id}", response_model=Itinerary)
async def get_itinerary(itinerary_id: str, pipeline: Pipeline) -> Itinerary:
    try:
        return await pipeline.load(itinerary_id)
    except PipelineError as e:
        raise to_http_error(e) from e


@router.post("/{itinerary_id}/complete", response_model=Itinerary)
async def complete_itinerary(itinerary_id: str, pipeline: Pipeline) -> Itinerary:
    """Generate the location slots a preview has not shown yet."""
    try:
        return await pipeline.complete(itinerary_id)
    except PipelineError as e:
        raise to_http_error(e) from e


@router.post("/{itinerary_id}/payment", response_model=Itinerary)
async def record_payment(itinerary_id: str, pipeline: Pipeline) -> Itinerary:
    """Record the external payment event for a preview."""
    try:
        return await pipeline.record_payment(itinerary_id)
    except PipelineError as e:
        raise to_http_error(e) from e


@router.post("/{itinerary_id}/unlock", response_model=Itinerary)
async def unlock_itinerary(
    itinerary_id: str, pipeline: Pipeline, request: UnlockRequest | None = None
) -> Itinerary:
    """Flip a paid preview to full visibility."""
    payment_confirmed = request.payment_confirmed if request is not None else False
    try:
        return await pipeline.unlock(itinerary_id, payment_confirmed=payment_confirmed)
    except PipelineError as e:
        raise to_http_error(e) from e
