"""Itinerary lifecycle state machine."""

from backend.app.errors import InvalidTransitionError
from backend.app.models.common import ItineraryState, Visibility
from backend.app.models.itinerary import Itinerary

LEGAL_TRANSITIONS: dict[ItineraryState, frozenset[ItineraryState]] = {
    ItineraryState.generating: frozenset({ItineraryState.preview, ItineraryState.error}),
    ItineraryState.preview: frozenset({ItineraryState.payment, ItineraryState.error}),
    ItineraryState.payment: frozenset({ItineraryState.full, ItineraryState.error}),
    ItineraryState.full: frozenset({ItineraryState.error}),
    ItineraryState.error: frozenset({ItineraryState.generating}),
}


class ItineraryStateService:
    """Validates lifecycle transitions of itinerary documents."""

    def can_transition(self, current: ItineraryState, target: ItineraryState) -> bool:
        return target in LEGAL_TRANSITIONS[current]

    def require_transition(self, current: ItineraryState, target: ItineraryState) -> None:
        """Raise InvalidTransitionError unless current -> target is legal."""
        if not self.can_transition(current, target):
            raise InvalidTransitionError(
                f"cannot move itinerary from {current.value} to {target.value}"
            )

    def state_of(self, itinerary: Itinerary | None) -> ItineraryState:
        """Derive the lifecycle state of a stored document.

        No document yet means generation is still running; a paid preview is in
        the payment state until it is unlocked.
        """
        if itinerary is None:
            return ItineraryState.generating
        if itinerary.visibility == Visibility.full:
            return ItineraryState.full
        if itinerary.payment_confirmed:
            return ItineraryState.payment
        return ItineraryState.preview
