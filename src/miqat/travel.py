from __future__ import annotations

import logging

from .models import TravelState, TravelTransition
from .services.geolocation import METERS_PER_MILE, Coordinate, distance_m

_LOGGER = logging.getLogger(__name__)

TRAVEL_THRESHOLD_MILES = 48
TRAVEL_THRESHOLD_M = TRAVEL_THRESHOLD_MILES * METERS_PER_MILE


class TravelStateMachine:
    """Derives travel mode from the distance between the current and home points."""

    def __init__(self, threshold_m: float = TRAVEL_THRESHOLD_M) -> None:
        self.threshold_m = threshold_m

    def toggle(self, state: TravelState, traveling: bool) -> TravelState:
        """Manual override; the next evaluation leaves travel mode untouched."""
        return state.with_changes(
            is_traveling=traveling,
            manual_override_pending=True,
            last_auto_transition=TravelTransition.NONE,
        )

    def set_automatic(self, state: TravelState, enabled: bool) -> TravelState:
        return state.with_changes(automatic_enabled=enabled)

    def evaluate(
        self,
        state: TravelState,
        current: Coordinate | None,
        home: Coordinate | None,
    ) -> TravelState:
        if state.manual_override_pending:
            _LOGGER.debug("Skipping automatic travel check after manual toggle")
            return state.with_changes(manual_override_pending=False)
        if (
            not state.automatic_enabled
            or current is None
            or home is None
            or current.is_unset
            or home.is_unset
        ):
            return state

        away = distance_m(current, home) >= self.threshold_m
        if away and not state.is_traveling:
            _LOGGER.debug("Traveling mode turned on at %s", current.city or current.label())
            return state.with_changes(is_traveling=True, last_auto_transition=TravelTransition.TURNED_ON)
        if not away and state.is_traveling:
            _LOGGER.debug("Traveling mode turned off at %s", current.city or current.label())
            return state.with_changes(is_traveling=False, last_auto_transition=TravelTransition.TURNED_OFF)
        return state.with_changes(last_auto_transition=TravelTransition.NONE)
