from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
import itertools
import logging
from typing import Awaitable, Callable, Protocol, Sequence

from .config import MiqatConfig
from .hijri import HijriLabel, hijri_label
from .models import (
    DaySnapshot,
    MonthlyTimetable,
    Prayer,
    ReminderCategory,
    ScheduledReminder,
    TravelState,
    TravelTransition,
)
from .notifications import NotificationPlanner, planning_dates
from .resolver import PrayerTimeResolver
from .services.geolocation import Coordinate, LocationSource, PlaceNameCache
from .services.state import StateStore
from .services.timetable import MonthlyTimetableCache, ProviderFailure, TimetableProvider
from .timeutils import resolve_timezone
from .tracker import CurrentNextTracker
from .travel import TravelStateMachine

_LOGGER = logging.getLogger(__name__)

TRAVEL_NOTICE_ID = "Miqat.TravelingMode"


class ReminderSink(Protocol):
    def replace_all(self, reminders: Sequence[ScheduledReminder]) -> None:
        ...


@dataclass(slots=True)
class RefreshResult:
    day: date
    city: str = ""
    prayers: list[Prayer] = field(default_factory=list)
    full_prayers: list[Prayer] = field(default_factory=list)
    current: Prayer | None = None
    next: Prayer | None = None
    travel_state: TravelState = field(default_factory=TravelState)
    travel_transition: TravelTransition = TravelTransition.NONE
    hijri: HijriLabel | None = None
    reminders: list[ScheduledReminder] | None = None
    fetched: bool = False
    superseded: bool = False
    failure: ProviderFailure | None = None

    @property
    def has_data(self) -> bool:
        return bool(self.prayers)


class RefreshOrchestrator:
    """Sequences a refresh: location, travel mode, timetable, current/next and reminders."""

    def __init__(
        self,
        config: MiqatConfig,
        provider: TimetableProvider,
        state: StateStore,
        sink: ReminderSink,
        *,
        cache: MonthlyTimetableCache | None = None,
        location_source: LocationSource | None = None,
        places: PlaceNameCache | None = None,
        travel: TravelStateMachine | None = None,
        clock: Callable[[], datetime] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.config = config
        self.tz = resolve_timezone(config.location.timezone)
        self.provider = provider
        self.state = state
        self.sink = sink
        self.cache = cache or MonthlyTimetableCache(state.backend, self.tz)
        self.location_source = location_source
        self.places = places or PlaceNameCache()
        self.travel = travel or TravelStateMachine()
        self.resolver = PrayerTimeResolver(self.cache)
        self.planner = NotificationPlanner(config.notifications, self.tz)
        self._clock = clock or (lambda: datetime.now(self.tz))
        self._sleep = sleep
        self._inflight: dict[tuple[float, float, int, int], tuple[int, asyncio.Future[bool]]] = {}
        self._generations = itertools.count(1)
        self._committed_generation = 0
        self._planned_generation = 0
        self._tickets = itertools.count(1)
        self._committed_ticket = 0

    # ------------------------------------------------------------------
    # User commands
    # ------------------------------------------------------------------

    def set_home(self, coordinate: Coordinate) -> None:
        self.state.save_home(coordinate)

    def set_traveling(self, traveling: bool) -> TravelState:
        state = self.travel.toggle(self.state.travel_state(), traveling)
        self.state.save_travel_state(state)
        return state

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    async def refresh(
        self,
        location: Coordinate | None = None,
        *,
        force: bool = False,
        notify: bool = False,
    ) -> RefreshResult:
        ticket = next(self._tickets)
        now = self._clock()
        today = now.astimezone(self.tz).date()
        result = RefreshResult(day=today, hijri=hijri_label(today, self.config.calendar.hijri_offset))

        location = await self._current_location(location)
        if self._superseded(ticket, result):
            return result
        if location is None or location.is_unset:
            _LOGGER.debug("No valid location, skipping refresh")
            result.travel_state = self.state.travel_state()
            return result

        if force or not location.city or location.city == location.label():
            city = await self.places.name_for(location)
            if self._superseded(ticket, result):
                return result
        else:
            city = location.city
        location = location.with_city(city)
        result.city = city

        snapshot = self.state.snapshot()
        needs_fetch = (
            force
            or snapshot is None
            or snapshot.city != city
            or snapshot.day != today
            or snapshot.is_empty()
            or self.cache.get(today) is None
        )

        failure: ProviderFailure | None = None
        generation: int | None = None
        if needs_fetch:
            _LOGGER.debug("Fetching timetable for %s (%s)", city, today.strftime("%Y-%m"))
            try:
                generation, result.fetched = await self._fetch_month(location, today, force=force)
            except ProviderFailure as exc:
                _LOGGER.error("Timetable fetch failed, falling back to cached data: %s", exc)
                failure = exc
            if self._superseded(ticket, result):
                return result
        self._committed_ticket = ticket

        # No awaits past this point: persisted state is read and written as one step.
        self.state.save_current(location)
        previous = self.state.travel_state()
        if previous.automatic_enabled != self.config.travel.automatic:
            previous = self.travel.set_automatic(previous, self.config.travel.automatic)
        travel_state = self.travel.evaluate(previous, location, self.state.home())
        self.state.save_travel_state(travel_state)
        travel_changed = travel_state.is_traveling != previous.is_traveling
        result.travel_state = travel_state
        if travel_changed:
            result.travel_transition = travel_state.last_auto_transition

        snapshot = self.state.snapshot()
        regroup = travel_changed or (snapshot is not None and snapshot.is_grouped != travel_state.is_traveling)
        if needs_fetch or regroup:
            pair = self.resolver.resolve_pair(today, self.config.offsets, travel_state)
            if pair is not None:
                snapshot = DaySnapshot(day=today, city=city, prayers=pair[0], full_prayers=pair[1])
                self.state.save_snapshot(snapshot)
            elif snapshot is not None and snapshot.day != today:
                snapshot = None

        if snapshot is None or snapshot.is_empty():
            _LOGGER.error("No timetable data available for %s", today)
            result.failure = failure or ProviderFailure(f"No timetable data available for {today}")
            return result

        result.prayers = list(snapshot.prayers)
        result.full_prayers = list(snapshot.full_prayers)
        result.current, result.next = CurrentNextTracker.locate(
            now,
            result.prayers,
            lambda: self._first_prayer(today + timedelta(days=1), travel_state),
        )

        already_planned = generation is not None and generation == self._planned_generation
        if (needs_fetch and not already_planned) or notify or regroup:
            result.reminders = self._plan(snapshot, now, travel_state, result.travel_transition)
            self.sink.replace_all(result.reminders)
            if generation is not None:
                self._planned_generation = generation
        return result

    def _superseded(self, ticket: int, result: RefreshResult) -> bool:
        if ticket < self._committed_ticket:
            _LOGGER.debug("Refresh %s superseded by a newer refresh", ticket)
            result.superseded = True
            return True
        return False

    async def _current_location(self, location: Coordinate | None) -> Coordinate | None:
        if location is not None:
            return location
        if self.location_source is not None:
            detected = await self.location_source.current()
            if detected is not None:
                return detected
        return self.state.current()

    def _first_prayer(self, day: date, travel_state: TravelState) -> Prayer | None:
        prayers = self.resolver.resolve(day, self.config.offsets, travel_state)
        return prayers[0] if prayers else None

    def _plan(
        self,
        snapshot: DaySnapshot,
        now: datetime,
        travel_state: TravelState,
        transition: TravelTransition,
    ) -> list[ScheduledReminder]:
        sequences: dict[date, list[Prayer] | None] = {}
        for day in planning_dates(snapshot.day, self.config.notifications.nagging_mode):
            if day == snapshot.day:
                sequences[day] = snapshot.prayers
            else:
                sequences[day] = self.resolver.resolve(day, self.config.offsets, travel_state)
        reminders = self.planner.plan(
            sequences,
            now,
            city=snapshot.city,
            traveling=travel_state.is_traveling,
        )
        if transition is not TravelTransition.NONE:
            reminders.insert(0, self._travel_notice(transition, snapshot.city, now))
        _LOGGER.debug("Planned %s reminders", len(reminders))
        return reminders

    def _travel_notice(self, transition: TravelTransition, city: str, now: datetime) -> ScheduledReminder:
        word = "on" if transition is TravelTransition.TURNED_ON else "off"
        return ScheduledReminder(
            id=TRAVEL_NOTICE_ID,
            fire_at=now + timedelta(seconds=1),
            title=self.config.notifications.title,
            body=f"Traveling mode automatically turned {word} at {city}",
            category=ReminderCategory.TRAVEL_NOTICE,
        )

    # ------------------------------------------------------------------
    # Fetching
    # ------------------------------------------------------------------

    async def _fetch_month(self, location: Coordinate, anchor: date, *, force: bool = False) -> tuple[int, bool]:
        """Fetch and cache the month containing ``anchor``.

        Concurrent requests for the same coordinate and month share one fetch;
        a forced request starts a new one. Returns the fetch generation and
        whether its month was committed; False means a newer fetch had already
        been committed and this one was discarded.
        """
        key = (round(location.latitude, 4), round(location.longitude, 4), anchor.year, anchor.month)
        inflight = self._inflight.get(key)
        if inflight is None or force:
            generation = next(self._generations)
            task = asyncio.ensure_future(self._fetch_and_commit(location, anchor, generation))
            inflight = (generation, task)
            self._inflight[key] = inflight
            task.add_done_callback(lambda done, key=key: self._forget(key, done))
        generation, task = inflight
        return generation, await asyncio.shield(task)

    def _forget(self, key: tuple[float, float, int, int], task: asyncio.Future[bool]) -> None:
        inflight = self._inflight.get(key)
        if inflight is not None and inflight[1] is task:
            del self._inflight[key]

    async def _fetch_and_commit(self, location: Coordinate, anchor: date, generation: int) -> bool:
        month = await self._fetch_with_retry(location, anchor)
        if generation < self._committed_generation:
            _LOGGER.debug("Discarding superseded timetable fetch (generation %s)", generation)
            return False
        self._committed_generation = generation
        self.cache.store(month)
        return True

    async def _fetch_with_retry(self, location: Coordinate, anchor: date) -> MonthlyTimetable:
        attempts = max(1, self.config.provider.fetch_attempts)
        for attempt in range(attempts):
            try:
                return await self.provider.fetch(location, anchor)
            except ProviderFailure as exc:
                if attempt + 1 >= attempts:
                    raise
                delay = self.config.provider.backoff_base * (2 ** attempt)
                _LOGGER.warning(
                    "Timetable fetch attempt %s/%s failed: %s; retrying in %.1fs",
                    attempt + 1,
                    attempts,
                    exc,
                    delay,
                )
                await self._sleep(delay)
        raise ProviderFailure("No fetch attempts were made")
