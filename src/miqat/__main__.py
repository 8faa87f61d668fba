from __future__ import annotations

import argparse
import asyncio
import logging
from typing import Sequence

from .config import ConfigManager, MiqatConfig
from .models import ScheduledReminder
from .orchestrator import RefreshOrchestrator, RefreshResult
from .services.geolocation import Coordinate, IpLocationSource, LocationSource, StaticLocationSource
from .services.state import StateStore
from .services.timetable import DirectoryStore, WaktuSolatProvider
from .timeutils import format_hhmm, resolve_timezone

_LOGGER = logging.getLogger("miqat")


class LoggingSink:
    """Stands in for the OS notification centre by logging the schedule."""

    def __init__(self) -> None:
        self.scheduled: list[ScheduledReminder] = []

    def replace_all(self, reminders: Sequence[ScheduledReminder]) -> None:
        self.scheduled = list(reminders)
        for reminder in self.scheduled:
            _LOGGER.debug("%s %s", reminder.fire_at.isoformat(), reminder.body)


def _location_source(config: MiqatConfig) -> LocationSource:
    loc = config.location
    if loc.latitude is not None and loc.longitude is not None and not loc.use_geolocation:
        return StaticLocationSource(Coordinate(loc.latitude, loc.longitude, loc.city))
    return IpLocationSource()


def _print_result(result: RefreshResult, sink: LoggingSink) -> None:
    if result.hijri:
        print(f"{result.day.isoformat()}  {result.hijri.english}")
    if not result.has_data:
        print("No prayer times available.")
        return
    traveling = " (traveling)" if result.travel_state.is_traveling else ""
    print(f"Prayer times for {result.city}{traveling}")
    for prayer in result.prayers:
        marker = ""
        if prayer == result.current:
            marker = "  <- current"
        elif prayer == result.next:
            marker = "  <- next"
        print(f"  {prayer.name_transliteration:<14}{format_hhmm(prayer.time)}{marker}")
    if result.next is not None and result.next not in result.prayers:
        print(f"  next: {result.next.name_transliteration} tomorrow at {format_hhmm(result.next.time)}")
    print(f"{len(sink.scheduled)} reminders scheduled")


def main(argv: Sequence[str] | None = None) -> None:
    parser = argparse.ArgumentParser(prog="miqat", description="Show today's prayer times and plan reminders.")
    parser.add_argument("--force", action="store_true", help="refetch the monthly timetable")
    parser.add_argument("--verbose", "-v", action="store_true", help="enable debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    manager = ConfigManager()
    config = manager.load()
    for error in manager.errors():
        _LOGGER.warning(error)

    tz = resolve_timezone(config.location.timezone)
    state = StateStore(DirectoryStore())
    if config.location.home_latitude is not None and config.location.home_longitude is not None:
        state.save_home(Coordinate(config.location.home_latitude, config.location.home_longitude))

    sink = LoggingSink()
    orchestrator = RefreshOrchestrator(
        config,
        WaktuSolatProvider(tz, endpoint=config.provider.endpoint, timeout=config.provider.timeout),
        state,
        sink,
        location_source=_location_source(config),
    )
    result = asyncio.run(orchestrator.refresh(force=args.force, notify=True))
    _print_result(result, sink)


if __name__ == "__main__":  # pragma: no cover
    main()
