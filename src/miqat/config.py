from __future__ import annotations

from dataclasses import dataclass, field
from datetime import time
from pathlib import Path
import tomllib

from .models import BASE_PRAYERS, PrayerKey
from .timeutils import format_hhmm, parse_hhmm

OFFSET_LIMIT = 10
PRE_NOTIFICATION_CHOICES = (0, 5, 10, 15, 20, 25, 30)
NAGGING_START_CHOICES = (10, 15, 30, 45)
DEFAULT_TIMEZONE = "Asia/Kuala_Lumpur"
DEFAULT_ENDPOINT = "https://api.waktusolat.app/v2/solat/gps"


class ConfigurationOutOfRange(ValueError):
    def __init__(self, setting: str, value: object, allowed: str) -> None:
        self.setting = setting
        self.value = value
        super().__init__(f"{setting}={value!r} is outside {allowed}")


def _default_config_root() -> Path:
    return Path.home() / ".config" / "miqat"


def _float_or_none(value: float | str | None) -> float | None:
    if value in (None, "", "nan"):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


@dataclass(slots=True)
class LocationSettings:
    city: str = ""
    latitude: float | None = None
    longitude: float | None = None
    timezone: str = DEFAULT_TIMEZONE
    home_latitude: float | None = None
    home_longitude: float | None = None
    use_geolocation: bool = True


@dataclass(slots=True)
class ProviderSettings:
    endpoint: str = DEFAULT_ENDPOINT
    timeout: float = 10.0
    fetch_attempts: int = 3
    backoff_base: float = 1.0


@dataclass(slots=True)
class OffsetConfiguration:
    """Per prayer minute adjustments applied on top of the provider's times."""

    fajr: int = 0
    sunrise: int = 0
    dhuhr: int = 0
    asr: int = 0
    maghrib: int = 0
    isha: int = 0
    dhuhr_asr: int = 0
    maghrib_isha: int = 0

    def __post_init__(self) -> None:
        for name, value in self.to_dict().items():
            if not isinstance(value, int) or not -OFFSET_LIMIT <= value <= OFFSET_LIMIT:
                raise ConfigurationOutOfRange(f"offsets.{name}", value, f"[-{OFFSET_LIMIT}, {OFFSET_LIMIT}]")

    @classmethod
    def from_dict(cls, values: dict[str, int]) -> "OffsetConfiguration":
        return cls(**{name: int(values.get(name, 0)) for name in _OFFSET_FIELDS})

    def to_dict(self) -> dict[str, int]:
        return {name: getattr(self, name) for name in _OFFSET_FIELDS}


_OFFSET_FIELDS = ("fajr", "sunrise", "dhuhr", "asr", "maghrib", "isha", "dhuhr_asr", "maghrib_isha")


@dataclass(slots=True)
class NotificationPreference:
    enabled: bool = True
    pre_minutes: int = 0
    nagging: bool = False

    def __post_init__(self) -> None:
        if self.pre_minutes not in PRE_NOTIFICATION_CHOICES:
            raise ConfigurationOutOfRange("pre_minutes", self.pre_minutes, "0-30 in steps of 5")

    @classmethod
    def from_dict(cls, values: dict[str, object]) -> "NotificationPreference":
        return cls(
            enabled=bool(values.get("enabled", True)),
            pre_minutes=int(values.get("pre_minutes", 0)),
            nagging=bool(values.get("nagging", False)),
        )

    def to_dict(self) -> dict[str, object]:
        return {"enabled": self.enabled, "pre_minutes": self.pre_minutes, "nagging": self.nagging}


def _default_preferences() -> dict[PrayerKey, NotificationPreference]:
    return {key: NotificationPreference() for key in BASE_PRAYERS}


@dataclass(slots=True)
class NotificationSettings:
    title: str = "Miqat"
    nagging_mode: bool = False
    nagging_start_offset: int = 30
    date_notifications: bool = True
    refresh_time: time = field(default_factory=lambda: time(12, 0))
    event_time: time = field(default_factory=lambda: time(9, 0))
    preferences: dict[PrayerKey, NotificationPreference] = field(default_factory=_default_preferences)

    def __post_init__(self) -> None:
        if self.nagging_start_offset not in NAGGING_START_CHOICES:
            raise ConfigurationOutOfRange(
                "nagging_start_offset",
                self.nagging_start_offset,
                "{" + ", ".join(str(value) for value in NAGGING_START_CHOICES) + "}",
            )
        for key in BASE_PRAYERS:
            self.preferences.setdefault(key, NotificationPreference())

    def preference_for(self, key: PrayerKey) -> NotificationPreference:
        return self.preferences[key.preference_slot]


@dataclass(slots=True)
class TravelSettings:
    automatic: bool = True


@dataclass(slots=True)
class CalendarSettings:
    hijri_offset: int = 0


@dataclass(slots=True)
class MiqatConfig:
    location: LocationSettings
    provider: ProviderSettings
    offsets: OffsetConfiguration
    notifications: NotificationSettings
    travel: TravelSettings
    calendar: CalendarSettings

    @classmethod
    def default(cls) -> "MiqatConfig":
        return cls(
            location=LocationSettings(),
            provider=ProviderSettings(),
            offsets=OffsetConfiguration(),
            notifications=NotificationSettings(),
            travel=TravelSettings(),
            calendar=CalendarSettings(),
        )

    def to_dict(self) -> dict:
        return {
            "location": {
                "city": self.location.city,
                "latitude": self.location.latitude,
                "longitude": self.location.longitude,
                "timezone": self.location.timezone,
                "home_latitude": self.location.home_latitude,
                "home_longitude": self.location.home_longitude,
                "use_geolocation": self.location.use_geolocation,
            },
            "provider": {
                "endpoint": self.provider.endpoint,
                "timeout": self.provider.timeout,
                "fetch_attempts": self.provider.fetch_attempts,
                "backoff_base": self.provider.backoff_base,
            },
            "offsets": self.offsets.to_dict(),
            "notifications": {
                "title": self.notifications.title,
                "nagging_mode": self.notifications.nagging_mode,
                "nagging_start_offset": self.notifications.nagging_start_offset,
                "date_notifications": self.notifications.date_notifications,
                "refresh_time": format_hhmm(self.notifications.refresh_time),
                "event_time": format_hhmm(self.notifications.event_time),
            },
            "prayers": {
                key.value.lower(): pref.to_dict() for key, pref in self.notifications.preferences.items()
            },
            "travel": {"automatic": self.travel.automatic},
            "calendar": {"hijri_offset": self.calendar.hijri_offset},
        }


class ConfigManager:
    """TOML configuration loader that falls back per section on invalid values."""

    def __init__(self, config_path: Path | None = None) -> None:
        self.config_path = config_path or (_default_config_root() / "config.toml")
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        self._errors: list[str] = []

    def errors(self) -> list[str]:
        return list(self._errors)

    def load(self) -> MiqatConfig:
        self._errors.clear()
        if not self.config_path.exists():
            config = MiqatConfig.default()
            self._write(config)
            return config

        with self.config_path.open("rb") as handle:
            raw = tomllib.load(handle)

        location_cfg = raw.get("location", {})
        provider_cfg = raw.get("provider", {})
        notifications_cfg = raw.get("notifications", {})
        prayers_cfg = raw.get("prayers", {})

        location = LocationSettings(
            city=location_cfg.get("city", ""),
            latitude=_float_or_none(location_cfg.get("latitude")),
            longitude=_float_or_none(location_cfg.get("longitude")),
            timezone=location_cfg.get("timezone") or DEFAULT_TIMEZONE,
            home_latitude=_float_or_none(location_cfg.get("home_latitude")),
            home_longitude=_float_or_none(location_cfg.get("home_longitude")),
            use_geolocation=location_cfg.get("use_geolocation", True),
        )

        provider = ProviderSettings(
            endpoint=provider_cfg.get("endpoint", DEFAULT_ENDPOINT),
            timeout=float(provider_cfg.get("timeout", 10.0)),
            fetch_attempts=max(1, int(provider_cfg.get("fetch_attempts", 3))),
            backoff_base=float(provider_cfg.get("backoff_base", 1.0)),
        )

        try:
            offsets = OffsetConfiguration.from_dict(raw.get("offsets", {}))
        except (ConfigurationOutOfRange, TypeError, ValueError) as exc:
            self._errors.append(f"Invalid offsets in config: {exc}")
            offsets = OffsetConfiguration()

        preferences: dict[PrayerKey, NotificationPreference] = {}
        for key in BASE_PRAYERS:
            try:
                preferences[key] = NotificationPreference.from_dict(prayers_cfg.get(key.value.lower(), {}))
            except (ConfigurationOutOfRange, TypeError, ValueError) as exc:
                self._errors.append(f"Invalid prayers.{key.value.lower()} in config: {exc}")
                preferences[key] = NotificationPreference()

        try:
            notifications = NotificationSettings(
                title=notifications_cfg.get("title", "Miqat"),
                nagging_mode=notifications_cfg.get("nagging_mode", False),
                nagging_start_offset=int(notifications_cfg.get("nagging_start_offset", 30)),
                date_notifications=notifications_cfg.get("date_notifications", True),
                refresh_time=parse_hhmm(notifications_cfg.get("refresh_time", "12:00")),
                event_time=parse_hhmm(notifications_cfg.get("event_time", "09:00")),
                preferences=preferences,
            )
        except (ConfigurationOutOfRange, TypeError, ValueError) as exc:
            self._errors.append(f"Invalid notifications in config: {exc}")
            notifications = NotificationSettings(preferences=preferences)

        return MiqatConfig(
            location=location,
            provider=provider,
            offsets=offsets,
            notifications=notifications,
            travel=TravelSettings(automatic=raw.get("travel", {}).get("automatic", True)),
            calendar=CalendarSettings(hijri_offset=int(raw.get("calendar", {}).get("hijri_offset", 0))),
        )

    def _write(self, config: MiqatConfig) -> None:
        data = config.to_dict()
        location = data["location"]
        lines = ["[location]"]
        lines.append(f"city = \"{location['city']}\"")
        for name in ("latitude", "longitude", "home_latitude", "home_longitude"):
            if location[name] is not None:
                lines.append(f"{name} = {location[name]}")
        lines.append(f"timezone = \"{location['timezone']}\"")
        lines.append(f"use_geolocation = {str(location['use_geolocation']).lower()}")
        lines.extend([
            "",
            "[provider]",
            f"endpoint = \"{data['provider']['endpoint']}\"",
            f"timeout = {data['provider']['timeout']}",
            f"fetch_attempts = {data['provider']['fetch_attempts']}",
            f"backoff_base = {data['provider']['backoff_base']}",
            "",
            "[offsets]",
        ])
        for name, value in data["offsets"].items():
            lines.append(f"{name} = {value}")
        notifications = data["notifications"]
        lines.extend([
            "",
            "[notifications]",
            f"title = \"{notifications['title']}\"",
            f"nagging_mode = {str(notifications['nagging_mode']).lower()}",
            f"nagging_start_offset = {notifications['nagging_start_offset']}",
            f"date_notifications = {str(notifications['date_notifications']).lower()}",
            f"refresh_time = \"{notifications['refresh_time']}\"",
            f"event_time = \"{notifications['event_time']}\"",
        ])
        for prayer, pref in data["prayers"].items():
            lines.extend([
                "",
                f"[prayers.{prayer}]",
                f"enabled = {str(pref['enabled']).lower()}",
                f"pre_minutes = {pref['pre_minutes']}",
                f"nagging = {str(pref['nagging']).lower()}",
            ])
        lines.extend([
            "",
            "[travel]",
            f"automatic = {str(data['travel']['automatic']).lower()}",
            "",
            "[calendar]",
            f"hijri_offset = {data['calendar']['hijri_offset']}",
        ])
        self.config_path.write_text("\n".join(lines) + "\n", encoding="utf-8")

    def save(self, config: MiqatConfig) -> None:
        self._write(config)
