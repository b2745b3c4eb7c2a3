"""Small helpers shared across the rate limit service."""

from __future__ import annotations

import datetime
import enum

from .timesource import TimeSource


class Unit(enum.IntEnum):
    """Rate limit time unit."""

    UNKNOWN = 0
    SECOND = 1
    MINUTE = 2
    HOUR = 3
    DAY = 4


_DIVIDERS = {
    Unit.SECOND: 1,
    Unit.MINUTE: 60,
    Unit.HOUR: 60 * 60,
    Unit.DAY: 60 * 60 * 24,
}


def unit_to_divider(unit: Unit) -> int:
    """Return the number of seconds in one ``unit``."""
    try:
        return _DIVIDERS[unit]
    except KeyError:
        raise ValueError(f"unsupported rate limit unit: {unit!r}") from None


def calculate_reset(unit: Unit, time_source: TimeSource) -> datetime.timedelta:
    """Return the time left until the current ``unit`` window ends."""
    divider = unit_to_divider(unit)
    now = time_source.unix_now()
    return datetime.timedelta(seconds=divider - now % divider)


def mask_credentials_in_url(url: str) -> str:
    """Hide credentials in a comma separated list of redis URLs."""
    masked = []
    for part in url.split(","):
        auth_parts = part.split("@")
        if len(auth_parts) > 1 and auth_parts[0].startswith("redis://"):
            part = "redis://*****@" + auth_parts[-1]
        masked.append(part)
    return ",".join(masked)


def sanitize_stat_name(name: str) -> str:
    """Replace characters that are invalid in stat names."""
    return name.replace(":", "_").replace("|", "_")