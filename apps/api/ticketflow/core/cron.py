"""
Minimal cron matching for the sync schedule.

Supports:
- 5-field expressions: "*/5 * * * *"
- 6-field Quartz/Spring expressions with a leading seconds field: "0 0/5 * * * ?"
- "*", "?", lists "1,15", ranges "1-5", steps "0/5", "*/10", "10-40/10"
- day-of-week 0-7 (0 and 7 are both Sunday)

Matching is per minute; the seconds field is validated but ignored because
the scheduler ticks at minute granularity.
"""

from __future__ import annotations

import logging
from datetime import datetime

logger = logging.getLogger(__name__)


class CronError(ValueError):
    """Raised when a cron expression cannot be parsed."""


_FIELD_RANGES = {
    "second": (0, 59),
    "minute": (0, 59),
    "hour": (0, 23),
    "day": (1, 31),
    "month": (1, 12),
    "weekday": (0, 7),
}


def _parse_field(raw: str, name: str) -> set[int] | None:
    """Return allowed values for a field, or None for a wildcard."""
    low, high = _FIELD_RANGES[name]
    if raw in ("*", "?"):
        return None

    values: set[int] = set()
    for part in raw.split(","):
        if not part:
            raise CronError(f"Empty list item in {name} field")
        step = 1
        if "/" in part:
            base, step_raw = part.split("/", 1)
            if not step_raw.isdigit() or int(step_raw) == 0:
                raise CronError(f"Invalid step in {name} field: {part}")
            step = int(step_raw)
        else:
            base = part

        if base in ("*", "?"):
            start, end = low, high
        elif "-" in base:
            start_raw, end_raw = base.split("-", 1)
            if not (start_raw.isdigit() and end_raw.isdigit()):
                raise CronError(f"Invalid range in {name} field: {part}")
            start, end = int(start_raw), int(end_raw)
        elif base.isdigit():
            start = int(base)
            # "0/5" means "every 5 starting at 0"
            end = high if "/" in part else start
        else:
            raise CronError(f"Invalid value in {name} field: {part}")

        if start < low or end > high or start > end:
            raise CronError(f"Out of range value in {name} field: {part}")
        values.update(range(start, end + 1, step))

    if name == "weekday" and 7 in values:
        values.discard(7)
        values.add(0)
    return values


def parse_cron(expression: str) -> dict[str, set[int] | None]:
    parts = (expression or "").split()
    if len(parts) == 6:
        names = ["second", "minute", "hour", "day", "month", "weekday"]
    elif len(parts) == 5:
        names = ["minute", "hour", "day", "month", "weekday"]
    else:
        raise CronError(f"Expected 5 or 6 fields, got {len(parts)}")
    return {name: _parse_field(raw, name) for name, raw in zip(names, parts)}


def validate_cron(expression: str) -> None:
    """Raise CronError if the expression is not supported."""
    parse_cron(expression)


def cron_matches(expression: str, now: datetime) -> bool:
    """Return True if the expression fires during the minute of `now`."""
    try:
        fields = parse_cron(expression)
    except CronError as exc:
        logger.warning("Invalid cron expression cron=%r error=%s", expression, exc)
        return False

    def _ok(name: str, value: int) -> bool:
        allowed = fields.get(name)
        return allowed is None or value in allowed

    # Python weekday(): Monday=0; cron: Sunday=0
    cron_weekday = (now.weekday() + 1) % 7
    return (
        _ok("minute", now.minute)
        and _ok("hour", now.hour)
        and _ok("day", now.day)
        and _ok("month", now.month)
        and _ok("weekday", cron_weekday)
    )
