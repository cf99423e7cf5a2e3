"""Next-run computation for integration sync schedules."""

from datetime import UTC, datetime, timedelta
from typing import Any

from apscheduler.triggers.cron import CronTrigger

from app.schemas.cms_integration import SyncSchedule


def build_cron_trigger(expression: str, timezone: str = "UTC") -> CronTrigger:
    """Build a trigger from a 5-field (or 6-field, seconds first) crontab expression."""
    parts = expression.split()
    if len(parts) == 5:
        return CronTrigger.from_crontab(expression, timezone=timezone)
    if len(parts) == 6:
        sec, minute, hour, day, month, dow = parts
        return CronTrigger(
            second=sec,
            minute=minute,
            hour=hour,
            day=day,
            month=month,
            day_of_week=dow,
            timezone=timezone,
        )
    raise ValueError(f"Invalid crontab '{expression}': expected 5 or 6 fields")


def validate_schedule(schedule: SyncSchedule | None) -> None:
    """Raise ValueError if a cron schedule's expression or timezone cannot be evaluated."""
    if schedule is None or not schedule.enabled or schedule.type != "cron":
        return
    try:
        build_cron_trigger(schedule.cron_expression or "", schedule.timezone)
    except KeyError as exc:
        raise ValueError(f"Unknown timezone '{schedule.timezone}'") from exc


def compute_next_sync_at(
    schedule: SyncSchedule | dict[str, Any] | None,
    now: datetime | None = None,
) -> datetime | None:
    """Return the next time a scheduled sync is due, or None when not scheduled."""
    if schedule is None:
        return None
    if not isinstance(schedule, SyncSchedule):
        schedule = SyncSchedule.model_validate(schedule)
    if not schedule.enabled:
        return None

    now = now or datetime.now(UTC)
    if schedule.type == "interval" and schedule.interval:
        return now + timedelta(minutes=schedule.interval)
    if schedule.type == "cron" and schedule.cron_expression:
        trigger = build_cron_trigger(schedule.cron_expression, schedule.timezone)
        fire_time = trigger.get_next_fire_time(None, now)
        return fire_time.astimezone(UTC) if fire_time else None
    return None
