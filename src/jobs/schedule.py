"""Cron schedule helpers built on APScheduler's CronTrigger."""

from datetime import datetime, timedelta, timezone

from apscheduler.triggers.cron import CronTrigger


def parse_cron(expression: str) -> CronTrigger:
    """Parse a five-field crontab expression (UTC).

    Raises:
        ValueError: If the expression is invalid
    """
    return CronTrigger.from_crontab(expression, timezone=timezone.utc)


def next_fire_time(expression: str, after: float) -> float:
    """Epoch seconds of the first fire time strictly after ``after``."""
    trigger = parse_cron(expression)
    now = datetime.fromtimestamp(after, tz=timezone.utc) + timedelta(microseconds=1)
    fire_time = trigger.get_next_fire_time(None, now)
    if fire_time is None:
        raise ValueError(f"Cron expression {expression!r} never fires")
    return fire_time.timestamp()
