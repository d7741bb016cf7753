"""
Clock helpers.

Every default clock in MedRoute returns a timezone-aware datetime. Trip, alert
and audit times are kept in UTC. Traffic and capacity forecasts read the hour
of day, so they run on local time with the local offset attached.
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def local_now() -> datetime:
    return datetime.now().astimezone()


def as_local(value: datetime) -> datetime:
    """
    Convert a datetime to aware local time.

    Naive values are taken to be local already and keep their wall-clock time.
    """
    return value.astimezone()
