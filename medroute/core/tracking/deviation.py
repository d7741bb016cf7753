"""
Route deviation detection.

A location sample deviates when it is too far from every planned route vertex,
when its heading differs too much from the planned heading, or when the trip is
running too far behind its planned duration. All thresholds are strict.
"""

from datetime import datetime, timedelta
from typing import Optional, Union

from medroute.config import TrackingSettings
from medroute.core.models import (
    AlertSeverity,
    DeviationCheck,
    ExpectedArrival,
    Location,
    LocationSample,
    PlannedRoute,
)
from medroute.utils.geo import (
    angular_difference,
    distance_meters,
    min_distance_meters,
    normalize_angle,
    round_half_up,
)


def detect_deviation(
    sample: LocationSample,
    route: PlannedRoute,
    start_time: datetime,
    now: datetime,
    settings: Optional[TrackingSettings] = None,
) -> DeviationCheck:
    """
    Compare a location sample against the planned route.

    Args:
        sample: Current position report
        route: Planned route of the trip
        start_time: When the trip started
        now: Current time
        settings: Thresholds; defaults when unset

    Returns:
        DeviationCheck with every matched reason
    """
    settings = settings or TrackingSettings()
    check = DeviationCheck()

    off_route = min_distance_meters(sample, route.coordinates)
    if off_route is not None:
        check.distance_from_route_m = off_route
        if off_route > settings.off_route_threshold_m:
            check.is_deviating = True
            check.reasons.append(f"Off route by {int(round_half_up(off_route))}m")

    if route.heading is not None and sample.heading is not None:
        if settings.heading_mode == "smallest":
            heading_diff = angular_difference(sample.heading, route.heading)
        else:
            # clockwise offset in [0, 360), so 350 against 10 reads as 340
            heading_diff = normalize_angle(sample.heading - route.heading)
        check.deviation_angle_deg = heading_diff
        if heading_diff > settings.heading_threshold_deg:
            check.is_deviating = True
            check.reasons.append(f"Heading deviation: {int(round_half_up(heading_diff))}°")

    planned = route.duration_in_traffic_minutes
    if planned is None:
        planned = settings.default_planned_duration_minutes
    scheduled_arrival = start_time + timedelta(minutes=planned)
    if now > scheduled_arrival:
        check.delay_minutes = (now - scheduled_arrival).total_seconds() / 60.0
        if check.delay_minutes > settings.delay_threshold_minutes:
            check.is_deviating = True
            check.reasons.append(
                f"{int(round_half_up(check.delay_minutes))} minutes behind schedule"
            )

    return check


def alert_severity(
    check: DeviationCheck, settings: Optional[TrackingSettings] = None
) -> AlertSeverity:
    """High above 500 m or 10 min late, medium above 300 m or 5 min late, else low."""
    settings = settings or TrackingSettings()
    if (
        check.distance_from_route_m > settings.high_distance_m
        or check.delay_minutes > settings.high_delay_minutes
    ):
        return AlertSeverity.HIGH
    if (
        check.distance_from_route_m > settings.medium_distance_m
        or check.delay_minutes > settings.medium_delay_minutes
    ):
        return AlertSeverity.MEDIUM
    return AlertSeverity.LOW


def expected_arrival(
    position: Union[Location, LocationSample],
    destination: Location,
    now: datetime,
    speed_kmh: float = 40.0,
) -> ExpectedArrival:
    """Straight-line arrival estimate at a fixed average speed."""
    distance = distance_meters(position, destination)
    minutes = int(round_half_up(distance / 1000 / speed_kmh * 60))
    return ExpectedArrival(
        estimated_distance_meters=distance,
        estimated_time_minutes=minutes,
        estimated_arrival=now + timedelta(minutes=minutes),
    )
