"""
Geographic helpers shared by the travel estimator, optimizer and trip monitor.

This module provides great-circle distance, initial bearing and angle helpers.
Inputs are validated Location objects; out-of-range coordinates are rejected
by the model layer before they reach these functions.
"""

import math
from typing import Iterable, Optional, Sequence, Union

from medroute.core.models import Location, LocationSample

# Earth radius in kilometers
EARTH_RADIUS_KM = 6371.0

Point = Union[Location, LocationSample]


def distance_km(loc1: Point, loc2: Point) -> float:
    """
    Calculate the distance between two locations using the Haversine formula.

    Args:
        loc1: First location
        loc2: Second location

    Returns:
        Distance in kilometers
    """
    lat1 = math.radians(loc1.latitude)
    lon1 = math.radians(loc1.longitude)
    lat2 = math.radians(loc2.latitude)
    lon2 = math.radians(loc2.longitude)

    dlon = lon2 - lon1
    dlat = lat2 - lat1

    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def distance_meters(loc1: Point, loc2: Point) -> float:
    """Distance between two locations in meters."""
    return distance_km(loc1, loc2) * 1000.0


def normalize_angle(degrees: float) -> float:
    """Normalize an angle into [0, 360)."""
    result = degrees % 360.0
    # -1e-15 % 360 gives 360.0 in floating point
    if result >= 360.0:
        result = 0.0
    return result


def bearing(loc1: Point, loc2: Point) -> float:
    """
    Calculate the initial compass heading from loc1 to loc2.

    Args:
        loc1: Start location
        loc2: End location

    Returns:
        Heading in degrees, in [0, 360)
    """
    lat1 = math.radians(loc1.latitude)
    lat2 = math.radians(loc2.latitude)
    dlon = math.radians(loc2.longitude - loc1.longitude)

    y = math.sin(dlon) * math.cos(lat2)
    x = math.cos(lat1) * math.sin(lat2) - math.sin(lat1) * math.cos(lat2) * math.cos(
        dlon
    )
    return normalize_angle(math.degrees(math.atan2(y, x)))


def angular_difference(heading1: float, heading2: float) -> float:
    """Smallest absolute difference between two headings, in [0, 180]."""
    diff = normalize_angle(heading1 - heading2)
    return min(diff, 360.0 - diff)


def path_length_meters(points: Sequence[Point]) -> float:
    """Sum of great-circle distances between consecutive points, in meters."""
    total = 0.0
    for i in range(1, len(points)):
        total += distance_meters(points[i - 1], points[i])
    return total


def min_distance_meters(point: Point, vertices: Iterable[Point]) -> Optional[float]:
    """
    Minimum distance from a point to any vertex of a route.

    Returns None when the route has no vertices.
    """
    distances = [distance_meters(point, vertex) for vertex in vertices]
    if not distances:
        return None
    return min(distances)


def round_half_up(value: float, ndigits: int = 0) -> float:
    """
    Round half away from zero for positive values.

    Python's round() uses banker's rounding; scores and durations here round
    0.5 upwards.
    """
    factor = 10 ** ndigits
    return math.floor(value * factor + 0.5) / factor
