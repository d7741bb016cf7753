"""
Traffic condition heuristics for travel time estimation.

This module provides a fixed time-of-day table standing in for a live traffic
feed, plus the speed factors applied for each traffic condition.
"""

import logging
from datetime import datetime
from typing import Tuple

from medroute.core.models import TrafficCondition, VehicleClass
from medroute.utils.geo import round_half_up

logger = logging.getLogger(__name__)

# Speed factor applied to the base speed for each condition
CONDITION_FACTORS = {
    TrafficCondition.LIGHT: 1.2,
    TrafficCondition.MODERATE: 1.0,
    TrafficCondition.HEAVY: 0.6,
}

PRIORITY_VEHICLES = {VehicleClass.AMBULANCE}


def condition_for_hour(hour: int) -> TrafficCondition:
    """
    Get the traffic condition for an hour of day on a weekday.

    Rush hours 7-9 and 17-19 are heavy, 10-16 moderate, everything else light.
    """
    if 7 <= hour <= 9 or 17 <= hour <= 19:
        return TrafficCondition.HEAVY
    if 9 <= hour <= 17:
        return TrafficCondition.MODERATE
    return TrafficCondition.LIGHT


def predicted_condition(when: datetime) -> TrafficCondition:
    """
    Get the expected traffic condition for a future time.

    Weekends are light between 10 and 16 and moderate otherwise; weekdays follow
    the rush-hour table.
    """
    if when.weekday() >= 5:
        if 10 <= when.hour <= 16:
            return TrafficCondition.LIGHT
        return TrafficCondition.MODERATE
    return condition_for_hour(when.hour)


def speed_profile(
    condition: TrafficCondition,
    base_speed_kmh: float,
    vehicle_class: VehicleClass = VehicleClass.AMBULANCE,
    priority_multiplier: float = 1.15,
) -> Tuple[float, float]:
    """
    Calculate the condition-adjusted base speed and the traffic multiplier.

    Args:
        condition: Traffic condition
        base_speed_kmh: Free-flow city speed
        vehicle_class: Vehicle class; priority vehicles move faster in traffic
        priority_multiplier: Extra factor for priority vehicles

    Returns:
        Tuple of (base_speed, multiplier)
    """
    factor = CONDITION_FACTORS.get(condition, 1.0)
    base_speed = base_speed_kmh * factor
    multiplier = factor
    if vehicle_class in PRIORITY_VEHICLES:
        multiplier *= priority_multiplier
    return base_speed, multiplier


def travel_minutes(
    distance_km: float, base_speed: float, multiplier: float
) -> Tuple[int, int, int]:
    """
    Calculate durations for a distance.

    Returns:
        Tuple of (duration, duration_in_traffic, average_speed), minutes and km/h
    """
    duration = int(round_half_up(distance_km / base_speed * 60))
    duration_in_traffic = int(round_half_up(distance_km / (base_speed * multiplier) * 60))
    speed_average = int(round_half_up(base_speed * multiplier))
    return duration, duration_in_traffic, speed_average
