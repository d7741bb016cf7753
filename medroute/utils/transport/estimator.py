"""
Travel time estimator for MedRoute.

This module estimates distance and duration between an origin and a destination
using great-circle distance and a time-of-day traffic heuristic. Results are
cached for a short window, and failures fall back to a distance-only estimate
so callers never see an error from this layer.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Callable, Dict, Optional, Sequence, Tuple

from medroute.config import TravelSettings
from medroute.core.models import (
    Location,
    RouteGeometry,
    TrafficCondition,
    TrafficPrediction,
    TravelEstimate,
    VehicleClass,
)
from medroute.utils.clock import as_local, local_now
from medroute.utils.geo import distance_km, round_half_up
from medroute.utils.transport.cache import TTLCache
from medroute.utils.transport.route_source import RouteSource, straight_line_route
from medroute.utils.transport.traffic import (
    condition_for_hour,
    predicted_condition,
    speed_profile,
    travel_minutes,
)

logger = logging.getLogger(__name__)


class TravelEstimator:
    """
    Estimates travel times between locations.

    Args:
        settings: Travel settings (speeds, cache TTL, precision)
        route_source: Optional geometry source; straight line when unset
        cache: Optional cache instance, mainly for tests
        clock: Callable returning the current time; naive values are read as local
    """

    def __init__(
        self,
        settings: Optional[TravelSettings] = None,
        route_source: Optional[RouteSource] = None,
        cache: Optional[TTLCache] = None,
        clock: Callable[[], datetime] = local_now,
    ):
        self.settings = settings or TravelSettings()
        self.route_source = route_source
        self.cache = cache if cache is not None else TTLCache(self.settings.cache_ttl_seconds)
        self._clock = clock

    def _cache_key(
        self, origin: Location, destination: Location, vehicle_class: VehicleClass
    ) -> Tuple:
        p = self.settings.cache_precision
        return (
            round(origin.latitude, p),
            round(origin.longitude, p),
            round(destination.latitude, p),
            round(destination.longitude, p),
            vehicle_class.value,
        )

    def _route(self, origin: Location, destination: Location) -> Tuple[RouteGeometry, str]:
        if self.route_source is not None:
            geometry = self.route_source.route(origin, destination)
            if geometry is not None:
                return geometry, getattr(self.route_source, "name", "heuristic")
        return straight_line_route(origin, destination), "heuristic"

    def _build_estimate(
        self,
        origin: Location,
        destination: Location,
        condition: TrafficCondition,
        vehicle_class: VehicleClass,
    ) -> Tuple[float, int, int, int]:
        distance = distance_km(origin, destination)
        base_speed, multiplier = speed_profile(
            condition,
            self.settings.base_speed_kmh,
            vehicle_class,
            self.settings.priority_multiplier,
        )
        duration, in_traffic, speed = travel_minutes(distance, base_speed, multiplier)
        return distance, duration, in_traffic, speed

    def get_travel_time(
        self,
        origin: Location,
        destination: Location,
        vehicle_class: VehicleClass = VehicleClass.AMBULANCE,
    ) -> TravelEstimate:
        """
        Estimate travel time from origin to destination at the current time.

        Args:
            origin: Start location
            destination: End location
            vehicle_class: Vehicle class; ambulances get a priority speed factor

        Returns:
            TravelEstimate. Never raises; falls back to a distance-only estimate.
        """
        key = self._cache_key(origin, destination, vehicle_class)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        try:
            now = as_local(self._clock())
            condition = condition_for_hour(now.hour)
            distance, duration, in_traffic, speed = self._build_estimate(
                origin, destination, condition, vehicle_class
            )
            route, source = self._route(origin, destination)
            estimate = TravelEstimate(
                distance_km=round_half_up(distance, 1),
                duration_minutes=duration,
                duration_in_traffic_minutes=in_traffic,
                traffic_condition=condition,
                speed_average_kmh=speed,
                route=route,
                computed_at=now,
                source=source,
            )
        except Exception as e:
            logger.warning(
                f"Travel estimate failed for {origin} -> {destination}, using fallback: {e}"
            )
            return self._fallback(origin, destination)

        self.cache.set(key, estimate)
        return estimate

    def _fallback(self, origin: Location, destination: Location) -> TravelEstimate:
        """Distance-only estimate at the base speed with a 20% traffic allowance."""
        distance = distance_km(origin, destination)
        duration = int(round_half_up(distance / self.settings.base_speed_kmh * 60))
        return TravelEstimate(
            distance_km=round_half_up(distance, 1),
            duration_minutes=duration,
            duration_in_traffic_minutes=int(
                round_half_up(duration * self.settings.fallback_inflation)
            ),
            traffic_condition=TrafficCondition.UNKNOWN,
            speed_average_kmh=self.settings.base_speed_kmh,
            route=straight_line_route(origin, destination),
            computed_at=as_local(self._clock()),
            source="fallback",
        )

    def get_predicted_traffic(
        self, origin: Location, destination: Location, future: datetime
    ) -> TrafficPrediction:
        """
        Estimate travel time for a future departure.

        Args:
            origin: Start location
            destination: End location
            future: Planned departure time, naive (local) or timezone-aware

        Returns:
            TrafficPrediction with confidence decaying 0.1 per hour ahead,
            floored at 0.5
        """
        now = as_local(self._clock())
        future = as_local(future)
        hours_ahead = (future - now).total_seconds() / 3600.0
        if hours_ahead <= 0:
            current = self.get_travel_time(origin, destination)
            return TrafficPrediction(
                **current.model_dump(), predicted_for=future, confidence=1.0
            )

        condition = predicted_condition(future)
        distance, duration, in_traffic, speed = self._build_estimate(
            origin, destination, condition, VehicleClass.AMBULANCE
        )
        return TrafficPrediction(
            distance_km=round_half_up(distance, 1),
            duration_minutes=duration,
            duration_in_traffic_minutes=in_traffic,
            traffic_condition=condition,
            speed_average_kmh=speed,
            route=straight_line_route(origin, destination),
            computed_at=now,
            predicted_for=future,
            confidence=max(0.5, 1 - hours_ahead * 0.1),
        )

    def get_multiple_travel_times(
        self,
        origin: Location,
        destinations: Sequence[Tuple[str, Location]],
        vehicle_class: VehicleClass = VehicleClass.AMBULANCE,
    ) -> Dict[str, TravelEstimate]:
        """
        Estimate travel times to several destinations concurrently.

        Args:
            origin: Start location
            destinations: (destination_id, location) pairs

        Returns:
            Mapping of destination id to estimate, in input order
        """
        if not destinations:
            return {}
        with ThreadPoolExecutor(max_workers=self.settings.max_workers) as pool:
            futures = [
                (dest_id, pool.submit(self.get_travel_time, origin, loc, vehicle_class))
                for dest_id, loc in destinations
            ]
            return {dest_id: future.result() for dest_id, future in futures}

    def sweep_cache(self) -> int:
        """Evict expired cache entries and return how many were removed."""
        return self.cache.sweep()

    def cache_stats(self) -> Dict:
        return self.cache.stats()
