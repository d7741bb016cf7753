#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Tests for Travel Time Estimator

This module tests travel time estimation: time-of-day conditions, caching,
the distance-only fallback, future traffic predictions and the concurrent
multi-destination lookup.
"""

import unittest
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

from medroute.config import TravelSettings
from medroute.core.models import Location, RouteGeometry, TrafficCondition, VehicleClass
from medroute.utils.transport.cache import TTLCache
from medroute.utils.transport.estimator import TravelEstimator
from medroute.utils.clock import as_local
from medroute.utils.transport.route_source import RouteSource


class FixedClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


class TestTravelEstimator(unittest.TestCase):
    """Test cases for the TravelEstimator class"""

    def setUp(self):
        # A Monday at 22:00, light traffic
        self.clock = FixedClock(datetime(2024, 1, 15, 22, 0))
        self.estimator = TravelEstimator(TravelSettings(), clock=self.clock)
        self.origin = Location(latitude=28.6139, longitude=77.2090)
        self.destination = Location(latitude=28.6184, longitude=77.3720)

    def test_light_traffic_estimate(self):
        """Light traffic raises the base speed and ambulances get priority"""
        estimate = self.estimator.get_travel_time(self.origin, self.destination)
        self.assertEqual(estimate.traffic_condition, TrafficCondition.LIGHT)
        self.assertEqual(estimate.source, "heuristic")
        self.assertGreater(estimate.distance_km, 15.5)
        self.assertLess(estimate.distance_km, 16.5)
        # 48 km/h base, 1.2 * 1.15 multiplier
        self.assertEqual(estimate.duration_minutes, 20)
        self.assertEqual(estimate.duration_in_traffic_minutes, 14)
        self.assertEqual(estimate.speed_average_kmh, 66)
        self.assertEqual(len(estimate.route.coordinates), 2)

    def test_rush_hour_is_slower(self):
        self.clock.now = datetime(2024, 1, 15, 8, 30)
        estimate = self.estimator.get_travel_time(self.origin, self.destination)
        self.assertEqual(estimate.traffic_condition, TrafficCondition.HEAVY)
        self.assertGreater(estimate.duration_in_traffic_minutes, 30)

    def test_standard_vehicle_is_slower_than_ambulance(self):
        ambulance = self.estimator.get_travel_time(self.origin, self.destination)
        standard = self.estimator.get_travel_time(
            self.origin, self.destination, VehicleClass.STANDARD
        )
        self.assertGreater(
            standard.duration_in_traffic_minutes, ambulance.duration_in_traffic_minutes
        )

    def test_result_is_cached(self):
        """A second lookup within the TTL returns the same estimate object"""
        first = self.estimator.get_travel_time(self.origin, self.destination)
        self.clock.now = datetime(2024, 1, 15, 8, 30)
        second = self.estimator.get_travel_time(self.origin, self.destination)
        self.assertIs(first, second)
        self.assertEqual(self.estimator.cache_stats()["hits"], 1)

    def test_cache_key_rounds_coordinates(self):
        first = self.estimator.get_travel_time(self.origin, self.destination)
        nudged = Location(latitude=28.6139000001, longitude=77.2090)
        self.assertIs(self.estimator.get_travel_time(nudged, self.destination), first)

    def test_expired_entries_are_swept(self):
        ticks = [0.0]
        cache = TTLCache(ttl_seconds=300, clock=lambda: ticks[0])
        estimator = TravelEstimator(TravelSettings(), cache=cache, clock=self.clock)
        estimator.get_travel_time(self.origin, self.destination)
        ticks[0] = 301.0
        self.assertEqual(estimator.sweep_cache(), 1)

    def test_fallback_on_failure(self):
        """A failing route source yields an uncached distance-only estimate"""
        source = MagicMock(spec=RouteSource)
        source.route.side_effect = RuntimeError("router down")
        estimator = TravelEstimator(TravelSettings(), route_source=source, clock=self.clock)

        estimate = estimator.get_travel_time(self.origin, self.destination)

        self.assertEqual(estimate.source, "fallback")
        self.assertEqual(estimate.traffic_condition, TrafficCondition.UNKNOWN)
        # 15.9 km at 40 km/h is 24 minutes, 20% traffic allowance on top
        self.assertEqual(estimate.duration_minutes, 24)
        self.assertEqual(estimate.duration_in_traffic_minutes, 29)
        self.assertEqual(len(estimator.cache), 0)

    def test_fallback_is_stamped_with_injected_clock(self):
        source = MagicMock(spec=RouteSource)
        source.route.side_effect = RuntimeError("router down")
        estimator = TravelEstimator(TravelSettings(), route_source=source, clock=self.clock)

        estimate = estimator.get_travel_time(self.origin, self.destination)

        self.assertEqual(estimate.source, "fallback")
        self.assertEqual(estimate.computed_at, as_local(self.clock.now))
        self.assertEqual(estimate.computed_at.year, 2024)

    def test_default_clock_is_timezone_aware(self):
        estimate = TravelEstimator(TravelSettings()).get_travel_time(self.origin, self.destination)
        self.assertIsNotNone(estimate.computed_at.tzinfo)

    def test_route_source_geometry_is_used(self):
        waypoint = Location(latitude=28.62, longitude=77.30)
        source = MagicMock(spec=RouteSource)
        source.name = "osrm"
        source.route.return_value = RouteGeometry(
            coordinates=[self.origin, waypoint, self.destination], heading=80
        )
        estimator = TravelEstimator(TravelSettings(), route_source=source, clock=self.clock)

        estimate = estimator.get_travel_time(self.origin, self.destination)

        self.assertEqual(estimate.source, "osrm")
        self.assertEqual(estimate.route.coordinates[1], waypoint)

    def test_route_source_none_keeps_straight_line(self):
        source = MagicMock(spec=RouteSource)
        source.name = "osrm"
        source.route.return_value = None
        estimator = TravelEstimator(TravelSettings(), route_source=source, clock=self.clock)

        estimate = estimator.get_travel_time(self.origin, self.destination)

        self.assertEqual(estimate.source, "heuristic")
        self.assertEqual(len(estimate.route.coordinates), 2)


class TestPredictedTraffic(unittest.TestCase):
    """Test cases for future traffic predictions"""

    def setUp(self):
        self.now = datetime(2024, 1, 15, 22, 0)
        self.estimator = TravelEstimator(TravelSettings(), clock=lambda: self.now)
        self.origin = Location(latitude=28.6139, longitude=77.2090)
        self.destination = Location(latitude=28.5672, longitude=77.2100)

    def test_confidence_decays_per_hour(self):
        prediction = self.estimator.get_predicted_traffic(
            self.origin, self.destination, self.now + timedelta(hours=2)
        )
        self.assertAlmostEqual(prediction.confidence, 0.8)

    def test_confidence_floor(self):
        prediction = self.estimator.get_predicted_traffic(
            self.origin, self.destination, self.now + timedelta(hours=9)
        )
        self.assertEqual(prediction.confidence, 0.5)

    def test_uses_condition_at_future_time(self):
        # Tuesday 08:00 is rush hour
        future = datetime(2024, 1, 16, 8, 0)
        prediction = self.estimator.get_predicted_traffic(self.origin, self.destination, future)
        self.assertEqual(prediction.traffic_condition, TrafficCondition.HEAVY)
        self.assertEqual(prediction.predicted_for, as_local(future))
        self.assertEqual(prediction.predicted_for.hour, 8)

    def test_past_time_uses_current_estimate(self):
        past = self.now - timedelta(hours=1)
        prediction = self.estimator.get_predicted_traffic(self.origin, self.destination, past)
        self.assertEqual(prediction.confidence, 1.0)
        self.assertEqual(prediction.traffic_condition, TrafficCondition.LIGHT)

    def test_aware_future_with_naive_clock(self):
        future = as_local(self.now + timedelta(hours=2)).astimezone(timezone.utc)
        prediction = self.estimator.get_predicted_traffic(self.origin, self.destination, future)
        self.assertAlmostEqual(prediction.confidence, 0.8)


class TestPredictedTrafficDefaultClock(unittest.TestCase):
    """Test cases for predictions against the wall clock"""

    def setUp(self):
        self.estimator = TravelEstimator(TravelSettings())
        self.origin = Location(latitude=28.6139, longitude=77.2090)
        self.destination = Location(latitude=28.5672, longitude=77.2100)

    def test_aware_utc_future(self):
        future = datetime.now(timezone.utc) + timedelta(hours=3)
        prediction = self.estimator.get_predicted_traffic(self.origin, self.destination, future)
        self.assertAlmostEqual(prediction.confidence, 0.7, places=3)
        self.assertIsNotNone(prediction.computed_at.tzinfo)
        self.assertEqual(prediction.predicted_for, future)

    def test_naive_future_is_read_as_local(self):
        future = datetime.now() + timedelta(hours=2)
        prediction = self.estimator.get_predicted_traffic(self.origin, self.destination, future)
        self.assertAlmostEqual(prediction.confidence, 0.8, places=3)


class TestMultipleTravelTimes(unittest.TestCase):
    """Test cases for concurrent multi-destination estimates"""

    def test_results_keyed_in_input_order(self):
        estimator = TravelEstimator(
            TravelSettings(), clock=lambda: datetime(2024, 1, 15, 12, 0)
        )
        origin = Location(latitude=28.6139, longitude=77.2090)
        destinations = [
            ("far", Location(latitude=28.6184, longitude=77.3720)),
            ("near", Location(latitude=28.6000, longitude=77.2100)),
        ]

        results = estimator.get_multiple_travel_times(origin, destinations)

        self.assertEqual(list(results.keys()), ["far", "near"])
        self.assertGreater(results["far"].distance_km, results["near"].distance_km)

    def test_empty_destinations(self):
        estimator = TravelEstimator(TravelSettings())
        self.assertEqual(
            estimator.get_multiple_travel_times(Location(latitude=0, longitude=0), []), {}
        )


if __name__ == "__main__":
    unittest.main()
