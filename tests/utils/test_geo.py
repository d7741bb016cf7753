#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Tests for Geographic Helpers

This module tests great-circle distance, bearings, angle helpers and the
half-up rounding used across scoring and tracking.
"""

import unittest

from medroute.core.models import Location, LocationSample
from medroute.utils.geo import (
    angular_difference,
    bearing,
    distance_km,
    distance_meters,
    min_distance_meters,
    normalize_angle,
    path_length_meters,
    round_half_up,
)


class TestDistance(unittest.TestCase):
    """Test cases for the haversine distance"""

    def setUp(self):
        self.connaught_place = Location(latitude=28.6139, longitude=77.2090)
        self.aiims = Location(latitude=28.5672, longitude=77.2100)
        self.noida = Location(latitude=28.6184, longitude=77.3720)

    def test_same_point_is_zero(self):
        """A point is zero distance from itself"""
        self.assertEqual(distance_km(self.aiims, self.aiims), 0.0)

    def test_known_distance(self):
        """Connaught Place to Noida Sector 62 is roughly 16 km"""
        d = distance_km(self.connaught_place, self.noida)
        self.assertGreater(d, 15.5)
        self.assertLess(d, 16.5)

    def test_symmetric(self):
        """Distance does not depend on direction"""
        self.assertAlmostEqual(
            distance_km(self.connaught_place, self.aiims),
            distance_km(self.aiims, self.connaught_place),
        )

    def test_meters(self):
        """distance_meters is distance_km scaled by 1000"""
        self.assertAlmostEqual(
            distance_meters(self.connaught_place, self.aiims),
            distance_km(self.connaught_place, self.aiims) * 1000,
        )

    def test_accepts_location_samples(self):
        """Location samples can be used wherever a location is expected"""
        sample = LocationSample(latitude=28.5672, longitude=77.2100, heading=90)
        self.assertEqual(distance_km(sample, self.aiims), 0.0)


class TestBearing(unittest.TestCase):
    """Test cases for headings and angle arithmetic"""

    def test_due_north(self):
        origin = Location(latitude=28.0, longitude=77.0)
        north = Location(latitude=29.0, longitude=77.0)
        self.assertAlmostEqual(bearing(origin, north), 0.0, places=6)

    def test_due_east(self):
        origin = Location(latitude=0.0, longitude=77.0)
        east = Location(latitude=0.0, longitude=78.0)
        self.assertAlmostEqual(bearing(origin, east), 90.0, places=6)

    def test_due_south_and_west(self):
        origin = Location(latitude=0.0, longitude=0.0)
        self.assertAlmostEqual(bearing(origin, Location(latitude=-1.0, longitude=0.0)), 180.0)
        self.assertAlmostEqual(bearing(origin, Location(latitude=0.0, longitude=-1.0)), 270.0)

    def test_normalize_angle(self):
        self.assertEqual(normalize_angle(370), 10)
        self.assertEqual(normalize_angle(-90), 270)
        self.assertEqual(normalize_angle(360), 0)

    def test_angular_difference_wraps(self):
        """350 and 10 degrees are 20 degrees apart, not 340"""
        self.assertEqual(angular_difference(350, 10), 20)
        self.assertEqual(angular_difference(10, 350), 20)
        self.assertEqual(angular_difference(90, 45), 45)
        self.assertEqual(angular_difference(0, 180), 180)


class TestPathHelpers(unittest.TestCase):
    """Test cases for path length and minimum vertex distance"""

    def test_path_length(self):
        a = Location(latitude=28.60, longitude=77.20)
        b = Location(latitude=28.61, longitude=77.20)
        c = Location(latitude=28.62, longitude=77.20)
        self.assertAlmostEqual(
            path_length_meters([a, b, c]),
            distance_meters(a, b) + distance_meters(b, c),
        )

    def test_path_length_single_point(self):
        self.assertEqual(path_length_meters([Location(latitude=1, longitude=1)]), 0.0)

    def test_min_distance_picks_nearest_vertex(self):
        point = Location(latitude=28.60, longitude=77.20)
        near = Location(latitude=28.601, longitude=77.20)
        far = Location(latitude=28.70, longitude=77.20)
        self.assertAlmostEqual(
            min_distance_meters(point, [far, near]), distance_meters(point, near)
        )

    def test_min_distance_without_vertices(self):
        """An empty route has no distance at all"""
        self.assertIsNone(min_distance_meters(Location(latitude=0, longitude=0), []))


class TestRoundHalfUp(unittest.TestCase):
    """Test cases for half-up rounding"""

    def test_half_rounds_up(self):
        self.assertEqual(round_half_up(2.5), 3)
        self.assertEqual(round_half_up(3.5), 4)
        self.assertEqual(round_half_up(0.5), 1)

    def test_decimal_places(self):
        self.assertEqual(round_half_up(1.25, 1), 1.3)
        self.assertEqual(round_half_up(0.6667, 2), 0.67)

    def test_below_half_rounds_down(self):
        self.assertEqual(round_half_up(2.49), 2)


if __name__ == "__main__":
    unittest.main()
