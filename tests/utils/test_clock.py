#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Tests for the clock helpers
"""

import unittest
from datetime import datetime, timedelta, timezone

from medroute.utils.clock import as_local, local_now, utc_now


class TestClock(unittest.TestCase):
    """Test cases for the default clocks"""

    def test_utc_now_is_utc(self):
        self.assertEqual(utc_now().utcoffset(), timedelta(0))

    def test_local_now_is_aware(self):
        self.assertIsNotNone(local_now().tzinfo)
        self.assertLess(abs(local_now() - utc_now()), timedelta(seconds=5))

    def test_naive_keeps_wall_clock_time(self):
        naive = datetime(2024, 1, 15, 8, 30)
        converted = as_local(naive)
        self.assertIsNotNone(converted.tzinfo)
        self.assertEqual(converted.replace(tzinfo=None), naive)

    def test_aware_is_same_instant(self):
        aware = datetime(2024, 1, 15, 8, 30, tzinfo=timezone.utc)
        self.assertEqual(as_local(aware), aware)


if __name__ == "__main__":
    unittest.main()
