#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Tests for the Travel Estimate Cache
"""

import unittest

from medroute.utils.transport.cache import TTLCache


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


class TestTTLCache(unittest.TestCase):
    """Test cases for the TTL cache"""

    def setUp(self):
        self.clock = FakeClock()
        self.cache = TTLCache(ttl_seconds=300, clock=self.clock)

    def test_hit_within_ttl(self):
        self.cache.set("k", "v")
        self.clock.now = 299
        self.assertEqual(self.cache.get("k"), "v")

    def test_expired_at_ttl(self):
        """An entry exactly ttl seconds old is expired and evicted on read"""
        self.cache.set("k", "v")
        self.clock.now = 300
        self.assertIsNone(self.cache.get("k"))
        self.assertEqual(len(self.cache), 0)

    def test_missing_key(self):
        self.assertIsNone(self.cache.get("missing"))

    def test_sweep_removes_only_expired(self):
        self.cache.set("old", 1)
        self.clock.now = 200
        self.cache.set("new", 2)
        self.clock.now = 350
        self.assertEqual(self.cache.sweep(), 1)
        self.assertEqual(self.cache.get("new"), 2)
        self.assertIsNone(self.cache.get("old"))

    def test_stats(self):
        self.cache.set("k", "v")
        self.cache.get("k")
        self.cache.get("other")
        stats = self.cache.stats()
        self.assertEqual(stats["size"], 1)
        self.assertEqual(stats["hits"], 1)
        self.assertEqual(stats["misses"], 1)
        self.assertEqual(stats["hit_rate"], 50.0)
        self.assertEqual(stats["ttl_seconds"], 300)

    def test_clear(self):
        self.cache.set("a", 1)
        self.cache.set("b", 2)
        self.cache.clear()
        self.assertEqual(len(self.cache), 0)


if __name__ == "__main__":
    unittest.main()
