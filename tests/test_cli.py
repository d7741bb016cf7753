#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Tests for the command line interface
"""

import os
import tempfile
import unittest
from unittest.mock import patch

from typer.testing import CliRunner

from medroute.main import app

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
HOSPITALS = os.path.join(ROOT, "data", "sample_hospitals.json")
TRIP = os.path.join(ROOT, "data", "sample_trip.json")
SETTINGS = os.path.join(ROOT, "config", "settings.yaml")


@patch("medroute.main.configure_logging")
class TestCli(unittest.TestCase):
    """Test cases for the typer commands"""

    def setUp(self):
        self.runner = CliRunner()

    def test_recommend(self, _logging):
        result = self.runner.invoke(
            app,
            [
                "recommend",
                "--hospitals", HOSPITALS,
                "--lat", "28.6139",
                "--lon", "77.2090",
                "--severity", "critical",
                "--condition", "stroke",
                "--specialty", "neurology",
                "--config", SETTINGS,
            ],
        )
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("Destination", result.output)
        self.assertIn("HOSP-", result.output)

    def test_rank(self, _logging):
        result = self.runner.invoke(
            app,
            ["rank", "--hospitals", HOSPITALS, "--lat", "28.6139", "--lon", "77.2090",
             "--condition", "fracture", "--config", SETTINGS],
        )
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("Internal Ranking", result.output)

    def test_simulate_trip(self, _logging):
        result = self.runner.invoke(
            app,
            ["simulate-trip", "--hospitals", HOSPITALS, "--trip", TRIP, "--config", SETTINGS],
        )
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("TRIP-0001", result.output)
        self.assertIn("Audit chain valid: True", result.output)

    def test_verify_empty_ledger(self, _logging):
        result = self.runner.invoke(app, ["verify-audit", "--config", SETTINGS])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("0 entries", result.output)

    def test_export_rejects_unknown_format(self, _logging):
        result = self.runner.invoke(app, ["export-audit", "--format", "xml", "--config", SETTINGS])
        self.assertEqual(result.exit_code, 1)

    def test_export_csv_header(self, _logging):
        result = self.runner.invoke(app, ["export-audit", "--format", "csv", "--config", SETTINGS])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertTrue(result.output.startswith("ID,Timestamp,Event Kind"))

    def test_invalid_hospital_file(self, _logging):
        handle = tempfile.NamedTemporaryFile("w", suffix=".json", delete=False)
        with handle:
            handle.write("not json")
        self.addCleanup(os.remove, handle.name)

        result = self.runner.invoke(
            app,
            ["recommend", "--hospitals", handle.name, "--lat", "28.6", "--lon", "77.2",
             "--condition", "stroke", "--config", SETTINGS],
        )
        self.assertEqual(result.exit_code, 1)
        self.assertIn("Error loading hospital file", result.output)

    def test_missing_hospital_file(self, _logging):
        result = self.runner.invoke(
            app,
            ["recommend", "--hospitals", "/nonexistent/hospitals.json", "--lat", "28.6",
             "--lon", "77.2", "--condition", "stroke"],
        )
        self.assertEqual(result.exit_code, 2)


if __name__ == "__main__":
    unittest.main()
