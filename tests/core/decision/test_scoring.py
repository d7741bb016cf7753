#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Tests for Hospital Sub-Scores

This module tests the availability, specialist, travel, equipment and load
sub-scores and the weighted composite.
"""

import unittest
from itertools import product

from pydantic import ValidationError

from medroute.config import ScoringWeights
from medroute.core.decision.scoring import (
    availability_score,
    composite,
    equipment_score,
    load_score,
    required_equipment,
    score_hospital,
    specialist_score,
    travel_score,
)
from medroute.core.models import (
    EquipmentKind,
    ForecastPoint,
    HospitalSnapshot,
    LoadLevel,
    Location,
    PatientCondition,
    ReadinessForecast,
    ReadinessPoint,
    Severity,
    TrafficCondition,
    TravelEstimate,
)


def point(beds=0, icu=0, confidence=0.5):
    return ForecastPoint(
        horizon=1, predicted_beds=beds, predicted_icu=icu, confidence=confidence
    )


class TestAvailabilityScore(unittest.TestCase):
    """Test cases for the availability sub-score"""

    def test_missing_forecast_scores_fifty(self):
        self.assertEqual(availability_score(None, Severity.CRITICAL), 50)
        self.assertEqual(availability_score(None, Severity.MILD), 50)

    def test_critical_uses_icu(self):
        self.assertEqual(availability_score(point(beds=50, icu=2), Severity.CRITICAL), 50)
        self.assertEqual(availability_score(point(beds=50, icu=8), Severity.SEVERE), 80)
        self.assertEqual(availability_score(point(beds=50, icu=0), Severity.CRITICAL), 0)

    def test_non_critical_uses_beds(self):
        self.assertEqual(availability_score(point(beds=5, icu=0), Severity.MODERATE), 50)
        self.assertEqual(availability_score(point(beds=15, icu=0), Severity.MILD), 75)
        self.assertEqual(availability_score(point(beds=0, icu=9), Severity.MILD), 0)


class TestSpecialistScore(unittest.TestCase):
    """Test cases for the specialist sub-score"""

    def setUp(self):
        self.hospital = HospitalSnapshot(
            hospital_id="H1",
            name="City Hospital",
            location=Location(latitude=0, longitude=0),
            specialists=[
                {"specialty": "neurology", "available": True},
                {"specialty": "cardiology", "available": False},
            ],
        )

    def test_no_requirement(self):
        condition = PatientCondition(severity="mild", condition="burns")
        self.assertEqual(specialist_score(self.hospital, condition), 70)

    def test_available_specialist(self):
        condition = PatientCondition(
            severity="critical", condition="stroke", required_specialty="neurology"
        )
        self.assertEqual(specialist_score(self.hospital, condition), 100)

    def test_unavailable_specialist(self):
        condition = PatientCondition(
            severity="critical", condition="cardiac-arrest", required_specialty="cardiology"
        )
        self.assertEqual(specialist_score(self.hospital, condition), 30)


class TestTravelScore(unittest.TestCase):
    """Test cases for the travel time step function"""

    def test_steps(self):
        cases = {0: 100, 10: 100, 11: 90, 15: 90, 20: 80, 30: 70, 45: 60, 60: 50}
        for minutes, expected in cases.items():
            self.assertEqual(travel_score(minutes), expected, minutes)

    def test_tail_formula(self):
        """Beyond an hour: max(20, 70 - (minutes - 45))"""
        self.assertEqual(travel_score(61), 54)
        self.assertEqual(travel_score(80), 35)
        self.assertEqual(travel_score(200), 20)


class TestEquipmentAndLoad(unittest.TestCase):
    """Test cases for the equipment and load sub-scores"""

    def setUp(self):
        self.hospital = HospitalSnapshot(
            hospital_id="H1",
            name="City Hospital",
            location=Location(latitude=0, longitude=0),
            equipment={"ct_scan": True, "mri": False},
        )

    def test_required_equipment_table(self):
        self.assertEqual(
            required_equipment("stroke"), [EquipmentKind.CT_SCAN, EquipmentKind.MRI]
        )
        self.assertEqual(required_equipment("unknown-condition"), [])

    def test_partial_match(self):
        condition = PatientCondition(severity="severe", condition="stroke")
        self.assertEqual(equipment_score(self.hospital, condition), 50)

    def test_no_requirement_scores_eighty(self):
        condition = PatientCondition(severity="mild", condition="sprain")
        self.assertEqual(equipment_score(self.hospital, condition), 80)

    def test_load_mapping(self):
        self.assertEqual(load_score(LoadLevel.LOW), 100)
        self.assertEqual(load_score(LoadLevel.MODERATE), 75)
        self.assertEqual(load_score(LoadLevel.HIGH), 50)
        self.assertEqual(load_score(LoadLevel.CRITICAL), 25)
        self.assertEqual(load_score(None), 60)


class TestComposite(unittest.TestCase):
    """Test cases for the weighted composite"""

    def test_default_weights(self):
        weights = ScoringWeights()
        self.assertEqual(composite(100, 100, 100, 100, 100, weights), 100)
        # 15 + 14 + 15 + 12 + 6
        self.assertEqual(composite(50, 70, 60, 80, 60, weights), 62)

    def test_weights_must_sum_to_one(self):
        with self.assertRaises(ValidationError):
            ScoringWeights(availability=0.5)

    def test_negative_weight_rejected(self):
        with self.assertRaises(ValidationError):
            ScoringWeights(availability=-0.1, specialist=0.6)

    def test_monotonic_in_each_sub_score(self):
        """Raising any single sub-score never lowers the composite"""
        weights = ScoringWeights()
        levels = [0, 25, 50, 75, 100]
        for base in product([20, 60, 90], repeat=5):
            for index in range(5):
                previous = None
                for level in levels:
                    scores = list(base)
                    scores[index] = level
                    value = composite(*scores, weights)
                    if previous is not None:
                        self.assertGreaterEqual(value, previous)
                    previous = value


class TestScoreHospital(unittest.TestCase):
    """Test cases for scoring one hospital end to end"""

    def setUp(self):
        self.condition = PatientCondition(
            severity="critical", condition="stroke", required_specialty="neurology"
        )
        self.travel = TravelEstimate(
            distance_km=5.0,
            duration_minutes=10,
            duration_in_traffic_minutes=8,
            traffic_condition=TrafficCondition.LIGHT,
        )

    def _forecast(self, hospital_id, icu, confidence=0.9):
        return ReadinessForecast(
            hospital_id=hospital_id,
            predictions=[
                ReadinessPoint(
                    horizon=1,
                    predicted_beds=10,
                    predicted_icu=icu,
                    confidence=confidence,
                    bed_readiness=50,
                    icu_readiness=50,
                    composite_readiness=50,
                    confidence_level="high",
                )
            ],
        )

    def test_well_equipped_hospital(self):
        hospital = HospitalSnapshot(
            hospital_id="H2",
            name="Neuro Centre",
            location=Location(latitude=0, longitude=0),
            specialists=[{"specialty": "neurology", "available": True}],
            equipment={"ct_scan": True, "mri": True},
            current_load="low",
        )
        scores = score_hospital(
            hospital, self.condition, self._forecast("H2", icu=8), self.travel
        )
        self.assertEqual(scores.availability_score, 80)
        self.assertEqual(scores.specialist_score, 100)
        self.assertEqual(scores.travel_score, 100)
        self.assertEqual(scores.equipment_score, 100)
        self.assertEqual(scores.load_score, 100)
        # 24 + 20 + 25 + 15 + 10
        self.assertEqual(scores.composite_score, 94)
        self.assertEqual(scores.prediction_confidence, 0.9)

    def test_empty_forecast_scores_fifty_availability(self):
        hospital = HospitalSnapshot(
            hospital_id="H3",
            name="Unknown",
            location=Location(latitude=0, longitude=0),
        )
        scores = score_hospital(
            hospital, self.condition, ReadinessForecast(hospital_id="H3"), self.travel
        )
        self.assertEqual(scores.availability_score, 50)
        self.assertEqual(scores.prediction_confidence, 0.5)


if __name__ == "__main__":
    unittest.main()
