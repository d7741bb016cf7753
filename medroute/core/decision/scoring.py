"""
Sub-score functions for hospital ranking.

Each function maps one aspect of a candidate hospital to a score in [0, 100].
The composite is the weighted sum of the five sub-scores.
"""

from typing import Dict, List, Optional

from medroute.config import ScoringWeights
from medroute.core.models import (
    CompositeScore,
    EquipmentKind,
    ForecastPoint,
    HospitalSnapshot,
    LoadLevel,
    PatientCondition,
    ReadinessForecast,
    Severity,
    TravelEstimate,
)
from medroute.utils.geo import round_half_up

CRITICAL_SEVERITIES = {Severity.SEVERE, Severity.CRITICAL}

CONDITION_EQUIPMENT: Dict[str, List[EquipmentKind]] = {
    "cardiac-arrest": [EquipmentKind.CATH_LAB, EquipmentKind.BLOOD_BANK],
    "stroke": [EquipmentKind.CT_SCAN, EquipmentKind.MRI],
    "trauma": [EquipmentKind.XRAY, EquipmentKind.CT_SCAN, EquipmentKind.BLOOD_BANK],
    "accident": [EquipmentKind.XRAY, EquipmentKind.CT_SCAN, EquipmentKind.BLOOD_BANK],
    "respiratory": [EquipmentKind.VENTILATOR, EquipmentKind.OXYGEN_SUPPLY],
    "burns": [EquipmentKind.BLOOD_BANK],
    "poisoning": [EquipmentKind.BLOOD_BANK],
    "seizure": [EquipmentKind.CT_SCAN, EquipmentKind.MRI],
}

LOAD_SCORES = {
    LoadLevel.LOW: 100,
    LoadLevel.MODERATE: 75,
    LoadLevel.HIGH: 50,
    LoadLevel.CRITICAL: 25,
}
UNKNOWN_LOAD_SCORE = 60

# (max minutes, score) steps for travel time
TRAVEL_STEPS = [(10, 100), (15, 90), (20, 80), (30, 70), (45, 60), (60, 50)]


def required_equipment(condition: str) -> List[EquipmentKind]:
    return CONDITION_EQUIPMENT.get(condition, [])


def availability_score(point: Optional[ForecastPoint], severity: Severity) -> int:
    """
    Score predicted availability from the nearest forecast point.

    Severe and critical patients are scored on ICU beds, others on general beds.
    Missing predictions score 50.
    """
    if point is None:
        return 50
    if severity in CRITICAL_SEVERITIES:
        icu = point.predicted_icu
        return int(round_half_up(100 * icu / (icu + 2)))
    beds = point.predicted_beds
    return int(round_half_up(min(100, 100 * beds / (beds + 5))))


def specialist_score(hospital: HospitalSnapshot, condition: PatientCondition) -> int:
    if condition.required_specialty is None:
        return 70
    if hospital.has_available_specialist(condition.required_specialty):
        return 100
    return 30


def travel_score(duration_minutes: float) -> int:
    """Step score of the traffic-adjusted travel time; shorter is better."""
    for limit, score in TRAVEL_STEPS:
        if duration_minutes <= limit:
            return score
    return int(max(20, 70 - (duration_minutes - 45)))


def equipment_score(hospital: HospitalSnapshot, condition: PatientCondition) -> int:
    required = required_equipment(condition.condition)
    if not required:
        return 80
    matched = sum(1 for kind in required if hospital.has_equipment(kind))
    return int(round_half_up(100 * matched / len(required)))


def load_score(load: Optional[LoadLevel]) -> int:
    if load is None:
        return UNKNOWN_LOAD_SCORE
    return LOAD_SCORES.get(load, UNKNOWN_LOAD_SCORE)


def composite(
    availability: float,
    specialist: float,
    travel: float,
    equipment: float,
    load: float,
    weights: ScoringWeights,
) -> int:
    """Weighted sum of the sub-scores, rounded half up."""
    total = (
        availability * weights.availability
        + specialist * weights.specialist
        + travel * weights.travel
        + equipment * weights.equipment
        + load * weights.load
    )
    return int(round_half_up(total))


def score_hospital(
    hospital: HospitalSnapshot,
    condition: PatientCondition,
    forecast: ReadinessForecast,
    travel: TravelEstimate,
    weights: Optional[ScoringWeights] = None,
) -> CompositeScore:
    """
    Calculate all sub-scores and the composite for one hospital.

    Args:
        hospital: Candidate hospital
        condition: Patient condition
        forecast: Readiness forecast for the hospital
        travel: Travel estimate from the patient to the hospital
        weights: Composite weights; defaults when unset

    Returns:
        CompositeScore
    """
    weights = weights or ScoringWeights()
    point = forecast.first
    scores = {
        "availability_score": availability_score(point, condition.severity),
        "specialist_score": specialist_score(hospital, condition),
        "travel_score": travel_score(travel.duration_in_traffic_minutes),
        "equipment_score": equipment_score(hospital, condition),
        "load_score": load_score(hospital.current_load),
    }
    return CompositeScore(
        **scores,
        composite_score=composite(
            scores["availability_score"],
            scores["specialist_score"],
            scores["travel_score"],
            scores["equipment_score"],
            scores["load_score"],
            weights,
        ),
        prediction_confidence=point.confidence if point else 0.5,
    )
