"""
Typed detail payloads for each audit event kind.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from medroute.core.models import (
    CompositeScore,
    DeviationCheck,
    Location,
    LocationSample,
    PatientCondition,
    TripStats,
)


class CandidateSummary(BaseModel):
    hospital_id: str
    composite_score: int


class DecisionDetails(BaseModel):
    trip_id: Optional[str] = None
    hospital_id: str
    patient_condition: PatientCondition
    scores: CompositeScore
    alternatives: List[CandidateSummary] = Field(default_factory=list)
    candidate_count: int
    processing_time_ms: int


class NotificationDetails(BaseModel):
    trip_id: str
    hospital_id: str
    patient_info: Dict[str, Any]
    eta_minutes: int
    notified_at: datetime


class CrewAcknowledgmentDetails(BaseModel):
    trip_id: str
    vehicle_id: str
    hospital_id: Optional[str] = None
    confirmed: bool = True
    acknowledged_at: datetime


class LocationDetails(BaseModel):
    trip_id: str
    vehicle_id: str
    location: LocationSample


class DeviationDetails(BaseModel):
    trip_id: str
    vehicle_id: str
    alert_id: str
    severity: str
    deviation: DeviationCheck
    location_at_detection: LocationSample
    resolved: bool = False
    resolution: Optional[Dict[str, Any]] = None


class CompletionDetails(BaseModel):
    trip_id: str
    vehicle_id: str
    hospital_id: Optional[str] = None
    trip_stats: TripStats
    actual_path: List[Location] = Field(default_factory=list)
    expected_path: List[Location] = Field(default_factory=list)
    started_at: datetime
    ended_at: Optional[datetime] = None
