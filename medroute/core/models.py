"""
Defines the Pydantic data models used throughout the application.

These models give a clear, validated structure to hospital snapshots, patient
conditions, capacity forecasts, travel estimates, trip tracking sessions and
audit ledger entries.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

from medroute.utils.clock import local_now, utc_now

T = TypeVar("T")


class Location(BaseModel):
    """Represents a geographical location with latitude and longitude."""

    latitude: float = Field(
        ..., description="Latitude in decimal degrees.", ge=-90.0, le=90.0
    )
    longitude: float = Field(
        ..., description="Longitude in decimal degrees.", ge=-180.0, le=180.0
    )


class Severity(str, Enum):
    """Patient severity levels."""

    MILD = "mild"
    MODERATE = "moderate"
    SEVERE = "severe"
    CRITICAL = "critical"


class LoadLevel(str, Enum):
    """Qualitative hospital load."""

    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    CRITICAL = "critical"


class HospitalStatus(str, Enum):
    """Operational status of a hospital."""

    ACTIVE = "active"
    FULL = "full"
    EMERGENCY_ONLY = "emergency-only"
    INACTIVE = "inactive"


class Specialty(str, Enum):
    """Specialist services tracked per hospital."""

    CARDIOLOGY = "cardiology"
    NEUROLOGY = "neurology"
    ORTHOPEDICS = "orthopedics"
    GENERAL_SURGERY = "general-surgery"
    TRAUMA = "trauma"
    PEDIATRICS = "pediatrics"


class EquipmentKind(str, Enum):
    """Equipment a hospital may or may not have on site."""

    CT_SCAN = "ct_scan"
    MRI = "mri"
    XRAY = "xray"
    CATH_LAB = "cath_lab"
    BLOOD_BANK = "blood_bank"
    VENTILATOR = "ventilator"
    OXYGEN_SUPPLY = "oxygen_supply"


class TrafficCondition(str, Enum):
    """Qualitative traffic condition for a route."""

    LIGHT = "light"
    MODERATE = "moderate"
    HEAVY = "heavy"
    UNKNOWN = "unknown"


class VehicleClass(str, Enum):
    """Vehicle classes known to the travel estimator."""

    AMBULANCE = "ambulance"
    STANDARD = "standard"


class ConfidenceLevel(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class AlertSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class TripStatus(str, Enum):
    TRACKING = "tracking"
    COMPLETED = "completed"


class AuditEventKind(str, Enum):
    """Closed set of events the audit ledger records."""

    ROUTING_DECISION = "routing_decision"
    HOSPITAL_NOTIFIED = "hospital_notified"
    CREW_ACKNOWLEDGED = "crew_acknowledged"
    LOCATION_RECORDED = "location_recorded"
    DEVIATION_DETECTED = "deviation_detected"
    DEVIATION_RESOLVED = "deviation_resolved"
    TRIP_COMPLETED = "trip_completed"


# ---------------------------------------------------------------------------
# Hospitals and patients
# ---------------------------------------------------------------------------


class CapacityCensus(BaseModel):
    """Bed, ICU and ventilator totals with the currently available counts."""

    total_beds: int = Field(default=0, description="Total general beds.", ge=0)
    available_beds: int = Field(default=0, description="Available general beds.", ge=0)
    total_icu: int = Field(default=0, description="Total ICU beds.", ge=0)
    available_icu: int = Field(default=0, description="Available ICU beds.", ge=0)
    total_ventilators: int = Field(default=0, description="Total ventilators.", ge=0)
    available_ventilators: int = Field(
        default=0, description="Available ventilators.", ge=0
    )


class SpecialistAvailability(BaseModel):
    """A specialty offered by a hospital and whether it is currently staffed."""

    specialty: Specialty = Field(..., description="Specialty code.")
    available: bool = Field(default=True, description="Whether a specialist is available now.")
    on_duty: List[str] = Field(
        default_factory=list, description="Names of specialists currently on duty."
    )


class HospitalSnapshot(BaseModel):
    """A point-in-time view of one hospital, supplied fresh per optimization call."""

    hospital_id: str = Field(..., description="Unique hospital identifier.", min_length=1)
    name: str = Field(..., description="Hospital name.")
    location: Location = Field(..., description="Geographical location of the hospital.")
    address: Optional[str] = Field(default=None, description="Street address.")
    capacity: CapacityCensus = Field(
        default_factory=CapacityCensus, description="Current capacity census."
    )
    specialists: List[SpecialistAvailability] = Field(
        default_factory=list, description="Specialties and their availability."
    )
    equipment: Dict[EquipmentKind, bool] = Field(
        default_factory=dict, description="Equipment presence flags."
    )
    current_load: Optional[LoadLevel] = Field(
        default=None, description="Qualitative load; unset means unknown."
    )
    status: HospitalStatus = Field(
        default=HospitalStatus.ACTIVE, description="Operational status."
    )

    def has_available_specialist(self, specialty: Specialty) -> bool:
        """Check whether a matching specialist is present and available."""
        return any(
            s.specialty == specialty and s.available for s in self.specialists
        )

    def has_equipment(self, kind: EquipmentKind) -> bool:
        return bool(self.equipment.get(kind, False))


class PatientContact(BaseModel):
    """Personal identifiers of a patient. Only ever persisted redacted."""

    name: Optional[str] = Field(default=None, description="Patient name.")
    phone: Optional[str] = Field(default=None, description="Contact phone number.")
    age: Optional[int] = Field(default=None, description="Age in years.", ge=0)
    gender: Optional[str] = Field(default=None, description="Gender as reported.")


class PatientCondition(BaseModel):
    """Clinical summary of the patient used for hospital matching."""

    model_config = ConfigDict(frozen=True)

    severity: Severity = Field(..., description="Severity of the patient's condition.")
    condition: str = Field(
        ..., description="Condition code, e.g. 'stroke' or 'trauma'.", min_length=1
    )
    required_specialty: Optional[Specialty] = Field(
        default=None, description="Specialty the patient needs, if any."
    )
    patient: Optional[PatientContact] = Field(
        default=None, description="Optional patient identifiers."
    )


# ---------------------------------------------------------------------------
# Forecasting
# ---------------------------------------------------------------------------


class CapacityObservation(BaseModel):
    """One historical capacity sample for a hospital."""

    timestamp: datetime = Field(..., description="When the sample was taken.")
    available_beds: float = Field(..., description="Available general beds.", ge=0)
    available_icu: float = Field(..., description="Available ICU beds.", ge=0)
    admissions: int = Field(default=0, description="Admissions in the sample period.", ge=0)
    discharges: int = Field(default=0, description="Discharges in the sample period.", ge=0)


class ForecastPoint(BaseModel):
    """Predicted availability a number of hours ahead."""

    horizon: int = Field(..., description="Hours ahead of now.", ge=1)
    timestamp: Optional[datetime] = Field(
        default=None, description="Time the prediction applies to."
    )
    predicted_beds: int = Field(..., description="Predicted available beds.", ge=0)
    predicted_icu: int = Field(..., description="Predicted available ICU beds.", ge=0)
    predicted_ventilators: int = Field(
        default=0, description="Predicted available ventilators.", ge=0
    )
    confidence: float = Field(..., description="Confidence in [0, 1].", ge=0.0, le=1.0)


class ReadinessPoint(ForecastPoint):
    """A forecast point converted into readiness percentages."""

    bed_readiness: int = Field(..., description="Bed readiness percentage.", ge=0, le=100)
    icu_readiness: int = Field(..., description="ICU readiness percentage.", ge=0, le=100)
    composite_readiness: int = Field(
        ..., description="Weighted bed/ICU readiness.", ge=0, le=100
    )
    confidence_level: ConfidenceLevel = Field(..., description="Discretized confidence.")


class ReadinessForecast(BaseModel):
    """Readiness predictions for one hospital."""

    hospital_id: str
    hospital_name: Optional[str] = None
    current_status: Dict[str, Any] = Field(default_factory=dict)
    predictions: List[ReadinessPoint] = Field(default_factory=list)
    generated_at: datetime = Field(default_factory=local_now)
    degraded: bool = Field(
        default=False, description="True when a default forecast was substituted."
    )

    @property
    def first(self) -> Optional[ReadinessPoint]:
        return self.predictions[0] if self.predictions else None


# ---------------------------------------------------------------------------
# Travel
# ---------------------------------------------------------------------------


class RouteInstruction(BaseModel):
    distance_km: float
    heading: float
    maneuver: str = "depart"


class RouteGeometry(BaseModel):
    """Coarse route geometry between two points."""

    type: str = Field(default="fastest", description="Route type.")
    coordinates: List[Location] = Field(default_factory=list)
    heading: Optional[float] = Field(default=None, description="Initial heading in degrees.")
    instructions: List[RouteInstruction] = Field(default_factory=list)


class TravelEstimate(BaseModel):
    """Distance and duration between an origin and a destination."""

    distance_km: float = Field(..., description="Distance in kilometers.", ge=0)
    duration_minutes: int = Field(..., description="Duration without traffic.", ge=0)
    duration_in_traffic_minutes: int = Field(
        ..., description="Duration adjusted for traffic.", ge=0
    )
    traffic_condition: TrafficCondition = Field(..., description="Traffic condition.")
    speed_average_kmh: float = Field(default=0.0, description="Average speed used.")
    route: RouteGeometry = Field(default_factory=RouteGeometry)
    computed_at: datetime = Field(default_factory=local_now)
    source: str = Field(default="heuristic", description="heuristic, fallback or osrm.")


class TrafficPrediction(TravelEstimate):
    """Travel estimate for a future departure time."""

    predicted_for: datetime
    confidence: float = Field(..., ge=0.0, le=1.0)


# ---------------------------------------------------------------------------
# Optimization
# ---------------------------------------------------------------------------


class CompositeScore(BaseModel):
    """Sub-scores and the weighted composite for one hospital."""

    availability_score: int = Field(..., ge=0, le=100)
    specialist_score: int = Field(..., ge=0, le=100)
    travel_score: int = Field(..., ge=0, le=100)
    equipment_score: int = Field(..., ge=0, le=100)
    load_score: int = Field(..., ge=0, le=100)
    composite_score: int = Field(..., ge=0, le=100)
    prediction_confidence: float = Field(default=0.5, ge=0.0, le=1.0)


class ScoredHospital(BaseModel):
    """Internal ranking row. Never sent to field units."""

    hospital_id: str
    hospital_name: str
    hospital_address: Optional[str] = None
    scores: CompositeScore
    travel: TravelEstimate
    forecast: ReadinessForecast
    selected: bool = False


class DestinationRef(BaseModel):
    """Destination identifier only; name and address are withheld."""

    model_config = ConfigDict(extra="forbid")

    hospital_id: str


class NavigationSummary(BaseModel):
    model_config = ConfigDict(extra="forbid")

    distance_km: float
    estimated_time_minutes: int
    traffic_condition: TrafficCondition
    route_coordinates: List[Location] = Field(default_factory=list)


class PatientBrief(BaseModel):
    """Patient details the receiving hospital needs to prepare."""

    model_config = ConfigDict(extra="forbid")

    condition: str
    severity: Severity
    required_specialty: Optional[Specialty] = None
    eta_minutes: int


class ResponseMetadata(BaseModel):
    model_config = ConfigDict(extra="forbid")

    processed_at: datetime
    processing_time_ms: int
    system_version: str
    algorithm: str = "multi-criteria-optimization"


class SecureDestinationResponse(BaseModel):
    """Privacy-filtered optimizer output for the ambulance crew."""

    model_config = ConfigDict(extra="forbid")

    destination: DestinationRef
    navigation: NavigationSummary
    patient_info: PatientBrief
    metadata: ResponseMetadata


class InternalRecommendations(BaseModel):
    """Full comparative ranking for privileged callers."""

    recommendations: List[ScoredHospital]
    optimal_hospital: ScoredHospital
    generated_at: datetime = Field(default_factory=utc_now)


# ---------------------------------------------------------------------------
# Tracking
# ---------------------------------------------------------------------------


class Actor(BaseModel):
    """Who performed an action."""

    id: Optional[str] = None
    role: str = Field(default="system")
    name: Optional[str] = None
    ambulance_id: Optional[str] = None
    hospital_id: Optional[str] = None


SYSTEM_ACTOR = Actor(id="system", role="system")


class PlannedRoute(BaseModel):
    """The route the vehicle is expected to follow."""

    coordinates: List[Location] = Field(default_factory=list)
    heading: Optional[float] = Field(default=None, description="Expected heading.")
    duration_in_traffic_minutes: Optional[float] = Field(
        default=None, description="Planned duration in minutes.", ge=0
    )


class LocationSample(BaseModel):
    """A position report from a vehicle."""

    latitude: float = Field(..., ge=-90.0, le=90.0)
    longitude: float = Field(..., ge=-180.0, le=180.0)
    heading: Optional[float] = Field(default=None, description="Compass heading in degrees.")
    speed: Optional[float] = Field(default=None, description="Speed in km/h.", ge=0)
    accuracy: Optional[float] = Field(default=None, description="Accuracy in meters.", ge=0)
    recorded_at: Optional[datetime] = Field(
        default=None, description="Server receive time."
    )

    def as_location(self) -> Location:
        return Location(latitude=self.latitude, longitude=self.longitude)


class ExpectedArrival(BaseModel):
    estimated_distance_meters: float
    estimated_time_minutes: int
    estimated_arrival: datetime


class DeviationCheck(BaseModel):
    """Result of comparing one sample against the planned route."""

    is_deviating: bool = False
    distance_from_route_m: float = 0.0
    deviation_angle_deg: float = 0.0
    delay_minutes: float = 0.0
    reasons: List[str] = Field(default_factory=list)


class AlertResolution(BaseModel):
    """Payload supplied by the caller when resolving an alert."""

    notes: str = Field(..., min_length=1)
    resolved_by: Actor = Field(default_factory=Actor)
    action: Optional[str] = None


class DeviationAlert(BaseModel):
    """A route deviation alert. Retained for audit, never deleted."""

    id: str
    trip_id: str
    vehicle_id: str
    detected_at: datetime
    severity: AlertSeverity
    reasons: List[str]
    details: DeviationCheck
    location: LocationSample
    acknowledged: bool = False
    acknowledged_by: Optional[Actor] = None
    acknowledged_at: Optional[datetime] = None
    resolved: bool = False
    resolved_at: Optional[datetime] = None
    resolution: Optional[AlertResolution] = None


class TripSession(BaseModel):
    """Tracking state of one trip from origin to destination."""

    trip_id: str = Field(..., min_length=1)
    vehicle_id: str = Field(..., min_length=1)
    origin: Location
    destination: Location
    destination_hospital_id: Optional[str] = None
    planned_route: PlannedRoute = Field(default_factory=PlannedRoute)
    start_time: datetime
    last_update: datetime
    end_time: Optional[datetime] = None
    location_history: List[LocationSample] = Field(default_factory=list)
    deviation_alerts: List[DeviationAlert] = Field(default_factory=list)
    status: TripStatus = TripStatus.TRACKING
    expected_arrival: ExpectedArrival

    @property
    def current_location(self) -> Optional[LocationSample]:
        return self.location_history[-1] if self.location_history else None

    def find_alert(self, alert_id: str) -> Optional[DeviationAlert]:
        for alert in self.deviation_alerts:
            if alert.id == alert_id:
                return alert
        return None


class LocationUpdateResult(BaseModel):
    trip_id: str
    vehicle_id: str
    sample: LocationSample = Field(..., description="The sample as recorded.")
    status: TripStatus
    deviation: DeviationCheck
    deviation_alert: Optional[DeviationAlert] = None
    expected_arrival: ExpectedArrival


class TripStats(BaseModel):
    """Final statistics computed when a trip is stopped."""

    total_distance_m: int = 0
    total_distance_km: float = 0.0
    total_time_minutes: int = 0
    average_speed_kmh: int = 0
    deviation_count: int = 0
    total_deviation_minutes: int = 0


class TripCompletion(BaseModel):
    session: TripSession
    final_stats: TripStats


class TripStatusView(BaseModel):
    """Read-only projection of an active trip."""

    trip_id: str
    vehicle_id: str
    status: TripStatus
    current_location: Optional[LocationSample] = None
    destination: Location
    expected_arrival: ExpectedArrival
    active_alerts: List[DeviationAlert] = Field(default_factory=list)
    deviation_count: int = 0
    last_update: datetime


class ActiveTripSummary(BaseModel):
    trip_id: str
    vehicle_id: str
    status: TripStatus
    current_location: Optional[LocationSample] = None
    destination: Location
    expected_arrival: ExpectedArrival
    active_alert_count: int = 0


# ---------------------------------------------------------------------------
# Audit
# ---------------------------------------------------------------------------


class AuditEntry(BaseModel):
    """One immutable, hash-chained audit record."""

    model_config = ConfigDict(frozen=True)

    id: str
    sequence: int = Field(..., ge=0, description="Monotonic, gapless position.")
    timestamp: datetime
    event_kind: AuditEventKind
    actor: Actor
    details: Dict[str, Any] = Field(default_factory=dict)
    previous_hash: str
    hash: str


class AuditVerification(BaseModel):
    is_valid: bool
    total_entries: int
    failed_index: Optional[int] = None
    failed_entry_id: Optional[str] = None
    reason: Optional[str] = None
    verified_at: datetime = Field(default_factory=utc_now)


class AuditQuery(BaseModel):
    """Filters for reading the audit ledger."""

    event_kind: Optional[AuditEventKind] = None
    trip_id: Optional[str] = None
    actor_id: Optional[str] = None
    actor_role: Optional[str] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=50, ge=1)


class AuditPage(BaseModel):
    data: List[AuditEntry]
    total: int
    page: int
    limit: int
    total_pages: int


# ---------------------------------------------------------------------------
# Outbound events
# ---------------------------------------------------------------------------


class OutboundEvent(BaseModel):
    """An event queued for delivery on a named channel."""

    channel: str
    event: str
    payload: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utc_now)


class Outcome(BaseModel, Generic[T]):
    """Return value of a dispatch operation plus its side effects."""

    value: T
    events: List[OutboundEvent] = Field(default_factory=list)
    audit_entries: List[AuditEntry] = Field(default_factory=list)

    @field_validator("events", "audit_entries", mode="before")
    @classmethod
    def ensure_lists(cls, v):
        if v is None:
            return []
        return v
