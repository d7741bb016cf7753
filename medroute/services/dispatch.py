"""
Dispatch service: the operation surface of MedRoute.

Each operation validates its input, delegates to the optimizer, trip monitor
or audit ledger, and returns an Outcome carrying the result, the audit entries
it wrote and the outbound events the caller should deliver.
"""

import logging
from typing import Any, List, Mapping, Optional, Sequence, Union

from medroute.core.audit import AuditLedger
from medroute.core.decision import OptimizationEngine
from medroute.core.exceptions import HospitalNotFoundError
from medroute.core.models import (
    SYSTEM_ACTOR,
    ActiveTripSummary,
    Actor,
    AlertResolution,
    AuditVerification,
    DeviationAlert,
    HospitalSnapshot,
    InternalRecommendations,
    Location,
    LocationSample,
    LocationUpdateResult,
    NavigationSummary,
    Outcome,
    PatientCondition,
    PlannedRoute,
    SecureDestinationResponse,
    TripCompletion,
    TripSession,
    TripStatusView,
)
from medroute.core.tracking import TripMonitor
from medroute import events
from medroute.storage.base import HospitalDirectory
from medroute.utils.geo import bearing
from medroute.validators import (
    parse_model,
    require_text,
    validate_candidates,
    validate_condition,
    validate_coordinates,
    validate_location_sample,
    validate_payload,
)

logger = logging.getLogger(__name__)

Payload = Union[Mapping[str, Any], Any]


class DispatchService:
    """
    Wires the optimizer, trip monitor and audit ledger together.

    Args:
        engine: Hospital selection engine
        monitor: Trip monitor
        ledger: Audit ledger
        directory: Hospital directory used to confirm destinations and to
            supply candidates when none are passed in
    """

    def __init__(
        self,
        engine: OptimizationEngine,
        monitor: TripMonitor,
        ledger: AuditLedger,
        directory: HospitalDirectory,
    ):
        self.engine = engine
        self.monitor = monitor
        self.ledger = ledger
        self.directory = directory

    def _inputs(self, candidates, patient_location, patient_condition):
        if candidates is None:
            candidates = self.directory.find_candidates()
        hospitals = validate_candidates(candidates)
        location = validate_coordinates(patient_location, "patient location")
        condition = validate_condition(patient_condition)
        return hospitals, location, condition

    def calculate_destination(
        self,
        candidates: Optional[Sequence[Union[HospitalSnapshot, Payload]]],
        patient_location: Union[Location, Payload],
        patient_condition: Union[PatientCondition, Payload],
        trip_id: Optional[str] = None,
        vehicle_id: Optional[str] = None,
        actor: Optional[Actor] = None,
    ) -> Outcome[SecureDestinationResponse]:
        """
        Select a destination hospital for a patient.

        When a trip id is given the selected hospital is also notified: a
        notification is audited and an incoming-patient event is returned.

        Args:
            candidates: Hospital snapshots; the directory's candidates when None
            patient_location: Patient coordinates
            patient_condition: Severity, condition code and required specialty
            trip_id: Optional request/trip id the decision belongs to
            vehicle_id: Optional ambulance id, included in the hospital event
            actor: Who requested the decision

        Returns:
            Outcome with the secure response only; comparative data stays internal

        Raises:
            InputValidationError: for missing candidates, coordinates or condition
        """
        hospitals, location, condition = self._inputs(
            candidates, patient_location, patient_condition
        )
        response, ranked = self.engine.evaluate(hospitals, location, condition)

        entries = [
            self.ledger.record_decision(
                ranked,
                condition,
                response.metadata.processing_time_ms,
                trip_id=trip_id,
                actor=actor or SYSTEM_ACTOR,
            )
        ]
        outbound = []
        if trip_id:
            entries.append(
                self.ledger.record_notification(
                    trip_id,
                    response.destination.hospital_id,
                    condition,
                    response.patient_info.eta_minutes,
                    actor=SYSTEM_ACTOR,
                )
            )
            outbound.append(events.incoming_patient(trip_id, response, vehicle_id or ""))

        return Outcome[SecureDestinationResponse](
            value=response, events=outbound, audit_entries=entries
        )

    def internal_recommendations(
        self,
        candidates: Optional[Sequence[Union[HospitalSnapshot, Payload]]],
        patient_location: Union[Location, Payload],
        patient_condition: Union[PatientCondition, Payload],
    ) -> InternalRecommendations:
        """Full ranking with scores; callers must be authorized supervisors."""
        hospitals, location, condition = self._inputs(
            candidates, patient_location, patient_condition
        )
        return self.engine.get_internal_recommendations(hospitals, location, condition)

    def start_trip(
        self,
        trip_id: str,
        vehicle_id: str,
        hospital_id: str,
        origin: Union[Location, Payload],
        navigation: Optional[Union[NavigationSummary, Payload]] = None,
        actor: Optional[Actor] = None,
    ) -> Outcome[TripSession]:
        """
        Start tracking once the destination hospital has confirmed.

        The planned route comes from the navigation summary when given,
        otherwise a straight line from origin to the hospital is used.

        Raises:
            InputValidationError: for missing ids or coordinates
            HospitalNotFoundError: if the hospital is not in the directory
            TripAlreadyActiveError: if the trip is already being tracked
        """
        trip_id = require_text(trip_id, "trip_id")
        vehicle_id = require_text(vehicle_id, "vehicle_id")
        hospital_id = require_text(hospital_id, "hospital_id")
        origin = validate_coordinates(origin, "origin")

        hospital = self.directory.get(hospital_id)
        if hospital is None:
            raise HospitalNotFoundError(hospital_id)

        nav = None
        if navigation is not None:
            nav = parse_model(NavigationSummary, navigation, "navigation")
        coordinates = list(nav.route_coordinates) if nav and nav.route_coordinates else []
        if len(coordinates) < 2:
            coordinates = [origin, hospital.location]
        planned_route = PlannedRoute(
            coordinates=coordinates,
            heading=round(bearing(coordinates[0], coordinates[1])),
            duration_in_traffic_minutes=nav.estimated_time_minutes if nav else None,
        )

        session = self.monitor.start_trip(
            trip_id,
            vehicle_id,
            origin,
            hospital.location,
            planned_route,
            destination_hospital_id=hospital_id,
        )
        entry = self.ledger.record_crew_acknowledgment(
            trip_id, vehicle_id, hospital_id, confirmed=True, actor=actor
        )
        eta = session.expected_arrival.estimated_time_minutes
        return Outcome[TripSession](
            value=session,
            events=[events.hospital_confirmed(session, eta)],
            audit_entries=[entry],
        )

    def report_location(
        self,
        trip_id: str,
        sample: Union[LocationSample, Payload],
        actor: Optional[Actor] = None,
    ) -> Outcome[LocationUpdateResult]:
        """
        Ingest a location sample; audits it and any deviation alert it raised.

        Raises:
            InputValidationError: for a missing or invalid sample
            SessionNotFoundError: if the trip is not being tracked
        """
        sample = validate_location_sample(sample)
        result = self.monitor.update_location(trip_id, sample)

        entries = [
            self.ledger.record_location(trip_id, result.vehicle_id, result.sample, actor=actor)
        ]
        outbound = []
        if result.deviation_alert is not None:
            entries.append(self.ledger.record_deviation(result.deviation_alert))
            outbound.extend(events.route_deviation(result.deviation_alert))

        return Outcome[LocationUpdateResult](
            value=result, events=outbound, audit_entries=entries
        )

    def acknowledge_alert(
        self, trip_id: str, alert_id: str, actor: Optional[Actor] = None
    ) -> Outcome[DeviationAlert]:
        alert = self.monitor.acknowledge_alert(trip_id, alert_id, actor or SYSTEM_ACTOR)
        return Outcome[DeviationAlert](value=alert)

    def resolve_alert(
        self,
        trip_id: str,
        alert_id: str,
        resolution: Optional[Union[AlertResolution, Payload]],
        actor: Optional[Actor] = None,
    ) -> Outcome[DeviationAlert]:
        """
        Resolve an alert with the caller's resolution notes.

        Raises:
            InputValidationError: if the resolution payload is missing
            SessionNotFoundError / AlertNotFoundError: for unknown ids
        """
        if not isinstance(resolution, AlertResolution):
            resolution = parse_model(
                AlertResolution, validate_payload(resolution, "resolution"), "resolution"
            )
        alert = self.monitor.resolve_alert(trip_id, alert_id, resolution)
        entry = self.ledger.record_resolution(alert, actor=actor or resolution.resolved_by)
        return Outcome[DeviationAlert](value=alert, audit_entries=[entry])

    def complete_trip(
        self,
        trip_id: str,
        final_location: Optional[Union[LocationSample, Payload]] = None,
        actor: Optional[Actor] = None,
    ) -> Outcome[TripCompletion]:
        """
        Stop tracking and audit the terminal trip snapshot.

        Raises:
            SessionNotFoundError: if the trip is not being tracked
        """
        final = validate_location_sample(final_location) if final_location is not None else None
        completion = self.monitor.stop_trip(trip_id, final)
        entry = self.ledger.record_completion(completion, actor=actor)
        return Outcome[TripCompletion](
            value=completion,
            events=[events.trip_completed(completion)],
            audit_entries=[entry],
        )

    def get_trip_status(self, trip_id: str) -> TripStatusView:
        return self.monitor.get_status(trip_id)

    def list_active_trips(self) -> List[ActiveTripSummary]:
        return self.monitor.list_active()

    def verify_audit_chain(self) -> AuditVerification:
        result = self.ledger.verify()
        if result.is_valid:
            logger.info(f"Audit chain verified: {result.total_entries} entries")
        return result
