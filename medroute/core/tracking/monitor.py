"""
Trip monitor for MedRoute.

This module owns the lifecycle of active trips: starting a trip once a hospital
confirms, ingesting location samples, raising deviation alerts, acknowledging
and resolving them, and computing final statistics when the trip ends.

Mutations of one trip are serialized by a per-trip lock. A lock lives in the
lock table only while some call holds or waits on it, so the table never grows
with finished or unknown trip ids. Sessions are never edited in place; every change stores a new session object, so readers such as
list_active() see either the old or the new state and never block writers.
"""

import logging
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime
from typing import Callable, Dict, Iterator, List, Optional

from medroute.config import TrackingSettings
from medroute.core.exceptions import (
    AlertNotFoundError,
    InputValidationError,
    SessionNotFoundError,
    TripAlreadyActiveError,
)
from medroute.core.models import (
    ActiveTripSummary,
    Actor,
    AlertResolution,
    DeviationAlert,
    Location,
    LocationSample,
    LocationUpdateResult,
    PlannedRoute,
    TripCompletion,
    TripSession,
    TripStats,
    TripStatus,
    TripStatusView,
)
from medroute.core.tracking.deviation import alert_severity, detect_deviation, expected_arrival
from medroute.storage.base import TripStore
from medroute.storage.memory import InMemoryTripStore
from medroute.utils.clock import utc_now
from medroute.utils.geo import path_length_meters, round_half_up

logger = logging.getLogger(__name__)


class _TripLock:
    __slots__ = ("lock", "users")

    def __init__(self):
        self.lock = threading.Lock()
        self.users = 0


def compute_trip_stats(session: TripSession) -> TripStats:
    """
    Calculate final statistics from a session's location history and alerts.

    Fewer than two samples yields zero distance and time.
    """
    history = session.location_history
    deviation_count = len(session.deviation_alerts)
    if len(history) < 2:
        return TripStats(deviation_count=deviation_count)

    total_m = path_length_meters(history)
    elapsed = history[-1].recorded_at - history[0].recorded_at
    total_minutes = int(round_half_up(elapsed.total_seconds() / 60))
    total_km = total_m / 1000
    average_speed = (
        int(round_half_up(total_km / (total_minutes / 60))) if total_minutes > 0 else 0
    )

    deviation_minutes = sum(
        (alert.resolved_at - alert.detected_at).total_seconds() / 60
        for alert in session.deviation_alerts
        if alert.resolved and alert.resolved_at is not None
    )

    return TripStats(
        total_distance_m=int(round_half_up(total_m)),
        total_distance_km=round_half_up(total_km, 1),
        total_time_minutes=total_minutes,
        average_speed_kmh=average_speed,
        deviation_count=deviation_count,
        total_deviation_minutes=int(round_half_up(deviation_minutes)),
    )


class TripMonitor:
    """
    Tracks active trips and detects route deviations.

    Args:
        store: Where active sessions live; in-memory when unset
        settings: Deviation thresholds and history limit
        clock: Callable returning the current (timezone-aware) time
    """

    def __init__(
        self,
        store: Optional[TripStore] = None,
        settings: Optional[TrackingSettings] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store or InMemoryTripStore()
        self.settings = settings or TrackingSettings()
        self._clock = clock
        self._locks: Dict[str, _TripLock] = {}
        self._locks_guard = threading.Lock()

    @contextmanager
    def _trip_lock(self, trip_id: str) -> Iterator[None]:
        """Hold the lock of one trip; the entry is dropped when its last user leaves."""
        with self._locks_guard:
            entry = self._locks.get(trip_id)
            if entry is None:
                entry = self._locks[trip_id] = _TripLock()
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._locks_guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._locks[trip_id]

    def _require(self, trip_id: str) -> TripSession:
        session = self.store.get(trip_id)
        if session is None or session.status != TripStatus.TRACKING:
            raise SessionNotFoundError(trip_id)
        return session

    def start_trip(
        self,
        trip_id: str,
        vehicle_id: str,
        origin: Location,
        destination: Location,
        planned_route: Optional[PlannedRoute] = None,
        destination_hospital_id: Optional[str] = None,
    ) -> TripSession:
        """
        Start tracking a trip.

        Raises:
            TripAlreadyActiveError: if the trip id is already being tracked
        """
        with self._trip_lock(trip_id):
            if self.store.get(trip_id) is not None:
                raise TripAlreadyActiveError(trip_id)
            now = self._clock()
            session = TripSession(
                trip_id=trip_id,
                vehicle_id=vehicle_id,
                origin=origin,
                destination=destination,
                destination_hospital_id=destination_hospital_id,
                planned_route=planned_route or PlannedRoute(),
                start_time=now,
                last_update=now,
                expected_arrival=expected_arrival(
                    origin, destination, now, self.settings.assumed_speed_kmh
                ),
            )
            self.store.put(session)
        logger.info(f"Started tracking vehicle {vehicle_id} for trip {trip_id}")
        return session

    def update_location(self, trip_id: str, sample: LocationSample) -> LocationUpdateResult:
        """
        Record a position report and check it for deviation.

        Args:
            trip_id: Active trip id
            sample: Position report; recorded_at is overwritten with server time

        Returns:
            LocationUpdateResult with the deviation check and any new alert

        Raises:
            SessionNotFoundError: if the trip is not being tracked
        """
        with self._trip_lock(trip_id):
            session = self._require(trip_id)
            now = self._clock()
            stamped = sample.model_copy(update={"recorded_at": now})
            history = (session.location_history + [stamped])[-self.settings.history_limit:]

            check = detect_deviation(
                stamped, session.planned_route, session.start_time, now, self.settings
            )
            alerts = session.deviation_alerts
            alert = None
            if check.is_deviating:
                alert = DeviationAlert(
                    id=f"alert-{uuid.uuid4().hex[:12]}",
                    trip_id=trip_id,
                    vehicle_id=session.vehicle_id,
                    detected_at=now,
                    severity=alert_severity(check, self.settings),
                    reasons=list(check.reasons),
                    details=check,
                    location=stamped,
                )
                alerts = alerts + [alert]
                logger.warning(
                    f"Route deviation for vehicle {session.vehicle_id} on trip {trip_id}: "
                    f"{', '.join(check.reasons)}"
                )

            arrival = expected_arrival(
                stamped, session.destination, now, self.settings.assumed_speed_kmh
            )
            self.store.put(
                session.model_copy(
                    update={
                        "location_history": history,
                        "deviation_alerts": alerts,
                        "last_update": now,
                        "expected_arrival": arrival,
                    }
                )
            )

        return LocationUpdateResult(
            trip_id=trip_id,
            vehicle_id=session.vehicle_id,
            sample=stamped,
            status=TripStatus.TRACKING,
            deviation=check,
            deviation_alert=alert,
            expected_arrival=arrival,
        )

    def _replace_alert(self, session: TripSession, alert: DeviationAlert) -> None:
        alerts = [alert if a.id == alert.id else a for a in session.deviation_alerts]
        self.store.put(session.model_copy(update={"deviation_alerts": alerts}))

    def acknowledge_alert(self, trip_id: str, alert_id: str, actor: Actor) -> DeviationAlert:
        """
        Mark an alert as acknowledged.

        Raises:
            SessionNotFoundError: if the trip is not being tracked
            AlertNotFoundError: if the alert does not belong to the trip
        """
        with self._trip_lock(trip_id):
            session = self._require(trip_id)
            alert = session.find_alert(alert_id)
            if alert is None:
                raise AlertNotFoundError(trip_id, alert_id)
            updated = alert.model_copy(
                update={
                    "acknowledged": True,
                    "acknowledged_by": actor,
                    "acknowledged_at": self._clock(),
                }
            )
            self._replace_alert(session, updated)
        return updated

    def resolve_alert(
        self, trip_id: str, alert_id: str, resolution: Optional[AlertResolution]
    ) -> DeviationAlert:
        """
        Mark an alert as resolved with the caller's resolution notes.

        Raises:
            InputValidationError: if no resolution is supplied
            SessionNotFoundError: if the trip is not being tracked
            AlertNotFoundError: if the alert does not belong to the trip
        """
        if resolution is None:
            raise InputValidationError(
                "A resolution is required to resolve an alert",
                details={"field": "resolution"},
            )
        with self._trip_lock(trip_id):
            session = self._require(trip_id)
            alert = session.find_alert(alert_id)
            if alert is None:
                raise AlertNotFoundError(trip_id, alert_id)
            updated = alert.model_copy(
                update={
                    "resolved": True,
                    "resolved_at": self._clock(),
                    "resolution": resolution,
                }
            )
            self._replace_alert(session, updated)
        logger.info(f"Alert {alert_id} on trip {trip_id} resolved")
        return updated

    def stop_trip(
        self, trip_id: str, final_location: Optional[LocationSample] = None
    ) -> TripCompletion:
        """
        Complete a trip and remove it from active tracking.

        The returned session is the only remaining copy of the terminal state.

        Raises:
            SessionNotFoundError: if the trip is not being tracked
        """
        with self._trip_lock(trip_id):
            session = self._require(trip_id)
            now = self._clock()
            history = session.location_history
            if final_location is not None:
                history = history + [final_location.model_copy(update={"recorded_at": now})]
            terminal = session.model_copy(
                update={
                    "location_history": history,
                    "status": TripStatus.COMPLETED,
                    "end_time": now,
                    "last_update": now,
                }
            )
            stats = compute_trip_stats(terminal)
            self.store.delete(trip_id)

        logger.info(
            f"Stopped tracking vehicle {session.vehicle_id} for trip {trip_id}: "
            f"{stats.total_distance_km} km, {stats.deviation_count} deviations"
        )
        return TripCompletion(session=terminal, final_stats=stats)

    def get_status(self, trip_id: str) -> TripStatusView:
        """
        Read-only view of an active trip.

        Raises:
            SessionNotFoundError: if the trip is not being tracked
        """
        session = self._require(trip_id)
        return TripStatusView(
            trip_id=session.trip_id,
            vehicle_id=session.vehicle_id,
            status=session.status,
            current_location=session.current_location,
            destination=session.destination,
            expected_arrival=session.expected_arrival,
            active_alerts=[a for a in session.deviation_alerts if not a.resolved],
            deviation_count=len(session.deviation_alerts),
            last_update=session.last_update,
        )

    def list_active(self) -> List[ActiveTripSummary]:
        return [
            ActiveTripSummary(
                trip_id=s.trip_id,
                vehicle_id=s.vehicle_id,
                status=s.status,
                current_location=s.current_location,
                destination=s.destination,
                expected_arrival=s.expected_arrival,
                active_alert_count=sum(1 for a in s.deviation_alerts if not a.resolved),
            )
            for s in self.store.list()
            if s.status == TripStatus.TRACKING
        ]
