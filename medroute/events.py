"""
Outbound events produced by dispatch operations.

Operations return the events they want sent instead of pushing them to a
transport themselves. The caller decides when and how to deliver them, for
example with deliver() and any EventPublisher.
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List

from medroute.core.models import (
    DeviationAlert,
    OutboundEvent,
    SecureDestinationResponse,
    TripCompletion,
    TripSession,
)

logger = logging.getLogger(__name__)

DISPATCH_CHANNEL = "dispatch"


def hospital_channel(hospital_id: str) -> str:
    return f"hospital-{hospital_id}"


def ambulance_channel(vehicle_id: str) -> str:
    return f"ambulance-{vehicle_id}"


class EventPublisher(ABC):
    """Anything that can publish an event on a named channel."""

    @abstractmethod
    def publish(self, channel: str, event: str, payload: Dict[str, Any]) -> None:
        pass


class InMemoryEventPublisher(EventPublisher):
    """Collects published events; used by tests and the CLI."""

    def __init__(self):
        self.published: List[OutboundEvent] = []
        self._lock = threading.Lock()

    def publish(self, channel: str, event: str, payload: Dict[str, Any]) -> None:
        with self._lock:
            self.published.append(OutboundEvent(channel=channel, event=event, payload=payload))

    def on_channel(self, channel: str) -> List[OutboundEvent]:
        with self._lock:
            return [e for e in self.published if e.channel == channel]


def deliver(events: Iterable[OutboundEvent], publisher: EventPublisher) -> int:
    """
    Publish events in order.

    Returns:
        Number of events published. The first publisher error propagates.
    """
    count = 0
    for event in events:
        publisher.publish(event.channel, event.event, event.payload)
        count += 1
    logger.debug(f"Delivered {count} outbound events")
    return count


def incoming_patient(
    trip_id: str, response: SecureDestinationResponse, vehicle_id: str
) -> OutboundEvent:
    """Tell the receiving hospital a patient is on the way."""
    return OutboundEvent(
        channel=hospital_channel(response.destination.hospital_id),
        event="incoming-patient",
        payload={
            "trip_id": trip_id,
            "vehicle_id": vehicle_id,
            "patient_info": response.patient_info.model_dump(mode="json"),
        },
    )


def hospital_confirmed(session: TripSession, eta_minutes: int) -> OutboundEvent:
    return OutboundEvent(
        channel=ambulance_channel(session.vehicle_id),
        event="hospital-confirmed",
        payload={
            "trip_id": session.trip_id,
            "hospital_id": session.destination_hospital_id,
            "destination": session.destination.model_dump(mode="json"),
            "eta_minutes": eta_minutes,
        },
    )


def route_deviation(alert: DeviationAlert) -> List[OutboundEvent]:
    """Deviation alerts go to dispatch and to the vehicle itself."""
    payload = {
        "trip_id": alert.trip_id,
        "vehicle_id": alert.vehicle_id,
        "alert_id": alert.id,
        "severity": alert.severity.value,
        "reasons": list(alert.reasons),
    }
    return [
        OutboundEvent(channel=DISPATCH_CHANNEL, event="route-deviation", payload=payload),
        OutboundEvent(
            channel=ambulance_channel(alert.vehicle_id),
            event="route-deviation",
            payload=dict(payload),
        ),
    ]


def trip_completed(completion: TripCompletion) -> OutboundEvent:
    session = completion.session
    return OutboundEvent(
        channel=DISPATCH_CHANNEL,
        event="trip-completed",
        payload={
            "trip_id": session.trip_id,
            "vehicle_id": session.vehicle_id,
            "hospital_id": session.destination_hospital_id,
            "final_stats": completion.final_stats.model_dump(mode="json"),
        },
    )
