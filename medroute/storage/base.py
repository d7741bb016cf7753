"""
Store abstractions used by the MedRoute services.

Each store has an in-memory implementation for tests and single-process use and
a MongoDB implementation for durable deployments.
"""

from abc import ABC, abstractmethod
from typing import List, Optional, Tuple

from medroute.core.models import (
    AuditEntry,
    AuditQuery,
    CapacityObservation,
    HospitalSnapshot,
    HospitalStatus,
    TripSession,
)

CANDIDATE_STATUSES = (HospitalStatus.ACTIVE, HospitalStatus.EMERGENCY_ONLY)


def is_candidate(hospital: HospitalSnapshot) -> bool:
    """Active or emergency-only hospitals with at least one bed or ICU bed free."""
    return hospital.status in CANDIDATE_STATUSES and (
        hospital.capacity.available_beds > 0 or hospital.capacity.available_icu > 0
    )


def matches_query(entry: AuditEntry, query: AuditQuery) -> bool:
    """Check an audit entry against the filters of a query (pagination ignored)."""
    if query.event_kind is not None and entry.event_kind != query.event_kind:
        return False
    if query.trip_id is not None and entry.details.get("trip_id") != query.trip_id:
        return False
    if query.actor_id is not None and entry.actor.id != query.actor_id:
        return False
    if query.actor_role is not None and entry.actor.role != query.actor_role:
        return False
    if query.start is not None and entry.timestamp < query.start:
        return False
    if query.end is not None and entry.timestamp > query.end:
        return False
    return True


class HospitalDirectory(ABC):
    @abstractmethod
    def find_candidates(self) -> List[HospitalSnapshot]:
        """Hospitals that can currently accept patients."""

    @abstractmethod
    def get(self, hospital_id: str) -> Optional[HospitalSnapshot]:
        pass

    @abstractmethod
    def upsert(self, hospital: HospitalSnapshot) -> None:
        pass


class TripStore(ABC):
    """Active trip sessions keyed by trip id."""

    @abstractmethod
    def get(self, trip_id: str) -> Optional[TripSession]:
        pass

    @abstractmethod
    def put(self, session: TripSession) -> None:
        pass

    @abstractmethod
    def delete(self, trip_id: str) -> None:
        pass

    @abstractmethod
    def list(self) -> List[TripSession]:
        pass


class AuditStore(ABC):
    """
    Append-only store of audit entries.

    Implementations must reject a second entry with an existing sequence number.
    """

    @abstractmethod
    def append(self, entry: AuditEntry) -> None:
        """Persist one entry; raises SequenceConflictError when its sequence is taken."""

    @abstractmethod
    def latest(self) -> Optional[AuditEntry]:
        """Most recent entry by (timestamp, sequence), or None when empty."""

    @abstractmethod
    def ordered(self) -> List[AuditEntry]:
        """All entries in (timestamp, sequence) order."""

    @abstractmethod
    def query(self, query: AuditQuery) -> Tuple[List[AuditEntry], int]:
        """One page of matching entries, newest first, and the total match count."""

    @abstractmethod
    def count(self) -> int:
        pass


class CapacityHistorySource(ABC):
    @abstractmethod
    def get_observations(self, hospital_id: str, limit: int) -> List[CapacityObservation]:
        """Most recent observations for a hospital, oldest first."""
