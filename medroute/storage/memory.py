"""
Thread-safe in-memory stores.
"""

import threading
from collections import OrderedDict
from typing import Dict, Iterable, List, Optional, Tuple

from medroute.core.exceptions import SequenceConflictError
from medroute.core.models import (
    AuditEntry,
    AuditQuery,
    CapacityObservation,
    HospitalSnapshot,
    TripSession,
)
from medroute.storage.base import (
    AuditStore,
    CapacityHistorySource,
    HospitalDirectory,
    TripStore,
    is_candidate,
    matches_query,
)


def _sort_key(entry: AuditEntry):
    return (entry.timestamp, entry.sequence)


class InMemoryHospitalDirectory(HospitalDirectory):
    def __init__(self, hospitals: Optional[Iterable[HospitalSnapshot]] = None):
        self._hospitals: "OrderedDict[str, HospitalSnapshot]" = OrderedDict()
        self._lock = threading.Lock()
        for hospital in hospitals or []:
            self.upsert(hospital)

    def find_candidates(self) -> List[HospitalSnapshot]:
        with self._lock:
            return [h for h in self._hospitals.values() if is_candidate(h)]

    def get(self, hospital_id: str) -> Optional[HospitalSnapshot]:
        with self._lock:
            return self._hospitals.get(hospital_id)

    def upsert(self, hospital: HospitalSnapshot) -> None:
        with self._lock:
            self._hospitals[hospital.hospital_id] = hospital


class InMemoryTripStore(TripStore):
    """
    Trip sessions held in a dictionary.

    Stored sessions are replaced, never edited in place, so readers can hold a
    reference without locking.
    """

    def __init__(self):
        self._sessions: Dict[str, TripSession] = {}
        self._lock = threading.Lock()

    def get(self, trip_id: str) -> Optional[TripSession]:
        with self._lock:
            return self._sessions.get(trip_id)

    def put(self, session: TripSession) -> None:
        with self._lock:
            self._sessions[session.trip_id] = session

    def delete(self, trip_id: str) -> None:
        with self._lock:
            self._sessions.pop(trip_id, None)

    def list(self) -> List[TripSession]:
        with self._lock:
            return list(self._sessions.values())


class InMemoryAuditStore(AuditStore):
    def __init__(self):
        self._entries: List[AuditEntry] = []
        self._sequences = set()
        self._lock = threading.Lock()

    def append(self, entry: AuditEntry) -> None:
        with self._lock:
            if entry.sequence in self._sequences:
                raise SequenceConflictError(entry.sequence)
            self._sequences.add(entry.sequence)
            self._entries.append(entry)

    def latest(self) -> Optional[AuditEntry]:
        with self._lock:
            if not self._entries:
                return None
            return max(self._entries, key=_sort_key)

    def ordered(self) -> List[AuditEntry]:
        with self._lock:
            return sorted(self._entries, key=_sort_key)

    def query(self, query: AuditQuery) -> Tuple[List[AuditEntry], int]:
        with self._lock:
            matched = [e for e in self._entries if matches_query(e, query)]
        matched.sort(key=_sort_key, reverse=True)
        start = (query.page - 1) * query.limit
        return matched[start:start + query.limit], len(matched)

    def count(self) -> int:
        with self._lock:
            return len(self._entries)


class InMemoryCapacityHistory(CapacityHistorySource):
    def __init__(self):
        self._observations: Dict[str, List[CapacityObservation]] = {}
        self._lock = threading.Lock()

    def record(self, hospital_id: str, observation: CapacityObservation) -> None:
        with self._lock:
            series = self._observations.setdefault(hospital_id, [])
            series.append(observation)
            series.sort(key=lambda o: o.timestamp)

    def get_observations(self, hospital_id: str, limit: int) -> List[CapacityObservation]:
        with self._lock:
            series = self._observations.get(hospital_id, [])
            return list(series[-limit:])
