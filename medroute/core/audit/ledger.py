"""
Hash-chained audit ledger for MedRoute.

Every routing decision, notification, acknowledgment, location sample,
deviation and trip completion is appended here with personal identifiers
redacted. Each entry stores the hash of the entry before it, so any later edit
or reordering breaks the chain and is reported by verify().
"""

import csv
import hashlib
import io
import json
import logging
import math
import threading
import uuid
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel

from medroute.config import AuditSettings
from medroute.core.audit.details import (
    CandidateSummary,
    CompletionDetails,
    CrewAcknowledgmentDetails,
    DecisionDetails,
    DeviationDetails,
    LocationDetails,
    NotificationDetails,
)
from medroute.core.audit.redaction import redact
from medroute.core.exceptions import InputValidationError, SequenceConflictError
from medroute.core.models import (
    SYSTEM_ACTOR,
    Actor,
    AuditEntry,
    AuditEventKind,
    AuditPage,
    AuditQuery,
    AuditVerification,
    DeviationAlert,
    LocationSample,
    PatientCondition,
    ScoredHospital,
    TripCompletion,
)
from medroute.storage.base import AuditStore
from medroute.storage.memory import InMemoryAuditStore
from medroute.utils.clock import utc_now

logger = logging.getLogger(__name__)

EXPORT_LIMIT = 10000
CSV_HEADERS = ["ID", "Timestamp", "Event Kind", "Actor Role", "Actor ID", "Details"]


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def compute_hash(
    timestamp: datetime,
    event_kind: AuditEventKind,
    actor: Actor,
    details: Dict[str, Any],
    previous_hash: str,
) -> str:
    """SHA-256 of the canonical JSON form of an entry's hashed fields."""
    payload = {
        "timestamp": timestamp.isoformat(),
        "event_kind": event_kind.value,
        "actor": actor.model_dump(mode="json"),
        "details": details,
        "previous_hash": previous_hash,
    }
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def entry_hash(entry: AuditEntry) -> str:
    return compute_hash(
        entry.timestamp, entry.event_kind, entry.actor, entry.details, entry.previous_hash
    )


class AuditLedger:
    """
    Append-only, hash-chained audit log.

    Appends are serialized under one lock. The chain tail is cached after the
    first append and read from the store on cold start.

    Args:
        store: Backing audit store; in-memory when unset
        settings: Genesis marker, redaction fields and page size
        clock: Callable returning the current (timezone-aware) time
    """

    def __init__(
        self,
        store: Optional[AuditStore] = None,
        settings: Optional[AuditSettings] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store or InMemoryAuditStore()
        self.settings = settings or AuditSettings()
        self._clock = clock
        self._lock = threading.Lock()
        self._tail: Optional[AuditEntry] = None

    def _load_tail(self) -> Optional[AuditEntry]:
        if self._tail is None:
            self._tail = self.store.latest()
        return self._tail

    def _next_entry(
        self, event_kind: AuditEventKind, actor: Actor, details: Dict[str, Any]
    ) -> AuditEntry:
        tail = self._load_tail()
        previous_hash = tail.hash if tail else self.settings.genesis_hash
        sequence = tail.sequence + 1 if tail else 0
        timestamp = self._clock()
        # Replay order is (timestamp, sequence); never go backwards
        if tail is not None and timestamp < tail.timestamp:
            timestamp = tail.timestamp

        return AuditEntry(
            id=f"audit-{uuid.uuid4().hex}",
            sequence=sequence,
            timestamp=timestamp,
            event_kind=event_kind,
            actor=actor,
            details=details,
            previous_hash=previous_hash,
            hash=compute_hash(timestamp, event_kind, actor, details, previous_hash),
        )

    def append(
        self,
        event_kind: AuditEventKind,
        actor: Optional[Actor],
        details: Union[BaseModel, Mapping[str, Any], None],
    ) -> AuditEntry:
        """
        Redact, hash and persist one audit entry.

        When another writer on the same store has already taken the next
        sequence number, the tail is re-read and the entry is rebuilt on top of
        it, up to settings.append_retries attempts.

        Args:
            event_kind: Kind of event being recorded
            actor: Who performed the action; the system actor when unset
            details: Typed detail model or mapping

        Returns:
            The persisted AuditEntry

        Raises:
            SequenceConflictError: if every attempt lost the sequence race
            StoreError: if the store rejects the write
        """
        actor = actor or SYSTEM_ACTOR
        redacted = redact(
            details,
            self.settings.sensitive_fields,
            self.settings.nested_patient_keys,
            self.settings.redaction_marker,
        )
        attempts = self.settings.append_retries

        with self._lock:
            for attempt in range(1, attempts + 1):
                entry = self._next_entry(event_kind, actor, redacted)
                try:
                    self.store.append(entry)
                except SequenceConflictError:
                    self._tail = None
                    if attempt == attempts:
                        logger.error(
                            f"Audit append gave up after {attempts} sequence conflicts"
                        )
                        raise
                    logger.warning(
                        f"Audit sequence {entry.sequence} already taken, "
                        f"retrying ({attempt}/{attempts})"
                    )
                    continue
                except Exception:
                    # The persisted tail is unknown now; re-read it next time
                    self._tail = None
                    raise
                self._tail = entry
                break

        logger.info(f"Audit entry {entry.sequence} recorded: {event_kind.value} by {actor.role}")
        return entry

    def verify(self) -> AuditVerification:
        """
        Replay the whole chain and check every link and hash.

        Returns:
            AuditVerification; on failure, the index and id of the first bad entry.
            The ledger is never modified.
        """
        entries = self.store.ordered()
        running = self.settings.genesis_hash
        for index, entry in enumerate(entries):
            reason = None
            if entry.previous_hash != running:
                reason = "previous hash does not match the preceding entry"
            elif entry_hash(entry) != entry.hash:
                reason = "stored hash does not match entry contents"
            if reason:
                logger.error(f"Audit chain integrity failure at index {index} ({entry.id}): {reason}")
                return AuditVerification(
                    is_valid=False,
                    total_entries=len(entries),
                    failed_index=index,
                    failed_entry_id=entry.id,
                    reason=reason,
                    verified_at=self._clock(),
                )
            running = entry.hash

        return AuditVerification(
            is_valid=True, total_entries=len(entries), verified_at=self._clock()
        )

    def query(self, query: Optional[AuditQuery] = None) -> AuditPage:
        """Filtered page of entries, newest first."""
        query = query or AuditQuery(limit=self.settings.page_limit)
        query = query.model_copy(
            update={"start": _as_utc(query.start), "end": _as_utc(query.end)}
        )
        entries, total = self.store.query(query)
        return AuditPage(
            data=entries,
            total=total,
            page=query.page,
            limit=query.limit,
            total_pages=math.ceil(total / query.limit),
        )

    def trip_trail(self, trip_id: str) -> List[AuditEntry]:
        """Every entry recorded for one trip, oldest first."""
        return [e for e in self.store.ordered() if e.details.get("trip_id") == trip_id]

    def export(self, fmt: str = "json", query: Optional[AuditQuery] = None) -> str:
        """
        Export entries for compliance review.

        Args:
            fmt: "json" or "csv"
            query: Optional filters; pagination is replaced by a large single page

        Raises:
            InputValidationError: for an unsupported format
        """
        query = (query or AuditQuery()).model_copy(update={"page": 1, "limit": EXPORT_LIMIT})
        entries = self.query(query).data

        if fmt == "json":
            return json.dumps([e.model_dump(mode="json") for e in entries], indent=2)
        if fmt == "csv":
            buffer = io.StringIO()
            writer = csv.writer(buffer, lineterminator="\n")
            writer.writerow(CSV_HEADERS)
            for e in entries:
                writer.writerow(
                    [
                        e.id,
                        e.timestamp.isoformat(),
                        e.event_kind.value,
                        e.actor.role,
                        e.actor.id or "",
                        json.dumps(e.details, sort_keys=True),
                    ]
                )
            return buffer.getvalue()
        raise InputValidationError(
            f"Unsupported export format: {fmt}", details={"format": fmt}
        )

    def summary(
        self, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """Counts by event kind and actor role over a time range."""
        entries = self.query(AuditQuery(start=start, end=end, limit=EXPORT_LIMIT)).data
        by_kind = Counter(e.event_kind.value for e in entries)
        by_role = Counter(e.actor.role for e in entries)
        return {
            "total_entries": len(entries),
            "date_range": {
                "start": start.isoformat() if start else None,
                "end": end.isoformat() if end else None,
            },
            "by_event_kind": dict(by_kind),
            "by_actor_role": dict(by_role),
            "deviation_count": by_kind.get(AuditEventKind.DEVIATION_DETECTED.value, 0),
            "generated_at": self._clock().isoformat(),
        }

    # Convenience writers, one per event kind

    def record_decision(
        self,
        ranked: List[ScoredHospital],
        patient_condition: PatientCondition,
        processing_time_ms: int,
        trip_id: Optional[str] = None,
        actor: Optional[Actor] = None,
    ) -> AuditEntry:
        selected = ranked[0]
        details = DecisionDetails(
            trip_id=trip_id,
            hospital_id=selected.hospital_id,
            patient_condition=patient_condition,
            scores=selected.scores,
            alternatives=[
                CandidateSummary(
                    hospital_id=h.hospital_id, composite_score=h.scores.composite_score
                )
                for h in ranked[1:]
            ],
            candidate_count=len(ranked),
            processing_time_ms=processing_time_ms,
        )
        return self.append(AuditEventKind.ROUTING_DECISION, actor, details)

    def record_notification(
        self,
        trip_id: str,
        hospital_id: str,
        patient_condition: PatientCondition,
        eta_minutes: int,
        actor: Optional[Actor] = None,
    ) -> AuditEntry:
        details = NotificationDetails(
            trip_id=trip_id,
            hospital_id=hospital_id,
            patient_info=patient_condition.model_dump(mode="json", exclude_none=True),
            eta_minutes=eta_minutes,
            notified_at=self._clock(),
        )
        return self.append(AuditEventKind.HOSPITAL_NOTIFIED, actor, details)

    def record_crew_acknowledgment(
        self,
        trip_id: str,
        vehicle_id: str,
        hospital_id: Optional[str] = None,
        confirmed: bool = True,
        actor: Optional[Actor] = None,
    ) -> AuditEntry:
        details = CrewAcknowledgmentDetails(
            trip_id=trip_id,
            vehicle_id=vehicle_id,
            hospital_id=hospital_id,
            confirmed=confirmed,
            acknowledged_at=self._clock(),
        )
        return self.append(AuditEventKind.CREW_ACKNOWLEDGED, actor, details)

    def record_location(
        self,
        trip_id: str,
        vehicle_id: str,
        sample: LocationSample,
        actor: Optional[Actor] = None,
    ) -> AuditEntry:
        details = LocationDetails(trip_id=trip_id, vehicle_id=vehicle_id, location=sample)
        return self.append(AuditEventKind.LOCATION_RECORDED, actor, details)

    def _deviation_details(self, alert: DeviationAlert) -> DeviationDetails:
        return DeviationDetails(
            trip_id=alert.trip_id,
            vehicle_id=alert.vehicle_id,
            alert_id=alert.id,
            severity=alert.severity.value,
            deviation=alert.details,
            location_at_detection=alert.location,
            resolved=alert.resolved,
            resolution=alert.resolution.model_dump(mode="json") if alert.resolution else None,
        )

    def record_deviation(self, alert: DeviationAlert, actor: Optional[Actor] = None) -> AuditEntry:
        return self.append(
            AuditEventKind.DEVIATION_DETECTED, actor, self._deviation_details(alert)
        )

    def record_resolution(self, alert: DeviationAlert, actor: Optional[Actor] = None) -> AuditEntry:
        return self.append(
            AuditEventKind.DEVIATION_RESOLVED, actor, self._deviation_details(alert)
        )

    def record_completion(
        self, completion: TripCompletion, actor: Optional[Actor] = None
    ) -> AuditEntry:
        session = completion.session
        details = CompletionDetails(
            trip_id=session.trip_id,
            vehicle_id=session.vehicle_id,
            hospital_id=session.destination_hospital_id,
            trip_stats=completion.final_stats,
            actual_path=[s.as_location() for s in session.location_history],
            expected_path=list(session.planned_route.coordinates),
            started_at=session.start_time,
            ended_at=session.end_time,
        )
        return self.append(AuditEventKind.TRIP_COMPLETED, actor, details)
