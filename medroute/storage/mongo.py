"""
MongoDB-backed stores.

Documents are written with model_dump(mode="json") so timestamps are stored as
ISO-8601 strings. Audit hashes are computed over the same string form, which
keeps them stable across a round trip through the database.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.errors import DuplicateKeyError, PyMongoError

from medroute.core.exceptions import SequenceConflictError, StoreError
from medroute.core.models import (
    AuditEntry,
    AuditQuery,
    CapacityObservation,
    HospitalSnapshot,
    TripSession,
)
from medroute.storage.base import (
    CANDIDATE_STATUSES,
    AuditStore,
    CapacityHistorySource,
    HospitalDirectory,
    TripStore,
)

logger = logging.getLogger(__name__)

NO_ID = {"_id": 0}


def connect(uri: str, db_name: str, timeout_ms: int = 5000):
    """Open a client and return the database handle."""
    client = MongoClient(uri, serverSelectionTimeoutMS=timeout_ms, connectTimeoutMS=timeout_ms)
    logger.info(f"Connected to MongoDB database {db_name}")
    return client[db_name]


class MongoHospitalDirectory(HospitalDirectory):
    def __init__(self, db, collection: str = "hospitals"):
        self.collection = db[collection]

    def find_candidates(self) -> List[HospitalSnapshot]:
        query = {
            "status": {"$in": [s.value for s in CANDIDATE_STATUSES]},
            "$or": [
                {"capacity.available_beds": {"$gt": 0}},
                {"capacity.available_icu": {"$gt": 0}},
            ],
        }
        try:
            docs = list(self.collection.find(query, NO_ID))
        except PyMongoError as e:
            raise StoreError(f"Hospital query failed: {e}") from e
        return [HospitalSnapshot.model_validate(d) for d in docs]

    def get(self, hospital_id: str) -> Optional[HospitalSnapshot]:
        try:
            doc = self.collection.find_one({"hospital_id": hospital_id}, NO_ID)
        except PyMongoError as e:
            raise StoreError(f"Hospital lookup failed: {e}") from e
        return HospitalSnapshot.model_validate(doc) if doc else None

    def upsert(self, hospital: HospitalSnapshot) -> None:
        try:
            self.collection.replace_one(
                {"hospital_id": hospital.hospital_id},
                hospital.model_dump(mode="json"),
                upsert=True,
            )
        except PyMongoError as e:
            raise StoreError(f"Hospital write failed: {e}") from e


class MongoTripStore(TripStore):
    def __init__(self, db, collection: str = "active_trips"):
        self.collection = db[collection]
        self.collection.create_index("trip_id", unique=True)

    def get(self, trip_id: str) -> Optional[TripSession]:
        try:
            doc = self.collection.find_one({"trip_id": trip_id}, NO_ID)
        except PyMongoError as e:
            raise StoreError(f"Trip lookup failed: {e}") from e
        return TripSession.model_validate(doc) if doc else None

    def put(self, session: TripSession) -> None:
        try:
            self.collection.replace_one(
                {"trip_id": session.trip_id}, session.model_dump(mode="json"), upsert=True
            )
        except PyMongoError as e:
            raise StoreError(f"Trip write failed: {e}") from e

    def delete(self, trip_id: str) -> None:
        try:
            self.collection.delete_one({"trip_id": trip_id})
        except PyMongoError as e:
            raise StoreError(f"Trip delete failed: {e}") from e

    def list(self) -> List[TripSession]:
        try:
            docs = list(self.collection.find({}, NO_ID))
        except PyMongoError as e:
            raise StoreError(f"Trip listing failed: {e}") from e
        return [TripSession.model_validate(d) for d in docs]


def audit_filter(query: AuditQuery) -> Dict[str, Any]:
    """Translate an AuditQuery into a MongoDB filter document."""
    mongo_filter: Dict[str, Any] = {}
    if query.event_kind is not None:
        mongo_filter["event_kind"] = query.event_kind.value
    if query.trip_id is not None:
        mongo_filter["details.trip_id"] = query.trip_id
    if query.actor_id is not None:
        mongo_filter["actor.id"] = query.actor_id
    if query.actor_role is not None:
        mongo_filter["actor.role"] = query.actor_role
    if query.start is not None or query.end is not None:
        time_range = {}
        if query.start is not None:
            time_range["$gte"] = query.start.isoformat()
        if query.end is not None:
            time_range["$lte"] = query.end.isoformat()
        mongo_filter["timestamp"] = time_range
    return mongo_filter


class MongoAuditStore(AuditStore):
    """Audit entries in a collection with a unique index on sequence."""

    ORDER = [("timestamp", ASCENDING), ("sequence", ASCENDING)]
    NEWEST_FIRST = [("timestamp", DESCENDING), ("sequence", DESCENDING)]

    def __init__(self, db, collection: str = "audit_log"):
        self.collection = db[collection]
        self.collection.create_index("sequence", unique=True)
        self.collection.create_index(self.ORDER)

    def append(self, entry: AuditEntry) -> None:
        try:
            self.collection.insert_one(entry.model_dump(mode="json"))
        except DuplicateKeyError as e:
            raise SequenceConflictError(entry.sequence) from e
        except PyMongoError as e:
            raise StoreError(f"Audit write failed: {e}") from e

    def latest(self) -> Optional[AuditEntry]:
        try:
            doc = self.collection.find_one({}, NO_ID, sort=self.NEWEST_FIRST)
        except PyMongoError as e:
            raise StoreError(f"Audit tail read failed: {e}") from e
        return AuditEntry.model_validate(doc) if doc else None

    def ordered(self) -> List[AuditEntry]:
        try:
            docs = list(self.collection.find({}, NO_ID).sort(self.ORDER))
        except PyMongoError as e:
            raise StoreError(f"Audit read failed: {e}") from e
        return [AuditEntry.model_validate(d) for d in docs]

    def query(self, query: AuditQuery) -> Tuple[List[AuditEntry], int]:
        mongo_filter = audit_filter(query)
        try:
            total = self.collection.count_documents(mongo_filter)
            docs = list(
                self.collection.find(mongo_filter, NO_ID)
                .sort(self.NEWEST_FIRST)
                .skip((query.page - 1) * query.limit)
                .limit(query.limit)
            )
        except PyMongoError as e:
            raise StoreError(f"Audit query failed: {e}") from e
        return [AuditEntry.model_validate(d) for d in docs], total

    def count(self) -> int:
        try:
            return self.collection.count_documents({})
        except PyMongoError as e:
            raise StoreError(f"Audit count failed: {e}") from e


class MongoCapacityHistory(CapacityHistorySource):
    def __init__(self, db, collection: str = "capacity_history"):
        self.collection = db[collection]

    def record(self, hospital_id: str, observation: CapacityObservation) -> None:
        doc = observation.model_dump(mode="json")
        doc["hospital_id"] = hospital_id
        try:
            self.collection.insert_one(doc)
        except PyMongoError as e:
            raise StoreError(f"Capacity history write failed: {e}") from e

    def get_observations(self, hospital_id: str, limit: int) -> List[CapacityObservation]:
        try:
            docs = list(
                self.collection.find({"hospital_id": hospital_id}, NO_ID)
                .sort("timestamp", DESCENDING)
                .limit(limit)
            )
        except PyMongoError as e:
            raise StoreError(f"Capacity history read failed: {e}") from e
        docs.reverse()
        return [CapacityObservation.model_validate(d) for d in docs]
