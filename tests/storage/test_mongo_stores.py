#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Tests for the MongoDB Stores

The database handle is a MagicMock; these tests check the documents, filters
and error translation, not a live server.
"""

import unittest
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

from pymongo.errors import DuplicateKeyError, ServerSelectionTimeoutError

from medroute.core.exceptions import SequenceConflictError, StoreError
from medroute.core.models import (
    Actor,
    AuditEntry,
    AuditEventKind,
    AuditQuery,
    CapacityObservation,
    HospitalSnapshot,
    Location,
)
from medroute.storage.mongo import (
    MongoAuditStore,
    MongoCapacityHistory,
    MongoHospitalDirectory,
    MongoTripStore,
    audit_filter,
    connect,
)

STAMP = datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc)


def make_db():
    db = MagicMock()
    collection = MagicMock()
    db.__getitem__.return_value = collection
    return db, collection


def make_entry(sequence=0):
    return AuditEntry(
        id=f"audit-{sequence}",
        sequence=sequence,
        timestamp=STAMP,
        event_kind=AuditEventKind.ROUTING_DECISION,
        actor=Actor(id="disp-1", role="dispatcher"),
        details={"trip_id": "T1"},
        previous_hash="genesis",
        hash="abc",
    )


class TestAuditFilter(unittest.TestCase):
    """Test cases for query translation"""

    def test_empty_query(self):
        self.assertEqual(audit_filter(AuditQuery()), {})

    def test_all_filters(self):
        query = AuditQuery(
            event_kind=AuditEventKind.DEVIATION_DETECTED,
            trip_id="T1",
            actor_id="AMB-1",
            actor_role="ambulance",
            start=STAMP,
            end=datetime(2024, 1, 16, tzinfo=timezone.utc),
        )
        self.assertEqual(
            audit_filter(query),
            {
                "event_kind": "deviation_detected",
                "details.trip_id": "T1",
                "actor.id": "AMB-1",
                "actor.role": "ambulance",
                "timestamp": {
                    "$gte": "2024-01-15T10:00:00+00:00",
                    "$lte": "2024-01-16T00:00:00+00:00",
                },
            },
        )

    def test_open_ended_range(self):
        self.assertEqual(
            audit_filter(AuditQuery(start=STAMP)),
            {"timestamp": {"$gte": "2024-01-15T10:00:00+00:00"}},
        )


class TestMongoAuditStore(unittest.TestCase):
    """Test cases for the MongoDB audit store"""

    def setUp(self):
        self.db, self.collection = make_db()
        self.store = MongoAuditStore(self.db)

    def test_unique_sequence_index(self):
        self.db.__getitem__.assert_called_with("audit_log")
        self.collection.create_index.assert_any_call("sequence", unique=True)

    def test_append_writes_json_document(self):
        self.store.append(make_entry())
        document = self.collection.insert_one.call_args[0][0]
        self.assertEqual(document["event_kind"], "routing_decision")
        self.assertEqual(document["timestamp"], "2024-01-15T10:00:00Z")
        self.assertEqual(document["sequence"], 0)

    def test_duplicate_sequence_becomes_conflict(self):
        self.collection.insert_one.side_effect = DuplicateKeyError("E11000 duplicate key")
        with self.assertRaises(SequenceConflictError) as ctx:
            self.store.append(make_entry(3))
        self.assertEqual(ctx.exception.details, {"sequence": 3})

    def test_connection_failure_becomes_store_error(self):
        self.collection.find_one.side_effect = ServerSelectionTimeoutError("no servers")
        with self.assertRaises(StoreError):
            self.store.latest()

    def test_latest(self):
        self.collection.find_one.return_value = make_entry(4).model_dump(mode="json")
        latest = self.store.latest()
        self.assertEqual(latest.sequence, 4)
        self.assertEqual(latest.timestamp, STAMP)
        _, kwargs = self.collection.find_one.call_args
        self.assertEqual(kwargs["sort"], MongoAuditStore.NEWEST_FIRST)

    def test_latest_when_empty(self):
        self.collection.find_one.return_value = None
        self.assertIsNone(self.store.latest())

    def test_query_pages(self):
        cursor = MagicMock()
        cursor.sort.return_value = cursor
        cursor.skip.return_value = cursor
        cursor.limit.return_value = iter([make_entry(1).model_dump(mode="json")])
        self.collection.find.return_value = cursor
        self.collection.count_documents.return_value = 7

        entries, total = self.store.query(AuditQuery(trip_id="T1", page=3, limit=2))

        self.assertEqual(total, 7)
        self.assertEqual(entries[0].sequence, 1)
        cursor.skip.assert_called_once_with(4)
        cursor.limit.assert_called_once_with(2)
        self.collection.count_documents.assert_called_once_with({"details.trip_id": "T1"})


class TestMongoHospitalDirectory(unittest.TestCase):
    def setUp(self):
        self.db, self.collection = make_db()
        self.directory = MongoHospitalDirectory(self.db)

    def test_candidate_filter(self):
        self.collection.find.return_value = [
            {
                "hospital_id": "H1",
                "name": "City Hospital",
                "location": {"latitude": 28.6, "longitude": 77.2},
                "capacity": {"available_beds": 3},
            }
        ]
        candidates = self.directory.find_candidates()

        self.assertEqual(candidates[0].hospital_id, "H1")
        query = self.collection.find.call_args[0][0]
        self.assertEqual(query["status"], {"$in": ["active", "emergency-only"]})
        self.assertEqual(len(query["$or"]), 2)

    def test_upsert(self):
        snapshot = HospitalSnapshot(
            hospital_id="H1", name="City Hospital", location=Location(latitude=28.6, longitude=77.2)
        )
        self.directory.upsert(snapshot)
        args, kwargs = self.collection.replace_one.call_args
        self.assertEqual(args[0], {"hospital_id": "H1"})
        self.assertTrue(kwargs["upsert"])


class TestMongoTripStore(unittest.TestCase):
    def test_unique_trip_index_and_missing_trip(self):
        db, collection = make_db()
        store = MongoTripStore(db)
        collection.create_index.assert_called_once_with("trip_id", unique=True)
        collection.find_one.return_value = None
        self.assertIsNone(store.get("T1"))

    def test_delete(self):
        db, collection = make_db()
        MongoTripStore(db).delete("T1")
        collection.delete_one.assert_called_once_with({"trip_id": "T1"})


class TestMongoCapacityHistory(unittest.TestCase):
    def test_observations_returned_oldest_first(self):
        db, collection = make_db()
        cursor = MagicMock()
        cursor.sort.return_value = cursor
        cursor.limit.return_value = iter(
            [
                {"timestamp": "2024-01-15T12:00:00", "available_beds": 4, "available_icu": 1},
                {"timestamp": "2024-01-15T11:00:00", "available_beds": 6, "available_icu": 2},
            ]
        )
        collection.find.return_value = cursor

        observations = MongoCapacityHistory(db).get_observations("H1", limit=2)

        self.assertEqual([o.available_beds for o in observations], [6, 4])

    def test_record_tags_hospital(self):
        db, collection = make_db()
        MongoCapacityHistory(db).record(
            "H1", CapacityObservation(timestamp=STAMP, available_beds=3, available_icu=1)
        )
        document = collection.insert_one.call_args[0][0]
        self.assertEqual(document["hospital_id"], "H1")


class TestConnect(unittest.TestCase):
    @patch("medroute.storage.mongo.MongoClient")
    def test_connect_returns_database(self, mock_client):
        db = connect("mongodb://localhost:27017", "medroute", timeout_ms=100)
        mock_client.assert_called_once_with(
            "mongodb://localhost:27017", serverSelectionTimeoutMS=100, connectTimeoutMS=100
        )
        mock_client.return_value.__getitem__.assert_called_once_with("medroute")
        self.assertIs(db, mock_client.return_value.__getitem__.return_value)


if __name__ == "__main__":
    unittest.main()
