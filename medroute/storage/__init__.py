"""
Storage layer for MedRoute.

This package contains the store abstractions for hospitals, active trips, the
audit ledger and capacity history, with in-memory and MongoDB implementations.
MongoDB classes live in medroute.storage.mongo.
"""

from medroute.storage.base import (
    AuditStore,
    CapacityHistorySource,
    HospitalDirectory,
    TripStore,
)
from medroute.storage.memory import (
    InMemoryAuditStore,
    InMemoryCapacityHistory,
    InMemoryHospitalDirectory,
    InMemoryTripStore,
)
