"""
Custom exceptions for MedRoute.

Each exception carries an HTTP-style status code and a details mapping so the
outer request layer can turn it into a response without inspecting types.
"""

from typing import Any, Dict, Optional


class MedRouteError(Exception):
    """Base exception for all MedRoute errors."""

    status_code = 500

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "status_code": self.status_code,
            "details": self.details,
        }


class InputValidationError(MedRouteError):
    """Raised when required coordinates or condition fields are missing or invalid."""

    status_code = 400


class NotFoundError(MedRouteError):
    """Raised when a referenced record is not in active storage."""

    status_code = 404


class SessionNotFoundError(NotFoundError):
    """Raised when a trip id has no active tracking session."""

    def __init__(self, trip_id: str):
        super().__init__(
            f"No active tracking session for trip {trip_id}",
            details={"trip_id": trip_id},
        )
        self.trip_id = trip_id


class AlertNotFoundError(NotFoundError):
    """Raised when an alert id is not attached to the given trip."""

    def __init__(self, trip_id: str, alert_id: str):
        super().__init__(
            f"Alert {alert_id} not found for trip {trip_id}",
            details={"trip_id": trip_id, "alert_id": alert_id},
        )
        self.trip_id = trip_id
        self.alert_id = alert_id


class HospitalNotFoundError(NotFoundError):
    def __init__(self, hospital_id: str):
        super().__init__(
            f"Hospital {hospital_id} not found",
            details={"hospital_id": hospital_id},
        )
        self.hospital_id = hospital_id


class TripAlreadyActiveError(MedRouteError):
    """Raised when starting a trip whose id is already being tracked."""

    status_code = 409

    def __init__(self, trip_id: str):
        super().__init__(
            f"Trip {trip_id} is already being tracked",
            details={"trip_id": trip_id},
        )
        self.trip_id = trip_id


class StoreError(MedRouteError):
    """Raised when a backing store cannot be read or written."""

    status_code = 503


class SequenceConflictError(StoreError):
    """Raised when another writer already holds an audit sequence number."""

    status_code = 409

    def __init__(self, sequence: int):
        super().__init__(
            f"Audit sequence {sequence} already exists",
            details={"sequence": sequence},
        )
        self.sequence = sequence
