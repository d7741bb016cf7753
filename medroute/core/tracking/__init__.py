"""
Trip tracking for MedRoute.

This package contains deviation detection and the trip monitor that owns the
lifecycle of active ambulance trips.
"""

from medroute.core.tracking.deviation import (
    alert_severity,
    detect_deviation,
    expected_arrival,
)
from medroute.core.tracking.monitor import TripMonitor, compute_trip_stats
