"""
Transport utilities for MedRoute.

This package contains the travel time estimator, its result cache, the traffic
heuristics and route geometry sources.
"""

from medroute.utils.transport.cache import TTLCache
from medroute.utils.transport.estimator import TravelEstimator
from medroute.utils.transport.route_source import (
    OsrmRouteSource,
    RouteSource,
    StraightLineRouteSource,
    straight_line_route,
)
from medroute.utils.transport.traffic import condition_for_hour, predicted_condition
