"""
Route geometry sources.

The default source draws a straight line between origin and destination. The
OSRM source asks a public OSRM server for the driving geometry and returns
None on any failure so the estimator keeps the straight line.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

import requests

from medroute.core.models import Location, RouteGeometry, RouteInstruction
from medroute.utils.geo import bearing, distance_km

logger = logging.getLogger(__name__)

OSRM_ROUTE_PATH = (
    "/route/v1/driving/{lon1},{lat1};{lon2},{lat2}?overview=full&geometries=geojson"
)


def straight_line_route(origin: Location, destination: Location) -> RouteGeometry:
    """Build a two-point route with the initial heading."""
    heading = round(bearing(origin, destination))
    return RouteGeometry(
        type="fastest",
        coordinates=[origin, destination],
        heading=heading,
        instructions=[
            RouteInstruction(
                distance_km=distance_km(origin, destination),
                heading=heading,
                maneuver="depart",
            )
        ],
    )


class RouteSource(ABC):
    @abstractmethod
    def route(self, origin: Location, destination: Location) -> Optional[RouteGeometry]:
        """Return the route geometry, or None when unavailable."""


class StraightLineRouteSource(RouteSource):
    name = "heuristic"

    def route(self, origin: Location, destination: Location) -> Optional[RouteGeometry]:
        return straight_line_route(origin, destination)


class OsrmRouteSource(RouteSource):
    """Route geometry from an OSRM HTTP server."""

    name = "osrm"

    def __init__(self, base_url: str = "http://router.project-osrm.org", timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def route(self, origin: Location, destination: Location) -> Optional[RouteGeometry]:
        url = self.base_url + OSRM_ROUTE_PATH.format(
            lon1=origin.longitude,
            lat1=origin.latitude,
            lon2=destination.longitude,
            lat2=destination.latitude,
        )
        try:
            response = requests.get(url, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.Timeout:
            logger.warning(f"OSRM request timed out for {origin} -> {destination}")
            return None
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.warning(f"OSRM request failed for {origin} -> {destination}: {e}")
            return None

        routes = data.get("routes") or []
        if not routes:
            logger.warning(f"OSRM found no route between {origin} and {destination}")
            return None

        # GeoJSON coordinates are [lon, lat]
        raw_coords = routes[0].get("geometry", {}).get("coordinates") or []
        if len(raw_coords) < 2:
            logger.warning("OSRM route geometry is incomplete, keeping straight line")
            return None

        coordinates = [Location(latitude=lat, longitude=lon) for lon, lat in raw_coords]
        heading = round(bearing(coordinates[0], coordinates[1]))
        distance_m = routes[0].get("distance")
        return RouteGeometry(
            type="fastest",
            coordinates=coordinates,
            heading=heading,
            instructions=[
                RouteInstruction(
                    distance_km=(distance_m / 1000.0)
                    if distance_m is not None
                    else distance_km(origin, destination),
                    heading=heading,
                    maneuver="depart",
                )
            ],
        )
