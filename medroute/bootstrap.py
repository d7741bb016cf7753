"""
Construction of the MedRoute services.

build_dispatch_service() creates every service exactly once from the settings
and wires them together. Stores can be passed in to override the backend
chosen in the settings.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from medroute.config import Settings, load_settings
from medroute.core.audit import AuditLedger
from medroute.core.decision import OptimizationEngine
from medroute.core.forecasting import ReadinessForecaster
from medroute.core.tracking import TripMonitor
from medroute.services import DispatchService
from medroute.storage import mongo
from medroute.storage import (
    AuditStore,
    CapacityHistorySource,
    HospitalDirectory,
    InMemoryAuditStore,
    InMemoryCapacityHistory,
    InMemoryHospitalDirectory,
    InMemoryTripStore,
    TripStore,
)
from medroute.utils.transport import OsrmRouteSource, TravelEstimator

logger = logging.getLogger(__name__)


@dataclass
class Stores:
    directory: HospitalDirectory
    trips: TripStore
    audit: AuditStore
    history: CapacityHistorySource


def build_stores(settings: Settings) -> Stores:
    """Create the stores for the configured backend."""
    if settings.storage.backend == "mongodb":
        db = mongo.connect(settings.storage.mongodb_uri, settings.storage.mongodb_db)
        return Stores(
            directory=mongo.MongoHospitalDirectory(db),
            trips=mongo.MongoTripStore(db),
            audit=mongo.MongoAuditStore(db),
            history=mongo.MongoCapacityHistory(db),
        )
    return Stores(
        directory=InMemoryHospitalDirectory(),
        trips=InMemoryTripStore(),
        audit=InMemoryAuditStore(),
        history=InMemoryCapacityHistory(),
    )


def build_dispatch_service(
    settings: Optional[Settings] = None, stores: Optional[Stores] = None
) -> DispatchService:
    """
    Build a fully wired DispatchService.

    Args:
        settings: Settings; loaded from YAML and the environment when unset
        stores: Optional pre-built stores, e.g. seeded in-memory stores

    Returns:
        DispatchService
    """
    settings = settings or load_settings()
    stores = stores or build_stores(settings)

    route_source = None
    if settings.travel.route_source == "osrm":
        route_source = OsrmRouteSource(settings.travel.osrm_url, settings.travel.request_timeout)

    forecaster = ReadinessForecaster(settings.forecast, history=stores.history)
    estimator = TravelEstimator(settings.travel, route_source=route_source)
    engine = OptimizationEngine(forecaster, estimator, settings.optimization)
    monitor = TripMonitor(stores.trips, settings.tracking)
    ledger = AuditLedger(stores.audit, settings.audit)

    logger.info(
        f"Dispatch service ready (storage={settings.storage.backend}, "
        f"route_source={settings.travel.route_source})"
    )
    return DispatchService(engine, monitor, ledger, stores.directory)
