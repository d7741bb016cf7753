"""
Hospital selection engine for MedRoute.

This module ranks candidate hospitals for one patient by combining predicted
availability, travel time, specialist and equipment match, and current load.
Forecasts and travel estimates for all candidates are gathered concurrently and
scored once every lookup has finished. The field response names only the
selected destination; the full ranking is a separate, privileged entry point.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Callable, List, Optional, Sequence, Tuple

from medroute.config import OptimizationSettings
from medroute.core.decision.scoring import score_hospital
from medroute.core.exceptions import InputValidationError
from medroute.core.forecasting import ReadinessForecaster
from medroute.core.models import (
    DestinationRef,
    HospitalSnapshot,
    InternalRecommendations,
    Location,
    NavigationSummary,
    PatientBrief,
    PatientCondition,
    ReadinessForecast,
    ResponseMetadata,
    ScoredHospital,
    SecureDestinationResponse,
)
from medroute.utils.clock import utc_now
from medroute.utils.transport import TravelEstimator

logger = logging.getLogger(__name__)


class OptimizationEngine:
    """
    Multi-criteria hospital ranking.

    Args:
        forecaster: Readiness forecaster
        estimator: Travel estimator
        settings: Weights, pool size and version string
        clock: Callable returning the current time (UTC by default)
    """

    def __init__(
        self,
        forecaster: ReadinessForecaster,
        estimator: TravelEstimator,
        settings: Optional[OptimizationSettings] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.forecaster = forecaster
        self.estimator = estimator
        self.settings = settings or OptimizationSettings()
        self._clock = clock

    def _validate(
        self,
        hospitals: Sequence[HospitalSnapshot],
        patient_location: Optional[Location],
        patient_condition: Optional[PatientCondition],
    ) -> None:
        if not hospitals:
            raise InputValidationError(
                "At least one hospital candidate is required",
                details={"field": "hospitals"},
            )
        if patient_location is None:
            raise InputValidationError(
                "Patient location is required", details={"field": "patient_location"}
            )
        if patient_condition is None:
            raise InputValidationError(
                "Patient condition is required", details={"field": "patient_condition"}
            )

    def _forecast(self, hospital: HospitalSnapshot) -> ReadinessForecast:
        try:
            return self.forecaster.predict_hospital_readiness(hospital)
        except Exception as e:
            logger.warning(
                f"Forecast failed for hospital {hospital.hospital_id}, using current capacity: {e}"
            )
            return self.forecaster.default_forecast(hospital)

    def rank(
        self,
        hospitals: Sequence[HospitalSnapshot],
        patient_location: Location,
        patient_condition: PatientCondition,
    ) -> List[ScoredHospital]:
        """
        Score and sort every candidate, best first.

        Ties keep the input order of the candidates.

        Raises:
            InputValidationError: for an empty candidate list or missing inputs
        """
        self._validate(hospitals, patient_location, patient_condition)

        workers = min(self.settings.max_workers, 2 * len(hospitals))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            forecast_futures = [pool.submit(self._forecast, h) for h in hospitals]
            travel_futures = [
                pool.submit(self.estimator.get_travel_time, patient_location, h.location)
                for h in hospitals
            ]
            forecasts = [f.result() for f in forecast_futures]
            travels = [f.result() for f in travel_futures]

        scored = []
        for hospital, forecast, travel in zip(hospitals, forecasts, travels):
            scores = score_hospital(
                hospital, patient_condition, forecast, travel, self.settings.weights
            )
            scored.append(
                ScoredHospital(
                    hospital_id=hospital.hospital_id,
                    hospital_name=hospital.name,
                    hospital_address=hospital.address,
                    scores=scores,
                    travel=travel,
                    forecast=forecast,
                )
            )

        # sorted() is stable, so equal composites keep input order
        ranked = sorted(scored, key=lambda s: s.scores.composite_score, reverse=True)
        ranked[0] = ranked[0].model_copy(update={"selected": True})
        return ranked

    def build_secure_response(
        self,
        selected: ScoredHospital,
        patient_condition: PatientCondition,
        processing_time_ms: int,
    ) -> SecureDestinationResponse:
        """Response for the ambulance crew: the chosen destination and nothing else."""
        travel = selected.travel
        return SecureDestinationResponse(
            destination=DestinationRef(hospital_id=selected.hospital_id),
            navigation=NavigationSummary(
                distance_km=travel.distance_km,
                estimated_time_minutes=travel.duration_in_traffic_minutes,
                traffic_condition=travel.traffic_condition,
                route_coordinates=list(travel.route.coordinates),
            ),
            patient_info=PatientBrief(
                condition=patient_condition.condition,
                severity=patient_condition.severity,
                required_specialty=patient_condition.required_specialty,
                eta_minutes=travel.duration_in_traffic_minutes,
            ),
            metadata=ResponseMetadata(
                processed_at=self._clock(),
                processing_time_ms=processing_time_ms,
                system_version=self.settings.system_version,
            ),
        )

    def evaluate(
        self,
        hospitals: Sequence[HospitalSnapshot],
        patient_location: Location,
        patient_condition: PatientCondition,
    ) -> Tuple[SecureDestinationResponse, List[ScoredHospital]]:
        """Rank candidates and build the secure response in one pass."""
        started = time.perf_counter()
        ranked = self.rank(hospitals, patient_location, patient_condition)
        elapsed_ms = int((time.perf_counter() - started) * 1000)
        selected = ranked[0]
        logger.info(
            f"Selected hospital {selected.hospital_id} with composite score "
            f"{selected.scores.composite_score} from {len(ranked)} candidates"
        )
        return self.build_secure_response(selected, patient_condition, elapsed_ms), ranked

    def optimize_hospital_selection(
        self,
        hospitals: Sequence[HospitalSnapshot],
        patient_location: Location,
        patient_condition: PatientCondition,
    ) -> SecureDestinationResponse:
        """
        Select the best hospital for a patient.

        Args:
            hospitals: Candidate hospitals
            patient_location: Where the patient is
            patient_condition: Severity, condition code and required specialty

        Returns:
            SecureDestinationResponse naming only the selected hospital
        """
        response, _ = self.evaluate(hospitals, patient_location, patient_condition)
        return response

    def get_internal_recommendations(
        self,
        hospitals: Sequence[HospitalSnapshot],
        patient_location: Location,
        patient_condition: PatientCondition,
    ) -> InternalRecommendations:
        """Full comparative ranking with scores, for supervisory use only."""
        ranked = self.rank(hospitals, patient_location, patient_condition)
        return InternalRecommendations(
            recommendations=ranked,
            optimal_hospital=ranked[0],
            generated_at=self._clock(),
        )
