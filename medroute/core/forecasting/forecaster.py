"""
Short-horizon capacity forecaster.

Turns a window of historical capacity observations into hourly predictions of
available beds, ICU beds and ventilators. The model is a damped linear trend
over the most recent observations added to an exponentially smoothed level,
with a day/night factor on beds. Too little history switches to a simple
average at a fixed low confidence.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, Iterator, List, Optional, Sequence

import numpy as np

from medroute.config import ForecastSettings
from medroute.core.models import (
    CapacityObservation,
    ConfidenceLevel,
    ForecastPoint,
    HospitalSnapshot,
    ReadinessForecast,
    ReadinessPoint,
)
from medroute.storage.base import CapacityHistorySource
from medroute.utils.clock import local_now
from medroute.utils.geo import round_half_up

logger = logging.getLogger(__name__)

DEGRADED_CONFIDENCE = 0.5


def linear_trend(series: Sequence[float]) -> float:
    """Least-squares slope of a series against its index; 0 for fewer than 2 points."""
    if len(series) < 2:
        return 0.0
    x = np.arange(len(series), dtype=float)
    slope, _ = np.polyfit(x, np.asarray(series, dtype=float), 1)
    return float(slope)


def exponential_smoothing(series: Sequence[float], alpha: float) -> float:
    """Final level of simple exponential smoothing, seeded with the first value."""
    level = float(series[0])
    for value in series[1:]:
        level = alpha * value + (1 - alpha) * level
    return level


def volatility(series: Sequence[float]) -> float:
    """Population standard deviation; 0 for fewer than 2 points."""
    if len(series) < 2:
        return 0.0
    return float(np.std(np.asarray(series, dtype=float)))


def resource_readiness(available: float, total: float) -> int:
    """Percentage of capacity available, capped at 100 and 0 when total is 0."""
    if total == 0:
        return 0
    return int(min(100, round_half_up(available / total * 100)))


def confidence_level(confidence: float) -> ConfidenceLevel:
    if confidence >= 0.8:
        return ConfidenceLevel.HIGH
    if confidence >= 0.6:
        return ConfidenceLevel.MEDIUM
    return ConfidenceLevel.LOW


class ReadinessForecaster:
    """
    Predicts hospital readiness from capacity history.

    Args:
        settings: Forecast settings (window, horizon, damping, caps)
        history: Source of capacity observations per hospital
        clock: Callable returning the current time; local time, since
            the day/night factor reads the hour
    """

    def __init__(
        self,
        settings: Optional[ForecastSettings] = None,
        history: Optional[CapacityHistorySource] = None,
        clock: Callable[[], datetime] = local_now,
    ):
        self.settings = settings or ForecastSettings()
        self.history = history
        self._clock = clock

    def _seasonal_factor(self, hour: int) -> float:
        s = self.settings
        if s.day_start_hour <= hour <= s.day_end_hour:
            return s.day_factor
        return s.night_factor

    def _confidence(self, observations: Sequence[CapacityObservation], horizon: int) -> float:
        s = self.settings
        data_confidence = min(1.0, len(observations) / s.lookback_window)
        horizon_confidence = max(0.3, 1 - horizon * 0.15)
        recent_beds = [o.available_beds for o in observations[-s.trend_window:]]
        volatility_confidence = max(0.3, 1 - volatility(recent_beds) / 20)
        confidence = (
            data_confidence * 0.4 + horizon_confidence * 0.4 + volatility_confidence * 0.2
        )
        return round_half_up(confidence, 2)

    def forecast(
        self,
        observations: Sequence[CapacityObservation],
        horizon: Optional[int] = None,
    ) -> Iterator[ForecastPoint]:
        """
        Yield one ForecastPoint per hour ahead.

        The returned generator is single-use.

        Args:
            observations: Capacity history, oldest first
            horizon: Number of hours to predict; defaults to the configured horizon

        Yields:
            ForecastPoint for horizons 1..horizon

        Raises:
            ValueError: if there are no observations
        """
        s = self.settings
        horizon = horizon or s.prediction_horizon
        window = list(observations)[-s.lookback_window:]
        if not window:
            raise ValueError("At least one capacity observation is required")

        now = self._clock()

        if len(window) < s.trend_window:
            avg_beds = sum(o.available_beds for o in window) / len(window)
            avg_icu = sum(o.available_icu for o in window) / len(window)
            for h in range(1, horizon + 1):
                yield ForecastPoint(
                    horizon=h,
                    timestamp=now + timedelta(hours=h),
                    predicted_beds=int(round_half_up(avg_beds)),
                    predicted_icu=int(round_half_up(avg_icu)),
                    predicted_ventilators=int(round_half_up(avg_icu * s.ventilator_ratio)),
                    confidence=DEGRADED_CONFIDENCE,
                )
            return

        bed_series = [o.available_beds for o in window]
        icu_series = [o.available_icu for o in window]
        bed_trend = linear_trend(bed_series[-s.trend_window:])
        icu_trend = linear_trend(icu_series[-s.trend_window:])
        bed_level = exponential_smoothing(bed_series, s.smoothing_alpha)
        icu_level = exponential_smoothing(icu_series, s.smoothing_alpha)

        for h in range(1, horizon + 1):
            predicted_beds = bed_level + bed_trend * h * s.bed_damping
            predicted_beds *= self._seasonal_factor((now.hour + h) % 24)
            predicted_beds = max(0, min(s.bed_cap, round_half_up(predicted_beds)))

            predicted_icu = icu_level + icu_trend * h * s.icu_damping
            predicted_icu = max(0, min(s.icu_cap, round_half_up(predicted_icu)))

            yield ForecastPoint(
                horizon=h,
                timestamp=now + timedelta(hours=h),
                predicted_beds=int(predicted_beds),
                predicted_icu=int(predicted_icu),
                predicted_ventilators=int(
                    max(0, round_half_up(predicted_icu * s.ventilator_ratio))
                ),
                confidence=self._confidence(window, h),
            )

    def _to_readiness(self, point: ForecastPoint, hospital: HospitalSnapshot) -> ReadinessPoint:
        bed = resource_readiness(point.predicted_beds, hospital.capacity.total_beds)
        icu = resource_readiness(point.predicted_icu, hospital.capacity.total_icu)
        return ReadinessPoint(
            **point.model_dump(),
            bed_readiness=bed,
            icu_readiness=icu,
            composite_readiness=int(round_half_up(bed * 0.4 + icu * 0.6)),
            confidence_level=confidence_level(point.confidence),
        )

    def _envelope(
        self, hospital: HospitalSnapshot, points: List[ReadinessPoint], degraded: bool
    ) -> ReadinessForecast:
        return ReadinessForecast(
            hospital_id=hospital.hospital_id,
            hospital_name=hospital.name,
            current_status={
                "available_beds": hospital.capacity.available_beds,
                "available_icu": hospital.capacity.available_icu,
                "current_load": hospital.current_load.value if hospital.current_load else None,
            },
            predictions=points,
            generated_at=self._clock(),
            degraded=degraded,
        )

    def predict_hospital_readiness(self, hospital: HospitalSnapshot) -> ReadinessForecast:
        """
        Predict readiness for one hospital.

        History is pulled from the configured source. With no history at all,
        the hospital's current availability is used as a single observation.

        Args:
            hospital: Hospital snapshot

        Returns:
            ReadinessForecast with one ReadinessPoint per horizon step
        """
        observations: List[CapacityObservation] = []
        if self.history is not None:
            observations = self.history.get_observations(
                hospital.hospital_id, self.settings.lookback_window
            )
        if not observations:
            logger.debug(
                f"No capacity history for {hospital.hospital_id}, using current availability"
            )
            observations = [
                CapacityObservation(
                    timestamp=self._clock(),
                    available_beds=hospital.capacity.available_beds,
                    available_icu=hospital.capacity.available_icu,
                )
            ]

        points = [self._to_readiness(p, hospital) for p in self.forecast(observations)]
        return self._envelope(hospital, points, degraded=False)

    def default_forecast(self, hospital: HospitalSnapshot) -> ReadinessForecast:
        """Forecast that repeats current availability at confidence 0.5."""
        now = self._clock()
        capacity = hospital.capacity
        points = [
            self._to_readiness(
                ForecastPoint(
                    horizon=h,
                    timestamp=now + timedelta(hours=h),
                    predicted_beds=capacity.available_beds,
                    predicted_icu=capacity.available_icu,
                    predicted_ventilators=capacity.available_ventilators,
                    confidence=DEGRADED_CONFIDENCE,
                ),
                hospital,
            )
            for h in range(1, self.settings.prediction_horizon + 1)
        ]
        return self._envelope(hospital, points, degraded=True)
