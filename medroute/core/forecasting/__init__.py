"""
Capacity forecasting for MedRoute.

This package predicts short-horizon bed and ICU availability for hospitals and
converts predictions into readiness percentages.
"""

from medroute.core.forecasting.forecaster import (
    ReadinessForecaster,
    confidence_level,
    exponential_smoothing,
    linear_trend,
    resource_readiness,
)
