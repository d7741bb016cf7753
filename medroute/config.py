"""
Configuration for MedRoute.

Settings are read from a YAML file (path given explicitly or via the
MEDROUTE_CONFIG environment variable) after loading a .env file, then selected
values are overridden from the environment. Every scoring weight and deviation
threshold used by the core lives here as a default.
"""

import logging
import os
from typing import Any, Dict, List, Literal, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Environment variable -> (section, key)
ENV_OVERRIDES = {
    "MEDROUTE_STORAGE_BACKEND": ("storage", "backend"),
    "MEDROUTE_MONGODB_URI": ("storage", "mongodb_uri"),
    "MEDROUTE_MONGODB_DB": ("storage", "mongodb_db"),
    "MEDROUTE_LOG_LEVEL": ("logging", "level"),
    "MEDROUTE_ROUTE_SOURCE": ("travel", "route_source"),
}


class ScoringWeights(BaseModel):
    """Weights of the five sub-scores in the composite score."""

    availability: float = Field(default=0.30, ge=0.0)
    specialist: float = Field(default=0.20, ge=0.0)
    travel: float = Field(default=0.25, ge=0.0)
    equipment: float = Field(default=0.15, ge=0.0)
    load: float = Field(default=0.10, ge=0.0)

    @model_validator(mode="after")
    def check_sum(self):
        total = (
            self.availability + self.specialist + self.travel + self.equipment + self.load
        )
        if abs(total - 1.0) > 1e-6:
            raise ValueError(f"Scoring weights must sum to 1.0, got {total}")
        return self


class OptimizationSettings(BaseModel):
    weights: ScoringWeights = Field(default_factory=ScoringWeights)
    max_workers: int = Field(default=8, ge=1, description="Fan-out thread pool size.")
    system_version: str = "2.0.0"


class ForecastSettings(BaseModel):
    lookback_window: int = Field(default=24, ge=1)
    prediction_horizon: int = Field(default=4, ge=1)
    trend_window: int = Field(default=6, ge=2)
    smoothing_alpha: float = Field(default=0.3, gt=0.0, le=1.0)
    bed_damping: float = 0.5
    icu_damping: float = 0.3
    bed_cap: int = 100
    icu_cap: int = 20
    ventilator_ratio: float = 0.7
    day_start_hour: int = Field(default=8, ge=0, le=23)
    day_end_hour: int = Field(default=20, ge=0, le=23)
    day_factor: float = 1.1
    night_factor: float = 0.9


class TravelSettings(BaseModel):
    base_speed_kmh: float = Field(default=40.0, gt=0.0)
    priority_multiplier: float = Field(default=1.15, gt=0.0)
    fallback_inflation: float = 1.2
    cache_ttl_seconds: float = Field(default=300.0, ge=0.0)
    cache_precision: int = Field(default=5, ge=0)
    route_source: Literal["straight", "osrm"] = "straight"
    osrm_url: str = "http://router.project-osrm.org"
    request_timeout: float = 10.0
    max_workers: int = Field(default=4, ge=1)


class TrackingSettings(BaseModel):
    off_route_threshold_m: float = 200.0
    heading_threshold_deg: float = 45.0
    # "normalized" compares the raw clockwise offset, "smallest" folds it into [0, 180]
    heading_mode: Literal["normalized", "smallest"] = "normalized"
    delay_threshold_minutes: float = 5.0
    high_distance_m: float = 500.0
    high_delay_minutes: float = 10.0
    medium_distance_m: float = 300.0
    medium_delay_minutes: float = 5.0
    history_limit: int = Field(default=100, ge=1)
    default_planned_duration_minutes: float = 30.0
    assumed_speed_kmh: float = Field(default=40.0, gt=0.0)


class AuditSettings(BaseModel):
    genesis_hash: str = "genesis"
    redaction_marker: str = "***REDACTED***"
    sensitive_fields: List[str] = Field(
        default_factory=lambda: [
            "name",
            "phone",
            "patient_name",
            "patient_phone",
            "phone_number",
            "contact_phone",
        ]
    )
    nested_patient_keys: List[str] = Field(
        default_factory=lambda: ["patient", "patient_info", "patient_condition"]
    )
    page_limit: int = Field(default=50, ge=1)
    append_retries: int = Field(default=3, ge=1)


class StorageSettings(BaseModel):
    backend: Literal["memory", "mongodb"] = "memory"
    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_db: str = "medroute"


class LoggingSettings(BaseModel):
    level: str = "INFO"
    file: Optional[str] = None


class Settings(BaseModel):
    """Top-level settings object passed to every service at construction."""

    optimization: OptimizationSettings = Field(default_factory=OptimizationSettings)
    forecast: ForecastSettings = Field(default_factory=ForecastSettings)
    travel: TravelSettings = Field(default_factory=TravelSettings)
    tracking: TrackingSettings = Field(default_factory=TrackingSettings)
    audit: AuditSettings = Field(default_factory=AuditSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


def _apply_env_overrides(data: Dict[str, Any]) -> Dict[str, Any]:
    for env_var, (section, key) in ENV_OVERRIDES.items():
        value = os.getenv(env_var)
        if value:
            data.setdefault(section, {})[key] = value
    return data


def load_settings(path: Optional[str] = None) -> Settings:
    """
    Load settings from YAML and the environment.

    Args:
        path: Optional YAML file path. Falls back to MEDROUTE_CONFIG.

    Returns:
        Validated Settings. A missing file yields defaults plus env overrides.

    Raises:
        pydantic.ValidationError: if the resulting settings are invalid,
            e.g. scoring weights that do not sum to 1.
    """
    load_dotenv()
    path = path or os.getenv("MEDROUTE_CONFIG")

    data: Dict[str, Any] = {}
    if path:
        if os.path.exists(path):
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}
            logger.info(f"Loaded settings from {path}")
        else:
            logger.warning(f"Settings file {path} not found, using defaults")

    return Settings.model_validate(_apply_env_overrides(data))


def configure_logging(settings: Settings) -> None:
    """Configure root logging from the logging section of the settings."""
    level = getattr(logging, settings.logging.level.upper(), logging.INFO)
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if settings.logging.file:
        handlers.append(logging.FileHandler(settings.logging.file))
    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)
