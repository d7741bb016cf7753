"""
Decision engine components for MedRoute.

This package contains the sub-score functions and the optimization engine that
ranks hospitals for a patient and selects one destination.
"""

from medroute.core.decision.engine import OptimizationEngine
from medroute.core.decision.scoring import (
    CONDITION_EQUIPMENT,
    composite,
    score_hospital,
)
