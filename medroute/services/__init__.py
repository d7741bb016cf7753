"""
Service layer for MedRoute.

This package contains the dispatch service that exposes destination selection,
trip tracking and audit verification as one set of operations.
"""

from medroute.services.dispatch import DispatchService
