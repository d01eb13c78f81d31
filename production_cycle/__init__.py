"""
Production Cycle Client - Production Cycle Package
"""

from .cycle import start_production_cycle, is_production_cycle_running
from .location import LocationConfig, LocationMoveHandler

__all__ = [
    "start_production_cycle", "is_production_cycle_running",
    "LocationConfig", "LocationMoveHandler",
]
