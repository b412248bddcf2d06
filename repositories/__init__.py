"""
Repository Layer - Data Access Abstraction
Implements the Repository Pattern for database isolation
"""

from .base_repository import BaseRepository, SortOrder
from .property_repository import PropertyRepository
from .floor_plan_repository import FloorPlanRepository
from .unit_repository import UnitRepository

__all__ = [
    'BaseRepository',
    'SortOrder',
    'PropertyRepository',
    'FloorPlanRepository',
    'UnitRepository',
]
