# equipment_tracker/services/__init__.py
"""
Business logic services for the Equipment Tracker.
"""
from equipment_tracker.services.identifiers import IdAllocator
from equipment_tracker.services.name_index import NameIndex

__all__ = [
    "IdAllocator",
    "NameIndex",
]
