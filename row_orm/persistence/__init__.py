"""Persistence layer - persistence context and cascading writes."""

from __future__ import annotations

from row_orm.persistence.cascade import CascadeEngine, MappedObject, RawRow
from row_orm.persistence.manager import EntityManager

__all__ = [
    "EntityManager",
    "CascadeEngine",
    "MappedObject",
    "RawRow",
]
