"""Mapping layer - classes to entities, attributes to columns."""

from __future__ import annotations

from row_orm.mapping.attribute import Attribute
from row_orm.mapping.column import ColumnMapping
from row_orm.mapping.orm import EntityMapping
from row_orm.mapping.registry import MappingRegistry

__all__ = [
    "Attribute",
    "ColumnMapping",
    "EntityMapping",
    "MappingRegistry",
]
