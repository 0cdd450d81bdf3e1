"""Schema layer - SQL entities, statement building and value generators."""

from __future__ import annotations

from row_orm.schema.entity import Entity, SQLRelationship
from row_orm.schema.generator import (
    CallableGenerator,
    SequenceGenerator,
    TableGenerator,
    ValueGenerator,
)

__all__ = [
    "Entity",
    "SQLRelationship",
    "ValueGenerator",
    "CallableGenerator",
    "SequenceGenerator",
    "TableGenerator",
]
