"""Relationship layer - relationship variants, lazy loading and their catalog."""

from __future__ import annotations

from row_orm.relationship.registry import RelationshipRegistry
from row_orm.relationship.lazy import LazyLoader
from row_orm.relationship.base import ManyToMany, OneToMany, Relationship, ToOne

__all__ = [
    "Relationship",
    "ToOne",
    "OneToMany",
    "ManyToMany",
    "LazyLoader",
    "RelationshipRegistry",
]
