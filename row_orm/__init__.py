"""row-orm - object-relational mapping with cascading relationships."""

from __future__ import annotations

from row_orm.core.connection import Connection, ConnectionConfig
from row_orm.core.enums import (
    Cascade,
    CascadeState,
    FetchMethod,
    LazyState,
    Operation,
    TriggerEvent,
)
from row_orm.core.exceptions import (
    AdapterError,
    ConnectionError,  # noqa: A004
    DefinitionError,
    DuplicateColumnError,
    DuplicateMappingError,
    InvalidCallbackError,
    InvalidTriggerNameError,
    MappingError,
    MissingAssociatedClassError,
    PersistenceError,
    PrimaryKeyUnresolvableError,
    RelationshipError,
    RowOrmError,
    TransactionError,
    TransactionStateError,
    UnknownAttributeError,
    UnknownEntityError,
    UnknownRelationshipError,
    UnmappedClassError,
)
from row_orm.core.transaction import TransactionManager
from row_orm.core.triggers import Triggers
from row_orm.mapping import Attribute, ColumnMapping, EntityMapping, MappingRegistry
from row_orm.meta import PersistenceDefinition, inject, load_definition
from row_orm.persistence import CascadeEngine, EntityManager, MappedObject, RawRow
from row_orm.relationship import (
    LazyLoader,
    ManyToMany,
    OneToMany,
    Relationship,
    RelationshipRegistry,
    ToOne,
)
from row_orm.schema import (
    CallableGenerator,
    Entity,
    SequenceGenerator,
    SQLRelationship,
    TableGenerator,
    ValueGenerator,
)

__all__ = [
    # Connection
    "ConnectionConfig",
    "Connection",
    "TransactionManager",
    # Schema
    "Entity",
    "SQLRelationship",
    "ValueGenerator",
    "CallableGenerator",
    "SequenceGenerator",
    "TableGenerator",
    # Mapping
    "Attribute",
    "ColumnMapping",
    "EntityMapping",
    "MappingRegistry",
    "Triggers",
    # Relationships
    "Relationship",
    "ToOne",
    "OneToMany",
    "ManyToMany",
    "LazyLoader",
    "RelationshipRegistry",
    # Persistence
    "EntityManager",
    "CascadeEngine",
    "MappedObject",
    "RawRow",
    # Definitions
    "PersistenceDefinition",
    "load_definition",
    "inject",
    # Enums
    "Cascade",
    "CascadeState",
    "FetchMethod",
    "LazyState",
    "Operation",
    "TriggerEvent",
    # Exceptions
    "RowOrmError",
    "MappingError",
    "DuplicateColumnError",
    "DuplicateMappingError",
    "InvalidTriggerNameError",
    "InvalidCallbackError",
    "UnknownAttributeError",
    "UnmappedClassError",
    "UnknownEntityError",
    "RelationshipError",
    "MissingAssociatedClassError",
    "UnknownRelationshipError",
    "PersistenceError",
    "PrimaryKeyUnresolvableError",
    "TransactionError",
    "TransactionStateError",
    "DefinitionError",
    "AdapterError",
    "ConnectionError",
]
