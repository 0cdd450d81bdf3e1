"""Declarative persistence definitions.

A PersistenceDefinition describes entities, class mappings, relationships and
value generators as plain data (a dict or a JSON file). ``inject`` turns it
into a ready EntityManager.

Example definition::

    {
        "name": "hr",
        "entities": [
            {"name": "dept", "columns": ["deptno", "dname"], "primary_key": ["deptno"]}
        ],
        "mappings": [
            {"class": "myapp.models.Dept", "entity": "dept",
             "columns": {"deptno": "id", "dname": "name"}}
        ]
    }
"""

from __future__ import annotations

import importlib
import json
import logging
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from row_orm.core.connection import Connection
from row_orm.core.enums import Cascade, FetchMethod
from row_orm.core.exceptions import DefinitionError
from row_orm.mapping.registry import MappingRegistry
from row_orm.persistence.manager import EntityManager
from row_orm.schema.entity import Entity, SQLRelationship
from row_orm.schema.generator import SequenceGenerator, TableGenerator

logger = logging.getLogger(__name__)


# --- Definition models ---


class SQLRelationshipDefinition(BaseModel):
    """Join between an entity and a target entity."""

    target_entity: str
    join_columns: list[str] = []
    name: str | None = None
    order_by: str | None = None


class EntityDefinition(BaseModel):
    """A table with its keys and relationships."""

    name: str
    columns: list[str]
    primary_key: list[str] = []
    unique_columns: list[str] = []
    to_one_relationships: list[SQLRelationshipDefinition] = []
    to_many_relationships: list[SQLRelationshipDefinition] = []
    value_generators: dict[str, str] = {}
    dml_filter_values: dict[str, Any] = {}
    filter_condition_values: dict[str, Any] = {}


class RelationshipDefinition(BaseModel):
    """An ORM relationship on a mapped class attribute."""

    kind: Literal["to_one", "one_to_many", "many_to_many"]
    attribute: str
    name: str
    fetch_method: FetchMethod = FetchMethod.LAZY
    cascade: Cascade = Cascade.NONE
    join_entity_name: str | None = None
    index_by: str | None = None

    @field_validator("fetch_method", "cascade", mode="before")
    @classmethod
    def _enum_name(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.lower()
        return value

    @model_validator(mode="after")
    def _check_join_entity(self) -> RelationshipDefinition:
        if self.kind == "many_to_many" and not self.join_entity_name:
            raise ValueError(f"many_to_many '{self.attribute}' requires join_entity_name")
        return self


class OrmDefinition(BaseModel):
    """Mapping of a class to an entity."""

    model_config = ConfigDict(populate_by_name=True)

    class_name: str = Field(alias="class")
    entity: str
    columns: dict[str, str] = {}
    relationships: list[RelationshipDefinition] = []


class GeneratorDefinition(BaseModel):
    """A named value generator entities refer to."""

    name: str
    kind: Literal["table", "sequence"] = "table"
    sequence_name: str | None = None
    table: str = "seq_generator"
    name_column: str = "pk_column"
    value_column: str = "value_column"
    initial_value: int = 1
    allocation_size: int = 1


class PersistenceDefinition(BaseModel):
    """Everything one EntityManager needs."""

    name: str = "default"
    entities: list[EntityDefinition] = []
    mappings: list[OrmDefinition] = []
    value_generators: list[GeneratorDefinition] = []


# --- Loading ---


def load_definition(source: Mapping[str, Any] | str | Path) -> PersistenceDefinition:
    """Parse a definition from a dict or a JSON file path.

    Raises:
        DefinitionError: If the file cannot be read or the content is invalid.
    """
    try:
        if isinstance(source, Mapping):
            return PersistenceDefinition.model_validate(dict(source))
        path = Path(source)
        return PersistenceDefinition.model_validate(json.loads(path.read_text(encoding="utf-8")))
    except (OSError, ValueError, ValidationError) as e:
        raise DefinitionError(f"Invalid persistence definition: {e}") from e


def _resolve_class(name: str, classes: Mapping[str, type]) -> type:
    if name in classes:
        return classes[name]
    short_name = name.rsplit(".", 1)[-1]
    if short_name in classes:
        return classes[short_name]
    module_path, _, cls_name = name.rpartition(".")
    if not module_path:
        raise DefinitionError(f"Cannot resolve class '{name}': not given and not a dotted path")
    try:
        module = importlib.import_module(module_path)
        return getattr(module, cls_name)
    except (ImportError, AttributeError) as e:
        raise DefinitionError(f"Cannot resolve class '{name}': {e}") from e


def _classes_by_name(classes: Mapping[str, type] | Iterable[type] | None) -> dict[str, type]:
    if classes is None:
        return {}
    if isinstance(classes, Mapping):
        return dict(classes)
    return {cls.__name__: cls for cls in classes}


def _build_generator(definition: GeneratorDefinition, connection: Connection) -> Any:
    if definition.kind == "sequence":
        return SequenceGenerator(connection, definition.sequence_name or definition.name)
    return TableGenerator(
        connection,
        definition.name,
        table=definition.table,
        name_column=definition.name_column,
        value_column=definition.value_column,
        initial_value=definition.initial_value,
        allocation_size=definition.allocation_size,
    )


def _build_entity(definition: EntityDefinition) -> Entity:
    return Entity(
        definition.name,
        columns=definition.columns,
        primary_key=definition.primary_key,
        unique_columns=definition.unique_columns,
        to_one_relationships=[
            SQLRelationship(**r.model_dump()) for r in definition.to_one_relationships
        ],
        to_many_relationships=[
            SQLRelationship(**r.model_dump()) for r in definition.to_many_relationships
        ],
        value_generators=definition.value_generators,
        dml_filter_values=definition.dml_filter_values,
        filter_condition_values=definition.filter_condition_values,
    )


def inject(
    definition: PersistenceDefinition | Mapping[str, Any] | str | Path,
    connection: Connection,
    classes: Mapping[str, type] | Iterable[type] | None = None,
    registry: MappingRegistry | None = None,
) -> EntityManager:
    """Build entities, mappings and relationships and return an EntityManager.

    Args:
        definition: A PersistenceDefinition, or anything load_definition accepts.
        connection: Connection for the new EntityManager.
        classes: Mapped classes by name (or an iterable of classes). Names not
            found here are imported as dotted paths.
        registry: Registry to add the mappings to; a new one by default.

    Raises:
        DefinitionError: On unresolvable classes or unknown entity references.
    """
    if not isinstance(definition, PersistenceDefinition):
        definition = load_definition(definition)
    registry = registry if registry is not None else MappingRegistry()
    manager = EntityManager(connection, registry, definition.name)

    for generator in definition.value_generators:
        manager.add_value_generator(generator.name, _build_generator(generator, connection))

    entities = [_build_entity(e) for e in definition.entities]
    manager.add_entities(*entities)
    known = {entity.name for entity in entities}
    for entity in entities:
        for relationship in entity.sql_relationships:
            if relationship.target_entity not in known:
                raise DefinitionError(
                    f"Entity '{entity.name}' relationship '{relationship.name}' targets "
                    f"unknown entity '{relationship.target_entity}'"
                )

    by_name = _classes_by_name(classes)
    for orm in definition.mappings:
        if orm.entity not in known:
            raise DefinitionError(
                f"Mapping of '{orm.class_name}' refers to unknown entity '{orm.entity}'"
            )
        cls = _resolve_class(orm.class_name, by_name)
        mapping = registry.entity(orm.entity, cls, orm.columns)
        for rel in orm.relationships:
            options: dict[str, Any] = {"fetch_method": rel.fetch_method, "cascade": rel.cascade}
            if rel.kind == "to_one":
                mapping.to_one(rel.name, rel.attribute, **options)
            elif rel.kind == "one_to_many":
                mapping.one_to_many(rel.name, rel.attribute, index_by=rel.index_by, **options)
            else:
                mapping.many_to_many(
                    rel.name,
                    rel.attribute,
                    join_entity_name=rel.join_entity_name or "",
                    index_by=rel.index_by,
                    **options,
                )
        logger.debug("Injected mapping %r", mapping)
    return manager
