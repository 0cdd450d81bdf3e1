"""Cascade engine.

Applies insert, update, delete and merge to a root object and, following the
cascade policy of each relationship, to the objects it references. To-many
collections are reconciled against the rows already stored: new members are
inserted, known members updated and rows no longer in the collection deleted.

Items reaching the engine are classified once, at entry, as a MappedObject
(an instance of a mapped class) or a RawRow (a plain column-value dict).
"""

from __future__ import annotations

import logging
from collections.abc import Hashable, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from row_orm.core.enums import CascadeState, LazyState, Operation, TriggerEvent
from row_orm.core.exceptions import UnmappedClassError
from row_orm.mapping.attribute import persistence_context
from row_orm.relationship.base import ManyToMany

if TYPE_CHECKING:
    from row_orm.mapping.orm import EntityMapping
    from row_orm.persistence.manager import EntityManager
    from row_orm.relationship.base import Relationship
    from row_orm.schema.entity import Entity, SQLRelationship

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MappedObject:
    """An instance of a mapped class with its mapping."""

    mapping: EntityMapping
    instance: Any


@dataclass(frozen=True)
class RawRow:
    """A plain column-value dataset."""

    values: dict[str, Any]


Item = MappedObject | RawRow


class CascadeEngine:
    """Executes cascading writes for one EntityManager.

    Every public operation is one unit of work (PENDING -> EXECUTING ->
    COMMITTED or FAILED) run inside ``connection.transaction()``: it joins a
    transaction the caller already opened, otherwise it commits or rolls back
    as a whole.
    """

    def __init__(self, manager: EntityManager) -> None:
        self.manager = manager
        self.last_state: CascadeState | None = None
        self._active: dict[Hashable, Any] = {}

    @property
    def relationships(self) -> Any:
        return self.manager.registry.relationships

    # --- Units of work ---

    @contextmanager
    def _unit(self, operation: str, subject: Any) -> Iterator[None]:
        label = f"{operation} {type(subject).__name__}"
        self._set_state(CascadeState.PENDING, label)
        try:
            with self.manager.connection.transaction():
                self._set_state(CascadeState.EXECUTING, label)
                yield
        except Exception:
            self._set_state(CascadeState.FAILED, label)
            raise
        self._set_state(CascadeState.COMMITTED, label)

    def _set_state(self, state: CascadeState, label: str) -> None:
        self.last_state = state
        if state is CascadeState.FAILED:
            logger.warning("Cascade %s: %s", label, state.value)
        else:
            logger.debug("Cascade %s: %s", label, state.value)

    def insert(self, obj: Any) -> Any:
        """Insert *obj* with its cascading relationships."""
        mapping = self.manager.registry.require(obj)
        with self._unit("insert", obj):
            self._insert(mapping, obj)
        return obj

    def update(self, obj: Any, *attribute_names: str) -> Any:
        """Update *obj* (all columns, or only those of *attribute_names*)."""
        mapping = self.manager.registry.require(obj)
        with self._unit("update", obj):
            self._update(mapping, obj, attribute_names)
        return obj

    def delete(self, obj: Any) -> None:
        """Delete *obj*, its cascading children first."""
        mapping = self.manager.registry.require(obj)
        with self._unit("delete", obj):
            self._delete(mapping, obj)

    def merge(self, obj: Any) -> Any:
        """Update *obj* if its row exists, insert it otherwise."""
        mapping = self.manager.registry.require(obj)
        with self._unit("merge", obj):
            self._merge(mapping, obj)
        return obj

    def relationship_insert(
        self,
        entity: Entity | str,
        relation_name: str,
        dataset: dict[str, Any],
        *items: Any,
    ) -> dict[str, Any]:
        """Insert rows associated with the *entity* row described by *dataset*.

        For a to-one relationship the (single) item is merged and its key is
        folded into *dataset*, which is returned.
        """
        entity = self._entity(entity)
        sql_relationship = entity.relationship(relation_name)
        with self._unit("relationship_insert", dataset):
            if entity.is_to_one(relation_name):
                self._to_one_merge_into(entity, sql_relationship, dataset, items)
            else:
                self._to_many_insert(entity, sql_relationship, dataset, items)
        return dataset

    def relationship_merge(
        self,
        entity: Entity | str,
        relation_name: str,
        dataset: dict[str, Any],
        *items: Any,
    ) -> dict[str, Any]:
        """Make *items* exactly the rows associated with the *entity* row.

        Rows associated before the call but absent from *items* are deleted.
        """
        entity = self._entity(entity)
        sql_relationship = entity.relationship(relation_name)
        with self._unit("relationship_merge", dataset):
            if entity.is_to_one(relation_name):
                self._to_one_merge_into(entity, sql_relationship, dataset, items)
            else:
                self._to_many_merge(entity, sql_relationship, dataset, items)
        return dataset

    def relationship_delete(
        self,
        entity: Entity | str,
        relation_name: str,
        dataset: dict[str, Any],
        *items: Any,
    ) -> None:
        """Delete the given rows associated with the *entity* row."""
        entity = self._entity(entity)
        sql_relationship = entity.relationship(relation_name)
        target = entity.target(sql_relationship)
        with self._unit("relationship_delete", dataset):
            if entity.is_to_one(relation_name):
                for item in items:
                    self._delete_item(target, self._classify(item), {})
                return
            join_values = self.join_columns_values(entity, sql_relationship, dataset, required=True)
            for item in items:
                self._delete_item(target, self._classify(item), join_values)

    # --- Classification ---

    def _classify(self, item: Any) -> Item:
        if isinstance(item, MappedObject | RawRow):
            return item
        if isinstance(item, Mapping):
            return RawRow(dict(item))
        mapping = self.manager.registry.mapping_for(item)
        if mapping is None:
            raise UnmappedClassError(type(item).__name__)
        return MappedObject(mapping, item)

    def _entity(self, entity: Entity | str) -> Entity:
        return self.manager.entity(entity) if isinstance(entity, str) else entity

    @contextmanager
    def _writing(self, obj: Any, key: Hashable = None) -> Iterator[bool]:
        """Yield False when *obj* (or the row *key*) is already being written in this unit."""
        key = id(obj) if key is None else key
        if key in self._active:
            yield False
            return
        self._active[key] = obj
        try:
            yield True
        finally:
            del self._active[key]

    def _loaded(self, obj: Any, relationship: Relationship) -> bool:
        """Return True if the in-memory value of *relationship* reflects the caller's intent.

        A lazy attribute of an object loaded by this context that was never
        read nor assigned, or an attribute never set on a new object, holds
        nothing and must not be reconciled.
        """
        if persistence_context(obj) is self.manager and not relationship.is_eager:
            return self.manager.lazy_state(obj, relationship.attribute_name) is LazyState.RESOLVED
        return relationship.is_assigned(obj)

    # --- Object operations ---

    def _insert(
        self,
        mapping: EntityMapping,
        obj: Any,
        extra: Mapping[str, Any] | None = None,
        *,
        reconcile: bool = False,
    ) -> None:
        with self._writing(obj) as fresh:
            if not fresh:
                return
            entity = self.manager.entity(mapping.entity_name)
            mapping.run_event(TriggerEvent.BEFORE_INSERT, obj)
            dataset = {**mapping.serialize(obj), **(extra or {})}
            self._fold_to_one(mapping, entity, obj, dataset, Operation.INSERT)
            values = entity.insert(**dataset)
            mapping.update_object(obj, values)
            self._cascade_to_many(
                mapping, entity, obj, values, Operation.INSERT, reconcile=reconcile
            )
            mapping.run_event(TriggerEvent.AFTER_INSERT, obj)

    def _update(
        self,
        mapping: EntityMapping,
        obj: Any,
        attribute_names: tuple[str, ...] = (),
        extra: Mapping[str, Any] | None = None,
    ) -> None:
        with self._writing(obj) as fresh:
            if not fresh:
                return
            entity = self.manager.entity(mapping.entity_name)
            mapping.run_event(TriggerEvent.BEFORE_UPDATE, obj)
            dataset = {**mapping.serialize(obj), **(extra or {})}
            folded = self._fold_to_one(mapping, entity, obj, dataset, Operation.UPDATE)
            condition = entity.primary_key_values(dataset, required=True) or {}
            mapping.update_object(obj, condition)
            if attribute_names:
                selected = {mapping.attribute_to_column(name) for name in attribute_names}
                selected.update(folded)
                selected.update(extra or {})
                fields = {k: v for k, v in dataset.items() if k in selected}
            else:
                fields = dict(dataset)
            fields = {k: v for k, v in fields.items() if k not in condition}
            if fields:
                entity.update(fields, condition)
            self._cascade_to_many(
                mapping, entity, obj, {**dataset, **condition}, Operation.UPDATE, reconcile=True
            )
            mapping.run_event(TriggerEvent.AFTER_UPDATE, obj)

    def _merge(
        self,
        mapping: EntityMapping,
        obj: Any,
        extra: Mapping[str, Any] | None = None,
    ) -> None:
        if id(obj) in self._active:
            return
        entity = self.manager.entity(mapping.entity_name)
        dataset = {**mapping.serialize(obj), **(extra or {})}
        condition = entity.unique_condition_values(dataset)
        if condition and entity.find(None, **condition):
            self._update(mapping, obj, extra=extra)
        else:
            self._insert(mapping, obj, extra, reconcile=True)

    def _delete(self, mapping: EntityMapping, obj: Any) -> None:
        entity = self.manager.entity(mapping.entity_name)
        dataset = mapping.serialize(obj)
        key = entity.primary_key_values(dataset, required=True) or {}
        dataset.update(key)
        # a cycle reaches the same row through another object
        with self._writing(obj, (entity.name, entity.primary_key_signature(key))) as fresh:
            if not fresh:
                return
            mapping.run_event(TriggerEvent.BEFORE_DELETE, obj)
            cls = mapping.mapped_class

            for relationship in self.relationships.relationships_for(
                cls, Operation.DELETE, to_one=False
            ):
                if isinstance(relationship, ManyToMany):
                    owner_to_join = entity.relationship(relationship.join_entity_name)
                    join_entity = entity.target(owner_to_join)
                    join_entity.delete(
                        **self.join_columns_values(entity, owner_to_join, dataset, required=True)
                    )
                    continue
                children = relationship.fetch(obj, self.manager, mapping)
                members = children.values() if isinstance(children, dict) else children
                for child in list(members):
                    self._delete(self.manager.registry.require(child), child)

            to_one_targets = [
                relationship.fetch(obj, self.manager, mapping)
                for relationship in self.relationships.relationships_for(
                    cls, Operation.DELETE, to_one=True
                )
            ]
            entity.delete(**key)
            for target_obj in to_one_targets:
                if target_obj is not None:
                    self._delete(self.manager.registry.require(target_obj), target_obj)

            mapping.run_event(TriggerEvent.AFTER_DELETE, obj)
            self.manager.detach(obj)

    # --- To-one ---

    def _fold_to_one(
        self,
        mapping: EntityMapping,
        entity: Entity,
        obj: Any,
        dataset: dict[str, Any],
        operation: Operation,
    ) -> dict[str, Any]:
        """Fold the keys of referenced objects into *dataset*; returns the folded values.

        Cascading targets are merged first. Non-cascading ones, and targets
        already being written in this unit, only contribute their key.
        """
        folded: dict[str, Any] = {}
        for relationship in self.relationships.relationships_for(
            mapping.mapped_class, to_one=True
        ):
            if operation is not Operation.INSERT and not self._loaded(obj, relationship):
                continue
            target_obj = relationship.attribute.get_value(obj)
            if target_obj is None:
                continue
            sql_relationship = entity.relationship(relationship.name)
            item = self._classify(target_obj)
            if relationship.applies_to(operation) and not (
                isinstance(item, MappedObject) and id(item.instance) in self._active
            ):
                values = self._to_one_merge(entity, sql_relationship, item)
            else:
                values = {
                    k: v
                    for k, v in self._to_one_key(entity, sql_relationship, item).items()
                    if v is not None
                }
            folded.update(values)
        dataset.update(folded)
        mapping.update_object(obj, folded)
        return folded

    def _to_one_merge(
        self,
        entity: Entity,
        sql_relationship: SQLRelationship,
        item: Item,
    ) -> dict[str, Any]:
        target = entity.target(sql_relationship)
        column_values = self._merge_item(target, item)
        return self.join_columns_values(entity, sql_relationship, column_values, required=True)

    def _to_one_key(
        self,
        entity: Entity,
        sql_relationship: SQLRelationship,
        item: Item,
    ) -> dict[str, Any]:
        target = entity.target(sql_relationship)
        if isinstance(item, MappedObject):
            column_values = item.mapping.unique_values(item.instance, target)
        else:
            column_values = item.values
        return self.join_columns_values(entity, sql_relationship, column_values)

    def _to_one_merge_into(
        self,
        entity: Entity,
        sql_relationship: SQLRelationship,
        dataset: dict[str, Any],
        items: tuple[Any, ...],
    ) -> None:
        if not items or items[0] is None:
            return
        dataset.update(self._to_one_merge(entity, sql_relationship, self._classify(items[0])))

    # --- To-many ---

    def _cascade_to_many(
        self,
        mapping: EntityMapping,
        entity: Entity,
        obj: Any,
        dataset: Mapping[str, Any],
        operation: Operation,
        *,
        reconcile: bool,
    ) -> None:
        for relationship in self.relationships.relationships_for(
            mapping.mapped_class, operation, to_one=False
        ):
            if operation is not Operation.INSERT and not self._loaded(obj, relationship):
                continue
            items = tuple(relationship.values(obj))
            if isinstance(relationship, ManyToMany):
                self._many_to_many(entity, relationship, dataset, items, reconcile=reconcile)
                continue
            sql_relationship = entity.relationship(relationship.name)
            if reconcile:
                self._to_many_merge(entity, sql_relationship, dataset, items)
            else:
                self._to_many_insert(entity, sql_relationship, dataset, items)

    def _to_many_insert(
        self,
        entity: Entity,
        sql_relationship: SQLRelationship,
        dataset: Mapping[str, Any],
        items: tuple[Any, ...],
    ) -> None:
        target = entity.target(sql_relationship)
        join_values = self.join_columns_values(entity, sql_relationship, dataset, required=True)
        for item in map(self._classify, items):
            if isinstance(item, MappedObject):
                item.mapping.update_object(item.instance, join_values)
                self._insert(item.mapping, item.instance, join_values)
            else:
                target.insert(**{**item.values, **join_values})

    def _to_many_merge(
        self,
        entity: Entity,
        sql_relationship: SQLRelationship,
        dataset: Mapping[str, Any],
        items: tuple[Any, ...],
    ) -> None:
        """Reconcile the rows associated with *dataset* to exactly *items*."""
        target = entity.target(sql_relationship)
        join_values = self.join_columns_values(entity, sql_relationship, dataset, required=True)
        existing = target.find(None, **join_values)

        kept: set[tuple[Any, ...]] = set()
        for item in map(self._classify, items):
            column_values = self._merge_item(target, item, join_values)
            key = target.primary_key_values(column_values, required=True) or {}
            kept.add(target.primary_key_signature(key))

        for row in existing:
            key = target.primary_key_values(row, required=True) or {}
            if target.primary_key_signature(key) in kept:
                continue
            logger.debug("Deleting orphaned '%s' row %s", target.name, key)
            target.delete(**key)

    def _many_to_many(
        self,
        entity: Entity,
        relationship: ManyToMany,
        dataset: Mapping[str, Any],
        items: tuple[Any, ...],
        *,
        reconcile: bool,
    ) -> None:
        """Merge the targets and keep one join row per target.

        With *reconcile*, join rows whose target is not among *items* are deleted.
        """
        owner_to_join = entity.relationship(relationship.join_entity_name)
        join_entity = entity.target(owner_to_join)
        join_to_target = join_entity.relationship(relationship.name)
        target = join_entity.target(join_to_target)
        owner_side = self.join_columns_values(entity, owner_to_join, dataset, required=True)
        target_columns = join_to_target.join_columns

        existing = join_entity.find(None, **owner_side)
        linked = {tuple(row[c] for c in target_columns) for row in existing}

        kept: set[tuple[Any, ...]] = set()
        for item in map(self._classify, items):
            column_values = self._merge_item(target, item)
            target_side = self.join_columns_values(
                join_entity, join_to_target, column_values, required=True
            )
            signature = tuple(target_side[c] for c in target_columns)
            if signature not in linked and signature not in kept:
                join_entity.insert(**{**owner_side, **target_side})
            kept.add(signature)

        if not reconcile:
            return
        for row in existing:
            signature = tuple(row[c] for c in target_columns)
            if signature not in kept:
                target_side = dict(zip(target_columns, signature, strict=True))
                join_entity.delete(**{**owner_side, **target_side})

    # --- Shared helpers ---

    def _merge_item(
        self,
        target: Entity,
        item: Item,
        join_values: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Merge one related item and return column values identifying its row."""
        join_values = dict(join_values or {})
        if isinstance(item, MappedObject):
            item.mapping.update_object(item.instance, join_values)
            self._merge(item.mapping, item.instance, join_values or None)
            return {**join_values, **item.mapping.unique_values(item.instance, target)}
        return target.merge(**{**item.values, **join_values})

    def _delete_item(self, target: Entity, item: Item, join_values: Mapping[str, Any]) -> None:
        if isinstance(item, MappedObject):
            item.mapping.update_object(item.instance, join_values)
            self._delete(item.mapping, item.instance)
        else:
            target.delete(
                **target.unique_condition_values({**item.values, **join_values}, required=True)
            )

    def join_columns_values(
        self,
        entity: Entity,
        sql_relationship: SQLRelationship,
        dataset: Mapping[str, Any],
        required: bool = False,
    ) -> dict[str, Any]:
        """Map the key that *sql_relationship* references onto its join columns.

        The key is the target's primary key for a to-one relationship and the
        owner's for a to-many one. When it is missing from *dataset* it is
        looked up through unique columns.

        Raises:
            PrimaryKeyUnresolvableError: If *required* and no key is found.
        """
        if entity.is_to_one(sql_relationship.name or ""):
            key_entity = entity.target(sql_relationship)
        else:
            key_entity = entity
        key = key_entity.primary_key_values(dataset, required=required) or {}
        return {
            join_column: key.get(column)
            for column, join_column in zip(
                key_entity.primary_key, sql_relationship.join_columns, strict=True
            )
        }
