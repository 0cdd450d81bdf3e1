"""row-orm exception hierarchy.

Every error raised by the mapping layer carries enough context (class or
entity name, attribute, column or relationship name) to locate the
misconfiguration. Driver exceptions are not wrapped: they reach the caller
unmodified.
"""

from __future__ import annotations

from typing import Any


class RowOrmError(Exception):
    """Base exception for all row-orm errors."""


# --- Mapping ---


class MappingError(RowOrmError):
    """Base for mapping definition errors."""


class DuplicateColumnError(MappingError):
    """Raised when a column or storage slot is mapped twice for one class."""

    def __init__(self, class_name: str, column_name: str, detail: str | None = None) -> None:
        self.class_name = class_name
        self.column_name = column_name
        message = f"Column '{column_name}' is already mapped for class {class_name}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class DuplicateMappingError(MappingError):
    """Raised when a class is mapped to a second entity."""

    def __init__(self, class_name: str, entity_name: str, existing_entity: str) -> None:
        self.class_name = class_name
        self.entity_name = entity_name
        super().__init__(
            f"Class {class_name} is already mapped to entity '{existing_entity}', "
            f"cannot map it to '{entity_name}'"
        )


class InvalidTriggerNameError(MappingError):
    """Raised when a trigger is registered for an unknown event."""

    def __init__(self, owner: str, event_name: str, allowed: tuple[str, ...]) -> None:
        self.owner = owner
        self.event_name = event_name
        super().__init__(
            f"Invalid trigger name '{event_name}' for {owner}, must be one of {', '.join(allowed)}"
        )


class InvalidCallbackError(MappingError):
    """Raised when a trigger callback is not callable."""

    def __init__(self, owner: str, event_name: str, callback: Any) -> None:
        self.owner = owner
        self.event_name = event_name
        super().__init__(
            f"Trigger '{event_name}' for {owner} must be a callable, got {type(callback).__name__}"
        )


class UnknownAttributeError(MappingError):
    """Raised when a mapping refers to an attribute the class does not declare."""

    def __init__(self, class_name: str, attribute_name: str) -> None:
        self.class_name = class_name
        self.attribute_name = attribute_name
        super().__init__(f"Class {class_name} has no attribute '{attribute_name}'")


class UnmappedClassError(MappingError):
    """Raised when an object of a class without an entity mapping is persisted."""

    def __init__(self, class_name: str) -> None:
        self.class_name = class_name
        super().__init__(f"No entity mapping defined for class {class_name}")


class UnknownEntityError(MappingError):
    """Raised when an entity name is not registered with the entity manager."""

    def __init__(self, entity_name: str) -> None:
        self.entity_name = entity_name
        super().__init__(f"Entity not found: '{entity_name}'")


# --- Relationship ---


class RelationshipError(RowOrmError):
    """Base for relationship errors."""


class MissingAssociatedClassError(RelationshipError):
    """Raised when a relationship attribute declares no target class."""

    def __init__(self, class_name: str, attribute_name: str) -> None:
        self.class_name = class_name
        self.attribute_name = attribute_name
        super().__init__(
            f"Associated class must be defined for attribute '{attribute_name}' of {class_name}"
        )


class UnknownRelationshipError(RelationshipError):
    """Raised when a relationship lookup by name fails."""

    def __init__(self, owner: str, relationship_name: str) -> None:
        self.owner = owner
        self.relationship_name = relationship_name
        super().__init__(f"Relationship '{relationship_name}' not found for {owner}")


# --- Persistence ---


class PersistenceError(RowOrmError):
    """Base for persistence operation errors."""


class PrimaryKeyUnresolvableError(PersistenceError):
    """Raised when primary key values can be neither read nor looked up."""

    def __init__(
        self, entity_name: str, dataset: dict[str, Any], detail: str | None = None
    ) -> None:
        self.entity_name = entity_name
        self.dataset = dataset
        message = f"Cannot retrieve {entity_name}'s primary key values from {sorted(dataset)}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


# --- Transaction ---


class TransactionError(RowOrmError):
    """Base for transaction errors."""


class TransactionStateError(TransactionError):
    """Raised on invalid transaction state transitions."""

    def __init__(self, current_state: str, attempted_action: str) -> None:
        self.current_state = current_state
        self.attempted_action = attempted_action
        super().__init__(f"Cannot {attempted_action} transaction in state '{current_state}'")


# --- Definition loading ---


class DefinitionError(RowOrmError):
    """Raised when a declarative persistence definition cannot be applied."""


# --- Adapter ---


class AdapterError(RowOrmError):
    """Base for adapter errors."""


class ConnectionError(AdapterError):  # noqa: A001
    """Raised on connection failures."""
