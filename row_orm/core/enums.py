"""Enumerations shared across the mapping layer."""

from __future__ import annotations

from enum import Enum


class FetchMethod(Enum):
    """When a relationship is loaded."""

    LAZY = "lazy"
    EAGER = "eager"


class Operation(Enum):
    """Write operations a cascade can propagate."""

    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


class Cascade(Enum):
    """Which write operations propagate across a relationship."""

    NONE = "none"
    ALL = "all"
    ON_INSERT = "on_insert"
    ON_UPDATE = "on_update"
    ON_DELETE = "on_delete"

    def applies_to(self, operation: Operation) -> bool:
        """Return True if this policy cascades the given operation."""
        if self is Cascade.ALL:
            return True
        return self.value == f"on_{operation.value}"


class TriggerEvent(Enum):
    """Lifecycle points a trigger can be attached to."""

    BEFORE_INSERT = "before_insert"
    AFTER_INSERT = "after_insert"
    BEFORE_UPDATE = "before_update"
    AFTER_UPDATE = "after_update"
    BEFORE_DELETE = "before_delete"
    AFTER_DELETE = "after_delete"
    ON_FETCH = "on_fetch"


class LazyState(Enum):
    """Resolution state of a lazy attribute on one object."""

    UNRESOLVED = "unresolved"
    RESOLVING = "resolving"
    RESOLVED = "resolved"


class CascadeState(Enum):
    """Lifecycle of a single top-level cascade operation."""

    PENDING = "pending"
    EXECUTING = "executing"
    COMMITTED = "committed"
    FAILED = "failed"
