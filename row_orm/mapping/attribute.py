"""Mapped attribute descriptor and class introspection helpers.

An Attribute is a data descriptor storing its value in the instance
``__dict__`` under ``storage_key``. Relationship attributes declare their
target class through ``associated_class`` and carry a read hook
(``interceptor``) that runs before the stored value is returned.
"""

from __future__ import annotations

import dataclasses
import inspect
from typing import Any

_CONTEXT_KEY = "__row_orm_context__"
_ASSIGNED_KEY = "__row_orm_assigned__"


class Attribute:
    """Descriptor for a persistent attribute.

    Args:
        default: Value returned while nothing is stored.
        associated_class: Target class (or class name) of a relationship attribute.
        collection: ``list`` or ``dict`` for to-many attributes; a fresh empty
            container is stored on first read without counting as assigned.
        storage_key: Instance ``__dict__`` key; defaults to the attribute name.
    """

    def __init__(
        self,
        default: Any = None,
        *,
        associated_class: type | str | None = None,
        collection: type | None = None,
        storage_key: str | None = None,
    ) -> None:
        self.default = default
        self.associated_class = associated_class
        self.collection = collection
        self.storage_key = storage_key
        self.name: str | None = None
        self.owner: type | None = None
        self.interceptor: Any = None

    def __set_name__(self, owner: type, name: str) -> None:
        self.owner = owner
        self.name = name
        if self.storage_key is None:
            self.storage_key = name

    def __repr__(self) -> str:
        owner = self.owner.__name__ if self.owner else "?"
        return f"<Attribute {owner}.{self.name}>"

    def __get__(self, instance: Any, owner: type | None = None) -> Any:
        if instance is None:
            return self
        if self.interceptor is not None:
            return self.interceptor.on_read(instance, self)
        return self.get_value(instance)

    def __set__(self, instance: Any, value: Any) -> None:
        self.set_value(instance, value)
        if self.interceptor is not None:
            self.interceptor.on_write(instance, self)

    def get_value(self, instance: Any) -> Any:
        """Return the stored value without running the read hook."""
        storage = instance.__dict__
        if self.storage_key in storage:
            return storage[self.storage_key]
        if self.collection is not None and self.default is None:
            value = self.collection()
            storage[self.storage_key] = value
            return value
        return self.default

    def set_value(self, instance: Any, value: Any) -> None:
        """Store *value* without running the write hook."""
        storage = instance.__dict__
        storage[self.storage_key] = value
        storage.setdefault(_ASSIGNED_KEY, set()).add(self.storage_key)

    def is_assigned(self, instance: Any) -> bool:
        """Return True if a value was assigned or loaded, not just materialized by a read."""
        return self.storage_key in instance.__dict__.get(_ASSIGNED_KEY, ())


def find_attribute(cls: type, name: str) -> Attribute | None:
    """Return the Attribute descriptor called *name* declared on *cls* or a base."""
    for klass in cls.__mro__:
        candidate = klass.__dict__.get(name)
        if isinstance(candidate, Attribute):
            return candidate
    return None


def declared_attributes(cls: type) -> set[str]:
    """Collect attribute names a class declares.

    Looks at Attribute descriptors, dataclass fields, Pydantic fields,
    annotations, ``__init__`` parameters and plain class attributes.
    """
    names: set[str] = set()
    for klass in reversed(cls.__mro__):
        if klass is object:
            continue
        for name, value in vars(klass).items():
            if name.startswith("__"):
                continue
            if isinstance(value, Attribute) or not callable(value):
                names.add(name)
        names.update(getattr(klass, "__annotations__", {}))

    if dataclasses.is_dataclass(cls):
        names.update(f.name for f in dataclasses.fields(cls))

    if hasattr(cls, "model_fields"):
        names.update(cls.model_fields.keys())

    try:
        sig = inspect.signature(cls.__init__)  # type: ignore[misc]
        names.update(
            name
            for name, param in sig.parameters.items()
            if name != "self" and param.kind not in (param.VAR_POSITIONAL, param.VAR_KEYWORD)
        )
    except (ValueError, TypeError):
        pass
    return names


def initial_values(cls: type) -> dict[str, Any]:
    """Default instance values for an object allocated without ``__init__``."""
    if not dataclasses.is_dataclass(cls):
        return {}
    result: dict[str, Any] = {}
    for f in dataclasses.fields(cls):
        if isinstance(cls.__dict__.get(f.name), Attribute):
            continue
        if f.default is not dataclasses.MISSING:
            result[f.name] = f.default
        elif f.default_factory is not dataclasses.MISSING:
            result[f.name] = f.default_factory()
        else:
            result[f.name] = None
    return result


def bind_context(instance: Any, context: Any) -> None:
    """Associate *instance* with the persistence context that loaded it."""
    instance.__dict__[_CONTEXT_KEY] = context


def unbind_context(instance: Any) -> None:
    instance.__dict__.pop(_CONTEXT_KEY, None)


def persistence_context(instance: Any) -> Any:
    """Return the persistence context *instance* is bound to, or None."""
    return getattr(instance, "__dict__", {}).get(_CONTEXT_KEY)
