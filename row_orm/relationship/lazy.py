"""Deferred-read interceptor for lazy relationships.

The hook runs on every read of a lazy relationship attribute. Resolution
state lives in the persistence context the object is bound to, keyed by
(object, attribute), and moves UNRESOLVED -> RESOLVING -> RESOLVED.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from row_orm.core.enums import FetchMethod, LazyState
from row_orm.mapping.attribute import persistence_context

if TYPE_CHECKING:
    from row_orm.mapping.attribute import Attribute

logger = logging.getLogger(__name__)


class LazyLoader:
    """Loads a relationship attribute on first read."""

    def on_read(self, instance: Any, attribute: Attribute) -> Any:
        manager = persistence_context(instance)
        if manager is None:
            return attribute.get_value(instance)

        name = attribute.name or ""
        if manager.lazy_state(instance, name) is not LazyState.UNRESOLVED:
            # RESOLVED, or a re-entrant read while the fetch is running
            return attribute.get_value(instance)

        relationship = manager.registry.relationships.find(type(instance), name)
        if relationship is None or relationship.fetch_method is not FetchMethod.LAZY:
            return attribute.get_value(instance)

        manager.set_lazy_state(instance, name, LazyState.RESOLVING)
        try:
            mapping = manager.find_entity_mapping(instance)
            logger.debug("Lazy fetch of %s.%s", type(instance).__name__, name)
            value = relationship.fetch(instance, manager, mapping)
        except Exception:
            manager.set_lazy_state(instance, name, LazyState.UNRESOLVED)
            raise
        attribute.set_value(instance, value)
        manager.set_lazy_state(instance, name, LazyState.RESOLVED)
        return value

    def on_write(self, instance: Any, attribute: Attribute) -> None:
        """Mark an assigned attribute resolved so a later read keeps the assignment."""
        manager = persistence_context(instance)
        if manager is not None:
            manager.set_lazy_state(instance, attribute.name or "", LazyState.RESOLVED)


LAZY_LOADER = LazyLoader()
