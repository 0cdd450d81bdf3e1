"""Lifecycle trigger slots.

Both entities (row level) and entity mappings (object level) carry one
optional callback per lifecycle event.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, fields
from typing import Any

from row_orm.core.enums import TriggerEvent
from row_orm.core.exceptions import InvalidCallbackError, InvalidTriggerNameError

TRIGGER_NAMES: tuple[str, ...] = tuple(event.value for event in TriggerEvent)

Callback = Callable[..., Any]


@dataclass
class Triggers:
    """Fixed set of optional callback slots, one per TriggerEvent."""

    before_insert: Callback | None = None
    after_insert: Callback | None = None
    before_update: Callback | None = None
    after_update: Callback | None = None
    before_delete: Callback | None = None
    after_delete: Callback | None = None
    on_fetch: Callback | None = None

    def set(self, owner: str, event: str | TriggerEvent, callback: Any) -> None:
        """Validate and store *callback* for *event*.

        Raises:
            InvalidTriggerNameError: If *event* is not a lifecycle event name.
            InvalidCallbackError: If *callback* is not callable.
        """
        name = event.value if isinstance(event, TriggerEvent) else event
        if name not in TRIGGER_NAMES:
            raise InvalidTriggerNameError(owner, str(name), TRIGGER_NAMES)
        if not callable(callback):
            raise InvalidCallbackError(owner, name, callback)
        setattr(self, name, callback)

    def get(self, event: TriggerEvent) -> Callback | None:
        return getattr(self, event.value)

    def run(self, event: TriggerEvent, *args: Any) -> None:
        callback = self.get(event)
        if callback is not None:
            callback(*args)

    def registered(self) -> dict[str, Callback]:
        """Return the events that have a callback."""
        return {
            f.name: getattr(self, f.name) for f in fields(self) if getattr(self, f.name) is not None
        }
