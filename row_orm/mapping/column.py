"""Column to attribute mapping."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from row_orm.core.exceptions import UnknownAttributeError
from row_orm.mapping.attribute import declared_attributes, find_attribute


@dataclass(frozen=True)
class ColumnMapping:
    """Maps one column to one object attribute.

    ``attribute_name`` is the accessor used for reads and writes through the
    object's API; ``storage_key`` is the instance slot written directly when
    an object is materialized from a row.
    """

    column_name: str
    attribute_name: str
    storage_key: str

    @classmethod
    def for_attribute(
        cls, mapped_class: type, column_name: str, attribute_name: str
    ) -> ColumnMapping:
        """Build a mapping, validating that *mapped_class* declares the attribute.

        Raises:
            UnknownAttributeError: If the attribute is not declared.
        """
        descriptor = find_attribute(mapped_class, attribute_name)
        if descriptor is not None:
            return cls(column_name, attribute_name, descriptor.storage_key or attribute_name)
        if attribute_name not in declared_attributes(mapped_class):
            raise UnknownAttributeError(mapped_class.__name__, attribute_name)
        return cls(column_name, attribute_name, attribute_name)

    def get_value(self, obj: Any) -> Any:
        return getattr(obj, self.attribute_name, None)

    def set_value(self, obj: Any, value: Any) -> None:
        setattr(obj, self.attribute_name, value)

    def store(self, obj: Any, value: Any) -> None:
        """Write *value* straight into the object's storage slot."""
        obj.__dict__[self.storage_key] = value
