"""Type metadata structures: TypeInfo, Field and per-namespace field info."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from tagschema.constraints.grammar import FieldTag

__all__ = ["FieldInfoJSON", "FieldInfoBSON", "Field", "TypeInfo"]


@dataclass(frozen=True)
class FieldInfoJSON:
    """Options parsed from a field's ``json`` tag."""

    type_is_marshaler: bool = False
    type_is_unmarshaler: bool = False
    omit_empty: bool = False
    string: bool = False


@dataclass(frozen=True)
class FieldInfoBSON:
    """Options parsed from a field's ``bson`` tag."""

    type_is_marshaler: bool = False
    type_is_unmarshaler: bool = False
    omit_empty: bool = False
    inline: bool = False


@dataclass(frozen=True)
class Field:
    """One visible field of a record type.

    ``index`` is the positional path from the outer record; promoted fields
    of embedded records have paths longer than one.
    """

    name: str
    type: Any
    index: tuple[int, ...]
    declared_name: str
    json: FieldInfoJSON | None = None
    bson: FieldInfoBSON | None = None
    validate: FieldTag | None = None


@dataclass(frozen=True, eq=False)
class TypeInfo:
    """Cached field metadata of one type, sorted by serialized name."""

    type: Any
    fields: tuple[Field, ...] = ()

    def field_by_name(self, name: str) -> Field | None:
        for f in self.fields:
            if f.name == name:
                return f
        return None

    def field_by_declared_name(self, declared_name: str) -> Field | None:
        for f in self.fields:
            if f.declared_name == declared_name and len(f.index) == 1:
                return f
        return None
