"""Type metadata: per-type ordered field lists and their tag information."""

from __future__ import annotations

from tagschema.typeinfo.cache import TypeInfoCache
from tagschema.typeinfo.fields import TagNames
from tagschema.typeinfo.types import Field, FieldInfoBSON, FieldInfoJSON, TypeInfo

__all__ = [
    "TypeInfoCache",
    "TypeInfo",
    "Field",
    "FieldInfoJSON",
    "FieldInfoBSON",
    "TagNames",
]
