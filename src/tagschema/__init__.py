"""tagschema - JSON-Schema-like trees from annotated Python types."""

from __future__ import annotations

# Tags and scalar markers
from tagschema.tags import Tags, tag
from tagschema.scalars import (
    Float32,
    Float64,
    Int8,
    Int16,
    Int32,
    Int64,
    RawJSON,
    UInt,
    UInt8,
    UInt16,
    UInt32,
    UInt64,
)

# Config
from tagschema.config import Config

# Errors
from tagschema.errors import (
    ConfigError,
    ConfigNotFoundError,
    ConstraintParamError,
    ErrorCodes,
    SchemaCycleError,
    TagGrammarError,
    TagSchemaError,
    TypeResolutionError,
)

# Constraint grammar
from tagschema.constraints import FieldTag, TagType, parse_field_tags

# Type metadata
from tagschema.typeinfo import Field, FieldInfoBSON, FieldInfoJSON, TypeInfo, TypeInfoCache

# Schema generation
from tagschema.schema import (
    AnnotatorRegistry,
    SchemaNode,
    SchemaRef,
    SchemaRefGenerator,
    default_annotator_registry,
    generate_schema,
)

__version__ = "0.1.0"

__all__ = [
    # Tags
    "Tags",
    "tag",
    # Scalars
    "Int8",
    "Int16",
    "Int32",
    "Int64",
    "UInt",
    "UInt8",
    "UInt16",
    "UInt32",
    "UInt64",
    "Float32",
    "Float64",
    "RawJSON",
    # Config
    "Config",
    # Errors
    "TagSchemaError",
    "ConfigError",
    "ConfigNotFoundError",
    "TagGrammarError",
    "ConstraintParamError",
    "SchemaCycleError",
    "TypeResolutionError",
    "ErrorCodes",
    # Constraint grammar
    "FieldTag",
    "TagType",
    "parse_field_tags",
    # Type metadata
    "TypeInfoCache",
    "TypeInfo",
    "Field",
    "FieldInfoJSON",
    "FieldInfoBSON",
    # Schema generation
    "SchemaNode",
    "SchemaRef",
    "AnnotatorRegistry",
    "default_annotator_registry",
    "SchemaRefGenerator",
    "generate_schema",
]
