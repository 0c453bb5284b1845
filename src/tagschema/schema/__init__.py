"""tagschema schema system -- public API.

Re-exports the schema tree types, the annotator registry and the generator.

Example usage::

    from tagschema.schema import SchemaRefGenerator, default_annotator_registry
"""

from __future__ import annotations

from tagschema.schema.annotators import (
    AnnotatorRegistry,
    ParentSchemaAnnotatorFunc,
    SchemaAnnotatorFunc,
    default_annotator_registry,
    noop_annotator,
    required_annotator,
    warn_annotator,
)
from tagschema.schema.generator import DEFAULT_COMPONENT_PREFIX, SchemaRefGenerator, generate_schema
from tagschema.schema.types import SchemaNode, SchemaRef

__all__ = [
    "SchemaNode",
    "SchemaRef",
    "SchemaAnnotatorFunc",
    "ParentSchemaAnnotatorFunc",
    "AnnotatorRegistry",
    "default_annotator_registry",
    "warn_annotator",
    "noop_annotator",
    "required_annotator",
    "SchemaRefGenerator",
    "generate_schema",
    "DEFAULT_COMPONENT_PREFIX",
]
