"""Schema tree structures: SchemaNode and SchemaRef."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

__all__ = ["SchemaNode", "SchemaRef"]


@dataclass(eq=False)
class SchemaNode:
    """One generated schema fragment.

    Nodes are compared and hashed by identity: the generator shares a node
    between every use site of its type instead of copying it.
    """

    type: str | None = None
    format: str | None = None
    enum: list[Any] | None = None
    minimum: int | float | None = None
    maximum: int | float | None = None
    exclusive_minimum: bool = False
    exclusive_maximum: bool = False
    min_length: int | None = None
    max_length: int | None = None
    pattern: str | None = None
    min_items: int | None = None
    max_items: int | None = None
    unique_items: bool = False
    min_properties: int | None = None
    max_properties: int | None = None
    required: list[str] = field(default_factory=list)
    properties: dict[str, SchemaRef] = field(default_factory=dict)
    items: SchemaRef | None = None
    additional_properties: SchemaRef | None = None
    property_names: SchemaRef | None = None
    one_of: list[SchemaRef] = field(default_factory=list)
    any_of: list[SchemaRef] = field(default_factory=list)
    all_of: list[SchemaRef] = field(default_factory=list)

    def with_property(self, name: str, ref: SchemaRef) -> SchemaNode:
        self.properties[name] = ref
        return self

    def is_empty(self) -> bool:
        return not self.to_dict()

    def to_dict(self) -> dict[str, Any]:
        """Render as a JSON-Schema dict, omitting unset keywords."""
        result: dict[str, Any] = {}
        if self.type is not None:
            result["type"] = self.type
        if self.format is not None:
            result["format"] = self.format
        if self.enum is not None:
            result["enum"] = list(self.enum)
        if self.minimum is not None:
            result["minimum"] = self.minimum
            if self.exclusive_minimum:
                result["exclusiveMinimum"] = True
        if self.maximum is not None:
            result["maximum"] = self.maximum
            if self.exclusive_maximum:
                result["exclusiveMaximum"] = True
        for key, value in (
            ("minLength", self.min_length),
            ("maxLength", self.max_length),
            ("pattern", self.pattern),
            ("minItems", self.min_items),
            ("maxItems", self.max_items),
            ("minProperties", self.min_properties),
            ("maxProperties", self.max_properties),
        ):
            if value is not None:
                result[key] = value
        if self.unique_items:
            result["uniqueItems"] = True
        if self.required:
            result["required"] = list(self.required)
        if self.properties:
            result["properties"] = {name: ref.to_dict() for name, ref in self.properties.items()}
        if self.items is not None:
            result["items"] = self.items.to_dict()
        if self.additional_properties is not None:
            result["additionalProperties"] = self.additional_properties.to_dict()
        if self.property_names is not None:
            result["propertyNames"] = self.property_names.to_dict()
        for key, refs in (("oneOf", self.one_of), ("anyOf", self.any_of), ("allOf", self.all_of)):
            if refs:
                result[key] = [ref.to_dict() for ref in refs]
        return result


@dataclass(eq=False)
class SchemaRef:
    """A use site of a schema: either a ``$ref`` to a component or an inline value.

    ``name`` is the component id this schema would be published under; it
    only becomes ``ref`` once the generator decides to promote it.
    """

    ref: str = ""
    value: SchemaNode | None = None
    name: str = field(default="", repr=False)

    @property
    def is_reference(self) -> bool:
        return bool(self.ref)

    def to_dict(self) -> dict[str, Any]:
        if self.ref:
            return {"$ref": self.ref}
        if self.value is None:
            return {}
        return self.value.to_dict()
