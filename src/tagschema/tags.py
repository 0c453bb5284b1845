"""Per-field tag namespaces.

A field carries up to three independent tag strings: ``json`` and ``bson``
control the serialized name, omission and inlining, while ``validate`` holds
the constraint grammar. They can be attached as dataclass field metadata::

    @dataclass
    class User:
        name: str = tag(json="name", validate="required")

or through ``Annotated`` (works for pydantic models too)::

    class User(BaseModel):
        age: Annotated[int, Tags(json="age", validate="required,gte=18")]
"""

from __future__ import annotations

import dataclasses
from typing import Any, Iterator, Mapping

__all__ = ["Tags", "tag", "EMBEDDED_KEY"]

EMBEDDED_KEY = "embedded"


class Tags:
    """Immutable, hashable set of tag namespaces attached to one field."""

    __slots__ = ("_items", "embedded")

    def __init__(self, *, embedded: bool = False, **namespaces: str) -> None:
        object.__setattr__(self, "_items", tuple(sorted(namespaces.items())))
        object.__setattr__(self, "embedded", embedded)

    @classmethod
    def from_metadata(cls, metadata: Mapping[str, Any]) -> Tags:
        """Build tags from dataclass field metadata, ignoring non-string entries."""
        namespaces = {k: v for k, v in metadata.items() if isinstance(v, str)}
        return cls(embedded=bool(metadata.get(EMBEDDED_KEY, False)), **namespaces)

    def get(self, namespace: str, default: str = "") -> str:
        for key, value in self._items:
            if key == namespace:
                return value
        return default

    def __contains__(self, namespace: object) -> bool:
        return any(key == namespace for key, _ in self._items)

    def __iter__(self) -> Iterator[str]:
        return (key for key, _ in self._items)

    def merged(self, other: Tags) -> Tags:
        """Return tags where namespaces set on ``other`` win."""
        namespaces = dict(self._items)
        namespaces.update(other._items)
        return Tags(embedded=self.embedded or other.embedded, **namespaces)

    def __setattr__(self, name: str, value: object) -> None:
        raise AttributeError("Tags is immutable")

    def __reduce__(self) -> tuple[Any, ...]:
        return (_restore_tags, (self.embedded, self._items))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Tags):
            return NotImplemented
        return self._items == other._items and self.embedded == other.embedded

    def __hash__(self) -> int:
        return hash((self._items, self.embedded))

    def __repr__(self) -> str:
        parts = [f"{k}={v!r}" for k, v in self._items]
        if self.embedded:
            parts.append("embedded=True")
        return f"Tags({', '.join(parts)})"


def _restore_tags(embedded: bool, items: tuple[tuple[str, str], ...]) -> Tags:
    return Tags(embedded=embedded, **dict(items))


def tag(
    *,
    default: Any = dataclasses.MISSING,
    default_factory: Any = dataclasses.MISSING,
    embedded: bool = False,
    **namespaces: str,
) -> Any:
    """Declare a dataclass field carrying tag namespaces in its metadata."""
    metadata: dict[str, Any] = dict(namespaces)
    if embedded:
        metadata[EMBEDDED_KEY] = True
    return dataclasses.field(default=default, default_factory=default_factory, metadata=metadata)
