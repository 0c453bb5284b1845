"""Field resolution for record types.

Collects the visible fields of a dataclass or pydantic model in declaration
order, resolving each field's serialized name, namespace options and parsed
constraint chain.
"""

from __future__ import annotations

import dataclasses
import typing
from dataclasses import dataclass
from typing import Any, Iterator, Union, get_args

from pydantic import BaseModel

from tagschema.constraints.grammar import parse_field_tags
from tagschema.errors import TagGrammarError, TypeResolutionError
from tagschema.tags import Tags
from tagschema.typeinfo.introspect import (
    is_func_or_chan,
    is_record,
    is_union,
    remove_indirect,
    split_annotated,
    type_name,
)
from tagschema.typeinfo.types import Field, FieldInfoBSON, FieldInfoJSON

__all__ = ["TagNames", "append_fields", "dominant_fields"]

EXCLUDE_TAG = "-"

_JSON_MARSHAL_METHODS = ("to_json", "model_dump_json")
_JSON_UNMARSHAL_METHODS = ("from_json", "model_validate_json")
_BSON_MARSHAL_METHODS = ("to_bson",)
_BSON_UNMARSHAL_METHODS = ("from_bson",)


@dataclass(frozen=True)
class TagNames:
    """Names of the three tag namespaces read from each field."""

    json: str = "json"
    bson: str = "bson"
    validate: str = "validate"


@dataclass(frozen=True)
class _DeclaredField:
    name: str
    annotation: Any
    tags: Tags
    excluded: bool = False
    alias: str | None = None


def append_fields(
    fields: list[Field],
    parent_index: tuple[int, ...],
    t: Any,
    tag_names: TagNames,
    embedding: frozenset[Any] = frozenset(),
) -> list[Field]:
    """Append the visible fields of record type ``t`` to ``fields``.

    Embedded record fields without a json name (or with bson ``,inline``)
    are spliced in place with an extended index path. ``embedding`` holds
    the records already being spliced; embedding one of them again keeps
    the field as a nested property.
    """
    t = remove_indirect(t)
    embedding = embedding | {t}

    for i, declared in enumerate(_declared_fields(t)):
        if is_func_or_chan(declared.annotation):
            continue

        json_tag = declared.tags.get(tag_names.json)
        bson_tag = declared.tags.get(tag_names.bson)
        if not json_tag:
            if declared.excluded:
                json_tag = EXCLUDE_TAG
            elif declared.alias:
                json_tag = declared.alias

        present = [value for value in (json_tag, bson_tag) if value]
        if present and all(value == EXCLUDE_TAG for value in present):
            continue

        index = (*parent_index, i)
        field_type = remove_indirect(declared.annotation)

        if (
            declared.tags.embedded
            and is_record(field_type)
            and field_type not in embedding
            and (json_tag == "" or bson_tag == ",inline")
        ):
            append_fields(fields, index, field_type, tag_names, embedding)
            continue

        if declared.name.startswith("_"):
            continue

        name = declared.name

        bson_name, bson_info = _resolve_bson(bson_tag, field_type)
        if bson_name:
            name = bson_name

        json_name, json_info = _resolve_json(json_tag, field_type)
        if json_name:
            name = json_name

        validate_tag = declared.tags.get(tag_names.validate)
        try:
            chain = parse_field_tags(validate_tag)
        except TagGrammarError as e:
            raise TagGrammarError(
                tag=e.tag,
                reason=e.reason,
                field=f"{type_name(t)}.{declared.name}",
                cause=e,
            ) from e

        fields.append(
            Field(
                name=name,
                type=declared.annotation,
                index=index,
                declared_name=declared.name,
                json=json_info,
                bson=bson_info,
                validate=chain,
            )
        )

    return fields


def dominant_fields(fields: list[Field]) -> list[Field]:
    """Drop fields hidden by a shallower field of the same serialized name."""
    chosen: dict[str, Field] = {}
    for f in fields:
        current = chosen.get(f.name)
        if current is None or len(f.index) < len(current.index):
            chosen[f.name] = f
    return [f for f in fields if chosen[f.name] is f]


def _declared_fields(t: Any) -> Iterator[_DeclaredField]:
    if isinstance(t, type) and issubclass(t, BaseModel):
        yield from _declared_model_fields(t)
    elif dataclasses.is_dataclass(t):
        yield from _declared_dataclass_fields(t)


def _declared_dataclass_fields(t: Any) -> Iterator[_DeclaredField]:
    hints = _type_hints(t)
    for f in dataclasses.fields(t):
        annotation, metadata = split_annotated(hints.get(f.name, f.type))
        annotation, inner_metadata = _lift_union_metadata(annotation)
        tags = Tags.from_metadata(f.metadata)
        for item in (*metadata, *inner_metadata):
            if isinstance(item, Tags):
                tags = tags.merged(item)
        yield _DeclaredField(name=f.name, annotation=annotation, tags=tags)


def _declared_model_fields(t: type[BaseModel]) -> Iterator[_DeclaredField]:
    for name, info in t.model_fields.items():
        tags = Tags()
        for item in info.metadata:
            if isinstance(item, Tags):
                tags = tags.merged(item)
        if isinstance(info.json_schema_extra, dict):
            tags = Tags.from_metadata(info.json_schema_extra).merged(tags)
        yield _DeclaredField(
            name=name,
            annotation=info.annotation,
            tags=tags,
            excluded=info.exclude is True,
            alias=info.serialization_alias or info.alias,
        )


def _lift_union_metadata(annotation: Any) -> tuple[Any, tuple[Any, ...]]:
    """Turn ``Optional[Annotated[T, *meta]]`` into ``(Optional[T], meta)``."""
    if not is_union(annotation):
        return annotation, ()
    members: list[Any] = []
    metadata: list[Any] = []
    for member in get_args(annotation):
        base, meta = split_annotated(member)
        members.append(base)
        metadata.extend(meta)
    if not metadata:
        return annotation, ()
    return Union[tuple(members)], tuple(metadata)


def _type_hints(t: Any) -> dict[str, Any]:
    try:
        return typing.get_type_hints(t, include_extras=True)
    except NameError as exc:
        raise TypeResolutionError(type_name=type_name(t), reason=str(exc), cause=exc) from exc


def _has_any_method(t: Any, names: tuple[str, ...]) -> bool:
    return any(callable(getattr(t, name, None)) for name in names)


def _split_tag(tag: str) -> tuple[str, list[str]]:
    name, *options = tag.split(",")
    return name, options


def _resolve_json(tag: str, t: Any) -> tuple[str, FieldInfoJSON | None]:
    if tag in ("", EXCLUDE_TAG):
        return "", None
    name, options = _split_tag(tag)
    info = FieldInfoJSON(
        type_is_marshaler=_has_any_method(t, _JSON_MARSHAL_METHODS),
        type_is_unmarshaler=_has_any_method(t, _JSON_UNMARSHAL_METHODS),
        omit_empty="omitempty" in options,
        string="string" in options,
    )
    return name, info


def _resolve_bson(tag: str, t: Any) -> tuple[str, FieldInfoBSON | None]:
    if tag in ("", EXCLUDE_TAG):
        return "", None
    name, options = _split_tag(tag)
    info = FieldInfoBSON(
        type_is_marshaler=_has_any_method(t, _BSON_MARSHAL_METHODS),
        type_is_unmarshaler=_has_any_method(t, _BSON_UNMARSHAL_METHODS),
        omit_empty="omitempty" in options,
        inline="inline" in options,
    )
    return name, info
