"""Helpers for inspecting type annotations."""

from __future__ import annotations

import asyncio
import collections.abc
import dataclasses
import queue
import types
import typing
from typing import Annotated, Any, Union, get_args, get_origin

from pydantic import BaseModel

__all__ = [
    "NONE_TYPE",
    "split_annotated",
    "is_union",
    "remove_indirect",
    "strip_type",
    "is_class",
    "is_record",
    "is_func_or_chan",
    "type_name",
]

NONE_TYPE = type(None)

_CHANNEL_TYPES: tuple[type, ...] = (queue.Queue, queue.SimpleQueue, asyncio.Queue)


def split_annotated(t: Any) -> tuple[Any, tuple[Any, ...]]:
    """Split ``Annotated[T, *meta]`` into ``(T, meta)``."""
    if get_origin(t) is Annotated:
        return t.__origin__, tuple(t.__metadata__)
    return t, ()


def is_union(t: Any) -> bool:
    return get_origin(t) in (Union, types.UnionType)


def remove_indirect(t: Any) -> Any:
    """Strip ``Annotated`` and one level of ``Optional`` from an annotation.

    ``Optional[T]`` is this package's pointer: a type and its optional form
    share metadata. ``Union[A, B, None]`` becomes ``Union[A, B]``.
    """
    t, _ = split_annotated(t)
    if is_union(t):
        members = tuple(a for a in get_args(t) if a is not NONE_TYPE)
        if len(members) == 1:
            t, _ = split_annotated(members[0])
        elif len(members) != len(get_args(t)):
            t = Union[members]
    return t


def strip_type(t: Any) -> Any:
    """Strip every ``Annotated``/``Optional`` layer."""
    while True:
        stripped = remove_indirect(t)
        if stripped is t or stripped == t:
            return stripped
        t = stripped


def is_class(t: Any) -> bool:
    # Generic aliases such as list[int] pass isinstance(t, type) on 3.10.
    return isinstance(t, type) and get_origin(t) is None


def is_record(t: Any) -> bool:
    """Whether ``t`` is a structured type whose fields are expanded."""
    if not is_class(t):
        return False
    return dataclasses.is_dataclass(t) or issubclass(t, BaseModel)


def is_func_or_chan(t: Any) -> bool:
    t = strip_type(t)
    origin = get_origin(t) or t
    if origin is collections.abc.Callable or origin is typing.Callable:
        return True
    return isinstance(origin, type) and issubclass(origin, _CHANNEL_TYPES)


def type_name(t: Any) -> str:
    """Human-readable name of an annotation, used for cycle paths and component ids."""
    name = getattr(t, "__name__", None)
    if isinstance(name, str):
        return name
    return repr(t).replace("typing.", "")
