"""Parser for the ``validate`` tag grammar.

Operators are comma separated. An operator may list ``|`` separated
alternatives and may carry a parameter after ``=``; inside a parameter
``0x2C`` stands for a literal comma and ``0x7C`` for a literal pipe.
``dive`` moves the following operators onto a container's elements, and a
``keys ... endkeys`` block directly after ``dive`` holds the operators for a
map's keys::

    required,dive,keys,min=1,endkeys,gte=0
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Iterator

from tagschema.errors import TagGrammarError

__all__ = [
    "TagType",
    "FieldTag",
    "parse_field_tags",
    "TAG_SEPARATOR",
    "OR_SEPARATOR",
    "PARAM_SEPARATOR",
    "DIVE_TAG",
    "KEYS_TAG",
    "END_KEYS_TAG",
]

TAG_SEPARATOR = ","
OR_SEPARATOR = "|"
PARAM_SEPARATOR = "="
HEX_COMMA = "0x2C"
HEX_PIPE = "0x7C"

DIVE_TAG = "dive"
KEYS_TAG = "keys"
END_KEYS_TAG = "endkeys"
OMIT_EMPTY_TAG = "omitempty"
STRUCT_ONLY_TAG = "structonly"
NO_STRUCT_LEVEL_TAG = "nostructlevel"
IS_DEFAULT_TAG = "isdefault"

_ERR_KEYS_WITHOUT_DIVE = f"'{KEYS_TAG}' must be immediately preceded by '{DIVE_TAG}'"
_ERR_END_KEYS_WITHOUT_KEYS = f"'{END_KEYS_TAG}' encountered without a corresponding '{KEYS_TAG}'"
_ERR_UNTERMINATED_KEYS = f"'{KEYS_TAG}' block is not closed by '{END_KEYS_TAG}'"
_ERR_EMPTY_OPERATOR = "empty operator"


class TagType(IntEnum):
    """Role of a node within the constraint chain."""

    DEFAULT = 0
    OMIT_EMPTY = 1
    IS_DEFAULT = 2
    NO_STRUCT_LEVEL = 3
    STRUCT_ONLY = 4
    DIVE = 5
    OR = 6
    KEYS = 7
    END_KEYS = 8


_MARKER_TYPES = {
    OMIT_EMPTY_TAG: TagType.OMIT_EMPTY,
    STRUCT_ONLY_TAG: TagType.STRUCT_ONLY,
    NO_STRUCT_LEVEL_TAG: TagType.NO_STRUCT_LEVEL,
}


@dataclass(frozen=True)
class FieldTag:
    """One node of a parsed constraint chain.

    ``keys`` is only set on ``KEYS`` nodes and holds the sub-chain for map
    keys. ``is_block_end`` marks the last alternative of an operator, so an
    or-group runs from the first ``OR`` node up to the next block end.
    """

    operator: str
    param: str = ""
    type: TagType = TagType.DEFAULT
    has_param: bool = False
    is_block_end: bool = False
    keys: FieldTag | None = None
    next: FieldTag | None = None

    @property
    def is_or(self) -> bool:
        return self.type is TagType.OR

    def walk(self) -> Iterator[FieldTag]:
        """Iterate over this node and every node after it."""
        current: FieldTag | None = self
        while current is not None:
            yield current
            current = current.next

    def __str__(self) -> str:
        return ",".join(_render(node) for node in _blocks(self))


def parse_field_tags(tag: str) -> FieldTag | None:
    """Parse a validate tag into the head of its constraint chain.

    Returns None for an empty tag. Raises TagGrammarError for an empty
    operator or a misplaced ``keys``/``endkeys``.
    """
    if not tag:
        return None
    return _link(_scan(tag, in_keys_block=False))


def _scan(tag: str, in_keys_block: bool) -> list[dict[str, Any]]:
    parts = tag.split(TAG_SEPARATOR)
    nodes: list[dict[str, Any]] = []

    i = 0
    while i < len(parts):
        part = parts[i]
        prev_type = nodes[-1]["type"] if nodes else None

        if part == DIVE_TAG:
            nodes.append({"operator": DIVE_TAG, "type": TagType.DIVE})

        elif part == KEYS_TAG:
            if prev_type is not TagType.DIVE:
                raise TagGrammarError(tag=tag, reason=_ERR_KEYS_WITHOUT_DIVE)
            start = i + 1
            i = start
            while i < len(parts) and parts[i] != END_KEYS_TAG:
                i += 1
            if i == len(parts):
                raise TagGrammarError(tag=tag, reason=_ERR_UNTERMINATED_KEYS)
            block = TAG_SEPARATOR.join(parts[start : i + 1])
            nodes.append(
                {
                    "operator": KEYS_TAG,
                    "type": TagType.KEYS,
                    "keys": _link(_scan(block, in_keys_block=True)),
                }
            )

        elif part == END_KEYS_TAG:
            # Only valid as the terminator of a block handed over by KEYS.
            if not in_keys_block or i != len(parts) - 1:
                raise TagGrammarError(tag=tag, reason=_ERR_END_KEYS_WITHOUT_KEYS)
            nodes.append({"operator": END_KEYS_TAG, "type": TagType.END_KEYS})

        elif part in _MARKER_TYPES:
            nodes.append({"operator": part, "type": _MARKER_TYPES[part]})

        else:
            nodes.extend(_scan_operator(tag, part))

        i += 1

    return nodes


def _scan_operator(tag: str, part: str) -> list[dict[str, Any]]:
    alternatives = part.split(OR_SEPARATOR)
    nodes: list[dict[str, Any]] = []
    for j, alternative in enumerate(alternatives):
        operator, sep, param = alternative.partition(PARAM_SEPARATOR)
        if not operator:
            raise TagGrammarError(tag=tag, reason=_ERR_EMPTY_OPERATOR)

        if len(alternatives) > 1:
            tag_type = TagType.OR
        elif operator == IS_DEFAULT_TAG:
            tag_type = TagType.IS_DEFAULT
        else:
            tag_type = TagType.DEFAULT

        nodes.append(
            {
                "operator": operator,
                "param": param.replace(HEX_COMMA, ",").replace(HEX_PIPE, "|"),
                "type": tag_type,
                "has_param": bool(sep),
                "is_block_end": j == len(alternatives) - 1,
            }
        )
    return nodes


def _link(nodes: list[dict[str, Any]]) -> FieldTag | None:
    head: FieldTag | None = None
    for attrs in reversed(nodes):
        head = FieldTag(next=head, **attrs)
    return head


def _blocks(head: FieldTag) -> Iterator[list[FieldTag]]:
    group: list[FieldTag] = []
    for node in head.walk():
        group.append(node)
        if not node.is_or or node.is_block_end:
            yield group
            group = []
    if group:
        yield group


def _render(group: list[FieldTag]) -> str:
    rendered = []
    for node in group:
        if node.type is TagType.KEYS and node.keys is not None:
            rendered.append(f"{KEYS_TAG},{node.keys}")
            continue
        text = node.operator
        if node.has_param:
            param = node.param.replace(",", HEX_COMMA).replace("|", HEX_PIPE)
            text = f"{text}{PARAM_SEPARATOR}{param}"
        rendered.append(text)
    return OR_SEPARATOR.join(rendered)
