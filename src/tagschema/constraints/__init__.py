"""Constraint grammar for ``validate`` tags."""

from __future__ import annotations

from tagschema.constraints.grammar import FieldTag, TagType, parse_field_tags

__all__ = ["FieldTag", "TagType", "parse_field_tags"]
