"""Schema annotators: translate constraint operators into schema keywords.

Operator names follow the baked-in table of the validate tag dialect. Operators
that have a schema-level meaning mutate the target SchemaNode; the rest are
registered with ``warn_annotator`` and leave the schema unconstrained.
"""

from __future__ import annotations

import logging
import re
from typing import Callable, Mapping

from tagschema.constraints.grammar import FieldTag
from tagschema.errors import ConstraintParamError
from tagschema.schema.types import SchemaNode
from tagschema.typeinfo.types import Field

logger = logging.getLogger(__name__)

__all__ = [
    "SchemaAnnotatorFunc",
    "ParentSchemaAnnotatorFunc",
    "AnnotatorRegistry",
    "default_annotator_registry",
    "warn_annotator",
    "noop_annotator",
    "required_annotator",
]

SchemaAnnotatorFunc = Callable[[FieldTag, SchemaNode], None]
ParentSchemaAnnotatorFunc = Callable[[Field, SchemaNode], None]

_INT_PATTERN = re.compile(r"[+-]?\d+")
_ONEOF_PATTERN = re.compile(r"'[^']*'|\S+")


def warn_annotator(tag: FieldTag, schema: SchemaNode) -> None:
    logger.warning(
        f"Constraint operator '{tag.operator}' has no schema annotator; schema left unconstrained"
    )


def noop_annotator(tag: FieldTag, schema: SchemaNode) -> None:
    pass


def required_annotator(field: Field, schema: SchemaNode) -> None:
    """Add the field to its parent's required list (once)."""
    if field.name not in schema.required:
        schema.required.append(field.name)


def _parse_int(tag: FieldTag) -> int:
    if not _INT_PATTERN.fullmatch(tag.param):
        raise ConstraintParamError(operator=tag.operator, param=tag.param)
    return int(tag.param)


def _set_lower(schema: SchemaNode, value: int, exclusive: bool) -> None:
    # Length-style bounds are integral, so a strict bound shifts by one.
    if schema.type == "string":
        schema.min_length = value + 1 if exclusive else value
    elif schema.type == "array":
        schema.min_items = value + 1 if exclusive else value
    elif schema.type == "object":
        schema.min_properties = value + 1 if exclusive else value
    else:
        schema.minimum = value
        schema.exclusive_minimum = exclusive


def _set_upper(schema: SchemaNode, value: int, exclusive: bool) -> None:
    if schema.type == "string":
        schema.max_length = value - 1 if exclusive else value
    elif schema.type == "array":
        schema.max_items = value - 1 if exclusive else value
    elif schema.type == "object":
        schema.max_properties = value - 1 if exclusive else value
    else:
        schema.maximum = value
        schema.exclusive_maximum = exclusive


def gte_annotator(tag: FieldTag, schema: SchemaNode) -> None:
    _set_lower(schema, _parse_int(tag), exclusive=False)


def gt_annotator(tag: FieldTag, schema: SchemaNode) -> None:
    _set_lower(schema, _parse_int(tag), exclusive=True)


def lte_annotator(tag: FieldTag, schema: SchemaNode) -> None:
    _set_upper(schema, _parse_int(tag), exclusive=False)


def lt_annotator(tag: FieldTag, schema: SchemaNode) -> None:
    _set_upper(schema, _parse_int(tag), exclusive=True)


def len_annotator(tag: FieldTag, schema: SchemaNode) -> None:
    value = _parse_int(tag)
    _set_lower(schema, value, exclusive=False)
    _set_upper(schema, value, exclusive=False)


def oneof_annotator(tag: FieldTag, schema: SchemaNode) -> None:
    """Translate ``oneof=a b 'c d'`` into an enum."""
    values: list[object] = [v.strip("'") for v in _ONEOF_PATTERN.findall(tag.param)]
    if schema.type == "integer":
        for value in values:
            if not _INT_PATTERN.fullmatch(str(value)):
                raise ConstraintParamError(operator=tag.operator, param=tag.param)
        values = [int(str(v)) for v in values]
    elif schema.type == "number":
        try:
            values = [float(str(v)) for v in values]
        except ValueError as e:
            raise ConstraintParamError(operator=tag.operator, param=tag.param, expected="float", cause=e) from e
    schema.enum = values


def unique_annotator(tag: FieldTag, schema: SchemaNode) -> None:
    if schema.type == "array":
        schema.unique_items = True
    else:
        warn_annotator(tag, schema)


def _format_annotator(fmt: str) -> SchemaAnnotatorFunc:
    def annotate(tag: FieldTag, schema: SchemaNode) -> None:
        schema.format = fmt

    return annotate


_FORMAT_OPERATORS = {
    "email": "email",
    "uri": "uri",
    "url": "uri",
    "http_url": "uri",
    "uuid": "uuid",
    "uuid3": "uuid",
    "uuid4": "uuid",
    "uuid5": "uuid",
    "uuid_rfc4122": "uuid",
    "uuid3_rfc4122": "uuid",
    "uuid4_rfc4122": "uuid",
    "uuid5_rfc4122": "uuid",
    "ipv4": "ipv4",
    "ipv6": "ipv6",
    "hostname": "hostname",
    "hostname_rfc1123": "hostname",
}

# Operators of the validator dialect without a schema keyword.
_WARN_OPERATORS = (
    "eq", "eq_ignore_case", "ne", "ne_ignore_case",
    "alpha", "alphanum", "alphaunicode", "alphanumunicode",
    "numeric", "number", "hexadecimal", "hexcolor", "rgb", "rgba", "hsl", "hsla",
    "e164", "urn_rfc2141", "file", "filepath",
    "base64", "base64url", "base64rawurl",
    "contains", "containsany", "containsrune",
    "excludes", "excludesall", "excludesrune",
    "startswith", "endswith", "startsnotwith", "endsnotwith",
    "isbn", "isbn10", "isbn13", "ulid",
    "md4", "md5", "sha256", "sha384", "sha512",
    "ripemd128", "ripemd160", "tiger128", "tiger160", "tiger192",
    "ascii", "printascii", "multibyte", "datauri", "latitude", "longitude", "ssn",
    "ip", "cidrv4", "cidrv6", "cidr",
    "tcp4_addr", "tcp6_addr", "tcp_addr", "udp4_addr", "udp6_addr", "udp_addr",
    "ip4_addr", "ip6_addr", "ip_addr", "unix_addr", "mac", "fqdn",
    "html", "html_encoded", "url_encoded", "dir", "dirpath", "json", "jwt",
    "hostname_port", "lowercase", "uppercase", "datetime", "timezone",
    "iso3166_1_alpha2", "iso3166_1_alpha3", "iso3166_1_alpha_numeric", "iso3166_2",
    "iso4217", "iso4217_numeric", "bcp47_language_tag",
    "postcode_iso3166_alpha2", "postcode_iso3166_alpha2_field",
    "bic", "semver", "dns_rfc1035_label", "credit_card", "cve",
    "luhn_checksum", "mongodb", "cron",
)


def _default_annotators() -> dict[str, SchemaAnnotatorFunc]:
    annotators: dict[str, SchemaAnnotatorFunc] = {op: warn_annotator for op in _WARN_OPERATORS}
    annotators.update({op: _format_annotator(fmt) for op, fmt in _FORMAT_OPERATORS.items()})
    annotators.update(
        {
            "min": gte_annotator,
            "gte": gte_annotator,
            "gt": gt_annotator,
            "max": lte_annotator,
            "lte": lte_annotator,
            "lt": lt_annotator,
            "len": len_annotator,
            "oneof": oneof_annotator,
            "unique": unique_annotator,
            "boolean": noop_annotator,
            "omitempty": noop_annotator,
            "isdefault": noop_annotator,
        }
    )
    return annotators


class AnnotatorRegistry:
    """Maps constraint operators to schema annotators.

    Node annotators receive the parsed FieldTag and the schema of the value
    they constrain. Parent annotators receive the Field and the schema of the
    object that contains it (``required`` is a property of the container).
    Build a registry up front and register extra operators before handing it
    to a generator.
    """

    def __init__(
        self,
        annotators: Mapping[str, SchemaAnnotatorFunc] | None = None,
        parent_annotators: Mapping[str, ParentSchemaAnnotatorFunc] | None = None,
    ) -> None:
        self._annotators: dict[str, SchemaAnnotatorFunc] = dict(annotators or {})
        self._parent_annotators: dict[str, ParentSchemaAnnotatorFunc] = dict(parent_annotators or {})

    def register(self, operator: str, func: SchemaAnnotatorFunc) -> None:
        self._annotators[operator] = func

    def register_parent(self, operator: str, func: ParentSchemaAnnotatorFunc) -> None:
        self._parent_annotators[operator] = func

    def get(self, operator: str) -> SchemaAnnotatorFunc | None:
        return self._annotators.get(operator)

    def get_parent(self, operator: str) -> ParentSchemaAnnotatorFunc | None:
        return self._parent_annotators.get(operator)

    def __contains__(self, operator: object) -> bool:
        return operator in self._annotators or operator in self._parent_annotators

    def operators(self) -> list[str]:
        """All registered operator names, sorted."""
        return sorted(set(self._annotators) | set(self._parent_annotators))

    def annotate(self, tag: FieldTag, schema: SchemaNode) -> None:
        """Apply the node annotator registered for ``tag.operator``."""
        func = self._annotators.get(tag.operator)
        if func is None:
            logger.warning(f"Unknown constraint operator '{tag.operator}'; schema left unconstrained")
            return
        func(tag, schema)


def default_annotator_registry() -> AnnotatorRegistry:
    """Build a fresh registry holding the default operator table."""
    return AnnotatorRegistry(
        annotators=_default_annotators(),
        parent_annotators={"required": required_annotator},
    )
