"""SchemaRefGenerator -- builds schema trees from Python types.

Every generated schema is wrapped in a SchemaRef. Uses of named (record)
schemas are counted over the generator's lifetime, each at its own use site.
Once a schema has been used more than once, or reached again through a
cycle, the sites created from then on reference it by ``$ref`` and it is
published as a named component. Sites settled by an earlier call keep the
form they were returned with.
"""

from __future__ import annotations

import collections.abc
import datetime
import decimal
import enum
import logging
import re
import uuid
from collections import Counter
from typing import Any, Literal, NamedTuple, NewType, Union, get_args, get_origin

from tagschema import scalars
from tagschema.config import Config
from tagschema.constraints.grammar import FieldTag, TagType
from tagschema.errors import SchemaCycleError
from tagschema.schema.annotators import AnnotatorRegistry, default_annotator_registry
from tagschema.schema.types import SchemaNode, SchemaRef
from tagschema.typeinfo.cache import TypeInfoCache
from tagschema.typeinfo.introspect import (
    NONE_TYPE,
    is_class,
    is_func_or_chan,
    is_record,
    is_union,
    strip_type,
    type_name,
)
from tagschema.typeinfo.types import Field, TypeInfo

logger = logging.getLogger(__name__)

__all__ = ["SchemaRefGenerator", "generate_schema", "DEFAULT_COMPONENT_PREFIX"]

DEFAULT_COMPONENT_PREFIX = "#/components/schemas/"
REF_WRAPPER_SUFFIX = "Ref"

# Widths a JSON number cannot tell apart get exact bounds; 32/64-bit signed
# integers get a format instead.
_INTEGER_BOUNDS: dict[Any, tuple[int, int | None]] = {
    scalars.Int8: (-128, 127),
    scalars.Int16: (-32768, 32767),
    scalars.UInt: (0, None),
    scalars.UInt8: (0, 255),
    scalars.UInt16: (0, 65535),
    scalars.UInt32: (0, 4294967295),
    scalars.UInt64: (0, 18446744073709551615),
}
_INTEGER_FORMATS: dict[Any, str] = {scalars.Int32: "int32", scalars.Int64: "int64"}
_NUMBER_FORMATS: dict[Any, str] = {scalars.Float32: "float", scalars.Float64: "double"}
_SCALAR_NEWTYPES = frozenset({*_INTEGER_BOUNDS, *_INTEGER_FORMATS, *_NUMBER_FORMATS, scalars.RawJSON})

_SKIPPED_TAG_TYPES = frozenset(
    {TagType.OMIT_EMPTY, TagType.STRUCT_ONLY, TagType.NO_STRUCT_LEVEL, TagType.KEYS, TagType.END_KEYS}
)

_INVALID_COMPONENT_CHARS = re.compile(r"[^A-Za-z0-9._-]")
_REF_SHAPE_KEY = object()


class _Ancestor(NamedTuple):
    type_info: TypeInfo
    ref: SchemaRef


class SchemaRefGenerator:
    """Converts Python types into SchemaRef trees plus a component table.

    One generator may be used for many values; its type cache, use counts
    and components accumulate so a type shared between values is emitted
    once as a component.
    """

    def __init__(
        self,
        config: Config | None = None,
        *,
        throw_error_on_cycle: bool | None = None,
        type_info_cache: TypeInfoCache | None = None,
        annotators: AnnotatorRegistry | None = None,
        component_prefix: str | None = None,
    ) -> None:
        """Initialize the generator.

        Args:
            config: Optional Config for ``schema.*`` settings.
            throw_error_on_cycle: Raise SchemaCycleError on self-referential
                types instead of publishing them as components.
            type_info_cache: Shared type metadata cache; a private one is
                created when omitted.
            annotators: Constraint annotator registry; defaults to
                ``default_annotator_registry()``.
            component_prefix: Prefix of generated ``$ref`` strings.
        """
        config = config or Config()
        if throw_error_on_cycle is None:
            throw_error_on_cycle = bool(config.get("schema.throw_error_on_cycle", False))
        self._throw_error_on_cycle = throw_error_on_cycle
        self._component_prefix: str = component_prefix or config.get(
            "schema.component_prefix", DEFAULT_COMPONENT_PREFIX
        )
        self._type_info_cache = type_info_cache if type_info_cache is not None else TypeInfoCache(config)
        self._annotators = annotators if annotators is not None else default_annotator_registry()

        self.types: dict[Any, SchemaRef] = {}
        self.schema_refs: Counter[str] = Counter()
        self.components: dict[str, SchemaNode] = {}
        self._cycle_names: set[str] = set()
        self._component_owners: dict[str, Any] = {}
        self._pending: list[SchemaRef] = []
        self._ref_shape = self._new_ref_shape()

    @property
    def throw_error_on_cycle(self) -> bool:
        return self._throw_error_on_cycle

    @property
    def type_info_cache(self) -> TypeInfoCache:
        return self._type_info_cache

    @property
    def annotators(self) -> AnnotatorRegistry:
        return self._annotators

    def generate_schema(self, value: Any) -> tuple[SchemaRef | None, dict[str, SchemaNode]]:
        """Generate the schema of ``value`` and return it with the component table."""
        ref = self.generate_schema_ref(value)
        return ref, dict(self.components)

    def generate_schema_ref(
        self, value: Any, schemas: dict[str, SchemaNode] | None = None
    ) -> SchemaRef | None:
        """Generate the schema of ``value`` (an instance or a type annotation).

        Promoted components are also written into ``schemas`` when given.
        Returns None for types without a schema (callables, queues). On any
        error the generator is left exactly as it was before the call.

        The returned root is always inline and is never changed by later
        calls. Every ``$ref`` inside it names a component already present
        in ``self.components`` when the call returns.
        """
        t = strip_type(_type_of(value))
        snapshot = self._snapshot()
        self._pending = []
        try:
            target = self.types.get(t)
            if target is None:
                target = self._generate(t, ())
                if target is None:
                    return None
                self.types.setdefault(t, target)
            self._finalize()
        except Exception:
            self._restore(snapshot)
            raise
        finally:
            self._pending = []

        if schemas is not None:
            schemas.update(self.components)
        return SchemaRef(value=target.value, name=target.name)

    def _generate(self, t: Any, ancestors: tuple[_Ancestor, ...]) -> SchemaRef | None:
        t = strip_type(t)

        if is_func_or_chan(t):
            return None
        if is_union(t):
            return self._generate_union(t, ancestors)
        if isinstance(t, NewType) and t not in _SCALAR_NEWTYPES:
            return self._generate(t.__supertype__, ancestors)

        node = _scalar_schema(t)
        if node is not None:
            return SchemaRef(value=node)

        if is_record(t):
            return self._generate_record(t, ancestors)

        origin = get_origin(t) or t
        if isinstance(origin, type):
            if issubclass(origin, collections.abc.Mapping):
                return self._generate_map(t, ancestors)
            if issubclass(origin, (collections.abc.Sequence, collections.abc.Set)):
                return self._generate_array(t, ancestors)

        return SchemaRef(value=SchemaNode())

    def _generate_union(self, t: Any, ancestors: tuple[_Ancestor, ...]) -> SchemaRef:
        node = SchemaNode()
        for member in get_args(t):
            if member is NONE_TYPE:
                continue
            ref = self._generate(member, ancestors)
            if ref is not None:
                node.one_of.append(self._use(ref))
        return SchemaRef(value=node)

    def _generate_array(self, t: Any, ancestors: tuple[_Ancestor, ...]) -> SchemaRef:
        node = SchemaNode(type="array")
        args = get_args(t)
        if args:
            if get_origin(t) is tuple and not (len(args) == 2 and args[1] is Ellipsis):
                element = Union[args] if args != ((),) else Any
            else:
                element = args[0]
            items = self._generate(element, ancestors)
            if items is not None:
                node.items = self._use(items)
        return SchemaRef(value=node)

    def _generate_map(self, t: Any, ancestors: tuple[_Ancestor, ...]) -> SchemaRef:
        node = SchemaNode(type="object")
        args = get_args(t)
        if len(args) == 2:
            additional = self._generate(args[1], ancestors)
            if additional is not None:
                node.additional_properties = self._use(additional)
        return SchemaRef(value=node)

    def _generate_record(self, t: type, ancestors: tuple[_Ancestor, ...]) -> SchemaRef:
        type_info = self._type_info_cache.get_type_info(t)
        for depth, ancestor in enumerate(ancestors):
            if ancestor.type_info.type == type_info.type:
                return self._cycle_ref(ancestors[depth:], type_info)

        cached = self.types.get(t)
        if cached is not None:
            return cached

        if t.__name__.endswith(REF_WRAPPER_SUFFIX):
            wrapper = self._generate_ref_wrapper(type_info, ancestors)
            if wrapper is not None:
                return wrapper

        node = SchemaNode()
        ref = SchemaRef(value=node, name=self._component_name(t))
        ancestors = (*ancestors, _Ancestor(type_info, ref))

        for field in type_info.fields:
            prop = self._generate(field.type, ancestors)
            if prop is None:
                continue
            node.properties[field.name] = self._apply_field_tags(field, node, self._use(prop))

        # Object only if it has properties
        if node.properties:
            node.type = "object"

        self.types[t] = ref
        return ref

    def _generate_ref_wrapper(
        self, type_info: TypeInfo, ancestors: tuple[_Ancestor, ...]
    ) -> SchemaRef | None:
        """Build ``oneOf: [link, value]`` for ``XxxRef`` records with ``ref`` and ``value`` fields."""
        value_field = type_info.field_by_declared_name("value")
        if type_info.field_by_declared_name("ref") is None or value_field is None:
            return None

        t = type_info.type
        node = SchemaNode()
        ref = SchemaRef(value=node, name=self._component_name(t))

        node.one_of.append(self._use(self._ref_shape))

        value_ref = self._generate(value_field.type, (*ancestors, _Ancestor(type_info, ref)))
        if value_ref is not None:
            node.one_of.append(self._use(value_ref))

        self.types[t] = ref
        return ref

    def _cycle_ref(self, path: tuple[_Ancestor, ...], type_info: TypeInfo) -> SchemaRef:
        if self._throw_error_on_cycle:
            names = [type_name(ancestor.type_info.type) for ancestor in path]
            raise SchemaCycleError(cycle_path=[*names, type_name(type_info.type)])

        target = path[0].ref
        logger.debug(f"Cycle through {type_name(type_info.type)}; referencing component '{target.name}'")
        self._cycle_names.add(target.name)
        return target

    def _apply_field_tags(self, field: Field, parent: SchemaNode, prop: SchemaRef) -> SchemaRef:
        if field.validate is None:
            return prop
        return self._apply_chain(field.validate, field, parent, prop)

    def _apply_chain(
        self, head: FieldTag | None, field: Field, parent: SchemaNode | None, target: SchemaRef
    ) -> SchemaRef:
        """Walk a constraint chain, returning the (possibly wrapped) target."""
        tag = head
        while tag is not None:
            if tag.type is TagType.DIVE:
                self._dive(tag.next, field, target)
                break

            if tag.type is TagType.OR:
                group = [tag]
                while not tag.is_block_end and tag.next is not None:
                    tag = tag.next
                    group.append(tag)
                target = self._apply_or_group(group, field, target)
                tag = tag.next
                continue

            if tag.type not in _SKIPPED_TAG_TYPES:
                target = self._apply_tag(tag, field, parent, target)
            tag = tag.next
        return target

    def _apply_tag(
        self, tag: FieldTag, field: Field, parent: SchemaNode | None, target: SchemaRef
    ) -> SchemaRef:
        parent_annotator = self._annotators.get_parent(tag.operator)
        if parent_annotator is not None:
            if parent is None:
                logger.warning(
                    f"Constraint '{tag.operator}' on field '{field.name}' applies to a containing "
                    f"object; ignored after 'dive'"
                )
            else:
                parent_annotator(field, parent)
            return target

        target = self._owned(target)
        assert target.value is not None
        self._annotators.annotate(tag, target.value)
        return target

    def _apply_or_group(self, group: list[FieldTag], field: Field, target: SchemaRef) -> SchemaRef:
        """Apply ``a|b`` as ``anyOf`` when every alternative constrains the schema."""
        text = "|".join(tag.operator for tag in group)
        base_type = target.value.type if target.value is not None and not target.name else None

        fragments: list[SchemaRef] = []
        for tag in group:
            if self._annotators.get_parent(tag.operator) is not None:
                logger.warning(
                    f"Or-group '{text}' on field '{field.name}' contains container-level "
                    f"operator '{tag.operator}'; group left unapplied"
                )
                return target
            scratch = SchemaNode(type=base_type)
            self._annotators.annotate(tag, scratch)
            scratch.type = None
            if scratch.is_empty():
                logger.warning(
                    f"Or-group '{text}' on field '{field.name}' has unconstrained alternative "
                    f"'{tag.operator}'; group left unapplied"
                )
                return target
            fragments.append(SchemaRef(value=scratch))

        target = self._owned(target)
        assert target.value is not None
        target.value.any_of.extend(fragments)
        return target

    def _dive(self, tag: FieldTag | None, field: Field, container: SchemaRef) -> None:
        """Apply the rest of a chain to the elements (and keys) of a container."""
        node = container.value
        if container.name or node is None or (node.items is None and node.additional_properties is None):
            logger.warning(f"'dive' on field '{field.name}' whose schema has no elements; constraints ignored")
            return

        keys: FieldTag | None = None
        if tag is not None and tag.type is TagType.KEYS:
            keys, tag = tag.keys, tag.next

        if keys is not None:
            if node.additional_properties is None:
                logger.warning(f"'keys' on field '{field.name}' which is not a map; key constraints ignored")
            else:
                names = node.property_names or SchemaRef(value=SchemaNode(type="string"))
                node.property_names = self._apply_chain(keys, field, None, names)

        if tag is None:
            return
        if node.items is not None:
            node.items = self._apply_chain(tag, field, None, node.items)
        elif node.additional_properties is not None:
            node.additional_properties = self._apply_chain(tag, field, None, node.additional_properties)

    def _owned(self, target: SchemaRef) -> SchemaRef:
        """Return a ref whose node may be mutated; shared components get an allOf wrapper."""
        if not target.name:
            return target
        # The wrapper keeps the type so bounds land on the right keyword.
        kind = target.value.type if target.value is not None else None
        return SchemaRef(value=SchemaNode(type=kind, all_of=[target]))

    def _component_name(self, key: Any, preferred: str | None = None) -> str:
        name = preferred or type_name(key)
        owner = self._component_owners.setdefault(name, key)
        if owner is key:
            return name
        qualified = _INVALID_COMPONENT_CHARS.sub("_", f"{key.__module__}.{key.__qualname__}")
        self._component_owners.setdefault(qualified, key)
        return qualified

    def _new_ref_shape(self) -> SchemaRef:
        node = SchemaNode(type="object")
        node.with_property("$ref", SchemaRef(value=SchemaNode(type="string", min_length=1)))
        return SchemaRef(value=node, name=self._component_name(_REF_SHAPE_KEY, REF_WRAPPER_SUFFIX))

    def _use(self, target: SchemaRef) -> SchemaRef:
        """Count one use of ``target`` and return a use site of its own.

        Named schemas get a fresh ref per site so that promoting a component
        never rewrites a site that belongs to an earlier result.
        """
        if not target.name:
            return target
        self.schema_refs[target.name] += 1
        site = SchemaRef(value=target.value, name=target.name)
        self._pending.append(site)
        return site

    def _finalize(self) -> None:
        """Decide inline or ``$ref`` for the use sites created by this call."""
        for site in self._pending:
            if self.schema_refs[site.name] > 1 or site.name in self._cycle_names:
                site.ref = self._component_prefix + site.name
                if site.name not in self.components:
                    logger.debug(f"Promoting '{site.name}' to a component")
                assert site.value is not None
                self.components[site.name] = site.value

    def _snapshot(self) -> tuple[Any, ...]:
        return (
            dict(self.types),
            Counter(self.schema_refs),
            dict(self.components),
            set(self._cycle_names),
            dict(self._component_owners),
        )

    def _restore(self, snapshot: tuple[Any, ...]) -> None:
        (
            self.types,
            self.schema_refs,
            self.components,
            self._cycle_names,
            self._component_owners,
        ) = snapshot


def generate_schema(
    value: Any,
    *,
    strict: bool = False,
    cache: TypeInfoCache | None = None,
    config: Config | None = None,
) -> tuple[SchemaRef | None, dict[str, SchemaNode]]:
    """Generate the schema of ``value`` with a fresh generator.

    ``strict`` raises SchemaCycleError on self-referential types instead of
    publishing them as components.
    """
    generator = SchemaRefGenerator(config, throw_error_on_cycle=strict, type_info_cache=cache)
    return generator.generate_schema(value)


def _type_of(value: Any) -> Any:
    """Accept either a type annotation or an instance of one."""
    if isinstance(value, (type, NewType)) or value is Any or get_origin(value) is not None:
        return value
    return type(value)


def _scalar_schema(t: Any) -> SchemaNode | None:
    """Schema of a leaf type, or None if ``t`` is not a leaf."""
    if t is NONE_TYPE or t is Any or t is object or t is scalars.RawJSON:
        return SchemaNode()
    if t in _INTEGER_BOUNDS:
        low, high = _INTEGER_BOUNDS[t]
        return SchemaNode(type="integer", minimum=low, maximum=high)
    if t in _INTEGER_FORMATS:
        return SchemaNode(type="integer", format=_INTEGER_FORMATS[t])
    if t in _NUMBER_FORMATS:
        return SchemaNode(type="number", format=_NUMBER_FORMATS[t])
    if get_origin(t) is Literal:
        return _enum_schema(list(get_args(t)))
    if not is_class(t):
        return None

    if issubclass(t, enum.Enum):
        return _enum_schema([member.value for member in t])
    if issubclass(t, bool):
        return SchemaNode(type="boolean")
    if issubclass(t, int):
        return SchemaNode(type="integer")
    if issubclass(t, float):
        return SchemaNode(type="number", format="double")
    if issubclass(t, decimal.Decimal):
        return SchemaNode(type="number")
    if issubclass(t, str):
        return SchemaNode(type="string")
    if issubclass(t, (bytes, bytearray)):
        return SchemaNode(type="string", format="byte")
    if issubclass(t, datetime.datetime):
        return SchemaNode(type="string", format="date-time")
    if issubclass(t, datetime.date):
        return SchemaNode(type="string", format="date")
    if issubclass(t, uuid.UUID):
        return SchemaNode(type="string", format="uuid")
    return None


def _enum_schema(values: list[Any]) -> SchemaNode:
    node = SchemaNode(enum=values)
    if values and all(isinstance(v, str) for v in values):
        node.type = "string"
    elif values and all(isinstance(v, int) and not isinstance(v, bool) for v in values):
        node.type = "integer"
    return node
