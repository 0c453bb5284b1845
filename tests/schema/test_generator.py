"""Tests for SchemaRefGenerator."""

from __future__ import annotations

import datetime
import decimal
import enum
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Literal, Optional, Union

import pytest
from pydantic import BaseModel

from tagschema.config import Config
from tagschema.errors import ConstraintParamError, SchemaCycleError, TagGrammarError
from tagschema.scalars import Float32, Int8, Int16, Int32, Int64, RawJSON, UInt, UInt8, UInt64
from tagschema.schema import SchemaRefGenerator, generate_schema
from tagschema.tags import tag

PREFIX = "#/components/schemas/"


# === Records ===


@dataclass
class User:
    name: str = tag(json="name", validate="required", default="")
    age: int = tag(json="age", validate="required,gte=18", default=0)


@dataclass
class Adult:
    age: int = tag(json="age", validate="gt=18", default=19)


@dataclass
class Address:
    street: str = tag(json="street", default="")


@dataclass
class Company:
    billing: Address = tag(json="billing", default_factory=Address)
    shipping: Address = tag(json="shipping", default_factory=Address)


@dataclass
class LinkedNode:
    label: str = tag(json="label", default="")
    next: Optional[LinkedNode] = tag(json="next", default=None)


@dataclass
class TreeNode:
    value: int = tag(json="value", default=0)
    children: list[TreeNode] = tag(json="children", default_factory=list)


@dataclass
class Registry:
    entries: dict[str, Registry] = tag(json="entries", default_factory=dict)


@dataclass
class Parent:
    child: Optional[Child] = tag(json="child", default=None)


@dataclass
class Child:
    parent: Optional[Parent] = tag(json="parent", default=None)


@dataclass
class Settings:
    limits: dict[str, int] = tag(json="limits", default_factory=dict)


@dataclass
class Pixel:
    red: UInt8 = tag(json="red", default=0)
    offset: Int8 = tag(json="offset", default=0)
    delta: Int16 = tag(json="delta", default=0)
    small: Int32 = tag(json="small", default=0)
    big: Int64 = tag(json="big", default=0)
    count: UInt = tag(json="count", default=0)
    huge: UInt64 = tag(json="huge", default=0)
    ratio: Float32 = tag(json="ratio", default=0.0)
    raw: RawJSON = tag(json="raw", default=b"")


@dataclass
class Account:
    id: str = tag(json="id", default="")
    password: str = tag(json="-", default="")
    _token: str = ""
    on_change: Optional[Callable[[], None]] = None


class Color(str, enum.Enum):
    RED = "red"
    GREEN = "green"


class Priority(enum.IntEnum):
    LOW = 1
    HIGH = 2


@dataclass
class Empty:
    pass


@dataclass
class Collections:
    tags: list[str] = tag(json="tags", validate="max=5,dive,min=1", default_factory=list)
    scores: dict[str, int] = tag(json="scores", validate="dive,keys,min=2,endkeys,gte=0", default_factory=dict)
    ids: list[int] = tag(json="ids", validate="dive,required", default_factory=list)
    label: str = tag(json="label", validate="dive,min=1", default="")


@dataclass
class OrGroups:
    code: str = tag(json="code", validate="len=2|len=3", default="")
    color: str = tag(json="color", validate="hexcolor|rgb", default="")
    either: str = tag(json="either", validate="required|min=1", default="")


@dataclass
class ConstrainedShared:
    home: Address = tag(json="home", validate="required,min=1", default_factory=Address)
    work: Address = tag(json="work", default_factory=Address)


@dataclass
class BadParam:
    age: int = tag(json="age", validate="gte=abc", default=0)


@dataclass
class BadGrammar:
    key: str = tag(json="key", validate="keys,endkeys", default="")


@dataclass
class Holder:
    good: Address = tag(json="good", default_factory=Address)
    bad: BadParam = tag(json="bad", default_factory=BadParam)


@dataclass
class AddressRef:
    ref: str = tag(json="$ref", default="")
    value: Optional[Address] = tag(json="value", default=None)


@dataclass
class Street:
    name: str = tag(json="name", default="")


@dataclass
class Home:
    street: Street = tag(json="street", default_factory=Street)


@dataclass
class Office:
    street: Street = tag(json="street", default_factory=Street)


@dataclass
class SelfEmbed:
    label: str = tag(json="label", default="")
    inner: Optional[SelfEmbed] = tag(embedded=True, default=None)


class Outer:
    @dataclass
    class Address:
        city: str = ""


@dataclass
class Directory:
    a1: Address = field(default_factory=Address)
    a2: Address = field(default_factory=Address)
    b1: Outer.Address = field(default_factory=Outer.Address)
    b2: Outer.Address = field(default_factory=Outer.Address)


class Profile(BaseModel):
    nickname: str = ""
    address: Optional[Address] = None


def schema_of(value: Any, **kwargs: Any) -> dict[str, Any]:
    ref, _ = generate_schema(value, **kwargs)
    assert ref is not None
    return ref.to_dict()


def refs_in(schema: Any) -> set[str]:
    """Collect every $ref string of a rendered schema."""
    found: set[str] = set()
    if isinstance(schema, dict):
        if isinstance(schema.get("$ref"), str):
            found.add(schema["$ref"])
        for value in schema.values():
            found |= refs_in(value)
    elif isinstance(schema, list):
        for value in schema:
            found |= refs_in(value)
    return found


# === Records and constraints ===


class TestRecords:
    def test_required_and_bounds(self) -> None:
        """required goes to the parent, gte to the property."""
        ref, _ = generate_schema(User)
        assert ref is not None and ref.value is not None
        schema = ref.to_dict()
        assert schema["type"] == "object"
        assert sorted(schema["required"]) == ["age", "name"]
        assert schema["properties"]["name"] == {"type": "string"}
        # gte is inclusive; to_dict renders exclusiveMinimum only when it is true.
        assert schema["properties"]["age"] == {"type": "integer", "minimum": 18}
        age = ref.value.properties["age"].value
        assert age is not None
        assert age.exclusive_minimum is False

    def test_required_listed_in_sorted_field_order(self) -> None:
        """Fields are visited in sorted name order, so User lists age before name."""
        assert schema_of(User)["required"] == ["age", "name"]

    def test_gt_is_exclusive(self) -> None:
        """gt=18 sets an exclusive minimum."""
        ref, _ = generate_schema(Adult)
        assert ref is not None and ref.value is not None
        age = ref.value.properties["age"].value
        assert age is not None
        assert (age.minimum, age.exclusive_minimum) == (18, True)

    def test_instance_and_type_agree(self) -> None:
        """Instances are generated from their type."""
        assert schema_of(User(name="a", age=20)) == schema_of(User)

    def test_deterministic(self) -> None:
        """Two fresh generators produce identical trees."""
        assert schema_of(Company) == schema_of(Company)
        assert schema_of(Pixel) == schema_of(Pixel)

    def test_excluded_and_unexported_fields_absent(self) -> None:
        """'-', leading underscore and callables never appear."""
        assert schema_of(Account) == {"type": "object", "properties": {"id": {"type": "string"}}}

    def test_empty_record_is_untyped(self) -> None:
        """A record without properties is not marked as an object."""
        assert schema_of(Empty) == {}

    def test_pydantic_model(self) -> None:
        """pydantic models are expanded like dataclasses."""
        schema = schema_of(Profile)
        assert schema["properties"]["nickname"] == {"type": "string"}
        assert schema["properties"]["address"] == {
            "type": "object",
            "properties": {"street": {"type": "string"}},
        }


# === Scalars ===


class TestScalars:
    def test_fixed_width_integers(self) -> None:
        """Narrow widths get exact bounds; 32/64-bit signed get formats."""
        props = schema_of(Pixel)["properties"]
        assert props["red"] == {"type": "integer", "minimum": 0, "maximum": 255}
        assert props["offset"] == {"type": "integer", "minimum": -128, "maximum": 127}
        assert props["delta"] == {"type": "integer", "minimum": -32768, "maximum": 32767}
        assert props["small"] == {"type": "integer", "format": "int32"}
        assert props["big"] == {"type": "integer", "format": "int64"}
        assert props["count"] == {"type": "integer", "minimum": 0}
        assert props["huge"] == {"type": "integer", "minimum": 0, "maximum": 18446744073709551615}

    def test_floats_and_raw(self) -> None:
        """Float widths become formats; RawJSON is untyped."""
        props = schema_of(Pixel)["properties"]
        assert props["ratio"] == {"type": "number", "format": "float"}
        assert props["raw"] == {}

    @pytest.mark.parametrize(
        ("t", "expected"),
        [
            (bool, {"type": "boolean"}),
            (int, {"type": "integer"}),
            (float, {"type": "number", "format": "double"}),
            (str, {"type": "string"}),
            (bytes, {"type": "string", "format": "byte"}),
            (datetime.datetime, {"type": "string", "format": "date-time"}),
            (datetime.date, {"type": "string", "format": "date"}),
            (uuid.UUID, {"type": "string", "format": "uuid"}),
            (decimal.Decimal, {"type": "number"}),
            (Any, {}),
            (object, {}),
        ],
    )
    def test_builtin_types(self, t: Any, expected: dict[str, Any]) -> None:
        """Builtin and designated types map to fixed schemas."""
        assert schema_of(t) == expected

    def test_enums(self) -> None:
        """Enums and Literals become typed enums."""
        assert schema_of(Color) == {"type": "string", "enum": ["red", "green"]}
        assert schema_of(Priority) == {"type": "integer", "enum": [1, 2]}
        assert schema_of(Literal["a", "b"]) == {"type": "string", "enum": ["a", "b"]}

    def test_callable_has_no_schema(self) -> None:
        """Callables produce no schema."""
        ref, components = generate_schema(Callable[[int], int])
        assert ref is None
        assert components == {}


# === Containers ===


class TestContainers:
    def test_map_values(self) -> None:
        """dict[str, int] becomes additionalProperties integer."""
        limits = schema_of(Settings)["properties"]["limits"]
        assert limits == {"type": "object", "additionalProperties": {"type": "integer"}}

    @pytest.mark.parametrize(
        ("t", "expected"),
        [
            (list[int], {"type": "array", "items": {"type": "integer"}}),
            (set[str], {"type": "array", "items": {"type": "string"}}),
            (tuple[int, ...], {"type": "array", "items": {"type": "integer"}}),
            (list, {"type": "array"}),
            (dict, {"type": "object"}),
            (Optional[list[int]], {"type": "array", "items": {"type": "integer"}}),
        ],
    )
    def test_arrays_and_maps(self, t: Any, expected: dict[str, Any]) -> None:
        """Sequences, sets and tuples are arrays; bare containers have no element schema."""
        assert schema_of(t) == expected

    def test_heterogeneous_tuple(self) -> None:
        """tuple[int, str] items are a oneOf."""
        assert schema_of(tuple[int, str]) == {
            "type": "array",
            "items": {"oneOf": [{"type": "integer"}, {"type": "string"}]},
        }

    def test_union(self) -> None:
        """Unions of several members become oneOf; Optional collapses."""
        assert schema_of(Union[int, str]) == {"oneOf": [{"type": "integer"}, {"type": "string"}]}
        assert schema_of(Optional[int]) == {"type": "integer"}


# === dive / keys / or-groups ===


class TestDive:
    def test_dive_moves_constraints_to_items(self) -> None:
        """Constraints before dive bound the array, after it the items."""
        tags = schema_of(Collections)["properties"]["tags"]
        assert tags == {"type": "array", "maxItems": 5, "items": {"type": "string", "minLength": 1}}

    def test_keys_block_constrains_property_names(self) -> None:
        """keys ... endkeys targets propertyNames, the rest the values."""
        scores = schema_of(Collections)["properties"]["scores"]
        assert scores == {
            "type": "object",
            "additionalProperties": {"type": "integer", "minimum": 0},
            "propertyNames": {"type": "string", "minLength": 2},
        }

    def test_required_after_dive_ignored(self, caplog: pytest.LogCaptureFixture) -> None:
        """Container-level operators have no parent after dive."""
        with caplog.at_level(logging.WARNING):
            schema = schema_of(Collections)
        assert "required" not in schema
        assert schema["properties"]["ids"] == {"type": "array", "items": {"type": "integer"}}
        assert "ignored after 'dive'" in caplog.text

    def test_dive_on_scalar_warns(self, caplog: pytest.LogCaptureFixture) -> None:
        """dive on a non-container leaves the schema alone."""
        with caplog.at_level(logging.WARNING):
            schema = schema_of(Collections)
        assert schema["properties"]["label"] == {"type": "string"}
        assert "'dive' on field 'label'" in caplog.text


class TestOrGroups:
    def test_constraining_alternatives_become_any_of(self) -> None:
        """Every alternative constrains, so the group is an anyOf."""
        code = schema_of(OrGroups)["properties"]["code"]
        assert code == {
            "type": "string",
            "anyOf": [{"minLength": 2, "maxLength": 2}, {"minLength": 3, "maxLength": 3}],
        }

    def test_unconstrained_alternative_skips_group(self, caplog: pytest.LogCaptureFixture) -> None:
        """An alternative without a schema keyword leaves the group unapplied."""
        with caplog.at_level(logging.WARNING):
            schema = schema_of(OrGroups)
        assert schema["properties"]["color"] == {"type": "string"}
        assert "hexcolor|rgb" in caplog.text

    def test_parent_operator_in_group_skipped(self, caplog: pytest.LogCaptureFixture) -> None:
        """required cannot take part in an alternation."""
        with caplog.at_level(logging.WARNING):
            schema = schema_of(OrGroups)
        assert "required" not in schema
        assert schema["properties"]["either"] == {"type": "string"}
        assert "required|min" in caplog.text


# === Cycles ===


class TestCycles:
    def test_self_cycle_tolerant(self) -> None:
        """A self-reference becomes a $ref to a published component."""
        ref, components = generate_schema(LinkedNode)
        assert ref is not None
        schema = ref.to_dict()
        assert schema["properties"]["next"] == {"$ref": PREFIX + "LinkedNode"}
        assert schema["properties"]["label"] == {"type": "string"}
        assert set(components) == {"LinkedNode"}
        assert components["LinkedNode"] is ref.value

    def test_cycle_through_array_items(self) -> None:
        """Array items referring back use the component."""
        schema = schema_of(TreeNode)
        assert schema["properties"]["children"] == {"type": "array", "items": {"$ref": PREFIX + "TreeNode"}}

    def test_cycle_through_map_values(self) -> None:
        """Map values referring back use the component."""
        schema = schema_of(Registry)
        assert schema["properties"]["entries"] == {
            "type": "object",
            "additionalProperties": {"$ref": PREFIX + "Registry"},
        }

    def test_mutual_cycle_tolerant(self) -> None:
        """An indirect cycle publishes the ancestor that is revisited."""
        ref, components = generate_schema(Parent)
        assert ref is not None
        child = ref.to_dict()["properties"]["child"]
        assert child == {"type": "object", "properties": {"parent": {"$ref": PREFIX + "Parent"}}}
        assert set(components) == {"Parent"}

    def test_self_embed_is_a_cycle(self) -> None:
        """A record embedding itself keeps the field and references itself."""
        ref, components = generate_schema(SelfEmbed)
        assert ref is not None
        schema = ref.to_dict()
        assert schema["properties"]["inner"] == {"$ref": PREFIX + "SelfEmbed"}
        assert schema["properties"]["label"] == {"type": "string"}
        assert set(components) == {"SelfEmbed"}

    def test_self_cycle_strict(self, strict_generator: SchemaRefGenerator) -> None:
        """Strict mode raises with the cycle path."""
        with pytest.raises(SchemaCycleError) as exc_info:
            strict_generator.generate_schema_ref(LinkedNode)
        assert exc_info.value.cycle_path == ["LinkedNode", "LinkedNode"]

    def test_mutual_cycle_strict(self) -> None:
        """The path lists every type from the revisited ancestor."""
        with pytest.raises(SchemaCycleError) as exc_info:
            generate_schema(Parent, strict=True)
        assert exc_info.value.cycle_path == ["Parent", "Child", "Parent"]

    def test_strict_failure_leaves_no_state(self, strict_generator: SchemaRefGenerator) -> None:
        """A failed call leaves the generator untouched."""
        with pytest.raises(SchemaCycleError):
            strict_generator.generate_schema_ref(TreeNode)
        assert strict_generator.types == {}
        assert strict_generator.components == {}
        assert not strict_generator.schema_refs

    def test_strict_from_config(self) -> None:
        """schema.throw_error_on_cycle enables strict mode."""
        generator = SchemaRefGenerator(Config({"schema": {"throw_error_on_cycle": True}}))
        assert generator.throw_error_on_cycle is True
        with pytest.raises(SchemaCycleError):
            generator.generate_schema_ref(LinkedNode)

    def test_component_prefix(self) -> None:
        """The $ref prefix is configurable."""
        generator = SchemaRefGenerator(component_prefix="#/definitions/")
        ref = generator.generate_schema_ref(LinkedNode)
        assert ref is not None
        assert ref.to_dict()["properties"]["next"] == {"$ref": "#/definitions/LinkedNode"}


# === Sharing and promotion ===


class TestPromotion:
    def test_shared_type_is_promoted(self) -> None:
        """A type used twice is published once and referenced."""
        ref, components = generate_schema(Company)
        assert ref is not None
        schema = ref.to_dict()
        assert schema["properties"]["billing"] == {"$ref": PREFIX + "Address"}
        assert schema["properties"]["shipping"] == {"$ref": PREFIX + "Address"}
        assert components["Address"].to_dict() == {"type": "object", "properties": {"street": {"type": "string"}}}
        assert "Company" not in components

    def test_single_use_is_inlined(self, generator: SchemaRefGenerator) -> None:
        """A type used once is inlined and not published."""
        ref = generator.generate_schema_ref(Address)
        assert ref is not None
        assert ref.ref == ""
        assert generator.components == {}

    def test_reuse_across_calls(self, generator: SchemaRefGenerator) -> None:
        """Generating the same root twice returns two equal inline trees."""
        first = generator.generate_schema_ref(Address)
        second = generator.generate_schema_ref(Address)
        assert first is not None and second is not None
        assert first is not second
        assert first.ref == second.ref == ""
        assert first.to_dict() == second.to_dict() == {"type": "object", "properties": {"street": {"type": "string"}}}
        assert generator.components == {}

    def test_earlier_result_unchanged_by_later_use(self, generator: SchemaRefGenerator) -> None:
        """Using a type again in a later call leaves the earlier tree and table intact."""
        street, street_components = generator.generate_schema(Street)
        assert street is not None
        before = street.to_dict()
        home, _ = generator.generate_schema(Home)
        assert home is not None
        assert street.to_dict() == before == {"type": "object", "properties": {"name": {"type": "string"}}}
        assert street_components == {}
        assert home.to_dict()["properties"]["street"] == before

    def test_later_promotion_is_self_contained(self, generator: SchemaRefGenerator) -> None:
        """A type promoted by a later call is referenced only where its table has it."""
        home, home_components = generator.generate_schema(Home)
        assert home is not None
        home_schema = home.to_dict()
        office, office_components = generator.generate_schema(Office)
        assert office is not None
        assert home.to_dict() == home_schema
        assert home_schema["properties"]["street"] == {"type": "object", "properties": {"name": {"type": "string"}}}
        assert office.to_dict()["properties"]["street"] == {"$ref": PREFIX + "Street"}
        for schema, components in ((home_schema, home_components), (office.to_dict(), office_components)):
            assert refs_in(schema) <= {PREFIX + name for name in components}
        assert office_components["Street"].to_dict() == home_schema["properties"]["street"]

    def test_schemas_argument_receives_components(self, generator: SchemaRefGenerator) -> None:
        """Promoted components are copied into the given table."""
        schemas: dict = {}
        generator.generate_schema_ref(Company, schemas)
        assert set(schemas) == {"Address"}

    def test_name_collisions_are_qualified(self) -> None:
        """Two types with one name get distinct component ids."""
        _, components = generate_schema(Directory)
        assert len(components) == 2
        assert "Address" in components
        (other,) = [name for name in components if name != "Address"]
        assert other.endswith("Outer.Address")

    def test_constraints_never_mutate_shared_components(self) -> None:
        """Constraints on a shared type wrap it in allOf."""
        ref, components = generate_schema(ConstrainedShared)
        assert ref is not None
        schema = ref.to_dict()
        assert schema["required"] == ["home"]
        assert schema["properties"]["home"] == {
            "type": "object",
            "minProperties": 1,
            "allOf": [{"$ref": PREFIX + "Address"}],
        }
        assert schema["properties"]["work"] == {"$ref": PREFIX + "Address"}
        assert components["Address"].min_properties is None


# === Reference wrappers ===


class TestRefWrapper:
    def test_link_or_value(self) -> None:
        """XxxRef records offer a link shape or the inline value."""
        assert schema_of(AddressRef) == {
            "oneOf": [
                {"type": "object", "properties": {"$ref": {"type": "string", "minLength": 1}}},
                {"type": "object", "properties": {"street": {"type": "string"}}},
            ]
        }


# === Failures ===


class TestFailures:
    def test_bad_param_is_fatal(self, generator: SchemaRefGenerator) -> None:
        """A malformed bound aborts generation and restores state."""
        with pytest.raises(ConstraintParamError):
            generator.generate_schema_ref(Holder)
        assert generator.types == {}
        assert generator.components == {}

    def test_grammar_error_surfaces(self, generator: SchemaRefGenerator) -> None:
        """Grammar errors raise when the type is first resolved."""
        with pytest.raises(TagGrammarError):
            generator.generate_schema_ref(BadGrammar)

    def test_generator_usable_after_failure(self, generator: SchemaRefGenerator) -> None:
        """Later calls succeed after a failed one."""
        with pytest.raises(ConstraintParamError):
            generator.generate_schema_ref(Holder)
        ref = generator.generate_schema_ref(Address)
        assert ref is not None
        assert ref.to_dict() == {"type": "object", "properties": {"street": {"type": "string"}}}
