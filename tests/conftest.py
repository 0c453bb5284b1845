"""Shared fixtures for the tagschema test suite."""

from __future__ import annotations

import pytest

from tagschema.schema import SchemaRefGenerator
from tagschema.typeinfo import TypeInfoCache


@pytest.fixture
def type_info_cache() -> TypeInfoCache:
    """A fresh, empty type metadata cache."""
    return TypeInfoCache()


@pytest.fixture
def generator(type_info_cache: TypeInfoCache) -> SchemaRefGenerator:
    """A tolerant generator over the fixture cache."""
    return SchemaRefGenerator(type_info_cache=type_info_cache)


@pytest.fixture
def strict_generator(type_info_cache: TypeInfoCache) -> SchemaRefGenerator:
    """A generator that raises on cycles."""
    return SchemaRefGenerator(throw_error_on_cycle=True, type_info_cache=type_info_cache)
