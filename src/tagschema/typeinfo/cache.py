"""TypeInfoCache -- memoized, thread-safe type metadata."""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any

from tagschema.typeinfo.fields import TagNames, append_fields, dominant_fields
from tagschema.typeinfo.introspect import is_record, remove_indirect
from tagschema.typeinfo.types import TypeInfo

if TYPE_CHECKING:
    from tagschema.config import Config

logger = logging.getLogger(__name__)

__all__ = ["TypeInfoCache"]


class TypeInfoCache:
    """Memoizes the sorted field list of each type for the cache's lifetime.

    The cache starts empty. Concurrent callers missing on the same type may
    compute its metadata twice; the first result stored wins and every later
    caller sees that instance.
    """

    def __init__(
        self,
        config: Config | None = None,
        *,
        json_tag: str | None = None,
        bson_tag: str | None = None,
        validate_tag: str | None = None,
    ) -> None:
        """Initialize the cache.

        Args:
            config: Optional Config; ``typeinfo.*_tag`` keys name the tag namespaces.
            json_tag: Namespace controlling serialized names (overrides config).
            bson_tag: Secondary naming namespace (overrides config).
            validate_tag: Namespace holding constraint grammar (overrides config).
        """
        defaults = TagNames()

        def pick(explicit: str | None, key: str, default: str) -> str:
            if explicit is not None:
                return explicit
            if config is not None:
                return config.get(key, default)
            return default

        self._tag_names = TagNames(
            json=pick(json_tag, "typeinfo.json_tag", defaults.json),
            bson=pick(bson_tag, "typeinfo.bson_tag", defaults.bson),
            validate=pick(validate_tag, "typeinfo.validate_tag", defaults.validate),
        )
        self._cache: dict[Any, TypeInfo] = {}
        self._lock = threading.RLock()

    @property
    def tag_names(self) -> TagNames:
        return self._tag_names

    def get_type_info(self, t: Any) -> TypeInfo:
        """Return the metadata of ``t``, computing it on first use.

        ``Optional[T]`` and ``T`` share one entry. Raises TagGrammarError if a
        field's validate tag is malformed.
        """
        t = remove_indirect(t)

        try:
            with self._lock:
                cached = self._cache.get(t)
        except TypeError:
            # Unhashable annotation (e.g. Literal over a list); not cached.
            return self._compute(t)

        if cached is not None:
            return cached

        type_info = self._compute(t)
        with self._lock:
            return self._cache.setdefault(t, type_info)

    def _compute(self, t: Any) -> TypeInfo:
        if not is_record(t):
            return TypeInfo(type=t)
        logger.debug(f"Resolving field metadata of {t!r}")
        fields = dominant_fields(append_fields([], (), t, self._tag_names))
        fields.sort(key=lambda f: f.name)
        return TypeInfo(type=t, fields=tuple(fields))

    def clear(self) -> None:
        """Drop every cached entry."""
        with self._lock:
            self._cache.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)

    def __contains__(self, t: Any) -> bool:
        with self._lock:
            return remove_indirect(t) in self._cache
