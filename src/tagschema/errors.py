"""Error hierarchy for the tagschema package."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

__all__ = [
    "TagSchemaError",
    "ConfigNotFoundError",
    "ConfigError",
    "TagGrammarError",
    "ConstraintParamError",
    "SchemaCycleError",
    "TypeResolutionError",
    "ErrorCodes",
]


class TagSchemaError(Exception):
    """Base error for all tagschema errors."""

    def __init__(
        self,
        code: str,
        message: str,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
        trace_id: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.details: dict[str, Any] = details or {}
        self.cause = cause
        self.trace_id = trace_id
        self.timestamp = datetime.now(timezone.utc).isoformat()

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


class ConfigNotFoundError(TagSchemaError):
    """Raised when a configuration file cannot be found."""

    def __init__(self, config_path: str, **kwargs: Any) -> None:
        super().__init__(
            code="CONFIG_NOT_FOUND",
            message=f"Configuration file not found: {config_path}",
            details={"config_path": config_path},
            **kwargs,
        )


class ConfigError(TagSchemaError):
    """Raised when configuration is invalid."""

    def __init__(self, message: str, **kwargs: Any) -> None:
        super().__init__(code="CONFIG_INVALID", message=message, **kwargs)


class TagGrammarError(TagSchemaError):
    """Raised when a validate tag cannot be parsed.

    The tag is a declaration-time defect, so this is raised the first time
    the owning type's metadata is resolved.
    """

    def __init__(self, tag: str, reason: str, field: str | None = None, **kwargs: Any) -> None:
        location = f" on field '{field}'" if field else ""
        super().__init__(
            code="TAG_GRAMMAR_ERROR",
            message=f"Invalid validate tag '{tag}'{location}: {reason}",
            details={"tag": tag, "reason": reason, "field": field},
            **kwargs,
        )

    @property
    def tag(self) -> str:
        """The raw tag string that failed to parse."""
        return self.details["tag"]

    @property
    def reason(self) -> str:
        """Why the tag was rejected."""
        return self.details["reason"]


class ConstraintParamError(TagSchemaError):
    """Raised when a constraint operator carries a parameter it cannot use."""

    def __init__(self, operator: str, param: str, expected: str = "int", **kwargs: Any) -> None:
        super().__init__(
            code="CONSTRAINT_PARAM_INVALID",
            message=f"Failed to parse parameter '{param}' of operator '{operator}' as {expected}",
            details={"operator": operator, "param": param, "expected": expected},
            **kwargs,
        )

    @property
    def operator(self) -> str:
        """The operator whose parameter was rejected."""
        return self.details["operator"]

    @property
    def param(self) -> str:
        """The rejected parameter."""
        return self.details["param"]


class SchemaCycleError(TagSchemaError):
    """Raised in strict mode when a type refers back to one of its ancestors."""

    def __init__(self, cycle_path: list[str], **kwargs: Any) -> None:
        super().__init__(
            code="SCHEMA_CYCLE_DETECTED",
            message=f"Cycle detected: {' -> '.join(cycle_path)}",
            details={"cycle_path": cycle_path},
            **kwargs,
        )

    @property
    def cycle_path(self) -> list[str]:
        """Type names from the first occurrence of the cyclic type back to itself."""
        return self.details["cycle_path"]


class TypeResolutionError(TagSchemaError):
    """Raised when a record type's annotations cannot be resolved."""

    def __init__(self, type_name: str, reason: str, **kwargs: Any) -> None:
        super().__init__(
            code="TYPE_RESOLUTION_ERROR",
            message=f"Cannot resolve type hints of '{type_name}': {reason}",
            details={"type_name": type_name, "reason": reason},
            **kwargs,
        )


class ErrorCodes:
    """All tagschema error codes as constants.

    Example:
        if error.code == ErrorCodes.SCHEMA_CYCLE_DETECTED:
            retry_in_tolerant_mode()
    """

    CONFIG_NOT_FOUND = "CONFIG_NOT_FOUND"
    CONFIG_INVALID = "CONFIG_INVALID"
    TAG_GRAMMAR_ERROR = "TAG_GRAMMAR_ERROR"
    CONSTRAINT_PARAM_INVALID = "CONSTRAINT_PARAM_INVALID"
    SCHEMA_CYCLE_DETECTED = "SCHEMA_CYCLE_DETECTED"
    TYPE_RESOLUTION_ERROR = "TYPE_RESOLUTION_ERROR"

    def __setattr__(self, name: str, value: object) -> None:
        raise AttributeError("ErrorCodes is immutable")
