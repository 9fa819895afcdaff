"""
Memocache Error Hierarchy

Unified exception hierarchy for the lazy-value caching engine. All custom
exceptions inherit from MemocacheError for easy catching and filtering, and
additionally from the builtin exception a Python caller would expect
(ValueError for bad configuration, IndexError/KeyError for missing slots), so
``except IndexError`` keeps working around a LazyList.

Usage:
    from memocache.errors import ConfigurationError, SlotIndexError

    try:
        cache = CacheBuilder().capacity(0).build()
    except ConfigurationError as e:
        logger.warning(f"Bad cache config: {e.message}")
"""

from typing import Any

__all__ = [
    "ComputationError",
    "ConfigurationError",
    "MemocacheError",
    "SlotIndexError",
    "SlotKeyError",
    "UnreferenceableValueError",
]


class MemocacheError(Exception):
    """Base exception for all memocache errors.

    Attributes:
        code: Machine-readable error code for categorization
        message: Human-readable error description
        context: Additional context for debugging
    """
    code: str = "MEMOCACHE_ERROR"

    def __init__(
        self,
        message: str,
        code: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            ctx = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"[{self.code}] {self.message} ({ctx})"
        return f"[{self.code}] {self.message}"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "code": self.code,
            "message": self.message,
            "context": self.context,
        }


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(MemocacheError, ValueError):
    """Invalid cache or collection configuration.

    Raised at construction time (never clamped) for a capacity or
    working-set size below 1, a non-positive load factor, an unknown
    reference strength, or an invalidation group that would contain itself.

    Attributes:
        parameter: Name of the offending parameter, if any
    """
    code: str = "CONFIGURATION_ERROR"

    def __init__(
        self,
        message: str,
        parameter: str | None = None,
        value: Any = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, context=context)
        self.parameter = parameter
        if parameter:
            self.context["parameter"] = parameter
            self.context["value"] = value


# =============================================================================
# Lookup Errors
# =============================================================================


class SlotIndexError(MemocacheError, IndexError):
    """Index outside the bounds of a lazy list."""
    code: str = "SLOT_INDEX_ERROR"

    def __init__(
        self,
        index: int,
        size: int,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(
            f"index {index} out of range for lazy list of size {size}",
            context=context,
        )
        self.index = index
        self.size = size


class SlotKeyError(MemocacheError, KeyError):
    """Key not present in a lazy map."""
    code: str = "SLOT_KEY_ERROR"

    def __init__(self, key: Any, context: dict[str, Any] | None = None):
        super().__init__(f"no slot mapped for key {key!r}", context=context)
        self.key = key


# =============================================================================
# Value Errors
# =============================================================================


class UnreferenceableValueError(MemocacheError, TypeError):
    """Value cannot be held by a soft or weak reference.

    CPython only allows weak references to objects whose type carries a
    ``__weakref__`` slot; builtins such as int, str and tuple do not.
    """
    code: str = "UNREFERENCEABLE_VALUE"

    def __init__(self, value: Any, strength: str):
        super().__init__(
            f"{type(value).__name__} values cannot be stored in a {strength} cache",
            context={"value_type": type(value).__name__, "strength": strength},
        )


class ComputationError(MemocacheError):
    """A wrapped callable raised while being memoized.

    Only raised by factories that explicitly wrap failures
    (``MemoizedValue.of_callable``); the original exception is chained as
    ``__cause__``. Plain memoized values propagate failures unchanged.
    """
    code: str = "COMPUTATION_ERROR"
